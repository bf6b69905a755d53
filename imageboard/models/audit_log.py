"""Audit log model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from imageboard.database import Base


class AuditLog(Base):
    """Append-only record of privileged actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    type = Column(String(64), nullable=False, index=True)  # e.g. IMAGE-UPLOAD
    info = Column(String(4000), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
