"""User model."""

from sqlalchemy import Boolean, Column, Integer, String

from imageboard.database import Base
from imageboard.models.enums import Permission
from imageboard.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User account, its permission bits and its single active session."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    disabled = Column(Boolean, default=False, nullable=False)
    # Session token (UUID text) and the address it was issued to; cleared together
    token_id = Column(String(36), nullable=True)
    ip = Column(String(45), nullable=True)
    permissions = Column(Integer, default=0, nullable=False)
    # Tag query appended to every search this user runs
    search_filter = Column(String(1024), nullable=True)

    @property
    def permission_set(self) -> Permission:
        return Permission(self.permissions or 0)
