"""Tag model."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from imageboard.database import Base
from imageboard.models.mixins import TimestampMixin


class Tag(Base, TimestampMixin):
    """Assignable label. Meta tags are query modifiers and never stored."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)  # lowercase
    description = Column(String(2000), nullable=False, default="")
    uploader_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    uploader = relationship("User")
    image_links = relationship("ImageTag", back_populates="tag", cascade="all, delete-orphan")
