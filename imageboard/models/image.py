"""Image model and its tag/vote link tables."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from imageboard.database import Base
from imageboard.models.mixins import TimestampMixin


class Image(Base, TimestampMixin):
    """Uploaded media, stored on disk under its content-hash name."""

    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, default="")
    description = Column(String(4000), nullable=False, default="")
    location = Column(String(255), unique=True, nullable=False, index=True)  # sha256 + ext
    uploader_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    source = Column(String(2048), nullable=False, default="")
    rating = Column(String(32), nullable=False, default="unrated", index=True)
    score = Column(Integer, nullable=False, default=0, index=True)  # sum of votes
    dhash = Column(String(16), nullable=True, index=True)  # 64-bit difference hash, hex

    # Relationships
    uploader = relationship("User")
    tag_links = relationship("ImageTag", back_populates="image", cascade="all, delete-orphan")
    votes = relationship("ImageVote", back_populates="image", cascade="all, delete-orphan")


class ImageTag(Base, TimestampMixin):
    """Tag attached to an image."""

    __tablename__ = "image_tags"
    __table_args__ = (UniqueConstraint("image_id", "tag_id", name="uq_image_tags_image_tag"),)

    id = Column(Integer, primary_key=True, index=True)
    image_id = Column(Integer, ForeignKey("images.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False, index=True)
    linker_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    image = relationship("Image", back_populates="tag_links")
    tag = relationship("Tag", back_populates="image_links")


class ImageVote(Base, TimestampMixin):
    """One user's score for one image."""

    __tablename__ = "image_votes"
    __table_args__ = (UniqueConstraint("user_id", "image_id", name="uq_image_votes_user_image"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    image_id = Column(Integer, ForeignKey("images.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)  # -10..10

    image = relationship("Image", back_populates="votes")
