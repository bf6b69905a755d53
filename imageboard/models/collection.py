"""Collection model."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from imageboard.database import Base
from imageboard.models.mixins import TimestampMixin


class Collection(Base, TimestampMixin):
    """Named, ordered grouping of images."""

    __tablename__ = "collections"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(String(4000), nullable=False, default="")
    uploader_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    uploader = relationship("User")
    members = relationship(
        "CollectionMember",
        back_populates="collection",
        cascade="all, delete-orphan",
        order_by="CollectionMember.position",
    )


class CollectionMember(Base, TimestampMixin):
    """Image membership in a collection."""

    __tablename__ = "collection_members"
    __table_args__ = (
        UniqueConstraint("collection_id", "image_id", name="uq_collection_members_image"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection_id = Column(Integer, ForeignKey("collections.id"), nullable=False, index=True)
    image_id = Column(Integer, ForeignKey("images.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    linker_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    collection = relationship("Collection", back_populates="members")
    image = relationship("Image")
