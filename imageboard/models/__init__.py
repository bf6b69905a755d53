"""SQLAlchemy models."""

from imageboard.models.audit_log import AuditLog
from imageboard.models.collection import Collection, CollectionMember
from imageboard.models.enums import Permission
from imageboard.models.image import Image, ImageTag, ImageVote
from imageboard.models.tag import Tag
from imageboard.models.user import User

__all__ = [
    "User",
    "Permission",
    "Image",
    "ImageTag",
    "ImageVote",
    "Tag",
    "Collection",
    "CollectionMember",
    "AuditLog",
]
