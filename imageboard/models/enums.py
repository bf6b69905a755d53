"""Enums for model fields."""

from enum import IntFlag


class Permission(IntFlag):
    """Per-account permission bits stored in users.permissions."""

    NONE = 0
    VIEW_IMAGES_AND_TAGS = 1
    UPLOAD_IMAGE = 2
    MODIFY_IMAGE_TAGS = 4
    ADD_TAGS = 8
    MODIFY_TAGS = 16
    REMOVE_IMAGE = 32
    REMOVE_TAGS = 64
    EDIT_USERS = 128
    ADD_COLLECTIONS = 256
    MODIFY_COLLECTIONS = 512
    REMOVE_COLLECTIONS = 1024
    SCORE_IMAGE = 2048
    SOURCE_IMAGE = 4096

    def has(self, permission: "Permission") -> bool:
        """Check if every bit of ``permission`` is set."""
        return (self & permission) == permission
