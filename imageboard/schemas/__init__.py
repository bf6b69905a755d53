"""Pydantic schemas for page rendering."""

from imageboard.schemas.image import CollectionInfo, ContentEmbed, ImageInfo, TagInfo
from imageboard.schemas.page import TemplateInput

__all__ = [
    "TagInfo",
    "CollectionInfo",
    "ContentEmbed",
    "ImageInfo",
    "TemplateInput",
]
