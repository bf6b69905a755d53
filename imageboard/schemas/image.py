"""Image, tag and collection schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TagInfo(BaseModel):
    """Tag shown on an image page."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str = ""


class CollectionInfo(BaseModel):
    """Collection summary."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str = ""
    uploader_id: int | None = None


class ContentEmbed(BaseModel):
    """How a stored file should be embedded in a page."""

    kind: str  # "image" | "video" | "audio" | "unknown"
    url: str
    thumbnail_url: str | None = None
    mime_type: str | None = None


class ImageInfo(BaseModel):
    """Image row plus the per-request details the image page needs."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    location: str
    uploader_id: int | None
    source: str
    rating: str
    score: int
    created_at: datetime | None = None

    member_collections: list[CollectionInfo] = []
    source_is_url: bool = False
    users_voted_score: int = 0
