"""Media helpers: content naming, embeds, thumbnails and perceptual hashes."""

import hashlib
import logging
import mimetypes
import os
from typing import BinaryIO

import imagehash
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from imageboard.schemas.image import ContentEmbed

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".jfif",
    ".bmp",
    ".gif",
    ".png",
    ".svg",
    ".webp",
    ".tiff",
    ".tif",
}
VIDEO_EXTENSIONS = {".mpg", ".mov", ".webm", ".avi", ".mp4"}
AUDIO_EXTENSIONS = {".mp3", ".ogg", ".wav"}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | AUDIO_EXTENSIONS

# Pillow cannot rasterize these
NON_RASTER_EXTENSIONS = {".svg"}

HASH_CHUNK_SIZE = 64 * 1024


def file_extension(filename: str) -> str:
    """Lowercased extension including the dot, or ''."""
    return os.path.splitext(filename)[1].lower()


def is_allowed_file(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


def get_new_image_name(original_name: str, stream: BinaryIO) -> str:
    """Content-addressed name: sha256 hex of the bytes plus the original extension."""
    hasher = hashlib.sha256()
    for chunk in iter(lambda: stream.read(HASH_CHUNK_SIZE), b""):
        hasher.update(chunk)
    return hasher.hexdigest() + os.path.splitext(original_name)[1]


def thumbnail_name(location: str) -> str:
    return f"{location}.png"


def get_embed_for_content(location: str) -> ContentEmbed:
    """Describe how a stored file is shown on a page."""
    extension = file_extension(location)
    mime_type, _ = mimetypes.guess_type(location)
    url = f"/content/{location}"
    if extension in IMAGE_EXTENSIONS:
        thumb = None
        if extension not in NON_RASTER_EXTENSIONS:
            thumb = f"/thumbs/{thumbnail_name(location)}"
        return ContentEmbed(kind="image", url=url, thumbnail_url=thumb, mime_type=mime_type)
    if extension in VIDEO_EXTENSIONS:
        return ContentEmbed(kind="video", url=url, mime_type=mime_type)
    if extension in AUDIO_EXTENSIONS:
        return ContentEmbed(kind="audio", url=url, mime_type=mime_type)
    return ContentEmbed(kind="unknown", url=url, mime_type=mime_type)


def is_rasterizable(location: str) -> bool:
    extension = file_extension(location)
    return extension in IMAGE_EXTENSIONS and extension not in NON_RASTER_EXTENSIONS


def generate_thumbnail(source_path: str, destination_path: str, max_size: int) -> bool:
    """Write a PNG thumbnail no larger than ``max_size`` on either side."""
    try:
        with PILImage.open(source_path) as image:
            image.thumbnail((max_size, max_size))
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")
            os.makedirs(os.path.dirname(destination_path) or ".", exist_ok=True)
            image.save(destination_path, format="PNG")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.warning(f"Could not thumbnail {source_path}: {e}")
        return False
    return True


def compute_dhash(source_path: str, hash_size: int = 8) -> str | None:
    """Difference hash of an image as hex (16 digits for the default 64 bits).

    Each bit records whether a pixel is brighter than its left neighbour on
    a (hash_size + 1) x hash_size grayscale downscale.
    """
    try:
        with PILImage.open(source_path) as image:
            return str(imagehash.dhash(image, hash_size=hash_size))
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.warning(f"Could not hash {source_path}: {e}")
        return None


def hamming_distance(first: str, second: str) -> int:
    """Number of differing bits between two hex hashes of the same size."""
    return int(imagehash.hex_to_hash(first) - imagehash.hex_to_hash(second))
