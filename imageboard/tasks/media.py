"""Celery tasks for thumbnails and secondary image hashes."""

import logging
import os

from imageboard.celery_app import app as celery_app
from imageboard.config import get_settings
from imageboard.database import SessionLocal
from imageboard.models.image import Image
from imageboard.services.media import (
    compute_dhash,
    generate_thumbnail,
    is_rasterizable,
    thumbnail_name,
)

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.generate_thumbnail")
def generate_image_thumbnail(location: str) -> dict:
    """Write the thumbnail for a stored file.

    Args:
        location: Content-hash file name under the image directory

    Returns:
        dict with the thumbnail name, or a skip/error reason
    """
    settings = get_settings()
    if not is_rasterizable(location):
        return {"skipped": location}

    source_path = os.path.join(settings.image_directory, location)
    destination = os.path.join(settings.thumbnail_directory, thumbnail_name(location))
    if not generate_thumbnail(source_path, destination, settings.thumbnail_size):
        return {"error": f"thumbnail failed for {location}"}
    logger.info(f"Generated thumbnail for {location}")
    return {"thumbnail": thumbnail_name(location)}


@celery_app.task(name="tasks.generate_image_hash")
def generate_image_hash(location: str, image_id: int) -> dict:
    """Compute and store the difference hash used by similar: queries."""
    settings = get_settings()
    if not is_rasterizable(location):
        return {"skipped": location}

    dhash = compute_dhash(os.path.join(settings.image_directory, location))
    if dhash is None:
        return {"error": f"hash failed for {location}"}

    db = SessionLocal()
    try:
        image = db.query(Image).filter(Image.id == image_id).first()
        if not image:
            logger.warning(f"Image {image_id} not found, skipping hash")
            return {"error": "Image not found"}
        image.dhash = dhash
        db.commit()
        return {"image_id": image_id, "dhash": dhash}
    except Exception as e:
        logger.error(f"Error storing hash for image {image_id}: {e}", exc_info=True)
        db.rollback()
        return {"error": str(e)}
    finally:
        db.close()
