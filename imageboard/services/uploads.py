"""Upload ingestion: content-addressed storage, tagging and collections."""

import io
import logging
import os
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from imageboard.config import Settings
from imageboard.models.collection import Collection
from imageboard.models.enums import Permission
from imageboard.services.audit import dispatch_audit_log
from imageboard.services.auth import get_user_by_name
from imageboard.services.collections import CollectionService
from imageboard.services.images import ImageService
from imageboard.services.media import get_new_image_name, is_allowed_file
from imageboard.services.tags import TagService

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """A file from the multipart form."""

    filename: str
    data: bytes


@dataclass
class UploadResult:
    """Outcome of one upload request."""

    last_id: int = 0
    duplicate_ids: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return "".join(self.errors)


def _queue_media_tasks(location: str, image_id: int) -> None:
    from imageboard.tasks.media import generate_image_hash, generate_image_thumbnail

    try:
        generate_image_thumbnail.delay(location)
        generate_image_hash.delay(location, image_id)
    except Exception as e:
        logger.error(f"Failed to queue media tasks for image {image_id}: {e}")


class UploadService:
    """Service that ingests uploaded files for one user."""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.images = ImageService(db, settings.similar_distance)
        self.tags = TagService(db)
        self.collections = CollectionService(db)

    def handle_image_upload(
        self,
        user_name: str,
        files: list[UploadedFile],
        search_tags: str = "",
        collection_name: str = "",
        source: str = "",
    ) -> UploadResult:
        """Store each file once, tag it and optionally group it into a collection.

        Files are processed independently; a failure on one is recorded in
        the result and the rest continue.
        """
        result = UploadResult()

        user = get_user_by_name(self.db, user_name)
        if user is None:
            dispatch_audit_log(None, "IMAGE-UPLOAD", f"{user_name} failed to upload image. ")
            result.errors.append("user not valid")
            return result
        user_id = user.id
        permissions = user.permission_set

        collection_name = collection_name.strip()
        collection = self.collections.get_collection_by_name(collection_name)
        if collection_name and collection is None:
            if not permissions.has(Permission.ADD_COLLECTIONS):
                dispatch_audit_log(
                    user_id,
                    "IMAGE-UPLOAD",
                    f"{user_name} failed to upload image. No permissions to create collection.",
                )
                result.errors.append("User does not have create permission for collections")
                return result
        elif collection is not None and not self._can_modify_collection(
            permissions, collection, user_id
        ):
            dispatch_audit_log(
                user_id,
                "IMAGE-UPLOAD",
                f"{user_name} failed to upload image. "
                "No permissions to add members to collection.",
            )
            result.errors.append("User does not have permission to update requested collection")
            return result

        if not permissions.has(Permission.UPLOAD_IMAGE):
            dispatch_audit_log(
                user_id, "IMAGE-UPLOAD", f"{user_name} failed to upload image. No permissions."
            )
            result.errors.append("User does not have upload permission for images")
            return result

        # Resolve tags once for every file
        tag_ids, tag_messages = self.tags.resolve_assignable_tags(
            search_tags,
            user_id,
            user_name,
            can_use_existing=(
                permissions.has(Permission.MODIFY_IMAGE_TAGS)
                or self.settings.users_control_own_objects
            ),
            can_create=permissions.has(Permission.ADD_TAGS),
        )
        result.errors.extend(tag_messages)
        tag_id_string = ", ".join(str(tag_id) for tag_id in tag_ids)

        os.makedirs(self.settings.image_directory, exist_ok=True)
        uploaded: list[tuple[str, int]] = []
        for upload in files:
            stored = self._store_file(upload, user_id, user_name, source, result)
            if stored is None:
                continue
            image_id, location = stored
            result.last_id = image_id
            uploaded.append((upload.filename, image_id))

            try:
                self.tags.add_tags(tag_ids, image_id, user_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{user_name}: failed to add tags to image {image_id}: {e}")
                result.errors.append(f"Failed to add tags to {upload.filename}. ")
            else:
                dispatch_audit_log(
                    user_id,
                    "IMAGE-UPLOAD",
                    f"{user_name} tagged image {image_id} with {tag_id_string}",
                )

            dispatch_audit_log(
                user_id, "IMAGE-UPLOAD", f"{user_name} successfully uploaded an image. {image_id}"
            )
            _queue_media_tasks(location, image_id)

        if collection_name:
            self._add_to_collection(
                collection, collection_name, uploaded, user_id, user_name, result
            )

        return result

    def _can_modify_collection(
        self, permissions: Permission, collection: Collection, user_id: int
    ) -> bool:
        if permissions.has(Permission.MODIFY_COLLECTIONS):
            return True
        return self.settings.users_control_own_objects and collection.uploader_id == user_id

    def _store_file(
        self,
        upload: UploadedFile,
        user_id: int,
        user_name: str,
        source: str,
        result: UploadResult,
    ) -> tuple[int, str] | None:
        """Write one file and insert its row.

        Returns (new ID, stored name), or None when the file was skipped.
        """
        if not is_allowed_file(upload.filename):
            logger.info(f"{user_name}: rejected upload {upload.filename}, extension not allowed")
            result.errors.append(f"{upload.filename} is not a recognized file. ")
            return None

        if len(upload.data) > self.settings.max_upload_bytes:
            logger.info(f"{user_name}: rejected upload {upload.filename}, too large")
            result.errors.append(f"{upload.filename} is too large. ")
            return None

        hash_name = get_new_image_name(upload.filename, io.BytesIO(upload.data))
        file_path = os.path.join(self.settings.image_directory, hash_name)

        if os.path.exists(file_path):
            duplicate = self.images.get_image_by_filename(hash_name)
            logger.info(
                f"{user_name}: skipping {upload.filename}, already uploaded as {file_path} "
                f"({duplicate.id if duplicate else 'no row'})"
            )
            if duplicate:
                result.duplicate_ids[upload.filename] = duplicate.id
            else:
                result.errors.append(f"{upload.filename} has already been uploaded. ")
            return None

        try:
            with open(file_path, "wb") as handle:
                handle.write(upload.data)
        except OSError as e:
            logger.error(f"{user_name}: failed to save {upload.filename} to {file_path}: {e}")
            result.errors.append(f"{upload.filename} could not be saved, internal error. ")
            return None

        try:
            return self.images.new_image(hash_name, hash_name, user_id, source), hash_name
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{user_name}: error adding {file_path} to database: {e}")
            result.errors.append(
                f"{upload.filename} could not be added to database, internal error. "
            )
            try:
                os.remove(file_path)
            except OSError as remove_error:
                logger.error(f"Failed to remove orphaned file {file_path}: {remove_error}")
            return None

    def _add_to_collection(
        self,
        collection: Collection | None,
        collection_name: str,
        uploaded: list[tuple[str, int]],
        user_id: int,
        user_name: str,
        result: UploadResult,
    ) -> None:
        if collection is not None:
            collection_id = collection.id
        else:
            try:
                collection_id = self.collections.new_collection(collection_name, "", user_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{user_name}: error creating collection {collection_name}: {e}")
                result.errors.append("Failed to create the collection requested, SQL error. ")
                return

        image_ids = [image_id for _, image_id in sorted(uploaded, key=lambda pair: pair[0])]
        try:
            self.collections.add_collection_members(collection_id, image_ids, user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{user_name}: error adding images to collection {collection_id}: {e}")
            result.errors.append("Failed to add images to collection. ")
