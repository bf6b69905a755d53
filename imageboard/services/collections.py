"""Collection service."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from imageboard.models.collection import Collection, CollectionMember

logger = logging.getLogger(__name__)


class CollectionService:
    """Service for collection lookup and membership."""

    def __init__(self, db: Session):
        self.db = db

    def get_collection_by_name(self, name: str) -> Collection | None:
        if not name:
            return None
        return self.db.query(Collection).filter(Collection.name == name).first()

    def new_collection(self, name: str, description: str, user_id: int | None) -> int:
        """Create a collection and return its ID."""
        collection = Collection(name=name, description=description, uploader_id=user_id)
        self.db.add(collection)
        self.db.commit()
        self.db.refresh(collection)
        logger.info(f"Created collection {collection.id} '{name}' for user {user_id}")
        return collection.id

    def add_collection_members(
        self, collection_id: int, image_ids: list[int], user_id: int | None
    ) -> int:
        """Append images to the end of a collection, keeping the given order.

        Images already in the collection are skipped. Returns the number added.
        """
        existing = {
            image_id
            for (image_id,) in self.db.query(CollectionMember.image_id).filter(
                CollectionMember.collection_id == collection_id
            )
        }
        last_position = (
            self.db.query(func.max(CollectionMember.position))
            .filter(CollectionMember.collection_id == collection_id)
            .scalar()
        )
        position = -1 if last_position is None else last_position

        added = 0
        for image_id in image_ids:
            if image_id in existing:
                continue
            position += 1
            self.db.add(
                CollectionMember(
                    collection_id=collection_id,
                    image_id=image_id,
                    position=position,
                    linker_id=user_id,
                )
            )
            existing.add(image_id)
            added += 1
        self.db.commit()
        return added

    def get_collections_with_image(self, image_id: int) -> list[Collection]:
        return (
            self.db.query(Collection)
            .join(CollectionMember, CollectionMember.collection_id == Collection.id)
            .filter(CollectionMember.image_id == image_id)
            .order_by(Collection.name)
            .all()
        )

    def get_member_ids(self, collection_id: int) -> list[int]:
        """Member image IDs in collection order."""
        return [
            image_id
            for (image_id,) in self.db.query(CollectionMember.image_id)
            .filter(CollectionMember.collection_id == collection_id)
            .order_by(CollectionMember.position)
        ]
