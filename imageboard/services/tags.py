"""Tag service: query parsing and image tagging."""

import logging
import re
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from imageboard.models.image import ImageTag
from imageboard.models.tag import Tag
from imageboard.models.user import User
from imageboard.services.audit import dispatch_audit_log

logger = logging.getLogger(__name__)

# Query modifiers, never stored as tags
META_PREFIXES = ("similar:", "rating:", "uploader:", "score:")

QUERY_SPLIT = re.compile(r"[\s,]+")


@dataclass
class QueryTag:
    """One term of a tag query."""

    name: str
    id: int = 0
    description: str = ""
    exists: bool = False
    is_meta: bool = False
    exclude: bool = False
    meta_type: str = ""  # "similar" | "rating" | "uploader" | "score"
    meta_value: str = ""

    @property
    def key(self) -> tuple[str, bool]:
        return (self.name, self.exclude)


def normalize_tag_name(name: str) -> str:
    """Tags are stored stripped and lowercase."""
    return name.strip().lower()


def split_query(query: str) -> list[str]:
    """Split a query on whitespace and commas, dropping empty terms."""
    return [term for term in QUERY_SPLIT.split(query or "") if term]


def remove_duplicate_tags(tags: list[QueryTag]) -> list[QueryTag]:
    """Keep the first occurrence of each (name, exclude) term."""
    seen: set[tuple[str, bool]] = set()
    result = []
    for tag in tags:
        if tag.key in seen:
            continue
        seen.add(tag.key)
        result.append(tag)
    return result


class TagService:
    """Service for tag lookup, creation and attachment."""

    def __init__(self, db: Session):
        self.db = db

    def get_query_tags(self, query: str) -> list[QueryTag]:
        """Resolve each term of ``query`` into a QueryTag."""
        result = []
        for term in split_query(query):
            exclude = term.startswith("-") and len(term) > 1
            if exclude:
                term = term[1:]
            name = normalize_tag_name(term)
            meta = next((prefix for prefix in META_PREFIXES if name.startswith(prefix)), None)
            if meta is not None:
                result.append(
                    QueryTag(
                        name=name,
                        is_meta=True,
                        exists=True,
                        exclude=exclude,
                        meta_type=meta[:-1],
                        meta_value=name[len(meta) :],
                    )
                )
                continue

            tag = self.db.query(Tag).filter(Tag.name == name).first()
            if tag:
                result.append(
                    QueryTag(
                        name=tag.name,
                        id=tag.id,
                        description=tag.description,
                        exists=True,
                        exclude=exclude,
                    )
                )
            else:
                result.append(QueryTag(name=name, exclude=exclude))
        return remove_duplicate_tags(result)

    def resolve_assignable_tags(
        self,
        query: str,
        user_id: int,
        user_name: str,
        *,
        can_use_existing: bool,
        can_create: bool,
    ) -> tuple[list[int], list[str]]:
        """Turn a tag query into tag IDs the user may attach.

        Unknown names become new tags when ``can_create`` is set. Meta terms
        and excluded terms are ignored. Returns the IDs and one message per
        term that could not be used.
        """
        tag_ids: list[int] = []
        messages: list[str] = []
        for tag in self.get_query_tags(query):
            if tag.is_meta or tag.exclude:
                continue
            if tag.exists:
                if not can_use_existing:
                    logger.error(f"{user_name}: does not have modify tag permission")
                    messages.append(
                        f"Unable to use tag {tag.name} due to insufficient permissions "
                        "of user to tag images. "
                    )
                    continue
                tag_ids.append(tag.id)
                continue

            if not can_create:
                logger.error(f"{user_name}: does not have create tag permission")
                messages.append(
                    f"Unable to use tag {tag.name} due to insufficient permissions "
                    "of user to create tags. "
                )
                continue
            try:
                tag_id = self.new_tag(tag.name, tag.description, user_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{user_name}: error attempting to create tag {tag.name}: {e}")
                messages.append(f"Unable to use tag {tag.name} due to a database error. ")
                continue
            dispatch_audit_log(user_id, "CREATE-TAG", f"{user_name} created a new tag. {tag.name}")
            tag_ids.append(tag_id)
        return tag_ids, messages

    def get_user_filter_tags(self, user_id: int) -> list[QueryTag]:
        """The user's global search filter as query tags."""
        search_filter = self.db.query(User.search_filter).filter(User.id == user_id).scalar()
        return self.get_query_tags(search_filter or "")

    def get_tag(self, tag_id: int) -> Tag | None:
        return self.db.query(Tag).filter(Tag.id == tag_id).first()

    def new_tag(self, name: str, description: str, user_id: int | None) -> int:
        """Create a tag and return its ID."""
        tag = Tag(name=normalize_tag_name(name), description=description, uploader_id=user_id)
        self.db.add(tag)
        self.db.commit()
        self.db.refresh(tag)
        logger.info(f"Created tag {tag.id} '{tag.name}' for user {user_id}")
        return tag.id

    def get_image_tags(self, image_id: int) -> list[Tag]:
        """Tags attached to an image, ordered by name."""
        return (
            self.db.query(Tag)
            .join(ImageTag, ImageTag.tag_id == Tag.id)
            .filter(ImageTag.image_id == image_id)
            .order_by(Tag.name)
            .all()
        )

    def add_tags(self, tag_ids: list[int], image_id: int, user_id: int | None) -> int:
        """Attach tags to an image, skipping ones already attached.

        Returns the number of new links.
        """
        if not tag_ids:
            return 0
        attached = {
            tag_id
            for (tag_id,) in self.db.query(ImageTag.tag_id).filter(ImageTag.image_id == image_id)
        }
        added = 0
        for tag_id in dict.fromkeys(tag_ids):
            if tag_id in attached:
                continue
            self.db.add(ImageTag(image_id=image_id, tag_id=tag_id, linker_id=user_id))
            added += 1
        self.db.commit()
        return added

    def remove_tag(self, tag_id: int, image_id: int) -> bool:
        """Detach a tag. Returns False when it was not attached."""
        removed = (
            self.db.query(ImageTag)
            .filter(ImageTag.tag_id == tag_id, ImageTag.image_id == image_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return removed > 0
