"""Image service: rows, votes, tag-query search and navigation."""

import logging
import re

from sqlalchemy import cast, exists, false, func, select
from sqlalchemy.dialects.mysql import BIGINT
from sqlalchemy.orm import Query, Session

from imageboard.models.image import Image, ImageTag, ImageVote
from imageboard.models.user import User
from imageboard.services.media import hamming_distance
from imageboard.services.tags import QueryTag

logger = logging.getLogger(__name__)

MIN_VOTE = -10
MAX_VOTE = 10

SCORE_PATTERN = re.compile(r"^(?P<op>[<>]?)(?P<value>-?[0-9]+)$")
ID_PATTERN = re.compile(r"[0-9]+")

# Dialects where Hamming distance is computed in SQL
BIT_COUNT_DIALECTS = ("mysql", "mariadb")


def _hex_to_unsigned(value):
    return cast(func.conv(value, 16, 10), BIGINT(unsigned=True))


def dhash_within(column, target: str, distance: int):
    """SQL condition: ``column`` differs from ``target`` in at most ``distance`` bits."""
    difference = _hex_to_unsigned(column).op("^")(_hex_to_unsigned(target))
    return func.bit_count(difference) <= distance


class ImageService:
    """Service for image rows and searches over them."""

    def __init__(self, db: Session, similar_distance: int = 6):
        self.db = db
        self.similar_distance = similar_distance

    # Rows

    def get_image(self, image_id: int | None) -> Image | None:
        if not image_id:
            return None
        return self.db.query(Image).filter(Image.id == image_id).first()

    def get_image_by_filename(self, location: str) -> Image | None:
        return self.db.query(Image).filter(Image.location == location).first()

    def new_image(self, name: str, location: str, uploader_id: int | None, source: str) -> int:
        """Insert an image row and return its ID."""
        image = Image(name=name, location=location, uploader_id=uploader_id, source=source or "")
        self.db.add(image)
        self.db.commit()
        self.db.refresh(image)
        return image.id

    def set_image_source(self, image_id: int, source: str) -> None:
        self._update(image_id, {Image.source: source})

    def update_image(
        self, image_id: int, name: str | None = None, description: str | None = None
    ) -> None:
        """Update name and/or description; None leaves a field unchanged."""
        values = {}
        if name is not None:
            values[Image.name] = name
        if description is not None:
            values[Image.description] = description
        if values:
            self._update(image_id, values)

    def set_image_rating(self, image_id: int, rating: str) -> None:
        self._update(image_id, {Image.rating: rating.lower()})

    def _update(self, image_id: int, values: dict) -> None:
        updated = (
            self.db.query(Image)
            .filter(Image.id == image_id)
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            raise LookupError(f"image {image_id} does not exist")
        self.db.commit()

    # Votes

    def get_user_vote_score(self, user_id: int, image_id: int) -> int:
        score = (
            self.db.query(ImageVote.score)
            .filter(ImageVote.user_id == user_id, ImageVote.image_id == image_id)
            .scalar()
        )
        return score or 0

    def update_user_vote_score(self, user_id: int, image_id: int, score: int) -> int:
        """Set a user's vote and refresh the image's aggregate score.

        Returns the new aggregate.
        """
        if not MIN_VOTE <= score <= MAX_VOTE:
            raise ValueError(f"score must be between {MIN_VOTE} and {MAX_VOTE}")

        vote = (
            self.db.query(ImageVote)
            .filter(ImageVote.user_id == user_id, ImageVote.image_id == image_id)
            .first()
        )
        if vote:
            vote.score = score
        else:
            self.db.add(ImageVote(user_id=user_id, image_id=image_id, score=score))
        self.db.flush()

        total = (
            self.db.query(func.coalesce(func.sum(ImageVote.score), 0))
            .filter(ImageVote.image_id == image_id)
            .scalar()
        )
        self.db.query(Image).filter(Image.id == image_id).update(
            {Image.score: total}, synchronize_session=False
        )
        self.db.commit()
        return total

    # Search

    def search_images(
        self, tags: list[QueryTag], offset: int = 0, limit: int = 30
    ) -> tuple[list[Image], int]:
        """Images matching every term, newest first, plus the total match count."""
        query = self._filtered(tags)
        total = query.count()
        images = query.order_by(Image.id.desc()).offset(offset).limit(limit).all()
        return images, total

    def get_prev_next_images(
        self, tags: list[QueryTag], image_id: int
    ) -> tuple[int | None, int | None]:
        """Neighbours of ``image_id`` in a newest-first listing of the query.

        Previous is the closest newer match, next the closest older one.
        """
        query = self._filtered(tags).with_entities(Image.id)
        previous_id = query.filter(Image.id > image_id).order_by(Image.id.asc()).limit(1).scalar()
        next_id = query.filter(Image.id < image_id).order_by(Image.id.desc()).limit(1).scalar()
        return previous_id, next_id

    def _filtered(self, tags: list[QueryTag]) -> Query:
        query = self.db.query(Image)
        for tag in tags:
            if tag.is_meta:
                condition = self._meta_condition(tag)
                if condition is None:
                    continue
            elif tag.exists:
                condition = exists().where(
                    ImageTag.image_id == Image.id, ImageTag.tag_id == tag.id
                )
            elif tag.exclude:
                # Excluding a tag nobody has is a no-op
                continue
            else:
                condition = false()
            query = query.filter(~condition if tag.exclude else condition)
        return query

    def _meta_condition(self, tag: QueryTag):
        value = tag.meta_value
        if tag.meta_type == "rating":
            return Image.rating == value
        if tag.meta_type == "uploader":
            return Image.uploader_id.in_(select(User.id).where(func.lower(User.name) == value))
        if tag.meta_type == "score":
            match = SCORE_PATTERN.match(value)
            if not match:
                logger.info(f"Ignoring malformed score query '{tag.name}'")
                return None
            number = int(match.group("value"))
            if match.group("op") == ">":
                return Image.score > number
            if match.group("op") == "<":
                return Image.score < number
            return Image.score == number
        if tag.meta_type == "similar":
            if not ID_PATTERN.fullmatch(value):
                logger.info(f"Ignoring malformed similar query '{tag.name}'")
                return None
            return self.similar_condition(int(value))
        return None

    def similar_condition(self, image_id: int):
        """Match images whose difference hash is near ``image_id``'s, itself included."""
        target = self.db.query(Image.dhash).filter(Image.id == image_id).scalar()
        if target is None:
            return Image.id == image_id
        if self.db.get_bind().dialect.name in BIT_COUNT_DIALECTS:
            within = dhash_within(Image.dhash, target, self.similar_distance)
            return Image.dhash.isnot(None) & within
        return Image.id.in_(self.similar_image_ids(image_id))

    def similar_image_ids(self, image_id: int) -> list[int]:
        """IDs whose difference hash is within ``similar_distance`` bits, self included."""
        target = self.db.query(Image.dhash).filter(Image.id == image_id).scalar()
        if target is None:
            return [image_id]
        candidates = self.db.query(Image.id, Image.dhash).filter(Image.dhash.isnot(None)).all()
        return [
            candidate_id
            for candidate_id, dhash in candidates
            if hamming_distance(target, dhash) <= self.similar_distance
        ]
