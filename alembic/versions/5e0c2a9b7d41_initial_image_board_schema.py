"""initial image board schema

Revision ID: 5e0c2a9b7d41
Revises:
Create Date: 2026-10-19 09:12:03.412877

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e0c2a9b7d41"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_id", sa.String(length=36), nullable=True),
        sa.Column("ip", sa.String(length=45), nullable=True),
        sa.Column("permissions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("search_filter", sa.String(length=1024), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_name"), "users", ["name"], unique=True)

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=False, server_default=""),
        sa.Column("uploader_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_tags_id"), "tags", ["id"], unique=False)
    op.create_index(op.f("ix_tags_name"), "tags", ["name"], unique=True)
    op.create_index(op.f("ix_tags_uploader_id"), "tags", ["uploader_id"], unique=False)

    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("description", sa.String(length=4000), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("uploader_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("source", sa.String(length=2048), nullable=False, server_default=""),
        sa.Column("rating", sa.String(length=32), nullable=False, server_default="unrated"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dhash", sa.String(length=16), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_images_id"), "images", ["id"], unique=False)
    op.create_index(op.f("ix_images_location"), "images", ["location"], unique=True)
    op.create_index(op.f("ix_images_uploader_id"), "images", ["uploader_id"], unique=False)
    op.create_index(op.f("ix_images_rating"), "images", ["rating"], unique=False)
    op.create_index(op.f("ix_images_score"), "images", ["score"], unique=False)
    op.create_index(op.f("ix_images_dhash"), "images", ["dhash"], unique=False)

    op.create_table(
        "image_tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id"), nullable=False),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("linker_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("image_id", "tag_id", name="uq_image_tags_image_tag"),
    )
    op.create_index(op.f("ix_image_tags_id"), "image_tags", ["id"], unique=False)
    op.create_index(op.f("ix_image_tags_image_id"), "image_tags", ["image_id"], unique=False)
    op.create_index(op.f("ix_image_tags_tag_id"), "image_tags", ["tag_id"], unique=False)

    op.create_table(
        "image_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "image_id", name="uq_image_votes_user_image"),
    )
    op.create_index(op.f("ix_image_votes_id"), "image_votes", ["id"], unique=False)
    op.create_index(op.f("ix_image_votes_user_id"), "image_votes", ["user_id"], unique=False)
    op.create_index(op.f("ix_image_votes_image_id"), "image_votes", ["image_id"], unique=False)

    op.create_table(
        "collections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=False, server_default=""),
        sa.Column("uploader_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_collections_id"), "collections", ["id"], unique=False)
    op.create_index(op.f("ix_collections_name"), "collections", ["name"], unique=True)
    op.create_index(
        op.f("ix_collections_uploader_id"), "collections", ["uploader_id"], unique=False
    )

    op.create_table(
        "collection_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "collection_id", sa.Integer(), sa.ForeignKey("collections.id"), nullable=False
        ),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("linker_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("collection_id", "image_id", name="uq_collection_members_image"),
    )
    op.create_index(
        op.f("ix_collection_members_id"), "collection_members", ["id"], unique=False
    )
    op.create_index(
        op.f("ix_collection_members_collection_id"),
        "collection_members",
        ["collection_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_collection_members_image_id"), "collection_members", ["image_id"], unique=False
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("info", sa.String(length=4000), nullable=False, server_default=""),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index(op.f("ix_audit_logs_id"), "audit_logs", ["id"], unique=False)
    op.create_index(op.f("ix_audit_logs_user_id"), "audit_logs", ["user_id"], unique=False)
    op.create_index(op.f("ix_audit_logs_type"), "audit_logs", ["type"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("collection_members")
    op.drop_table("collections")
    op.drop_table("image_votes")
    op.drop_table("image_tags")
    op.drop_table("images")
    op.drop_table("tags")
    op.drop_table("users")
