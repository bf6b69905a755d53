"""Image page: viewing, uploading and per-image commands."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, Response
from markupsafe import Markup
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from imageboard.api.dependencies import (
    FormValues,
    get_form_values,
    get_template_input,
    get_upload_service,
)
from imageboard.api.rendering import logon_redirect, render
from imageboard.config import Settings, get_settings
from imageboard.database import get_db
from imageboard.models.enums import Permission
from imageboard.models.image import Image
from imageboard.schemas.image import CollectionInfo, ImageInfo, TagInfo
from imageboard.schemas.page import TemplateInput
from imageboard.services.audit import dispatch_audit_log, dispatch_audit_log_by_name
from imageboard.services.collections import CollectionService
from imageboard.services.images import MAX_VOTE, MIN_VOTE, ImageService
from imageboard.services.media import get_embed_for_content
from imageboard.services.tags import TagService, remove_duplicate_tags
from imageboard.services.uploads import UploadedFile, UploadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])


@dataclass
class CommandContext:
    """Everything a page command needs."""

    page: TemplateInput
    form: FormValues
    db: Session
    settings: Settings
    images: ImageService
    tags: TagService


CommandResult = int | None | Response

# ASCII digits only
ID_PATTERN = re.compile(r"[0-9]+")
VOTE_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_id(value: str) -> int | None:
    """Parse a positive numeric ID, or None."""
    value = (value or "").strip()
    if not ID_PATTERN.fullmatch(value):
        return None
    parsed = int(value)
    return parsed or None


def can_act_on(ctx: CommandContext, permission: Permission, image: Image) -> bool:
    """Permission bit, or ownership when users control their own objects."""
    if ctx.page.has_permission(permission):
        return True
    return ctx.settings.users_control_own_objects and image.uploader_id == ctx.page.user_id


def _load_image(
    ctx: CommandContext, command: str, raw_id: str
) -> tuple[int | None, Image | None]:
    """Parse the ID field and fetch the image, adding a message on failure."""
    image_id = parse_id(raw_id)
    if image_id is None:
        logger.error(f"{command} {ctx.page.user_name}: failed to parse image id {raw_id!r}")
        ctx.page.message += "Failed to parse image id. "
        return None, None
    image = ctx.images.get_image(image_id)
    if image is None:
        ctx.page.message += "Failed to get image information. "
    return image_id, image


def change_vote(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    if not page.user_name or not page.user_id:
        return logon_redirect("You must be logged in to vote on images")
    logger.debug(f"ChangeVote {page.user_name}: attempting to vote on image")

    image_id, image = _load_image(ctx, "ChangeVote", ctx.form.get("ID"))
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.SCORE_IMAGE, image):
        dispatch_audit_log(
            page.user_id, "IMAGE-SCORE", f"{page.user_name} failed to score image. No permissions."
        )
        page.message += "You do not have permissions to vote on this image. "
        return image_id

    raw_vote = ctx.form.get("NewVote")
    if not VOTE_PATTERN.fullmatch(raw_vote):
        page.message += "Failed to parse your vote value. "
        return image_id
    score = int(raw_vote)
    if not MIN_VOTE <= score <= MAX_VOTE:
        page.message += f"Score must be between {MIN_VOTE} and {MAX_VOTE}. "
        return image_id

    try:
        ctx.images.update_user_vote_score(page.user_id, image_id, score)
    except SQLAlchemyError as e:
        ctx.db.rollback()
        logger.error(f"ChangeVote {page.user_name}: failed to set vote in database: {e}")
        page.message += "Failed to set vote in database, internal error. "
        return image_id
    page.message += "Successfully changed vote! "
    return image_id


def change_source(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    if not page.user_name or not page.user_id:
        return logon_redirect("You must be logged in to change image sources")
    logger.debug(f"ChangeSource {page.user_name}: attempting to source an image")

    image_id, image = _load_image(ctx, "ChangeSource", ctx.form.get("ID"))
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.SOURCE_IMAGE, image):
        dispatch_audit_log(
            page.user_id,
            "IMAGE-SOURCE",
            f"{page.user_name} failed to source image. No permissions.",
        )
        page.message += "You do not have permissions to change the source of this image. "
        return image_id

    try:
        ctx.images.set_image_source(image_id, ctx.form.get("NewSource"))
    except (SQLAlchemyError, LookupError) as e:
        ctx.db.rollback()
        logger.error(f"ChangeSource {page.user_name}: failed to set source in database: {e}")
        page.message += "Failed to set source in database, internal error. "
        return image_id
    page.message += "Successfully changed source! "
    return image_id


def change_name(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    if not page.user_name or not page.user_id:
        return logon_redirect("You must be logged in to rename images")
    logger.debug(f"ChangeName {page.user_name}: attempting to name an image")

    image_id, image = _load_image(ctx, "ChangeName", ctx.form.get("ID"))
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.SOURCE_IMAGE, image):
        dispatch_audit_log(
            page.user_id, "IMAGE-NAME", f"{page.user_name} failed to name image. No permissions."
        )
        page.message += (
            "You do not have permissions to change the name/description of this image. "
        )
        return image_id

    try:
        ctx.images.update_image(
            image_id, name=ctx.form.get("NewName"), description=ctx.form.get("NewDescription")
        )
    except (SQLAlchemyError, LookupError) as e:
        ctx.db.rollback()
        logger.error(f"ChangeName {page.user_name}: failed to set name in database: {e}")
        page.message += "Failed to set name/description in database, internal error. "
        return image_id
    page.message += "Successfully changed name/description! "
    return image_id


def remove_tag(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    raw_image_id = ctx.form.get("ID")
    raw_tag_id = ctx.form.get("TagID")
    if not page.user_name:
        page.message += "You must be logged in to perform that action. "
        return None
    if not raw_image_id or not raw_tag_id:
        page.message += "No ID provided to remove. "
        return None

    image_id, image = _load_image(ctx, "RemoveTag", raw_image_id)
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.MODIFY_IMAGE_TAGS, image):
        page.message += "User does not have modify permission for tags on images. "
        dispatch_audit_log_by_name(
            page.user_name,
            "REMOVE-IMAGETAG",
            f"{page.user_name} failed to remove tag from image {image_id}. "
            f"Insufficient permissions. {raw_tag_id}",
        )
        return image_id

    tag_id = parse_id(raw_tag_id)
    if tag_id is None:
        logger.error(f"RemoveTag {page.user_name}: failed to parse tag id {raw_tag_id!r}")
        page.message += "Error parsing tag id. "
        return image_id

    try:
        removed = ctx.tags.remove_tag(tag_id, image_id)
    except SQLAlchemyError as e:
        ctx.db.rollback()
        logger.error(f"RemoveTag {page.user_name}: failed to remove tag {tag_id}: {e}")
        removed = False
    if not removed:
        page.message += "Failed to remove tag. Was it attached in the first place? "
        return image_id

    page.message += "Tag removed successfully. "
    dispatch_audit_log_by_name(
        page.user_name,
        "REMOVE-IMAGETAG",
        f"{page.user_name} removed tag from image {image_id}. tag {tag_id}",
    )
    return image_id


def add_tags(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    raw_image_id = ctx.form.get("ID")
    new_tags = ctx.form.get("NewTags")
    if not page.user_name or not page.user_id:
        page.message += "You must be logged in to perform that action. "
        return None
    if not raw_image_id:
        page.message += "Error parsing image id. "
        return None

    image_id, image = _load_image(ctx, "AddTags", raw_image_id)
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.MODIFY_IMAGE_TAGS, image):
        page.message += "User does not have modify permission for tags on images. "
        dispatch_audit_log_by_name(
            page.user_name,
            "ADD-IMAGETAG",
            f"{page.user_name} failed to add tag to image {image_id}. "
            f"Insufficient permissions. {new_tags}",
        )
        return image_id

    tag_ids, messages = ctx.tags.resolve_assignable_tags(
        new_tags,
        page.user_id,
        page.user_name,
        can_use_existing=True,
        can_create=page.has_permission(Permission.ADD_TAGS),
    )
    page.message += "".join(messages)
    try:
        ctx.tags.add_tags(tag_ids, image_id, page.user_id)
    except SQLAlchemyError as e:
        ctx.db.rollback()
        logger.error(
            f"AddTags {page.user_name}: error adding tags {tag_ids} to image {image_id}: {e}"
        )
        page.message += "Failed to add tag due to database error. "
    return image_id


def change_rating(ctx: CommandContext) -> CommandResult:
    page = ctx.page
    raw_image_id = ctx.form.get("ID")
    new_rating = ctx.form.get("NewRating").strip().lower()
    if not page.user_name:
        page.message += "You must be logged in to perform that action. "
        return None
    if not raw_image_id:
        page.message += "Error parsing image id. "
        return None

    image_id, image = _load_image(ctx, "ChangeRating", raw_image_id)
    if image is None:
        return image_id

    if not can_act_on(ctx, Permission.MODIFY_IMAGE_TAGS, image):
        page.message += "User does not have modify permission for tags on images. "
        dispatch_audit_log_by_name(
            page.user_name,
            "ADD-IMAGERATING",
            f"{page.user_name} failed to edit rating for image {image_id}. "
            f"Insufficient permissions. {new_rating}",
        )
        return image_id

    if not new_rating:
        page.message += "No rating provided. "
        return image_id

    try:
        ctx.images.set_image_rating(image_id, new_rating)
    except (SQLAlchemyError, LookupError) as e:
        ctx.db.rollback()
        logger.error(f"ChangeRating {page.user_name}: failed to change image rating: {e}")
        page.message += "Failed to change image rating, internal error occurred. "
    return image_id


COMMANDS: dict[str, Callable[[CommandContext], CommandResult]] = {
    "ChangeVote": change_vote,
    "ChangeSource": change_source,
    "ChangeName": change_name,
    "RemoveTag": remove_tag,
    "AddTags": add_tags,
    "ChangeRating": change_rating,
}


async def upload_file(ctx: CommandContext, uploads: UploadService) -> CommandResult:
    page = ctx.page
    if not page.user_name:
        return logon_redirect("You must be logged in to upload images")
    logger.debug(f"uploadFile {page.user_name}: attempting to upload file")

    files = []
    for upload in ctx.form.files("fileToUpload"):
        data = await upload.read()
        if not upload.filename and not data:
            # Empty file input
            continue
        files.append(UploadedFile(filename=upload.filename or "", data=data))

    result = uploads.handle_image_upload(
        page.user_name,
        files,
        search_tags=ctx.form.get("SearchTags"),
        collection_name=ctx.form.get("CollectionName"),
        source=ctx.form.get("Source"),
    )
    if result.error_message:
        logger.error(f"uploadFile {page.user_name}: {result.error_message}")
        page.message += "One or more warnings generated during upload. " + result.error_message

    duplicate_link = Markup('<a href="/image?ID={}">{}</a> has already been uploaded. ')
    html_message = Markup("")
    for file_name, duplicate_id in result.duplicate_ids.items():
        html_message += duplicate_link.format(duplicate_id, file_name)
    page.html_message += str(html_message)

    if result.last_id:
        return result.last_id
    return next(iter(result.duplicate_ids.values()), None)


@router.api_route("/image", methods=["GET", "POST"], response_class=HTMLResponse)
async def image_page(
    request: Request,
    page: Annotated[TemplateInput, Depends(get_template_input)],
    form: Annotated[FormValues, Depends(get_form_values)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    uploads: Annotated[UploadService, Depends(get_upload_service)],
):
    """View one image, after applying the requested command."""
    if not page.user_name and settings.account_required_to_view:
        return logon_redirect("Access to this server requires an account")

    ctx = CommandContext(
        page=page,
        form=form,
        db=db,
        settings=settings,
        images=ImageService(db, settings.similar_distance),
        tags=TagService(db),
    )

    command = form.get("command")
    if command == "uploadFile":
        outcome = await upload_file(ctx, uploads)
    elif command in COMMANDS:
        outcome = COMMANDS[command](ctx)
    else:
        outcome = parse_id(form.get("ID"))
        if outcome is None:
            page.message += "No image selected. "
            return render(request, "image.html", page)

    if isinstance(outcome, Response):
        return outcome
    return render_image(request, ctx, outcome)


def render_image(request: Request, ctx: CommandContext, image_id: int | None):
    """Fill the template input for one image and render it."""
    page = ctx.page
    image = ctx.images.get_image(image_id)
    if image is None:
        page.message += "Failed to get image information. "
        logger.error(f"ImageRouter: failed to get image info for {image_id}")
        return render(request, "image.html", page)

    info = ImageInfo.model_validate(image)

    try:
        collections = CollectionService(ctx.db).get_collections_with_image(image.id)
        info.member_collections = [CollectionInfo.model_validate(c) for c in collections]
    except SQLAlchemyError as e:
        # Collections are decoration; the page still renders
        ctx.db.rollback()
        logger.error(f"ImageRouter: failed to get collection info for {image.id}: {e}")

    if page.old_query:
        query_tags = ctx.tags.get_query_tags(page.old_query)
        if page.user_name:
            query_tags = remove_duplicate_tags(
                query_tags + ctx.tags.get_user_filter_tags(page.user_id)
            )
        previous_id, next_id = ctx.images.get_prev_next_images(query_tags, image.id)
        page.previous_member_id = previous_id or 0
        page.next_member_id = next_id or 0

    if ctx.settings.show_similar_on_images:
        similar_tags = ctx.tags.get_query_tags(f"similar:{image.id}")
        _, similar_count = ctx.images.search_images(similar_tags, 0, ctx.settings.page_stride)
        if similar_count > 1:
            page.similar_count = similar_count - 1  # not counting this image

    parsed_source = urlparse(info.source)
    info.source_is_url = parsed_source.scheme in ("http", "https") and bool(parsed_source.netloc)

    if page.user_name:
        info.users_voted_score = ctx.images.get_user_vote_score(page.user_id, image.id)

    page.image_content_info = info
    page.image_content = get_embed_for_content(image.location)
    page.tags = [TagInfo.model_validate(tag) for tag in ctx.tags.get_image_tags(image.id)]

    if page.view_mode == "slideshow":
        return render(request, "image-slideshow.html", page)
    return render(request, "image.html", page)


@router.get("/uploadform", response_class=HTMLResponse)
async def upload_form(
    request: Request,
    page: Annotated[TemplateInput, Depends(get_template_input)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Show the upload form."""
    if not page.user_name and settings.account_required_to_view:
        return logon_redirect("Access to this server requires an account")
    return render(request, "uploadform.html", page)
