"""Tag-query search listing."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from imageboard.api.dependencies import get_image_service, get_tag_service, get_template_input
from imageboard.api.rendering import logon_redirect, render
from imageboard.config import Settings, get_settings
from imageboard.schemas.image import ImageInfo
from imageboard.schemas.page import TemplateInput
from imageboard.services.images import ImageService
from imageboard.services.tags import TagService, remove_duplicate_tags

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.get("/images", response_class=HTMLResponse)
async def search_images(
    request: Request,
    page: Annotated[TemplateInput, Depends(get_template_input)],
    settings: Annotated[Settings, Depends(get_settings)],
    images: Annotated[ImageService, Depends(get_image_service)],
    tags: Annotated[TagService, Depends(get_tag_service)],
    start: int = Query(default=0, ge=0, alias="Start"),
):
    """List images matching SearchTerms plus the user's global filter."""
    if not page.user_name and settings.account_required_to_view:
        return logon_redirect("Access to this server requires an account")

    query_tags = tags.get_query_tags(page.old_query)
    if page.user_name:
        query_tags = remove_duplicate_tags(query_tags + tags.get_user_filter_tags(page.user_id))

    results, total = images.search_images(query_tags, start, settings.page_stride)
    logger.debug(f"Search '{page.old_query}' by {page.user_name or 'anonymous'}: {total} results")

    page.images = [ImageInfo.model_validate(image) for image in results]
    page.total_results = total
    page.page_start = start
    page.page_stride = settings.page_stride
    return render(request, "images.html", page)
