"""FastAPI dependencies for sessions, form values and services."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.datastructures import FormData, UploadFile

from imageboard.config import Settings, get_settings
from imageboard.database import get_db
from imageboard.models.user import User
from imageboard.schemas.page import TemplateInput
from imageboard.services.auth import TokenError, validate_token
from imageboard.services.images import ImageService
from imageboard.services.tags import TagService
from imageboard.services.uploads import UploadService

logger = logging.getLogger(__name__)

USER_NAME_COOKIE = "UserName"
TOKEN_COOKIE = "TokenID"


class FormValues:
    """Form fields with query-string fallback, like a classic FormValue lookup."""

    def __init__(self, form: FormData, query: dict[str, str]):
        self.form = form
        self.query = query

    def get(self, name: str, default: str = "") -> str:
        value = self.form.get(name)
        if isinstance(value, str):
            return value
        return self.query.get(name, default)

    def files(self, name: str) -> list[UploadFile]:
        return [value for value in self.form.getlist(name) if isinstance(value, UploadFile)]


async def get_form_values(request: Request) -> FormValues:
    """Parse the request body once and expose it with the query string."""
    form = await request.form()
    return FormValues(form, dict(request.query_params))


def get_client_ip(request: Request) -> str:
    """Address the session token is bound to."""
    return request.client.host if request.client else ""


def get_current_user(request: Request, db: Session) -> User | None:
    """Resolve the cookie session into a user, or None for anonymous requests."""
    user_name = request.cookies.get(USER_NAME_COOKIE, "")
    if not user_name:
        return None
    try:
        validate_token(db, user_name, request.cookies.get(TOKEN_COOKIE), get_client_ip(request))
    except TokenError:
        return None
    return db.query(User).filter(User.name == user_name).first()


async def get_template_input(
    request: Request,
    form: Annotated[FormValues, Depends(get_form_values)],
    db: Annotated[Session, Depends(get_db)],
) -> TemplateInput:
    """Build the per-request template input from the session and common fields."""
    page = TemplateInput(
        message=form.get("prevMessage"),
        old_query=form.get("SearchTerms"),
        view_mode=form.get("ViewMode"),
    )
    user = get_current_user(request, db)
    if user is not None:
        page.user_name = user.name
        page.user_id = user.id
        page.user_permissions = user.permissions
    return page


def get_image_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ImageService:
    """Get image service with dependencies."""
    return ImageService(db, settings.similar_distance)


def get_tag_service(db: Annotated[Session, Depends(get_db)]) -> TagService:
    """Get tag service with dependencies."""
    return TagService(db)


def get_upload_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadService:
    """Get upload service with dependencies."""
    return UploadService(db, settings)
