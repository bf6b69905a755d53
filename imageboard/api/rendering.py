"""Template rendering and redirect helpers."""

from pathlib import Path
from urllib.parse import quote_plus

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from imageboard.models.enums import Permission
from imageboard.schemas.page import TemplateInput

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def render(request: Request, name: str, page: TemplateInput):
    """Render a named template with the page's template input."""
    return templates.TemplateResponse(
        request, name, {"page": page, "Permission": Permission}
    )


def redirect(location: str, message: str = "") -> RedirectResponse:
    """302 redirect, carrying ``message`` as prevMessage."""
    if message:
        separator = "&" if "?" in location else "?"
        location = f"{location}{separator}prevMessage={quote_plus(message)}"
    return RedirectResponse(location, status_code=302)


def logon_redirect(message: str) -> RedirectResponse:
    return redirect("/logon", message)
