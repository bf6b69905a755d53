"""Logon and logout pages."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imageboard.api.dependencies import (
    TOKEN_COOKIE,
    USER_NAME_COOKIE,
    FormValues,
    get_client_ip,
    get_form_values,
    get_template_input,
)
from imageboard.api.rendering import redirect, render
from imageboard.config import Settings, get_settings
from imageboard.database import get_db
from imageboard.schemas.page import TemplateInput
from imageboard.services.audit import dispatch_audit_log
from imageboard.services.auth import (
    TokenError,
    authenticate_user,
    create_user,
    generate_token,
    get_user_by_name,
    revoke_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/logon", response_class=HTMLResponse)
async def logon_form(
    request: Request,
    page: Annotated[TemplateInput, Depends(get_template_input)],
):
    """Show the logon form."""
    return render(request, "logon.html", page)


@router.post("/logon", response_class=HTMLResponse)
async def logon(
    request: Request,
    page: Annotated[TemplateInput, Depends(get_template_input)],
    form: Annotated[FormValues, Depends(get_form_values)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Log in (or create an account), then issue a session token."""
    user_name = form.get("userName").strip()
    password = form.get("password")
    if not user_name or not password:
        page.message += "Please provide a user name and password. "
        return render(request, "logon.html", page)

    if form.get("command") == "create":
        if not settings.allow_account_creation:
            page.message += "Account creation is disabled on this server. "
            return render(request, "logon.html", page)
        if get_user_by_name(db, user_name):
            page.message += "That user name is already taken. "
            return render(request, "logon.html", page)
        try:
            user = create_user(db, user_name, password, settings.default_permissions)
        except IntegrityError:
            db.rollback()
            page.message += "That user name is already taken. "
            return render(request, "logon.html", page)
        dispatch_audit_log(user.id, "CREATE-USER", f"{user_name} created an account.")
    else:
        user = authenticate_user(db, user_name, password)
        if user is None:
            logger.info(f"Logon {user_name}: invalid credentials or disabled account")
            page.message += "Invalid user name or password. "
            return render(request, "logon.html", page)

    try:
        token = generate_token(db, user.name, get_client_ip(request))
    except TokenError as e:
        page.message += f"Could not log on: {e}. "
        return render(request, "logon.html", page)

    dispatch_audit_log(user.id, "LOGON", f"{user.name} logged on.")
    response = redirect("/images")
    response.set_cookie(USER_NAME_COOKIE, user.name, httponly=True, samesite="lax")
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax")
    return response


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    page: Annotated[TemplateInput, Depends(get_template_input)],
    db: Annotated[Session, Depends(get_db)],
):
    """Revoke the session token and clear the cookies."""
    if page.user_name:
        revoke_token(db, page.user_name)
        dispatch_audit_log(page.user_id, "LOGOUT", f"{page.user_name} logged out.")
    response = redirect("/logon", "Logged out")
    response.delete_cookie(USER_NAME_COOKIE)
    response.delete_cookie(TOKEN_COOKIE)
    return response
