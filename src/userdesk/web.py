"""Server-rendered pages for managing users from a browser.

The pages call :class:`~userdesk.services.UserService` directly and enforce
permissions with the same token claims as the REST API. The token issued at
login is kept in an HTTP-only cookie; logging out only drops the cookie.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PydanticValidationError

from .auth import (
    TokenClaims,
    authorize,
    create_access_token,
    decode_access_token,
    validate_credentials,
)
from .config import settings
from .errors import (
    AccountInactive,
    DuplicateUsername,
    InvalidCredential,
    NotFound,
    Unauthenticated,
    UserDeskError,
)
from .groups import (
    CAN_CREATE,
    CAN_DELETE,
    CAN_EDIT,
    CAN_VIEW,
    GROUP_NAMES,
    group_name,
    permission_summary,
    resolve_group,
)
from .limiter import limiter
from .models.user import UserIn, validation_messages
from .services import UserService, get_user_service

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "access_token"
NO_GROUP_MESSAGE = "You don't have a user group assigned. Please contact an administrator."

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals.update(group_name=group_name, groups=GROUP_NAMES)

router = APIRouter(include_in_schema=False)


class LoginRequired(Exception):
    """Raised by page guards when the browser must log in first."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


async def redirect_to_login(request: Request, exc: LoginRequired):
    url = "/auth/login"
    if exc.message:
        url += f"?error={quote(exc.message)}"
    response = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(TOKEN_COOKIE)
    return response


def render_error(request: Request, exc: UserDeskError):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"status_code": exc.status_code, "message": exc.detail},
        status_code=exc.status_code,
    )


def _cookie_claims(request: Request) -> Optional[TokenClaims]:
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        return None
    try:
        return decode_access_token(token)
    except Unauthenticated:
        return None


def page_claims(request: Request) -> TokenClaims:
    claims = _cookie_claims(request)
    if claims is None:
        raise LoginRequired()
    if resolve_group(claims.group_id) is None:
        raise LoginRequired(NO_GROUP_MESSAGE)
    return claims


def _form_user(
    user_id: int,
    username: str,
    password: str,
    active: Optional[str],
    user_group_id: str,
    first_name: str,
    last_name: str,
    phone: str,
    email: str,
) -> Dict[str, Any]:
    return {
        "UserID": user_id,
        "UserName": username.strip(),
        "Password": password,
        "Active": active is not None,
        "UserGroupID": int(user_group_id) if user_group_id.strip().isdigit() else None,
        "Data": {
            "FirstName": first_name.strip(),
            "LastName": last_name.strip(),
            "Phone": phone.strip(),
            "Email": email.strip(),
        },
    }


def _render_form(request: Request, claims: TokenClaims, form: Dict[str, Any], errors, mode: str):
    return templates.TemplateResponse(
        request,
        "users/form.html",
        {"claims": claims, "form": form, "errors": errors, "mode": mode},
        status_code=status.HTTP_400_BAD_REQUEST if errors else status.HTTP_200_OK,
    )


@router.get("/")
def home():
    return RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/auth/login", response_class=HTMLResponse)
def login_page(request: Request, error: str = ""):
    if _cookie_claims(request) is not None and not error:
        return RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(request, "login.html", {"error": error, "username": ""})


@router.post("/auth/login", response_class=HTMLResponse)
@limiter.limit(settings.login_rate_limit)
def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    service: UserService = Depends(get_user_service),
):
    if not username.strip() or not password.strip():
        error = "Username and password are required"
    else:
        try:
            user = validate_credentials(service.get_all_users(), username, password)
        except (NotFound, InvalidCredential, AccountInactive) as exc:
            logger.warning("web login failed for %s: %s", username, exc.detail)
            error = exc.detail
        else:
            logger.info("web login successful for %s (id=%s)", user.username, user.user_id)
            response = RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)
            response.set_cookie(
                TOKEN_COOKIE,
                create_access_token(user),
                max_age=settings.access_token_expire_minutes * 60,
                httponly=True,
                samesite="lax",
            )
            return response
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": error, "username": username},
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


@router.get("/auth/logout")
def logout():
    response = RedirectResponse("/auth/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/users", response_class=HTMLResponse)
def user_index(
    request: Request,
    search: str = "",
    status_filter: str = Query("", alias="status"),
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    """List users, optionally filtered by a search term and active status."""
    authorize(claims, CAN_VIEW)
    users = service.get_all_users()
    if search:
        term = search.casefold()
        users = [
            u
            for u in users
            if term in u.username.casefold()
            or term in u.data.email.casefold()
            or search in u.data.phone
        ]
    if status_filter == "active":
        users = [u for u in users if u.active]
    elif status_filter == "inactive":
        users = [u for u in users if not u.active]

    return templates.TemplateResponse(
        request,
        "users/index.html",
        {
            "users": users,
            "claims": claims,
            "search": search,
            "status_filter": status_filter,
            "permissions": permission_summary(claims.group_id),
        },
    )


@router.get("/users/create", response_class=HTMLResponse)
def create_page(request: Request, claims: TokenClaims = Depends(page_claims)):
    authorize(claims, CAN_CREATE)
    form = _form_user(0, "", "", "on", "", "", "", "", "")
    return _render_form(request, claims, form, [], "create")


@router.post("/users/create", response_class=HTMLResponse)
def create_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    active: Optional[str] = Form(None),
    user_group_id: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    authorize(claims, CAN_CREATE)
    form = _form_user(
        0, username, password, active, user_group_id, first_name, last_name, phone, email
    )
    try:
        service.add_user(UserIn.model_validate(form).to_user())
    except PydanticValidationError as exc:
        return _render_form(request, claims, form, validation_messages(exc.errors()), "create")
    except DuplicateUsername as exc:
        return _render_form(request, claims, form, [exc.detail], "create")
    return RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/users/{id}/edit", response_class=HTMLResponse)
def edit_page(
    request: Request,
    id: int,
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    authorize(claims, CAN_EDIT, target_id=id)
    user = service.get_user_by_id(id)
    if user is None:
        raise NotFound("User not found")
    return _render_form(request, claims, user.model_dump(by_alias=True), [], "edit")


@router.post("/users/{id}/edit", response_class=HTMLResponse)
def edit_submit(
    request: Request,
    id: int,
    username: str = Form(""),
    password: str = Form(""),
    active: Optional[str] = Form(None),
    user_group_id: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    authorize(claims, CAN_EDIT, target_id=id)
    form = _form_user(
        id, username, password, active, user_group_id, first_name, last_name, phone, email
    )
    try:
        service.update_user(UserIn.model_validate(form).to_user())
    except PydanticValidationError as exc:
        return _render_form(request, claims, form, validation_messages(exc.errors()), "edit")
    except DuplicateUsername as exc:
        return _render_form(request, claims, form, [exc.detail], "edit")
    return RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/users/{id}/delete", response_class=HTMLResponse)
def delete_page(
    request: Request,
    id: int,
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    authorize(claims, CAN_DELETE)
    user = service.get_user_by_id(id)
    if user is None:
        raise NotFound("User not found")
    return templates.TemplateResponse(
        request, "users/delete.html", {"user": user, "claims": claims}
    )


@router.post("/users/{id}/delete")
def delete_submit(
    id: int,
    claims: TokenClaims = Depends(page_claims),
    service: UserService = Depends(get_user_service),
):
    authorize(claims, CAN_DELETE)
    service.delete_user(id)
    return RedirectResponse("/users", status_code=status.HTTP_303_SEE_OTHER)
