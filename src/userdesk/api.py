"""FastAPI application exposing user management and login endpoints."""

import logging
from typing import List

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter, make_asgi_app
from pydantic import BaseModel, Field
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import web
from .auth import (
    TokenClaims,
    authorize,
    check_signing_config,
    create_access_token,
    get_token_claims,
    require_capability,
    validate_credentials,
)
from .config import configure_logging, settings
from .errors import (
    AccountInactive,
    InvalidCredential,
    NotFound,
    StorageError,
    Unauthenticated,
    UserDeskError,
    ValidationError,
)
from .groups import CAN_CREATE, CAN_DELETE, CAN_EDIT, CAN_VIEW
from .limiter import limiter
from .models.user import User, UserIn, validation_messages
from .services import UserService, get_user_service

configure_logging()
check_signing_config()

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.api_title)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/metrics", make_asgi_app())
app.include_router(web.router)

# Prometheus counter to track API requests by method, route and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)
LOGIN_COUNTER = Counter(
    "login_attempts_total", "Login attempts by outcome", ["outcome"]
)


def _endpoint_label(request: Request) -> str:
    # Labelled by route template, e.g. /api/users/{id}.
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log requests and count them per route; scrapes of /metrics are skipped."""
    if request.url.path.startswith("/metrics"):
        return await call_next(request)

    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method, endpoint=_endpoint_label(request), status="500"
        ).inc()
        logger.exception("error handling %s %s", request.method, request.url.path)
        raise

    REQUEST_COUNTER.labels(
        method=request.method,
        endpoint=_endpoint_label(request),
        status=str(response.status_code),
    ).inc()
    log = logger.warning if response.status_code >= 400 else logger.info
    log("response %s %s status %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(UserDeskError)
async def handle_userdesk_error(request: Request, exc: UserDeskError):
    """Render domain errors as a status code with a plain-text message."""
    if isinstance(exc, StorageError):
        logger.error("storage failure on %s %s: %s", request.method, request.url.path, exc.detail)
    if not request.url.path.startswith("/api/"):
        return web.render_error(request, exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    detail = StorageError.default_detail if isinstance(exc, StorageError) else exc.detail
    return PlainTextResponse(detail, status_code=exc.status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    messages = validation_messages(exc.errors())
    logger.warning("validation failed on %s: %s", request.url.path, "; ".join(messages))
    return PlainTextResponse(". ".join(messages), status_code=status.HTTP_400_BAD_REQUEST)


app.add_exception_handler(web.LoginRequired, web.redirect_to_login)


class LoginRequest(BaseModel):
    """Request body for user login."""

    username: str = Field(..., alias="UserName")
    password: str = Field(..., alias="Password")


class LoginResponse(BaseModel):
    """Signed access token returned on successful login."""

    token: str = Field(..., alias="Token")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/auth/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request, credentials: LoginRequest, service: UserService = Depends(get_user_service)
):
    logger.info("login attempt for %s", credentials.username)
    try:
        user = validate_credentials(
            service.get_all_users(), credentials.username, credentials.password
        )
    except (NotFound, InvalidCredential, AccountInactive) as exc:
        LOGIN_COUNTER.labels(outcome=type(exc).__name__).inc()
        logger.warning("login failed for %s: %s", credentials.username, exc.detail)
        return PlainTextResponse(exc.detail, status_code=status.HTTP_401_UNAUTHORIZED)

    LOGIN_COUNTER.labels(outcome="success").inc()
    logger.info("login successful for %s (id=%s)", user.username, user.user_id)
    return LoginResponse(Token=create_access_token(user))


@app.get(
    "/api/users",
    response_model=List[User],
    dependencies=[Depends(require_capability(CAN_VIEW))],
)
def list_users(service: UserService = Depends(get_user_service)):
    """Return every user."""
    return service.get_all_users()


@app.get(
    "/api/users/search",
    response_model=List[User],
    dependencies=[Depends(require_capability(CAN_VIEW))],
)
def search_users(
    firstName: str = "",
    lastName: str = "",
    service: UserService = Depends(get_user_service),
):
    """Case-insensitive substring search on first and last name."""
    return service.search_by_full_name(firstName, lastName)


@app.get(
    "/api/users/{id}",
    response_model=User,
    dependencies=[Depends(require_capability(CAN_VIEW))],
)
def get_user(id: int, service: UserService = Depends(get_user_service)):
    user = service.get_user_by_id(id)
    if user is None:
        raise NotFound("User not found")
    return user


@app.post(
    "/api/users",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_capability(CAN_CREATE))],
)
def create_user(
    payload: UserIn, response: Response, service: UserService = Depends(get_user_service)
):
    """Create a user; the id and creation date are assigned by the server."""
    created = service.add_user(payload.to_user())
    response.headers["Location"] = f"/api/users/{created.user_id}"
    return created


@app.put("/api/users/{id}", status_code=status.HTTP_204_NO_CONTENT)
def update_user(
    id: int,
    payload: UserIn,
    claims: TokenClaims = Depends(get_token_claims),
    service: UserService = Depends(get_user_service),
):
    """Overwrite a user. Callers with a self-only edit claim may only target their own id.

    The id mismatch is reported before permissions are checked. An unknown id
    is ignored and still answers 204.
    """
    if payload.user_id != id:
        raise ValidationError("User ID mismatch")
    authorize(claims, CAN_EDIT, target_id=id)
    service.update_user(payload.to_user())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete(
    "/api/users/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_capability(CAN_DELETE))],
)
def delete_user(id: int, service: UserService = Depends(get_user_service)):
    service.delete_user(id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
