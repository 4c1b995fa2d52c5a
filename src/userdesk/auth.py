"""Authentication and claim-based authorization.

Login validates credentials, derives the caller's capabilities from their
group and signs them into a JWT. Protected routes decode that token and ask
:func:`authorize` whether the required capability is granted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .errors import AccountInactive, Forbidden, InvalidCredential, NotFound, Unauthenticated
from .groups import CAN_EDIT, CAPABILITY_NAMES, SELF, TRUE, capabilities_for, role_name
from .models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class TokenClaims:
    """Identity and permission claims read from a verified token."""

    subject: str
    user_id: int
    group_id: int
    role: str
    capabilities: Dict[str, str] = field(default_factory=dict)

    def claim(self, name: str) -> Optional[str]:
        return self.capabilities.get(name)


def validate_credentials(users: Iterable[User], username: str, password: str) -> User:
    """Find the user named ``username`` and check its password and status.

    The checks run in a fixed order so the caller gets a precise reason:
    unknown username, then wrong password, then inactive account.
    """
    user = next((u for u in users if u.username == username), None)
    if user is None:
        raise NotFound("Username not found")
    if user.password != password:
        raise InvalidCredential("Incorrect password")
    if not user.active:
        raise AccountInactive("Account is inactive. Please contact an administrator")
    return user


def check_signing_config() -> None:
    """Fail fast when the token signing settings are unusable."""
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET must be configured")
    if not settings.jwt_algorithm.startswith("HS"):
        raise RuntimeError("only symmetric HS* JWT algorithms are supported")


def create_access_token(user: User, expires: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expires = expires or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": user.username,
        "UserID": str(user.user_id),
        "UserGroupID": str(user.user_group_id or 0),
        "role": role_name(user.user_group_id),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + expires,
    }
    payload.update(capabilities_for(user.user_group_id).as_claims())
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    logger.debug("issued token for %s expiring %s", user.username, payload["exp"])
    return token


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
        claims = TokenClaims(
            subject=payload["sub"],
            user_id=int(payload["UserID"]),
            group_id=int(payload.get("UserGroupID") or 0),
            role=payload.get("role", ""),
            capabilities={
                name: payload[name] for name in CAPABILITY_NAMES if name in payload
            },
        )
    except jwt.PyJWTError as exc:
        logger.warning("token rejected: %s", exc)
        raise Unauthenticated("Invalid token") from exc
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("token is missing identity claims")
        raise Unauthenticated("Invalid token") from exc
    return claims


def authorize(
    claims: Optional[TokenClaims], capability: str, target_id: Optional[int] = None
) -> None:
    """Raise unless ``claims`` grant ``capability``.

    A ``"self"`` CanEdit claim only grants editing the caller's own record,
    i.e. when ``target_id`` equals the token's user id.
    """
    if claims is None:
        raise Unauthenticated("Not authenticated")

    value = claims.claim(capability)
    if value == TRUE:
        return
    if capability == CAN_EDIT and value == SELF and target_id is not None:
        if claims.user_id == target_id:
            return
    logger.warning(
        "denied %s for %s (id=%s) claim=%r target=%s",
        capability,
        claims.subject,
        claims.user_id,
        value,
        target_id,
    )
    raise Forbidden()


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenClaims:
    if credentials is None:
        raise Unauthenticated("Not authenticated")
    return decode_access_token(credentials.credentials)


def _path_id(request: Request, param: str) -> Optional[int]:
    raw = request.path_params.get(param)
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def require_capability(
    capability: str, target_param: str | None = None
) -> Callable[..., TokenClaims]:
    """Build a route dependency that enforces ``capability``.

    ``target_param`` names the path parameter holding the id of the record
    being acted on, for routes where a ``"self"`` claim may apply.
    """

    def guard(request: Request, claims: TokenClaims = Depends(get_token_claims)) -> TokenClaims:
        target_id = _path_id(request, target_param) if target_param else None
        authorize(claims, capability, target_id)
        return claims

    return guard
