# ------------------------------------------------------------
# dependencies.py — per-request context and the authentication gate
# ------------------------------------------------------------

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from .config import Settings
from .errors import AppError, ErrorKind
from .middleware import BlacklistStore
from .repositories import MovieRepository, UserRepository
from .security import TokenService

REFRESH_COOKIE = "refreshToken"
# a browser client may keep the access token in a cookie instead of the header
ACCESS_COOKIE = "authToken"


@dataclass
class AppContext:
    """Everything a request handler needs, built once by create_app()."""

    settings: Settings
    movies: MovieRepository
    users: UserRepository
    tokens: TokenService
    blacklist: BlacklistStore = field(default_factory=BlacklistStore)


@dataclass
class Identity:
    user_id: str
    username: str
    role: str
    token: str
    claims: Dict[str, Any]

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == "admin"


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _access_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if header is not None:
        scheme, _, value = header.partition(" ")
        if scheme.lower() != "bearer" or not value.strip():
            raise AppError(
                ErrorKind.AUTH_INVALID_TOKEN,
                cause=ValueError("malformed Authorization header"),
                operation="AUTH",
            )
        return value.strip()
    return request.cookies.get(ACCESS_COOKIE) or None


def authenticate(request: Request, ctx: AppContext = Depends(get_context)) -> Identity:
    """
    Resolve the caller from the bearer token.

    no token -> AUTH_NO_TOKEN, malformed header -> AUTH_INVALID_TOKEN,
    bad signature -> AUTH_INVALID_TOKEN, past expiry -> AUTH_EXPIRED_TOKEN,
    revoked or unknown to the store -> AUTH_TOKEN_REVOKED.
    """
    token = _access_token(request)
    if not token:
        raise AppError(ErrorKind.AUTH_NO_TOKEN, cause=LookupError("no token provided"), operation="AUTH")

    claims = ctx.tokens.decode_access(token)

    try:
        ctx.users.check_token(token)
    except AppError as err:
        if err.kind is not ErrorKind.GENERAL_NOT_FOUND:
            raise
        raise AppError(ErrorKind.AUTH_TOKEN_REVOKED, cause=err, operation="TOKEN_CHECK")

    identity = Identity(
        user_id=str(claims.get("userId", "")),
        username=str(claims.get("username", "")),
        role=str(claims.get("role", "")),
        token=token,
        claims=claims,
    )
    request.state.user = identity
    return identity


def require_admin(identity: Identity = Depends(authenticate)) -> Identity:
    if not identity.is_admin:
        raise AppError(
            ErrorKind.AUTH_ACCESS_DENIED,
            cause=PermissionError("administrator role required"),
            operation="AUTH",
            user_role=identity.role,
        )
    return identity


@dataclass
class RefreshGrant:
    token: str
    claims: Dict[str, Any]


def validate_refresh(request: Request, ctx: AppContext = Depends(get_context)) -> RefreshGrant:
    """Check the refreshToken cookie: signature, payload shape, and that the store still holds it."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AppError(
            ErrorKind.AUTH_NO_REFRESH_TOKEN,
            cause=LookupError("refresh token cookie missing"),
            operation="REFRESH",
        )

    claims = ctx.tokens.decode_refresh(token)

    try:
        ctx.users.check_token(token)
    except AppError as err:
        if err.kind is not ErrorKind.GENERAL_NOT_FOUND:
            raise
        raise AppError(ErrorKind.AUTH_INVALID_REFRESH_TOKEN, cause=err, operation="TOKEN_CHECK")

    return RefreshGrant(token=token, claims=claims)
