# -----------------------------------------------------------
# users.py — registration, login/logout, tokens and user admin
# -----------------------------------------------------------

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response

from ..dependencies import (
    REFRESH_COOKIE, AppContext, Identity, RefreshGrant, authenticate, get_context, require_admin,
    validate_refresh,
)
from ..errors import AppError, ErrorGroup, ErrorKind
from ..schemas import is_valid_uuid, validate_credentials, validate_partial_user, validate_user
from ..security import ACCESS, REFRESH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["users"])


def _issue_tokens(ctx: AppContext, response: Response, identity: Dict[str, Any]) -> None:
    """Sign, store and hand out a fresh access/refresh pair."""
    access = ctx.tokens.issue(ACCESS, identity)
    refresh = ctx.tokens.issue(REFRESH, identity)
    ctx.users.save_token(identity["userId"], access, ACCESS, ctx.tokens.lifetimes[ACCESS])
    ctx.users.save_token(identity["userId"], refresh, REFRESH, ctx.tokens.lifetimes[REFRESH])

    # the access token travels in a header, the refresh token in an HttpOnly cookie
    response.headers["Authorization"] = f"Bearer {access}"
    response.set_cookie(
        REFRESH_COOKIE,
        refresh,
        max_age=ctx.tokens.lifetimes[REFRESH],
        path="/",
        httponly=True,
        samesite="strict",
        secure=ctx.settings.is_production,
    )


def _check_uuid(user_id: str) -> str:
    if not is_valid_uuid(user_id):
        raise AppError(ErrorKind.GENERAL_INVALID_UUID, cause=ValueError(f"invalid UUID {user_id!r}"))
    return user_id.strip().lower()


@router.post("/register", status_code=201)
def register(payload: Any = Body(None), ctx: AppContext = Depends(get_context)):
    """
    Create an account with the default "User" role.

    Request body (JSON):
    { "username": "neo", "password": "secret1", "email": "neo@example.com", "age": 30 }
    """
    user = validate_user(payload)
    try:
        return ctx.users.create_user(user.model_dump(mode="json"))
    except AppError as err:
        # taken username/email and storage failures all read as a failed registration
        if err.kind.group is not ErrorGroup.DATABASE:
            raise
        raise AppError(ErrorKind.USER_REGISTRATION_ERROR, cause=err, username=user.username)


@router.post("/login")
def login(response: Response, payload: Any = Body(None), ctx: AppContext = Depends(get_context)):
    """
    Exchange username/password for tokens.

    The access token comes back in the Authorization response header and
    the refresh token as an HttpOnly cookie; the body only confirms.
    """
    credentials = validate_credentials(payload)
    user = ctx.users.check_user_password(credentials.username, credentials.password)
    _issue_tokens(ctx, response, {"userId": user["id"], "username": user["username"], "role": user["role"]})
    logger.info("User %s logged in", user["username"])
    return {"message": "Login successful"}


@router.get("/refresh-token")
def refresh_token(
    response: Response,
    grant: RefreshGrant = Depends(validate_refresh),
    ctx: AppContext = Depends(get_context),
):
    """Rotate the refresh token and mint a new access token."""
    # the role may have changed since the old token was signed
    role = ctx.users.get_user_role(grant.claims["userId"])
    if role is None:
        raise AppError(
            ErrorKind.AUTH_INVALID_REFRESH_TOKEN,
            cause=LookupError("refresh token owner no longer exists"),
            operation="REFRESH",
        )
    if ctx.users.revoke_token(grant.token) == 0:
        # revoked concurrently between the check and now
        raise AppError(
            ErrorKind.AUTH_INVALID_REFRESH_TOKEN,
            cause=LookupError("refresh token already revoked"),
            operation="REFRESH",
        )
    identity = {"userId": grant.claims["userId"], "username": grant.claims["username"], "role": role}
    _issue_tokens(ctx, response, identity)
    return {"message": "Token refreshed successfully"}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    identity: Identity = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
):
    """Revoke the refresh cookie and the presented access token, then clear the cookie."""
    refresh = request.cookies.get(REFRESH_COOKIE)
    if refresh is None:
        raise AppError(ErrorKind.AUTH_NO_REFRESH_TOKEN, cause=LookupError("refresh token cookie missing"))
    if not refresh.strip():
        raise AppError(ErrorKind.AUTH_INVALID_REFRESH_TOKEN, cause=ValueError("blank refresh token"))

    if ctx.users.revoke_token(refresh) == 0:
        raise AppError(ErrorKind.AUTH_TOKEN_REVOKED, cause=LookupError("refresh token not active"))
    if ctx.users.revoke_token(identity.token) == 0:
        raise AppError(ErrorKind.AUTH_TOKEN_REVOKED, cause=LookupError("access token not active"))

    response.delete_cookie(REFRESH_COOKIE, path="/", httponly=True, samesite="strict")
    logger.info("User %s logged out", identity.username)
    return {"message": "Logout successful."}


@router.get("/{username}")
def get_user(username: str, ctx: AppContext = Depends(get_context)):
    """Public profile: id, username and email. The password hash never leaves the repository."""
    username = username.strip()
    if not username:
        raise AppError(ErrorKind.USER_VALIDATION_ERROR, cause=ValueError("username is required"))
    user = ctx.users.get_user_by_username(username)
    if user is None:
        raise AppError(
            ErrorKind.GENERAL_NOT_FOUND,
            cause=LookupError(f"user {username!r} not found"),
            resource="User",
        )
    return {"id": user["id"], "username": user["username"], "email": user["email"]}


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(authenticate),
    ctx: AppContext = Depends(get_context),
):
    """
    Update email, password, age and/or role.

    A user may edit their own account; admins may edit anyone and are
    the only ones allowed to change a role.
    """
    user_id = _check_uuid(user_id)
    if not identity.is_admin and identity.user_id.lower() != user_id:
        raise AppError(ErrorKind.AUTH_ACCESS_DENIED, cause=PermissionError("not your account"))

    changes = validate_partial_user(payload).model_dump(mode="json", exclude_unset=True)
    if changes.get("role") is not None and not identity.is_admin:
        raise AppError(ErrorKind.AUTH_ACCESS_DENIED, cause=PermissionError("only admins change roles"))

    try:
        ctx.users.update_user(user_id, changes)
    except AppError as err:
        # the email is already held by another account
        duplicate = err.context.get("failed") == ErrorKind.DB_DUPLICATE_ENTRY.code
        if err.kind.group is not ErrorGroup.DATABASE or not duplicate:
            raise
        raise AppError(ErrorKind.USER_DUPLICATE, cause=err, user_id=user_id)
    return {"message": "User updated successfully.", "id": user_id}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    user_id = _check_uuid(user_id)
    if ctx.users.delete_user(user_id) == 0:
        raise AppError(
            ErrorKind.GENERAL_NOT_FOUND,
            cause=LookupError(f"user {user_id} not found"),
            resource="User",
        )
    logger.info("User %s deleted by %s", user_id, admin.username)
    return {"message": "User deleted successfully"}
