# ------------------------------------------------------------
# security.py — password hashing and signed access/refresh tokens
# ------------------------------------------------------------

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from .config import Settings
from .errors import AppError, ErrorKind

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

# claims a refresh token must carry to be exchanged for a new access token
REFRESH_CLAIMS = ("userId", "username", "role")


class PasswordHasher:
    """bcrypt through passlib, with the cost taken from SALT_ROUNDS."""

    def __init__(self, rounds: int):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            # unparseable stored hash counts as a mismatch
            return False

    def dummy_verify(self) -> None:
        """Burn the same time as a real verify when there is nothing to compare."""
        self._context.dummy_verify()


class TokenService:
    def __init__(self, settings: Settings):
        self._secrets = {ACCESS: settings.jwt_secret, REFRESH: settings.refresh_secret}
        self.lifetimes = {
            ACCESS: settings.access_token_lifetime,
            REFRESH: settings.refresh_token_lifetime,
        }

    def issue(self, token_type: str, identity: Dict[str, Any]) -> str:
        """Sign a token of `token_type` for {userId, username, role}."""
        now = datetime.now(timezone.utc)
        claims = dict(identity)
        claims.update(
            type=token_type,
            iat=now,
            exp=now + timedelta(seconds=self.lifetimes[token_type]),
            # two logins in the same second must still yield distinct tokens
            jti=str(uuid.uuid4()),
        )
        return jwt.encode(claims, self._secrets[token_type], algorithm=ALGORITHM)

    def decode_access(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, self._secrets[ACCESS], algorithms=[ALGORITHM])
        except ExpiredSignatureError as err:
            raise AppError(ErrorKind.AUTH_EXPIRED_TOKEN, cause=err, operation="JWT_VERIFY")
        except JWTError as err:
            raise AppError(ErrorKind.AUTH_INVALID_TOKEN, cause=err, operation="JWT_VERIFY")
        if claims.get("type") != ACCESS:
            raise AppError(
                ErrorKind.AUTH_INVALID_TOKEN,
                cause=ValueError("not an access token"),
                operation="JWT_VERIFY",
            )
        return claims

    def decode_refresh(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, self._secrets[REFRESH], algorithms=[ALGORITHM])
        except JWTError as err:
            raise AppError(ErrorKind.AUTH_INVALID_REFRESH_TOKEN, cause=err, operation="JWT_VERIFY")
        missing = [c for c in REFRESH_CLAIMS if not isinstance(claims.get(c), str) or not claims[c]]
        if missing or claims.get("type") != REFRESH:
            raise AppError(
                ErrorKind.AUTH_INVALID_REFRESH_TOKEN,
                cause=ValueError(f"malformed refresh payload, missing {missing}"),
                operation="PAYLOAD_CHECK",
            )
        return claims
