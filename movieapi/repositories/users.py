# ------------------------------------------------------------
# repositories/users.py — SQL access for users, roles and tokens
# ------------------------------------------------------------

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..db import Database, Transaction
from ..errors import AppError, ErrorKind
from ..security import PasswordHasher

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "User"
UPDATABLE_FIELDS = ("email", "password", "age")

# timestamps are written as naive UTC strings so MySQL DATETIME and SQLite TEXT compare alike
_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _ts(value: datetime) -> str:
    return value.strftime(_TS_FORMAT)


def _not_found(resource: str, value: Any) -> AppError:
    return AppError(
        ErrorKind.GENERAL_NOT_FOUND,
        cause=LookupError(f"{resource} {value!r} not found"),
        resource=resource,
        resource_value=value,
    )


class UserRepository:
    def __init__(self, db: Database, hasher: PasswordHasher):
        self.db = db
        self.hasher = hasher

    # ---------------------------------------------------------------- users

    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a user with the default role.

        The user row and its role link are written in one transaction. A
        role catalog without the default role is a deployment error and
        surfaces as GENERAL_NOT_FOUND.
        """
        user_id = str(uuid.uuid4())
        row = {
            "id": user_id,
            "username": data["username"],
            "password": self.hasher.hash(data["password"]),
            "email": data.get("email"),
            "age": data.get("age"),
        }

        def insert_user(tx: Transaction) -> int:
            return tx.query(
                "INSERT INTO user (id, username, password, email, age) "
                "VALUES (:id, :username, :password, :email, :age)",
                row,
            )

        def fetch_default_role(tx: Transaction) -> int:
            roles = tx.query("SELECT id FROM role WHERE LOWER(name) = LOWER(:name)", {"name": DEFAULT_ROLE})
            if not roles:
                raise _not_found("Role", DEFAULT_ROLE)
            return roles[0]["id"]

        def insert_user_role(tx: Transaction) -> int:
            return tx.query(
                "INSERT INTO user_roles (user_id, role_id) VALUES (:user_id, :role_id)",
                {"user_id": user_id, "role_id": fetch_default_role(tx)},
            )

        self.db.execute_transaction([insert_user, insert_user_role])
        logger.info("Registered user %s (%s)", user_id, row["username"])
        return {
            "id": user_id,
            "username": row["username"],
            "email": row["email"],
            "age": row["age"],
            "role": DEFAULT_ROLE,
        }

    def check_user_password(self, username: str, password: str) -> Dict[str, Any]:
        """
        Return {id, username, role} when the password matches.

        An unknown username still pays for one bcrypt comparison, so both
        failure paths take about the same time and raise the same
        USER_INVALID_CREDENTIALS.
        """
        rows = self.db.query(
            """
            SELECT u.id, u.username, u.password, r.name AS role
            FROM user u
            JOIN user_roles ur ON u.id = ur.user_id
            JOIN role r ON ur.role_id = r.id
            WHERE u.username = :username
            """,
            {"username": username},
        )
        if not rows:
            self.hasher.dummy_verify()
            raise AppError(
                ErrorKind.USER_INVALID_CREDENTIALS,
                cause=LookupError("unknown username"),
                operation="LOGIN",
            )

        user = rows[0]
        if not self.hasher.verify(password, user["password"]):
            raise AppError(
                ErrorKind.USER_INVALID_CREDENTIALS,
                cause=ValueError("password mismatch"),
                operation="LOGIN",
            )
        return {"id": user["id"], "username": user["username"], "role": user["role"]}

    authenticate_user = check_user_password

    def update_user(self, user_id: str, data: Dict[str, Any]) -> int:
        """
        Update email/password/age and/or the role of a user, atomically.

        Returns the number of user rows matched. Raises GENERAL_NOT_FOUND
        for an unknown user and USER_VALIDATION_ERROR for an unknown role.
        """
        fields = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        role = data.get("role")
        role = getattr(role, "value", role)
        if not fields and not role:
            raise AppError(ErrorKind.USER_VALIDATION_ERROR, cause=ValueError("nothing to update"))

        if "password" in fields:
            fields["password"] = self.hasher.hash(fields["password"])

        def ensure_exists(tx: Transaction) -> int:
            if not tx.query("SELECT id FROM user WHERE id = :id", {"id": user_id}):
                raise _not_found("User", user_id)
            return 1

        def update_fields(tx: Transaction) -> Optional[int]:
            if not fields:
                return None
            set_clause = ", ".join(f"{key} = :{key}" for key in fields)
            return tx.query(f"UPDATE user SET {set_clause} WHERE id = :id", {**fields, "id": user_id})

        def update_role(tx: Transaction) -> Optional[int]:
            if not role:
                return None
            roles = tx.query("SELECT id FROM role WHERE LOWER(name) = LOWER(:name)", {"name": role})
            if not roles:
                raise AppError(
                    ErrorKind.USER_VALIDATION_ERROR,
                    cause=LookupError(f"unknown role {role!r}"),
                    resource="Role",
                )
            return tx.query(
                "UPDATE user_roles SET role_id = :role_id WHERE user_id = :user_id",
                {"role_id": roles[0]["id"], "user_id": user_id},
            )

        matched, _, _ = self.db.execute_transaction([ensure_exists, update_fields, update_role])
        logger.info("Updated user %s", user_id)
        return matched

    def delete_user(self, user_id: str) -> int:
        """
        Remove a user and its role link; returns the user rows deleted.

        Outstanding tokens are revoked in the same transaction and their
        rows are kept.
        """

        def revoke_tokens(tx: Transaction) -> int:
            return tx.query(
                "UPDATE tokens SET revoked = :now WHERE user_id = :user_id AND revoked IS NULL",
                {"now": _ts(_utc_now()), "user_id": user_id},
            )

        def delete_roles(tx: Transaction) -> int:
            return tx.query("DELETE FROM user_roles WHERE user_id = :user_id", {"user_id": user_id})

        def delete_user(tx: Transaction) -> int:
            return tx.query("DELETE FROM user WHERE id = :id", {"id": user_id})

        _, _, deleted = self.db.execute_transaction([revoke_tokens, delete_roles, delete_user])
        if deleted:
            logger.info("Deleted user %s", user_id)
        return deleted

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.db.query("SELECT * FROM user WHERE id = :id", {"id": user_id})
        return rows[0] if rows else None

    def get_user_role(self, user_id: str) -> Optional[str]:
        """Current role name of a user, or None if the user is gone."""
        rows = self.db.query(
            "SELECT r.name FROM user_roles ur JOIN role r ON ur.role_id = r.id WHERE ur.user_id = :id",
            {"id": user_id},
        )
        return rows[0]["name"] if rows else None

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        rows = self.db.query("SELECT * FROM user WHERE email = :email", {"email": email})
        return rows[0] if rows else None

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        rows = self.db.query("SELECT * FROM user WHERE username = :username", {"username": username})
        return rows[0] if rows else None

    # --------------------------------------------------------------- tokens

    def save_token(self, user_id: str, token: str, token_type: str, expires_in: int) -> str:
        """Store an issued token valid for `expires_in` seconds; returns the row id."""
        token_id = str(uuid.uuid4())
        self.db.query(
            "INSERT INTO tokens (id, user_id, token, type, expires_at) "
            "VALUES (:id, :user_id, :token, :type, :expires_at)",
            {
                "id": token_id,
                "user_id": user_id,
                "token": token,
                "type": token_type,
                "expires_at": _ts(_utc_now() + timedelta(seconds=expires_in)),
            },
        )
        return token_id

    def revoke_token(self, token: str) -> int:
        """Mark a live token as revoked. Returns 0 if it was unknown or already revoked."""
        return self.db.query(
            "UPDATE tokens SET revoked = :now WHERE token = :token AND revoked IS NULL",
            {"now": _ts(_utc_now()), "token": token},
        )

    def check_token(self, token: str) -> Dict[str, Any]:
        """The stored row of an unrevoked, unexpired token; GENERAL_NOT_FOUND otherwise."""
        rows = self.db.query(
            "SELECT * FROM tokens WHERE token = :token AND revoked IS NULL AND expires_at > :now",
            {"token": token, "now": _ts(_utc_now())},
        )
        if not rows:
            raise _not_found("Token", "<redacted>")
        return rows[0]
