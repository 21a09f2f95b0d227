# ------------------------------------------------------------
# errors.py — error catalog (ErrorKind) and the AppError type
# ------------------------------------------------------------

from enum import Enum
from typing import Any, Dict, Optional


class ErrorGroup(str, Enum):
    GENERAL = "GENERAL"
    AUTH = "AUTH"
    DATABASE = "DB"
    MOVIE = "MOVIE"
    USER = "USER"


class ErrorKind(Enum):
    """
    Every error the API can surface, as (group, name, status, message).

    The enum is the single source of truth: codes are derived from it,
    so there is no string lookup and no fallback for unknown codes.
    """

    # general
    GENERAL_INVALID_INPUT = (ErrorGroup.GENERAL, "INVALID_INPUT", 400, "Invalid input provided.")
    GENERAL_INVALID_UUID = (ErrorGroup.GENERAL, "INVALID_UUID", 400, "Invalid UUID format.")
    GENERAL_NOT_FOUND = (ErrorGroup.GENERAL, "NOT_FOUND", 404, "The requested resource was not found.")
    GENERAL_SERVER_ERROR = (ErrorGroup.GENERAL, "SERVER_ERROR", 500, "An unexpected server error occurred.")
    GENERAL_TOO_MANY_REQUESTS = (ErrorGroup.GENERAL, "TOO_MANY_REQUESTS", 429, "Too many requests.")
    GENERAL_INVALID_IP = (ErrorGroup.GENERAL, "INVALID_IP", 400, "Invalid IP address.")
    GENERAL_IP_BLOCKED = (ErrorGroup.GENERAL, "IP_BLOCKED", 403, "Your IP is blocked.")

    # auth
    AUTH_ACCESS_DENIED = (ErrorGroup.AUTH, "ACCESS_DENIED", 403, "Access denied.")
    AUTH_EXPIRED_TOKEN = (ErrorGroup.AUTH, "EXPIRED_TOKEN", 401, "The token has expired.")
    AUTH_INVALID_REFRESH_TOKEN = (ErrorGroup.AUTH, "INVALID_REFRESH_TOKEN", 401, "Invalid or expired refresh token.")
    AUTH_INVALID_TOKEN = (ErrorGroup.AUTH, "INVALID_TOKEN", 401, "Invalid or malformed token.")
    AUTH_NO_REFRESH_TOKEN = (ErrorGroup.AUTH, "NO_REFRESH_TOKEN", 401, "No refresh token provided.")
    AUTH_NO_TOKEN = (ErrorGroup.AUTH, "NO_TOKEN", 401, "No token provided.")
    AUTH_TOKEN_REVOKED = (ErrorGroup.AUTH, "TOKEN_REVOKED", 401, "Access token has been revoked.")

    # database
    DB_CONNECTION_CLOSED = (ErrorGroup.DATABASE, "CONNECTION_CLOSED", 500, "The database connection is closed.")
    DB_CONNECTION_ERROR = (ErrorGroup.DATABASE, "CONNECTION_ERROR", 500, "Database connection error.")
    DB_DUPLICATE_ENTRY = (ErrorGroup.DATABASE, "DUPLICATE_ENTRY", 409, "Duplicate database entry.")
    DB_INVALID_DB_TYPE = (ErrorGroup.DATABASE, "INVALID_DB_TYPE", 400, "Invalid database type provided.")
    DB_MISSING_DB_CONFIG = (ErrorGroup.DATABASE, "MISSING_DB_CONFIG", 500, "Database configuration is missing.")
    DB_POOL_EXHAUSTED = (ErrorGroup.DATABASE, "POOL_EXHAUSTED", 503, "No available connections in the database pool.")
    DB_QUERY_ERROR = (ErrorGroup.DATABASE, "QUERY_ERROR", 500, "Database query error.")
    DB_QUERY_TIMEOUT = (ErrorGroup.DATABASE, "QUERY_TIMEOUT", 504, "The database query took too long to execute.")
    DB_SCHEMA_MISMATCH = (ErrorGroup.DATABASE, "SCHEMA_MISMATCH", 500, "Database schema does not match expected structure.")
    DB_TRANSACTION_ERROR = (ErrorGroup.DATABASE, "TRANSACTION_ERROR", 500, "Database transaction failed.")
    DB_UNAUTHORIZED_ACCESS = (ErrorGroup.DATABASE, "UNAUTHORIZED_ACCESS", 401, "Unauthorized access to the database.")
    DB_VALIDATION_ERROR = (ErrorGroup.DATABASE, "VALIDATION_ERROR", 400, "Database validation failed.")

    # movie
    MOVIE_CREATE_ERROR = (ErrorGroup.MOVIE, "CREATE_ERROR", 500, "Error creating movie.")
    MOVIE_DELETE_ERROR = (ErrorGroup.MOVIE, "DELETE_ERROR", 500, "Error deleting movie.")
    MOVIE_FETCH_ERROR = (ErrorGroup.MOVIE, "FETCH_ERROR", 500, "Error fetching movie data.")
    MOVIE_NOT_FOUND = (ErrorGroup.MOVIE, "NOT_FOUND", 404, "Movie not found.")
    MOVIE_UPDATE_ERROR = (ErrorGroup.MOVIE, "UPDATE_ERROR", 500, "Error updating movie.")
    MOVIE_VALIDATION_ERROR = (ErrorGroup.MOVIE, "VALIDATION_ERROR", 400, "Movie validation failed.")

    # user
    USER_DUPLICATE = (ErrorGroup.USER, "DUPLICATE", 409, "Duplicate user entry.")
    USER_INVALID_CREDENTIALS = (ErrorGroup.USER, "INVALID_CREDENTIALS", 401, "Invalid username or password.")
    USER_MISSING_ID = (ErrorGroup.USER, "MISSING_ID", 400, "User ID is required.")
    USER_REGISTRATION_ERROR = (ErrorGroup.USER, "REGISTRATION_ERROR", 400, "User registration failed.")
    USER_UPDATE_ERROR = (ErrorGroup.USER, "UPDATE_ERROR", 400, "Failed to update user data.")
    USER_VALIDATION_ERROR = (ErrorGroup.USER, "VALIDATION_ERROR", 400, "User validation failed.")

    def __init__(self, group: ErrorGroup, name: str, status: int, message: str):
        self.group = group
        self.code = f"{group.value}_{name}"
        self.status = status
        self.message = message


class AppError(Exception):
    """
    An error from the catalog, raised anywhere below the HTTP layer.

    `cause` is mandatory: every AppError must point at what went wrong
    underneath (a driver exception, a ValidationError, or a plain
    exception describing the condition). Extra keyword arguments are kept
    as context for logging, never sent to the client.
    """

    def __init__(self, kind: ErrorKind, cause: Optional[BaseException] = None, **context: Any):
        if not isinstance(kind, ErrorKind):
            raise TypeError(f"kind must be an ErrorKind, got {kind!r}")
        if cause is None:
            raise TypeError("AppError requires the original cause")
        super().__init__(kind.message)
        self.kind = kind
        self.cause = cause
        self.context: Dict[str, Any] = context
        self.__cause__ = cause

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status(self) -> int:
        return self.kind.status

    @property
    def message(self) -> str:
        return self.kind.message

    def __str__(self) -> str:
        return f"AppError: {self.code} (Status: {self.status}) - {self.message}"
