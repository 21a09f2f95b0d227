# -------------------------------------------------------
# config.py — environment-driven settings
# -------------------------------------------------------

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import AppError, ErrorKind

DB_TYPES = ("local", "freesql", "turso", "sqlite")


@dataclass
class DatabaseSettings:
    type: str
    host: Optional[str] = None
    port: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    token: Optional[str] = None
    sqlite_path: Optional[str] = None
    pool_size: int = 10
    pool_timeout: float = 30.0

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for this backend."""
        if self.type in ("local", "freesql"):
            # PyMySQL is a pure-python driver; utf8mb4 covers the full unicode range
            return (
                f"mysql+pymysql://{self.user}:{self.password or ''}"
                f"@{self.host}:{self.port}/{self.name}?charset=utf8mb4"
            )
        if self.type == "turso":
            # libsql://<db>.turso.io  ->  sqlite+libsql://<db>.turso.io/?authToken=...&secure=true
            host = self.url.split("://", 1)[-1].rstrip("/")
            return f"sqlite+libsql://{host}/?authToken={self.token}&secure=true"
        return f"sqlite:///{self.sqlite_path}"


@dataclass
class Settings:
    jwt_secret: str
    refresh_secret: str
    env: str = "development"
    host: str = "127.0.0.1"
    port: int = 3000
    salt_rounds: int = 8
    access_token_lifetime: int = 3600
    refresh_token_lifetime: int = 7 * 24 * 3600
    user_db: Optional[DatabaseSettings] = None
    movie_db: Optional[DatabaseSettings] = None
    cors_origins: List[str] = field(default_factory=list)
    rate_limit_window: int = 15 * 60
    rate_limit_max: int = 100
    rate_limit_sensitive_max: int = 10
    create_schema: bool = True

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    if not raw.strip().isdigit():
        raise ValueError(f"{name} must be a number, got {raw!r}")
    return int(raw)


def _require(values: Dict[str, Optional[str]], db_type: str) -> None:
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise AppError(
            ErrorKind.DB_MISSING_DB_CONFIG,
            cause=ValueError(f"missing {', '.join(missing)} for database type {db_type!r}"),
            db_type=db_type,
        )


def load_database_settings(db_type: str) -> DatabaseSettings:
    """Read the connection parameters of one backend from the environment."""
    if db_type not in DB_TYPES:
        raise AppError(
            ErrorKind.DB_INVALID_DB_TYPE,
            cause=ValueError(f"unknown database type {db_type!r}"),
            choices=DB_TYPES,
        )

    pool_size = _int("DB_POOL_SIZE", 10)
    pool_timeout = float(os.getenv("DB_POOL_TIMEOUT", "30"))

    if db_type in ("local", "freesql"):
        suffix = "SQL_LOCAL" if db_type == "local" else "FREESQL"
        values = {
            f"DB_HOST_{suffix}": os.getenv(f"DB_HOST_{suffix}"),
            f"DB_PORT_{suffix}": os.getenv(f"DB_PORT_{suffix}", "3306"),
            f"DB_USER_{suffix}": os.getenv(f"DB_USER_{suffix}"),
            f"DB_NAME_{suffix}": os.getenv(f"DB_NAME_{suffix}"),
        }
        _require(values, db_type)
        return DatabaseSettings(
            type=db_type,
            host=values[f"DB_HOST_{suffix}"],
            port=values[f"DB_PORT_{suffix}"],
            user=values[f"DB_USER_{suffix}"],
            name=values[f"DB_NAME_{suffix}"],
            # a local server may run without a password
            password=os.getenv(f"DB_PASSWORD_{suffix}", ""),
            pool_size=pool_size,
            pool_timeout=pool_timeout,
        )

    if db_type == "turso":
        values = {
            "DB_URL_SQL_TURSO": os.getenv("DB_URL_SQL_TURSO"),
            "DB_TOKEN_SQL_TURSO": os.getenv("DB_TOKEN_SQL_TURSO"),
        }
        _require(values, db_type)
        return DatabaseSettings(
            type=db_type,
            url=values["DB_URL_SQL_TURSO"],
            token=values["DB_TOKEN_SQL_TURSO"],
            pool_size=pool_size,
            pool_timeout=pool_timeout,
        )

    return DatabaseSettings(
        type=db_type,
        sqlite_path=os.getenv("SQLITE_PATH", "movies.db"),
        pool_size=pool_size,
        pool_timeout=pool_timeout,
    )


def load_settings(user_db_type: Optional[str] = None, movie_db_type: Optional[str] = None) -> Settings:
    """
    Build Settings from the process environment (and .env, if present).

    Command-line choices for the database types take precedence over
    USER_DB_TYPE / MOVIE_DB_TYPE.
    """
    load_dotenv()

    jwt_secret = os.getenv("JWT_SECRET")
    refresh_secret = os.getenv("REFRESH_SECRET")
    if not jwt_secret:
        raise ValueError("JWT_SECRET is required")
    if not refresh_secret:
        raise ValueError("REFRESH_SECRET is required")

    user_db_type = user_db_type or os.getenv("USER_DB_TYPE", "local")
    movie_db_type = movie_db_type or os.getenv("MOVIE_DB_TYPE", "local")

    origins = os.getenv("CORS_ORIGINS", "")

    return Settings(
        jwt_secret=jwt_secret,
        refresh_secret=refresh_secret,
        env=os.getenv("APP_ENV", "development"),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_int("PORT", 3000),
        salt_rounds=_int("SALT_ROUNDS", 8),
        access_token_lifetime=_int("ACC_TOKEN_LIFE", 3600),
        refresh_token_lifetime=_int("REF_TOKEN_LIFE", 7 * 24 * 3600),
        user_db=load_database_settings(user_db_type),
        movie_db=load_database_settings(movie_db_type),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        rate_limit_window=_int("RATE_LIMIT_WINDOW", 15 * 60),
        rate_limit_max=_int("RATE_LIMIT_MAX", 100),
        rate_limit_sensitive_max=_int("RATE_LIMIT_SENSITIVE_MAX", 10),
    )
