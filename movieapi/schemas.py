# ------------------------------------------------------------
# schemas.py — request payload validation (movie / user)
# ------------------------------------------------------------

import html
import uuid
from datetime import date
from enum import Enum
from ipaddress import ip_address
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import (
    AnyHttpUrl, BaseModel, EmailStr, Field, StrictInt, TypeAdapter, ValidationError, field_validator,
)

from .errors import AppError, ErrorKind

ModelT = TypeVar("ModelT", bound=BaseModel)


class Genre(str, Enum):
    ACTION = "Action"
    ADVENTURE = "Adventure"
    CRIME = "Crime"
    COMEDY = "Comedy"
    DRAMA = "Drama"
    FANTASY = "Fantasy"
    HORROR = "Horror"
    THRILLER = "Thriller"
    SCI_FI = "Sci-Fi"
    DOCUMENTARY = "Documentary"
    ANIMATION = "Animation"
    FAMILY = "Family"
    MUSICAL = "Musical"
    ROMANCE = "Romance"
    WESTERN = "Western"


class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"
    GUEST = "Guest"


_http_url = TypeAdapter(AnyHttpUrl)


# ------------------------------------------------------------
# MovieIn: body of POST /movies
# ------------------------------------------------------------
class MovieIn(BaseModel):
    title: str
    year: StrictInt = Field(..., ge=1900)
    director: str
    duration: StrictInt = Field(..., gt=0)   # minutes
    rate: float = Field(5, ge=0, le=10)
    poster: str
    genre: List[Genre]

    @field_validator("title")
    @classmethod
    def _title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Movie title cannot be empty.")
        return html.escape(value)

    @field_validator("director")
    @classmethod
    def _director(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else html.escape(value.strip())

    @field_validator("year")
    @classmethod
    def _year(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value > date.today().year:
            raise ValueError("Movie year cannot be in the future.")
        return value

    @field_validator("rate", mode="before")
    @classmethod
    def _rate_is_number(cls, value: Any) -> Any:
        # JSON numbers only; "8.5" or true are rejected rather than coerced
        if value is None:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("Rate must be a number.")
        return value

    @field_validator("poster")
    @classmethod
    def _poster(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            _http_url.validate_python(value)
        except ValidationError:
            raise ValueError("Poster must be a valid URL")
        return value


# ------------------------------------------------------------
# MovieUpdate: body of PATCH /movies/{id} (every field optional)
# ------------------------------------------------------------
class MovieUpdate(MovieIn):
    title: Optional[str] = None
    year: Optional[StrictInt] = Field(None, ge=1900)
    director: Optional[str] = None
    duration: Optional[StrictInt] = Field(None, gt=0)
    rate: Optional[float] = Field(None, ge=0, le=10)
    poster: Optional[str] = None
    genre: Optional[List[Genre]] = None


# ------------------------------------------------------------
# UserIn: body of POST /user/register
# ------------------------------------------------------------
class UserIn(BaseModel):
    username: str = Field(..., min_length=3)
    email: Optional[EmailStr] = None
    password: str = Field(..., min_length=6)
    age: Optional[StrictInt] = Field(None, gt=0)


class Credentials(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


# ------------------------------------------------------------
# UserUpdate: body of PATCH /user/{id}
# ------------------------------------------------------------
class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    age: Optional[StrictInt] = Field(None, gt=0)
    role: Optional[Role] = None

    @field_validator("role", mode="before")
    @classmethod
    def _role_case(cls, value: Any) -> Any:
        # "admin", "ADMIN" and "Admin" all name the same role
        if isinstance(value, str):
            for role in Role:
                if role.value.lower() == value.strip().lower():
                    return role
        return value


# ------------------------------------------------------------
# Validation entry points
# ------------------------------------------------------------
def _issues(err: ValidationError) -> Dict[str, str]:
    details: Dict[str, str] = {}
    for issue in err.errors():
        field = str(issue["loc"][0]) if issue["loc"] else "__root__"
        details.setdefault(field, issue["msg"])
    return details


def _validate(schema: Type[ModelT], payload: Any, kind: ErrorKind, operation: str) -> ModelT:
    try:
        return schema.model_validate(payload)
    except ValidationError as err:
        raise AppError(kind, cause=err, operation=operation, details=_issues(err))


def validate_movie(payload: Any) -> MovieIn:
    return _validate(MovieIn, payload, ErrorKind.MOVIE_VALIDATION_ERROR, "VALIDATION")


def validate_partial_movie(payload: Any) -> MovieUpdate:
    return _validate(MovieUpdate, payload, ErrorKind.MOVIE_VALIDATION_ERROR, "PARTIAL_VALIDATION")


def validate_user(payload: Any) -> UserIn:
    return _validate(UserIn, payload, ErrorKind.USER_VALIDATION_ERROR, "VALIDATION")


def validate_credentials(payload: Any) -> Credentials:
    return _validate(Credentials, payload, ErrorKind.USER_VALIDATION_ERROR, "LOGIN")


def validate_partial_user(payload: Any) -> UserUpdate:
    return _validate(UserUpdate, payload, ErrorKind.USER_VALIDATION_ERROR, "PARTIAL_VALIDATION")


def is_valid_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    value = value.strip()
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        return False
    # only the canonical 8-4-4-4-12 form
    return str(parsed) == value.lower()


def is_valid_ip(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        ip_address(value.strip())
    except ValueError:
        return False
    return True
