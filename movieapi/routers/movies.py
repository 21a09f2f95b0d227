# ---------------------------------------------
# movies.py — movie CRUD endpoints
# ---------------------------------------------

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from ..dependencies import AppContext, Identity, authenticate, get_context, require_admin
from ..errors import AppError, ErrorKind
from ..repositories.movies import UPDATABLE_FIELDS
from ..schemas import is_valid_uuid, validate_movie, validate_partial_movie

logger = logging.getLogger(__name__)

# every endpoint here lives under /movies
router = APIRouter(prefix="/movies", tags=["movies"])


def _check_uuid(movie_id: str) -> str:
    if not is_valid_uuid(movie_id):
        raise AppError(ErrorKind.GENERAL_INVALID_UUID, cause=ValueError(f"invalid UUID {movie_id!r}"))
    return movie_id.strip().lower()


@router.get("")
def list_movies(
    genre: Optional[str] = None,
    ctx: AppContext = Depends(get_context),
    _: Identity = Depends(authenticate),
):
    """
    All movies, optionally filtered by genre (case-insensitive).

    - GET /movies
    - GET /movies?genre=drama
    """
    return ctx.movies.get_all(genre=genre)


@router.get("/{movie_id}")
def get_movie(movie_id: str, ctx: AppContext = Depends(get_context), _: Identity = Depends(authenticate)):
    return ctx.movies.get_by_id(_check_uuid(movie_id))


@router.post("", status_code=201)
def create_movie(
    payload: Any = Body(None),
    ctx: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
):
    """
    Create a movie (admins only).

    Request body (JSON):
    {
      "title": "Dunkirk", "year": 2017, "director": "Christopher Nolan",
      "duration": 106, "rate": 8.5, "poster": "https://...",
      "genre": ["Drama", "Action"]
    }
    Responds 201 with the stored movie, including its generated id.
    """
    movie = validate_movie(payload)
    created = ctx.movies.create(movie.model_dump(mode="json"))
    logger.info("Movie %s created by %s", created["id"], admin.username)
    return created


@router.patch("/{movie_id}")
def update_movie(
    movie_id: str,
    payload: Any = Body(None),
    ctx: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
):
    """Change some fields and/or replace the genre list of a movie (admins only)."""
    movie_id = _check_uuid(movie_id)
    changes = validate_partial_movie(payload).model_dump(mode="json", exclude_unset=True)

    genre = changes.pop("genre", None)
    fields = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    if not fields and genre is None:
        raise AppError(
            ErrorKind.MOVIE_VALIDATION_ERROR,
            cause=ValueError("no valid fields or genres provided to update"),
        )

    ctx.movies.update(movie_id, fields, genre)
    movie = ctx.movies.get_by_id(movie_id)
    logger.info("Movie %s updated by %s", movie_id, admin.username)
    return {"message": "Movie updated successfully", "movie": movie}


@router.delete("/{movie_id}")
def delete_movie(
    movie_id: str,
    ctx: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
):
    movie_id = _check_uuid(movie_id)
    ctx.movies.delete(movie_id)
    logger.info("Movie %s deleted by %s", movie_id, admin.username)
    return {"message": "Movie deleted"}
