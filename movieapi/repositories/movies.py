# ------------------------------------------------------------
# repositories/movies.py — SQL access for movies and their genres
# ------------------------------------------------------------

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..db import Database, Transaction
from ..errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

# columns PATCH /movies/{id} may touch; anything else never reaches SQL
UPDATABLE_FIELDS = ("title", "year", "director", "duration", "poster", "rate")

_SELECT_MOVIES = """
    SELECT
        movie.id, movie.title, movie.year, movie.director,
        movie.duration, movie.poster, movie.rate,
        GROUP_CONCAT(DISTINCT genre.name) AS genre
    FROM movie
    LEFT JOIN movie_genre ON movie.id = movie_genre.movie_id
    LEFT JOIN genre ON genre.id = movie_genre.genre_id
"""


def _split_genres(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(g).strip() for g in value]
    return [g.strip() for g in str(value).split(",") if g.strip()]


def _shape(row: Dict[str, Any]) -> Dict[str, Any]:
    """Row from _SELECT_MOVIES -> API movie object."""
    movie = dict(row)
    rate = movie.get("rate")
    # DECIMAL comes back from MySQL as Decimal
    if isinstance(rate, Decimal):
        movie["rate"] = float(rate)
    movie["genre"] = _split_genres(movie.get("genre"))
    return movie


class MovieRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_all(self, genre: Optional[str] = None) -> List[Dict[str, Any]]:
        """All movies, or only those tagged with `genre` (case-insensitive)."""
        if genre:
            sql = _SELECT_MOVIES + """
                WHERE movie.id IN (
                    SELECT movie_genre.movie_id
                    FROM movie_genre
                    JOIN genre ON genre.id = movie_genre.genre_id
                    WHERE LOWER(genre.name) = :genre
                )
                GROUP BY movie.id
            """
            rows = self.db.query(sql, {"genre": genre.strip().lower()})
        else:
            rows = self.db.query(_SELECT_MOVIES + " GROUP BY movie.id")
        return [_shape(row) for row in rows]

    def get_by_id(self, movie_id: str) -> Dict[str, Any]:
        rows = self.db.query(
            _SELECT_MOVIES + " WHERE movie.id = :id GROUP BY movie.id",
            {"id": movie_id.lower()},
        )
        if not rows:
            raise AppError(
                ErrorKind.MOVIE_NOT_FOUND,
                cause=LookupError(f"movie {movie_id} not found"),
                resource="Movie",
            )
        return _shape(rows[0])

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a movie and link its genres in one transaction.

        Genres that do not exist yet are created on the way. The returned
        object lists the genres in the order they were given.
        """
        movie_id = str(uuid.uuid4())
        movie = {
            "id": movie_id,
            "title": data["title"],
            "year": data["year"],
            "director": data["director"],
            "duration": data["duration"],
            "poster": data["poster"],
            "rate": data.get("rate", 5),
        }

        def insert_movie(tx: Transaction) -> int:
            return tx.query(
                "INSERT INTO movie (id, title, year, director, duration, poster, rate) "
                "VALUES (:id, :title, :year, :director, :duration, :poster, :rate)",
                movie,
            )

        def link_genres(tx: Transaction) -> List[Tuple[str, int]]:
            resolved = self._resolve_genres(tx, data["genre"])
            self._link(tx, movie_id, resolved)
            return resolved

        _, resolved = self.db.execute_transaction([insert_movie, link_genres])
        logger.info("Created movie %s (%s)", movie_id, movie["title"])
        return {**movie, "genre": [name for name, _ in resolved]}

    def update(self, movie_id: str, fields: Dict[str, Any], genre: Optional[Sequence[str]] = None) -> int:
        """
        Apply `fields` and/or replace the genre links of a movie.

        Returns the number of movie rows matched; raises MOVIE_NOT_FOUND
        (and writes nothing) when the id does not exist.
        """
        updates = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        if not updates and genre is None:
            raise AppError(
                ErrorKind.MOVIE_VALIDATION_ERROR,
                cause=ValueError("no valid fields or genres provided to update"),
            )

        def ensure_exists(tx: Transaction) -> int:
            if not tx.query("SELECT id FROM movie WHERE id = :id", {"id": movie_id}):
                raise AppError(
                    ErrorKind.MOVIE_NOT_FOUND,
                    cause=LookupError(f"movie {movie_id} not found"),
                    resource="Movie",
                )
            return 1

        def update_fields(tx: Transaction) -> Optional[int]:
            if not updates:
                return None
            set_clause = ", ".join(f"{key} = :{key}" for key in updates)
            return tx.query(
                f"UPDATE movie SET {set_clause} WHERE id = :id",
                {**updates, "id": movie_id},
            )

        def replace_genres(tx: Transaction) -> Optional[List[Tuple[str, int]]]:
            if genre is None:
                return None
            resolved = self._resolve_genres(tx, genre)
            tx.query("DELETE FROM movie_genre WHERE movie_id = :id", {"id": movie_id})
            self._link(tx, movie_id, resolved)
            return resolved

        matched, _, _ = self.db.execute_transaction([ensure_exists, update_fields, replace_genres])
        logger.info("Updated movie %s", movie_id)
        return matched

    def delete(self, movie_id: str) -> int:
        """Drop the genre links, then the movie. Raises MOVIE_NOT_FOUND if absent."""

        def delete_links(tx: Transaction) -> int:
            return tx.query("DELETE FROM movie_genre WHERE movie_id = :id", {"id": movie_id})

        def delete_movie(tx: Transaction) -> int:
            affected = tx.query("DELETE FROM movie WHERE id = :id", {"id": movie_id})
            if affected == 0:
                raise AppError(
                    ErrorKind.MOVIE_NOT_FOUND,
                    cause=LookupError(f"movie {movie_id} not found"),
                    resource="Movie",
                )
            return affected

        _, affected = self.db.execute_transaction([delete_links, delete_movie])
        logger.info("Deleted movie %s", movie_id)
        return affected

    def _resolve_genres(self, tx: Transaction, names: Sequence[str]) -> List[Tuple[str, int]]:
        """Map genre names to ids, inserting unknown names. Order kept, duplicates dropped."""
        resolved: List[Tuple[str, int]] = []
        seen = set()
        for raw in names:
            name = getattr(raw, "value", raw).strip()
            if name.lower() in seen:
                continue
            seen.add(name.lower())

            lookup = {"name": name}
            rows = tx.query("SELECT id FROM genre WHERE LOWER(name) = LOWER(:name)", lookup)
            if not rows:
                logger.debug("Genre %r does not exist yet, creating it", name)
                tx.query("INSERT INTO genre (name) VALUES (:name)", lookup)
                rows = tx.query("SELECT id FROM genre WHERE LOWER(name) = LOWER(:name)", lookup)
            if not rows or rows[0].get("id") is None:
                raise AppError(
                    ErrorKind.GENERAL_NOT_FOUND,
                    cause=LookupError(f"no id found for genre {name!r}"),
                    resource="Genre",
                )
            resolved.append((name, rows[0]["id"]))
        return resolved

    @staticmethod
    def _link(tx: Transaction, movie_id: str, resolved: Sequence[Tuple[str, int]]) -> None:
        for _, genre_id in resolved:
            tx.query(
                "INSERT INTO movie_genre (movie_id, genre_id) VALUES (:movie_id, :genre_id)",
                {"movie_id": movie_id, "genre_id": genre_id},
            )
