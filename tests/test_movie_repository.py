import pytest

from movieapi.errors import AppError, ErrorKind
from movieapi.repositories import MovieRepository

from .conftest import DUNKIRK

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def _genre_rows(database):
    return database.query("SELECT name FROM genre ORDER BY id")


def test_create_returns_movie_with_id_and_ordered_genres(movie_repo):
    movie = movie_repo.create(DUNKIRK)

    assert len(movie["id"]) == 36
    assert movie["title"] == "Dunkirk"
    assert movie["genre"] == ["Drama", "Action"]


def test_get_by_id_returns_the_same_movie(movie_repo):
    created = movie_repo.create(DUNKIRK)

    fetched = movie_repo.get_by_id(created["id"])

    assert fetched["id"] == created["id"]
    assert fetched["year"] == 2017
    assert fetched["rate"] == 8.5
    assert sorted(fetched["genre"]) == ["Action", "Drama"]


def test_get_by_id_is_case_insensitive(movie_repo):
    created = movie_repo.create(DUNKIRK)
    assert movie_repo.get_by_id(created["id"].upper())["id"] == created["id"]


def test_get_by_id_unknown_raises_not_found(movie_repo):
    with pytest.raises(AppError) as info:
        movie_repo.get_by_id(MISSING_ID)
    assert info.value.kind is ErrorKind.MOVIE_NOT_FOUND


def test_genres_are_created_once_and_reused(movie_repo, database):
    movie_repo.create(DUNKIRK)
    movie_repo.create({**DUNKIRK, "title": "Tenet", "year": 2020, "genre": ["action", "Sci-Fi", "ACTION"]})

    names = [row["name"] for row in _genre_rows(database)]
    assert names == ["Drama", "Action", "Sci-Fi"]


def test_get_all_filters_by_genre_case_insensitively(movie_repo):
    movie_repo.create(DUNKIRK)
    movie_repo.create({**DUNKIRK, "title": "Interstellar", "year": 2014, "genre": ["Sci-Fi"]})

    assert len(movie_repo.get_all()) == 2
    dramas = movie_repo.get_all(genre="dRaMa")
    assert [m["title"] for m in dramas] == ["Dunkirk"]
    # the filtered movie still lists all of its genres
    assert sorted(dramas[0]["genre"]) == ["Action", "Drama"]
    assert movie_repo.get_all(genre="Western") == []


def test_update_fields_only(movie_repo):
    created = movie_repo.create(DUNKIRK)

    assert movie_repo.update(created["id"], {"rate": 9.0, "title": "Dunkirk (2017)"}) == 1

    movie = movie_repo.get_by_id(created["id"])
    assert movie["rate"] == 9.0
    assert movie["title"] == "Dunkirk (2017)"
    assert sorted(movie["genre"]) == ["Action", "Drama"]


def test_update_genres_only_replaces_links(movie_repo):
    created = movie_repo.create(DUNKIRK)

    assert movie_repo.update(created["id"], {}, genre=["Thriller"]) == 1

    assert movie_repo.get_by_id(created["id"])["genre"] == ["Thriller"]


def test_update_unknown_movie_writes_nothing(movie_repo, database):
    with pytest.raises(AppError) as info:
        movie_repo.update(MISSING_ID, {"rate": 1.0}, genre=["Horror"])

    assert info.value.kind is ErrorKind.MOVIE_NOT_FOUND
    assert _genre_rows(database) == []


def test_update_with_nothing_to_change_never_touches_the_database():
    class Untouchable:
        def __getattr__(self, name):
            raise AssertionError(f"database accessed: {name}")

    repo = MovieRepository(Untouchable())
    with pytest.raises(AppError) as info:
        repo.update(MISSING_ID, {"unknown": 1})
    assert info.value.kind is ErrorKind.MOVIE_VALIDATION_ERROR


def test_delete_removes_movie_and_links(movie_repo, database):
    created = movie_repo.create(DUNKIRK)

    assert movie_repo.delete(created["id"]) == 1

    assert database.query("SELECT * FROM movie_genre") == []
    with pytest.raises(AppError) as info:
        movie_repo.delete(created["id"])
    assert info.value.kind is ErrorKind.MOVIE_NOT_FOUND
