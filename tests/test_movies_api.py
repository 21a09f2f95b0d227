from fastapi.testclient import TestClient

from .conftest import DUNKIRK, bearer

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def _create(client, token, payload=DUNKIRK):
    res = client.post("/movies", json=payload, headers=bearer(token))
    assert res.status_code == 201, res.text
    return res.json()


def test_admin_creates_movie(client, admin_token):
    res = client.post("/movies", json=DUNKIRK, headers=bearer(admin_token))

    assert res.status_code == 201
    movie = res.json()
    assert len(movie["id"]) == 36
    assert movie["title"] == "Dunkirk"
    assert movie["genre"] == ["Drama", "Action"]
    assert movie["rate"] == 8.5


def test_create_without_token(client):
    res = client.post("/movies", json=DUNKIRK)
    assert res.status_code == 401
    assert res.json() == {"error": "No token provided."}


def test_create_as_regular_user(client, user_token):
    res = client.post("/movies", json=DUNKIRK, headers=bearer(user_token))
    assert res.status_code == 403
    assert res.json() == {"error": "Access denied."}


def test_create_with_invalid_body(client, admin_token):
    res = client.post("/movies", json={**DUNKIRK, "year": 1800}, headers=bearer(admin_token))
    assert res.status_code == 400
    assert res.json() == {"error": "Movie validation failed."}


def test_malformed_authorization_header(client):
    res = client.get("/movies", headers={"Authorization": "Token abc"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid or malformed token."}


def test_forged_token(client):
    res = client.get("/movies", headers=bearer("not.a.jwt"))
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid or malformed token."}


def test_list_and_filter_movies(client, admin_token, user_token):
    _create(client, admin_token)
    _create(client, admin_token, {**DUNKIRK, "title": "Interstellar", "year": 2014, "genre": ["Sci-Fi"]})

    everything = client.get("/movies", headers=bearer(user_token))
    assert everything.status_code == 200
    assert {m["title"] for m in everything.json()} == {"Dunkirk", "Interstellar"}

    scifi = client.get("/movies", params={"genre": "sci-fi"}, headers=bearer(user_token))
    assert [m["title"] for m in scifi.json()] == ["Interstellar"]


def test_get_movie_by_id(client, admin_token, user_token):
    created = _create(client, admin_token)

    res = client.get(f"/movies/{created['id']}", headers=bearer(user_token))

    assert res.status_code == 200
    assert res.json()["id"] == created["id"]
    assert sorted(res.json()["genre"]) == ["Action", "Drama"]


def test_get_movie_bad_and_missing_ids(client, user_token):
    bad = client.get("/movies/not-a-uuid", headers=bearer(user_token))
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid UUID format."}

    missing = client.get(f"/movies/{MISSING_ID}", headers=bearer(user_token))
    assert missing.status_code == 404
    assert missing.json() == {"error": "Movie not found."}


def test_patch_movie(client, admin_token):
    created = _create(client, admin_token)

    res = client.patch(f"/movies/{created['id']}", json={"rate": 9.1, "genre": ["War"]}, headers=bearer(admin_token))
    assert res.status_code == 400

    res = client.patch(
        f"/movies/{created['id']}", json={"rate": 9.1, "genre": ["Thriller"]}, headers=bearer(admin_token),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Movie updated successfully"
    assert body["movie"]["rate"] == 9.1
    assert body["movie"]["genre"] == ["Thriller"]


def test_patch_with_nothing_to_update(client, admin_token):
    created = _create(client, admin_token)
    res = client.patch(f"/movies/{created['id']}", json={}, headers=bearer(admin_token))
    assert res.status_code == 400
    assert res.json() == {"error": "Movie validation failed."}


def test_patch_unknown_movie(client, admin_token):
    res = client.patch(f"/movies/{MISSING_ID}", json={"genre": ["Drama"]}, headers=bearer(admin_token))
    assert res.status_code == 404


def test_delete_movie_twice(client, admin_token):
    created = _create(client, admin_token)

    first = client.delete(f"/movies/{created['id']}", headers=bearer(admin_token))
    assert first.status_code == 200
    assert first.json() == {"message": "Movie deleted"}

    second = client.delete(f"/movies/{created['id']}", headers=bearer(admin_token))
    assert second.status_code == 404
    assert second.json() == {"error": "Movie not found."}


def test_unknown_route_uses_error_body(client):
    res = client.get("/nowhere")
    assert res.status_code == 404
    assert res.json() == {"error": "Not Found"}


def test_health(client):
    assert client.get("/").json() == {"ok": True, "service": "movies-api"}


def test_unexpected_failure_is_a_generic_500(app, admin_token):
    def explode(genre=None):
        raise RuntimeError("disk on fire")

    app.state.context.movies.get_all = explode
    with TestClient(app, raise_server_exceptions=False) as client:
        res = client.get("/movies", headers=bearer(admin_token))

    assert res.status_code == 500
    assert res.json() == {"error": "An unexpected server error occurred."}
