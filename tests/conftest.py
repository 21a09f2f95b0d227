import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from movieapi.config import Settings
from movieapi.db import Database
from movieapi.main import create_app
from movieapi.models import init_schema
from movieapi.repositories import MovieRepository, UserRepository
from movieapi.security import PasswordHasher, TokenService

DUNKIRK = {
    "title": "Dunkirk",
    "year": 2017,
    "director": "Christopher Nolan",
    "duration": 106,
    "rate": 8.5,
    "poster": "https://image.example.com/dunkirk.jpg",
    "genre": ["Drama", "Action"],
}


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-access-secret",
        refresh_secret="test-refresh-secret",
        salt_rounds=4,
        rate_limit_sensitive_max=50,
    )


@pytest.fixture
def engine():
    # one shared in-memory database for every connection the pool hands out
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine):
    return Database(engine)


@pytest.fixture
def hasher(settings):
    return PasswordHasher(settings.salt_rounds)


@pytest.fixture
def movie_repo(database):
    return MovieRepository(database)


@pytest.fixture
def user_repo(database, hasher):
    return UserRepository(database, hasher)


@pytest.fixture
def tokens(settings):
    return TokenService(settings)


@pytest.fixture
def app(settings, database):
    return create_app(settings, user_db=database, movie_db=database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register(client, username, password="password123", **extra):
    res = client.post("/user/register", json={"username": username, "password": password, **extra})
    assert res.status_code == 201, res.text
    return res.json()


def login(client, username, password="password123"):
    res = client.post("/user/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.headers["authorization"].split(" ", 1)[1]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client, app):
    user = register(client, "admin_user")
    app.state.context.users.update_user(user["id"], {"role": "Admin"})
    return login(client, "admin_user")


@pytest.fixture
def user_token(client):
    register(client, "plain_user")
    return login(client, "plain_user")
