from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from movieapi.errors import AppError, ErrorKind
from movieapi.main import create_app
from movieapi.middleware import BlacklistStore, RateLimiter

CLIENT_IP = "203.0.113.7"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_rate_limiter_counts_per_key_within_window():
    clock = FakeClock()
    limiter = RateLimiter(limit=2, window=60, clock=clock)

    assert limiter.hit("a")
    assert limiter.hit("a")
    assert not limiter.hit("a")
    assert limiter.hit("b")

    clock.now += 60
    assert limiter.hit("a")


def test_rate_limiter_forgets_finished_windows():
    clock = FakeClock()
    limiter = RateLimiter(limit=5, window=10, clock=clock)
    for n in range(1000):
        limiter.hit(f"10.0.{n // 256}.{n % 256}")
    assert len(limiter) == 1000

    clock.now += 10_000
    assert limiter.hit("198.51.100.9")

    assert len(limiter) == 1


def test_rate_limiter_sweep_keeps_live_windows():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window=10, clock=clock)
    limiter.hit("old")
    clock.now += 5
    limiter.hit("recent")
    clock.now += 5

    limiter.hit("new")

    assert len(limiter) == 2
    assert not limiter.hit("recent")


def test_rate_limiter_reset():
    limiter = RateLimiter(limit=1, window=60, clock=FakeClock())
    limiter.hit("a")
    limiter.reset("a")
    assert limiter.hit("a")


def test_blacklist_only_accepts_ip_addresses():
    blacklist = BlacklistStore(["198.51.100.1"])
    assert "198.51.100.1" in blacklist

    with pytest.raises(AppError) as info:
        blacklist.add("localhost")
    assert info.value.kind is ErrorKind.GENERAL_INVALID_IP

    blacklist.discard("198.51.100.1")
    assert len(blacklist) == 0


@pytest.fixture
def limited_app(settings, database):
    return create_app(replace(settings, rate_limit_max=3, rate_limit_sensitive_max=2), user_db=database, movie_db=database)


def test_blacklisted_ip_is_refused(limited_app):
    limited_app.state.context.blacklist.add(CLIENT_IP)
    with TestClient(limited_app, client=(CLIENT_IP, 50000)) as client:
        res = client.get("/")
    assert res.status_code == 403
    assert res.json() == {"error": "Your IP is blocked."}


def test_exceeding_budget_blacklists_the_client(limited_app):
    with TestClient(limited_app, client=(CLIENT_IP, 50000)) as client:
        for _ in range(3):
            assert client.get("/").status_code == 200

        res = client.get("/")
        assert res.status_code == 429
        assert res.json() == {"error": "Too many requests."}

        assert client.get("/").status_code == 403
    assert CLIENT_IP in limited_app.state.context.blacklist


def test_sensitive_routes_have_tighter_budget(limited_app):
    with TestClient(limited_app, client=(CLIENT_IP, 50000)) as client:
        body = {"username": "nobody", "password": "whatever"}
        assert client.post("/user/login", json=body).status_code == 401
        assert client.post("/user/login", json=body).status_code == 401
        assert client.post("/user/login", json=body).status_code == 429


def test_other_clients_are_unaffected(limited_app):
    limited_app.state.context.blacklist.add(CLIENT_IP)
    with TestClient(limited_app, client=("198.51.100.20", 50000)) as client:
        assert client.get("/").status_code == 200
