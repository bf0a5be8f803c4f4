import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app import middleware
from app.errors import register_exception_handlers
from app.middleware import RateLimitMiddleware, RequestLoggingMiddleware


class CountingRedis:
    def __init__(self):
        self.counts = {}
        self.expiries = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.expiries[key] = seconds


class DownRedis:
    async def incr(self, key):
        raise RedisConnectionError("redis is down")

    async def expire(self, key, seconds):
        raise RedisConnectionError("redis is down")


def limited_app(redis_client, max_per_minute):
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client, max_per_minute=max_per_minute)
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/health")
    async def health():
        return {"success": True}

    @app.get("/manager/bookings")
    async def bookings():
        return {"success": True, "data": []}

    return app


@pytest.fixture(autouse=True)
def fixed_minute(monkeypatch):
    monkeypatch.setattr(middleware.time, "time", lambda: 1_700_000_000.0)


@pytest.fixture
def make_client():
    def _make(app):
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


async def test_requests_over_the_limit_get_429(make_client):
    redis = CountingRedis()

    async with make_client(limited_app(redis, max_per_minute=2)) as ac:
        statuses = [(await ac.get("/manager/bookings")).status_code for _ in range(3)]
        r = await ac.get("/manager/bookings")

    assert statuses == [200, 200, 429]
    assert r.status_code == 429
    assert r.json() == {"success": False, "message": "Too many requests"}
    assert r.headers["X-Request-Id"]
    [key] = redis.counts
    assert key.startswith("rl:ip:")
    assert redis.expiries == {key: 70}


async def test_health_is_not_counted(make_client):
    redis = CountingRedis()

    async with make_client(limited_app(redis, max_per_minute=1)) as ac:
        statuses = [(await ac.get("/health")).status_code for _ in range(3)]

    assert statuses == [200, 200, 200]
    assert redis.counts == {}


async def test_redis_outage_lets_requests_through(make_client):
    async with make_client(limited_app(DownRedis(), max_per_minute=1)) as ac:
        statuses = [(await ac.get("/manager/bookings")).status_code for _ in range(3)]

    assert statuses == [200, 200, 200]
