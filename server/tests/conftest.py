# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────
# The client fixtures attach an isolated engine directly (the lifespan does
# not run unless TestClient is used as a context manager).
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from cacheserver.cache.engine import CacheConfig, ShardedCache
from cacheserver.config import Settings
from cacheserver.dependencies import attach_cache
from cacheserver.main import create_app

BASE_URL = "http://cacheserver.test"


class FakeTimer:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    """Engine parameters mirror the production defaults; logs go to console."""
    return Settings(
        shards=1024,
        life_window_seconds=600,
        max_entries_in_window=1000 * 10 * 60,
        max_entry_size=500,
        hard_max_cache_size_mb=8192,
        verbose=True,
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def cache(test_settings: Settings) -> ShardedCache:
    """Fresh engine per test."""
    return ShardedCache(test_settings.cache_config())


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def small_cache(timer: FakeTimer) -> ShardedCache:
    """Single shard, 1 MiB budget, no per-value cap, manual clock."""
    config = CacheConfig(
        shards=1,
        life_window=60,
        max_entries_in_window=0,
        max_entry_size=0,
        hard_max_cache_size=1,
    )
    return ShardedCache(config, timer=timer)


def make_app(settings: Settings, cache: ShardedCache) -> FastAPI:
    app = create_app(settings)
    attach_cache(app, cache, settings)
    return app


@pytest.fixture
def app(test_settings: Settings, cache: ShardedCache) -> FastAPI:
    return make_app(test_settings, cache)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI TestClient bound to the per-test engine."""
    return TestClient(app, base_url=BASE_URL)


@pytest.fixture
def client_factory():
    """Build a TestClient and its engine from custom settings.

    Usage:
        def test_something(client_factory):
            client, cache = client_factory(Settings(shards=1))
    """

    def factory(settings: Settings) -> tuple[TestClient, ShardedCache]:
        engine = ShardedCache(settings.cache_config())
        return TestClient(make_app(settings, engine), base_url=BASE_URL), engine

    return factory


@pytest.fixture
async def async_client(app: FastAPI):
    """httpx AsyncClient over ASGITransport for concurrent request tests."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as ac:
        yield ac
