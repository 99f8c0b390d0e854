# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan (or tests) → attach_cache() → app.state → Depends().
# No global cache. Each app owns exactly one engine instance.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import FastAPI, Request

from cacheserver.cache.engine import ShardedCache
from cacheserver.config import Settings
from cacheserver.handlers import CacheResource, StatsResource


def attach_cache(app: FastAPI, cache: ShardedCache, settings: Settings) -> None:
    """Bind an engine and the handlers built around it to the app."""
    app.state.cache = cache
    app.state.settings = settings
    app.state.cache_resource = CacheResource(cache, max_body_bytes=settings.max_body_bytes)
    app.state.stats_resource = StatsResource(cache)


def get_cache(request: Request) -> ShardedCache | None:
    """Inject the engine, or None if the app has not been attached yet."""
    return getattr(request.app.state, "cache", None)


def get_cache_resource(request: Request) -> CacheResource:
    """Inject CacheResource into endpoints via Depends()."""
    return request.app.state.cache_resource  # type: ignore[no-any-return]


def get_stats_resource(request: Request) -> StatsResource:
    """Inject StatsResource into endpoints via Depends()."""
    return request.app.state.stats_resource  # type: ignore[no-any-return]


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]
