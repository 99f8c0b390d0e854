# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn cacheserver.main:create_app --factory --host 0.0.0.0 --port 9090
#         or: cacheserver  (console script → main())

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

import structlog
from fastapi import FastAPI

from cacheserver import __version__
from cacheserver.cache.engine import ShardedCache
from cacheserver.config import Settings, get_settings
from cacheserver.dependencies import attach_cache
from cacheserver.exceptions import register_exception_handlers
from cacheserver.logging_config import configure_logging
from cacheserver.middleware import RequestContextMiddleware
from cacheserver.routes import cache as cache_routes
from cacheserver.routes import health, stats
from cacheserver.routes import prometheus as prometheus_routes

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the engine, attach it to app.state, and run the expiry sweep."""
    settings: Settings = app.state.settings
    cache = ShardedCache(settings.cache_config())
    attach_cache(app, cache, settings)
    logger.info("cache_engine_ready", **cache.describe())

    cleanup_task = _start_sweep(cache)

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
    logger.info("cache_engine_stopped", **asdict(cache.stats()))


def _start_sweep(cache: ShardedCache) -> asyncio.Task[None] | None:
    """Start the expiry sweep every config.clean_window seconds (0 = never)."""
    interval = cache.config.clean_window
    if interval <= 0:
        return None
    task = asyncio.create_task(_sweep_expired(cache, interval))
    task.add_done_callback(_on_sweep_done)
    return task


async def _sweep_expired(cache: ShardedCache, interval: float) -> None:
    """Periodically drop expired entries so they stop counting against capacity."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        logger.debug("cache_sweep_complete", removed=removed, entries=len(cache))


def _on_sweep_done(task: asyncio.Task[None]) -> None:
    """Log sweep task failures (suppresses silent exceptions)."""
    if task.cancelled():
        return
    if exc := task.exception():
        logger.critical("cache_sweep_failed", error=str(exc), error_type=type(exc).__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Invoked by: uvicorn cacheserver.main:create_app --factory"""
    settings = settings if settings is not None else get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Cache Server",
        description="HTTP key/value interface to a sharded in-memory byte cache",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    api_base = settings.api_base.rstrip("/")
    app.include_router(cache_routes.router, prefix=api_base, tags=["cache"])
    stats.register(app, prefix=api_base)
    app.include_router(health.router, tags=["health"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])

    return app


def main() -> None:
    """Console entry point: serve create_app() with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "cacheserver.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
