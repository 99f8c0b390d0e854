# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges ShardedCache.stats() → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from cacheserver.cache.engine import ShardedCache
from cacheserver.dependencies import get_cache

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

_operations = Gauge(
    "cacheserver_operations",
    "Cumulative cache operation outcomes since startup",
    ["outcome"],
    registry=_registry,
)

_entries = Gauge(
    "cacheserver_entries",
    "Entries currently held (may include expired entries not yet swept)",
    registry=_registry,
)

_capacity_bytes = Gauge(
    "cacheserver_capacity_bytes",
    "Accounted bytes currently held across all shards",
    registry=_registry,
)


def _sync_metrics(cache: ShardedCache) -> None:
    """Copy the engine's current counters into the gauges."""
    stats = cache.stats()
    _operations.labels(outcome="hit").set(stats.hits)
    _operations.labels(outcome="miss").set(stats.misses)
    _operations.labels(outcome="delete_hit").set(stats.delete_hits)
    _operations.labels(outcome="delete_miss").set(stats.delete_misses)
    _operations.labels(outcome="collision").set(stats.collisions)
    _entries.set(len(cache))
    _capacity_bytes.set(cache.capacity())


@router.get("/metrics/prometheus")
async def prometheus_metrics(cache: ShardedCache | None = Depends(get_cache)) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    if cache is not None:
        _sync_metrics(cache)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
