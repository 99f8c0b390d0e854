# ─────────────────────────────────────────────────────────────────────────────
# Stats Route — {api_base}/stats
# ─────────────────────────────────────────────────────────────────────────────
# Registered as a plain Starlette route with no method list, so every verb
# (including TRACE, PURGE and custom ones) reaches cache_stats. Dependencies
# are read through the same providers the Depends() routes use.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from cacheserver.dependencies import get_settings_dep, get_stats_resource

STATS_PATH = "/stats"


async def cache_stats(request: Request) -> Response:
    """Return engine counters on GET. Other verbs never mutate the cache.

    Response schema:
    {
        "hits": 145,
        "misses": 12,
        "delete_hits": 3,
        "delete_misses": 1,
        "collisions": 0
    }
    """
    resource = get_stats_resource(request)
    if request.method == "GET":
        return JSONResponse(content=resource.snapshot().model_dump())

    await resource.discard(request.stream())
    if get_settings_dep(request).stats_strict_methods:
        return Response(status_code=405, headers={"Allow": "GET"})
    return Response(status_code=200)


def register(app: FastAPI, prefix: str) -> None:
    """Mount cache_stats at {prefix}/stats for all HTTP methods."""
    app.add_route(f"{prefix}{STATS_PATH}", cache_stats, include_in_schema=False)
