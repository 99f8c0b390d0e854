# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness and readiness
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. Returns 200 while the process runs.
#   /health/ready  → Readiness probe. 503 until the engine is attached.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cacheserver.cache.engine import ShardedCache
from cacheserver.dependencies import get_cache
from cacheserver.schemas import LivenessResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe — no dependencies, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(cache: ShardedCache | None = Depends(get_cache)) -> JSONResponse:
    """Readiness probe — can this instance serve cache traffic?"""
    if cache is None:
        response = ReadinessResponse(status="not_ready")
        return JSONResponse(status_code=503, content=response.model_dump())

    response = ReadinessResponse(status="ready", entries=len(cache), capacity_bytes=cache.capacity())
    return JSONResponse(status_code=200, content=response.model_dump())
