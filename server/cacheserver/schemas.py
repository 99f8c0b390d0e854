# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from pydantic import BaseModel, Field

from cacheserver.cache.engine import Stats


class StatsResponse(BaseModel):
    """Cumulative engine counters since startup."""

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    delete_hits: int = Field(..., ge=0)
    delete_misses: int = Field(..., ge=0)
    collisions: int = Field(..., ge=0)

    @classmethod
    def from_stats(cls, stats: Stats) -> "StatsResponse":
        return cls(
            hits=stats.hits,
            misses=stats.misses,
            delete_hits=stats.delete_hits,
            delete_misses=stats.delete_misses,
            collisions=stats.collisions,
        )


class LivenessResponse(BaseModel):
    """Liveness probe — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness probe — is the engine up and serving?"""

    status: str  # "ready" or "not_ready"
    entries: int = 0
    capacity_bytes: int = 0
