# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cacheserver.cache.engine import CacheConfig


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── HTTP ─────────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 9090
    api_base: str = "/api/v1"  # Prefix for /cache/{key} and /stats

    # Upper bound on a buffered PUT body. Kept above the shard budget so that
    # oversize values are rejected by the engine, not truncated here.
    max_body_bytes: int = Field(default=64 * 1024 * 1024, gt=0)

    # Non-GET on /stats: False = 200 no-op, True = 405.
    stats_strict_methods: bool = False

    # ── Cache engine ─────────────────────────────────────────────────────────
    shards: int = 1024  # Must be a power of two
    life_window_seconds: float = Field(default=600.0, gt=0)
    clean_window_seconds: float = Field(default=0.0, ge=0)  # 0 = no background sweep
    max_entries_in_window: int = Field(default=1000 * 10 * 60, ge=0)
    max_entry_size: int = Field(default=500, ge=0)  # Bytes per value; 0 = unlimited
    hard_max_cache_size_mb: int = Field(default=8192, ge=0)  # 0 = unlimited
    verbose: bool = False  # Log evictions and hash collisions

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    def cache_config(self) -> CacheConfig:
        """Engine configuration derived from these settings."""
        return CacheConfig(
            shards=self.shards,
            life_window=self.life_window_seconds,
            clean_window=self.clean_window_seconds,
            max_entries_in_window=self.max_entries_in_window,
            max_entry_size=self.max_entry_size,
            hard_max_cache_size=self.hard_max_cache_size_mb,
            verbose=self.verbose,
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
