import os
import logging
from datetime import timedelta
from typing import FrozenSet, Optional
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DIRECTOR_JOB = "Director"

# Crew jobs significant enough to take part in collaboration aggregation
KEY_CREW_JOBS: FrozenSet[str] = frozenset({
    "Producer",
    "Executive Producer",
    "Screenplay",
    "Writer",
    "Director of Photography",
    "Original Music Composer",
    "Editor",
})

DEFAULT_TOP_CAST_CUTOFF = 20
DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_DEPTH = 6
DEFAULT_PATH_CACHE_TTL = timedelta(days=7)
DEFAULT_CONFLICT_RETRY_ATTEMPTS = 3


class CollaborationSettings(BaseModel):
    """Tuning constants injected into the extraction, aggregation and path components."""
    top_cast_cutoff: int = Field(DEFAULT_TOP_CAST_CUTOFF, ge=0)
    key_crew_jobs: FrozenSet[str] = KEY_CREW_JOBS
    batch_size: int = Field(DEFAULT_BATCH_SIZE, ge=1)
    max_depth: int = Field(DEFAULT_MAX_DEPTH, ge=1)
    path_cache_ttl: timedelta = DEFAULT_PATH_CACHE_TTL
    path_cache_backend: str = "database"
    conflict_retry_attempts: int = Field(DEFAULT_CONFLICT_RETRY_ATTEMPTS, ge=1)
    path_search_workers: int = Field(1, ge=1)
    path_time_budget: Optional[float] = None

    @classmethod
    def from_env(cls) -> "CollaborationSettings":
        """Build settings from COLLAB_* environment variables, falling back to defaults."""
        values = {}
        int_vars = {
            "top_cast_cutoff": "COLLAB_TOP_CAST_CUTOFF",
            "batch_size": "COLLAB_BATCH_SIZE",
            "max_depth": "COLLAB_MAX_DEPTH",
            "conflict_retry_attempts": "COLLAB_CONFLICT_RETRY_ATTEMPTS",
            "path_search_workers": "COLLAB_PATH_SEARCH_WORKERS",
        }
        for field_name, env_name in int_vars.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = int(raw)

        ttl_hours = os.getenv("COLLAB_PATH_CACHE_TTL_HOURS")
        if ttl_hours:
            values["path_cache_ttl"] = timedelta(hours=float(ttl_hours))

        backend = os.getenv("COLLAB_PATH_CACHE_BACKEND")
        if backend:
            if backend not in ("database", "memory"):
                raise ValueError(f"Unsupported COLLAB_PATH_CACHE_BACKEND '{backend}'; use 'database' or 'memory'")
            values["path_cache_backend"] = backend

        budget = os.getenv("COLLAB_PATH_TIME_BUDGET_SECONDS")
        if budget:
            values["path_time_budget"] = float(budget)

        settings = cls(**values)
        logger.debug(f"Loaded collaboration settings: {settings}")
        return settings
