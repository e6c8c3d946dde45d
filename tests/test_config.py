"""Tests for CollaborationSettings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from movie_collaborations.config import CollaborationSettings, KEY_CREW_JOBS


class TestCollaborationSettings:
    """Tests for defaults and environment loading."""

    def test_default_values(self):
        """Should carry the documented defaults."""
        settings = CollaborationSettings()
        assert settings.top_cast_cutoff == 20
        assert settings.batch_size == 10
        assert settings.max_depth == 6
        assert settings.path_cache_ttl == timedelta(days=7)
        assert settings.conflict_retry_attempts == 3
        assert settings.key_crew_jobs == KEY_CREW_JOBS
        assert "Director" not in settings.key_crew_jobs

    def test_loads_from_env(self, monkeypatch):
        """Should read COLLAB_* variables."""
        monkeypatch.setenv("COLLAB_TOP_CAST_CUTOFF", "3")
        monkeypatch.setenv("COLLAB_BATCH_SIZE", "50")
        monkeypatch.setenv("COLLAB_PATH_CACHE_TTL_HOURS", "2")
        monkeypatch.setenv("COLLAB_PATH_CACHE_BACKEND", "memory")
        monkeypatch.setenv("COLLAB_PATH_TIME_BUDGET_SECONDS", "1.5")

        settings = CollaborationSettings.from_env()

        assert settings.top_cast_cutoff == 3
        assert settings.batch_size == 50
        assert settings.path_cache_ttl == timedelta(hours=2)
        assert settings.path_cache_backend == "memory"
        assert settings.path_time_budget == 1.5

    def test_unknown_cache_backend(self, monkeypatch):
        """Should reject unsupported cache backends."""
        monkeypatch.setenv("COLLAB_PATH_CACHE_BACKEND", "redis")
        with pytest.raises(ValueError):
            CollaborationSettings.from_env()

    def test_batch_size_must_be_positive(self):
        """Should validate ranges."""
        with pytest.raises(ValidationError):
            CollaborationSettings(batch_size=0)
