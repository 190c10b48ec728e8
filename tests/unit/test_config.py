"""
Unit tests for settings and runtime configuration.
"""

import pytest
from pydantic import ValidationError

from queuectl.config import RuntimeConfig, Settings
from queuectl.errors import InvalidInput


class TestSettings:
    """Tests for environment-sourced settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite+aiosqlite:///queuectl.db"
        assert settings.backoff_base == 2.0
        assert settings.backoff_max_seconds is None
        assert settings.default_max_retries == 3

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("BACKOFF_BASE", "3")
        monkeypatch.setenv("DEFAULT_MAX_RETRIES", "5")

        settings = Settings(_env_file=None)

        assert settings.backoff_base == 3.0
        assert settings.default_max_retries == 5

    def test_rejects_stale_window_within_heartbeat(self):
        with pytest.raises(ValidationError):
            Settings(
                _env_file=None,
                heartbeat_interval_seconds=60,
                reaper_stale_after_seconds=60,
            )

    def test_long_job_timeout_is_allowed(self):
        settings = Settings(
            _env_file=None,
            job_timeout_seconds=7200,
            reaper_stale_after_seconds=3600,
        )

        assert settings.job_timeout_seconds == 7200


class TestRuntimeConfig:
    """Tests for RuntimeConfig.resolve."""

    def test_settings_without_overrides(self):
        settings = Settings(_env_file=None, poll_interval_seconds=0.5)

        config = RuntimeConfig.resolve(settings)

        assert config.poll_interval_seconds == 0.5
        assert config.backoff_base == settings.backoff_base

    def test_overrides_are_coerced(self):
        config = RuntimeConfig.resolve(
            Settings(_env_file=None),
            {"backoff_base": "3", "default_max_retries": "7"},
        )

        assert config.backoff_base == 3.0
        assert config.default_max_retries == 7

    def test_none_clears_optional_value(self):
        settings = Settings(_env_file=None, backoff_max_seconds=60)

        config = RuntimeConfig.resolve(settings, {"backoff_max_seconds": "none"})

        assert config.backoff_max_seconds is None

    def test_unknown_key(self):
        with pytest.raises(InvalidInput, match="Unknown config key"):
            RuntimeConfig.resolve(Settings(_env_file=None), {"colour": "blue"})

    @pytest.mark.parametrize(
        "key,value",
        [
            ("backoff_base", "0.5"),
            ("default_max_retries", "-1"),
            ("poll_interval_seconds", "fast"),
        ],
    )
    def test_invalid_value(self, key, value):
        with pytest.raises(InvalidInput):
            RuntimeConfig.resolve(Settings(_env_file=None), {key: value})
