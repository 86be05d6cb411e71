"""
Unit tests for configuration management.

This module tests the engine settings including defaults, validation and
environment variable loading.
"""

import pytest
from pydantic import ValidationError

from autonomous_mas.config.settings import EngineSettings, get_settings


class TestDefaults:
    """Test default engine settings."""

    def test_driver_intervals(self):
        settings = EngineSettings()

        assert settings.execution_interval == 2.0
        assert settings.health_interval == 10.0
        assert settings.conflict_interval == 5.0

    def test_thresholds(self):
        """Test ranking, backpressure and health thresholds."""
        settings = EngineSettings()

        assert settings.max_queue_length == 5
        assert settings.success_rate_weight == 1.0
        assert settings.queue_length_weight == 0.25
        assert settings.unresponsive_timeout == 300.0
        assert settings.degraded_success_rate == 0.7
        assert settings.degraded_min_tasks == 5
        assert settings.execution_deadline == 300.0
        assert settings.conflict_max_attempts == 3

    def test_capability_map(self):
        settings = EngineSettings()

        assert settings.capabilities_for("development") == frozenset({"code_generation"})
        assert settings.capabilities_for("creative") == frozenset({"content_generation"})
        assert settings.capabilities_for("analysis") == frozenset({"data_analysis"})
        assert settings.capabilities_for("unknown") == frozenset()


class TestValidation:
    """Test settings validation."""

    def test_environment_validation(self):
        """Test environment validation."""
        for env in ["development", "staging", "production", "testing"]:
            assert EngineSettings(environment=env).environment == env

        assert EngineSettings(environment="Production").is_production

        with pytest.raises(ValidationError):
            EngineSettings(environment="invalid")

    def test_log_level_validation(self):
        """Test log level validation."""
        assert EngineSettings(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            EngineSettings(log_level="INVALID")

    def test_intervals_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineSettings(execution_interval=0)
        with pytest.raises(ValidationError):
            EngineSettings(execution_deadline=-1)

    def test_soft_timeout_outlasts_health_pass(self):
        """Test the unresponsive timeout cannot be shorter than the health interval."""
        with pytest.raises(ValidationError):
            EngineSettings(health_interval=30, unresponsive_timeout=10)

    def test_success_rate_bounds(self):
        with pytest.raises(ValidationError):
            EngineSettings(degraded_success_rate=1.5)


class TestEnvironment:
    """Test loading from environment variables."""

    def test_prefixed_variables(self, monkeypatch):
        """Test MAS_ENGINE_ variables override defaults."""
        monkeypatch.setenv("MAS_ENGINE_EXECUTION_INTERVAL", "0.5")
        monkeypatch.setenv("MAS_ENGINE_MAX_QUEUE_LENGTH", "8")
        monkeypatch.setenv("MAS_ENGINE_TYPE_CAPABILITIES", '{"research": ["web_search"]}')

        settings = EngineSettings()

        assert settings.execution_interval == 0.5
        assert settings.max_queue_length == 8
        assert settings.capabilities_for("research") == frozenset({"web_search"})
        assert settings.capabilities_for("development") == frozenset()

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
