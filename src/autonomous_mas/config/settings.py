"""
Engine configuration management with environment validation.

This module provides type-safe configuration for the scheduling engine using
pydantic-settings. Every tunable of the three periodic drivers, the
distributor ranking and the self-healing thresholds lives here and can be
overridden through ``MAS_ENGINE_*`` environment variables or a ``.env`` file.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TYPE_CAPABILITIES: Dict[str, List[str]] = {
    "development": ["code_generation"],
    "creative": ["content_generation"],
    "analysis": ["data_analysis"],
}


class EngineSettings(BaseSettings):
    """Settings for the autonomous execution engine."""

    model_config = SettingsConfigDict(
        env_prefix="MAS_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    # Environment Configuration
    environment: str = Field("development")
    log_level: str = Field("INFO")

    # Driver intervals (seconds)
    execution_interval: float = Field(2.0, gt=0)
    health_interval: float = Field(10.0, gt=0)
    conflict_interval: float = Field(5.0, gt=0)

    # Distribution and backpressure
    fetch_batch_size: int = Field(10, ge=1)
    max_queue_length: int = Field(5, ge=1)
    success_rate_weight: float = Field(1.0, ge=0)
    queue_length_weight: float = Field(0.25, ge=0)
    type_capabilities: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_TYPE_CAPABILITIES.items()}
    )

    # Execution
    execution_deadline: Optional[float] = Field(300.0, gt=0)
    orchestrator_id: str = Field("orchestrator-001")

    # Health monitoring
    unresponsive_timeout: float = Field(300.0, gt=0)
    degraded_success_rate: float = Field(0.7, ge=0, le=1)
    degraded_min_tasks: int = Field(5, ge=0)

    # Conflict detection
    resource_conflict_high_threshold: int = Field(3, ge=1)
    overlap_shared_words: int = Field(2, ge=0)
    overlap_min_word_length: int = Field(3, ge=0)
    conflict_max_attempts: int = Field(3, ge=1)

    # Audit retention
    conflict_history_limit: int = Field(500, ge=1)
    healing_history_limit: int = Field(500, ge=1)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed_environments = {"development", "staging", "production", "testing"}
        if v.lower() not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_intervals(self) -> "EngineSettings":
        """The soft timeout must outlast at least one health pass."""
        if self.unresponsive_timeout < self.health_interval:
            raise ValueError("unresponsive_timeout must be >= health_interval")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def capabilities_for(self, task_type: str) -> frozenset:
        """Capabilities a task of ``task_type`` requires when it names none itself."""
        return frozenset(self.type_capabilities.get(task_type, ()))


@lru_cache()
def get_settings() -> EngineSettings:
    """
    Get cached engine settings.

    Returns:
        EngineSettings: The engine settings instance.
    """
    return EngineSettings()


__all__ = ["EngineSettings", "get_settings", "DEFAULT_TYPE_CAPABILITIES"]
