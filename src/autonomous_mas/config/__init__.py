"""Engine configuration."""

from autonomous_mas.config.settings import EngineSettings, get_settings

__all__ = ["EngineSettings", "get_settings"]
