"""
Autonomous MAS Engine

A continuously running scheduler that owns a pool of worker agents, assigns
incoming tasks to them by capability and performance, detects conflicts
between concurrently executing agents and recovers automatically from agent
failure or degradation.

Version: 0.1.0
"""

__version__ = "0.1.0"
__description__ = "Autonomous task-scheduling and self-healing engine for multi-agent systems"

# Core imports for easy access
from autonomous_mas.config.settings import EngineSettings, get_settings
from autonomous_mas.core.logging import get_logger, setup_logging
from autonomous_mas.models import Task, TaskPriority, TaskStatus
from autonomous_mas.orchestration.engine import AutonomousExecutionEngine

__all__ = [
    "__version__",
    "__description__",
    "EngineSettings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "AutonomousExecutionEngine",
]
