"""
Orchestration module for autonomous task execution.

This module provides the scheduling and recovery core including:
- Task distribution by capability and performance
- The execution cycle, health monitor and conflict monitor drivers
- The self-healing strategy catalogue
- Task store and execution backend boundaries
"""

from autonomous_mas.orchestration.backend import CallableExecutor, EchoExecutor, TaskExecutor
from autonomous_mas.orchestration.events import EngineEvent, Event, EventBus
from autonomous_mas.orchestration.store import InMemoryTaskStore, TaskStore
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.distributor import TaskDistributor
from autonomous_mas.orchestration.healing import ISSUE_STRATEGIES, SelfHealer
from autonomous_mas.orchestration.execution import CycleReport, ExecutionCycle, ExecutionOutcome
from autonomous_mas.orchestration.health import HealthMonitor
from autonomous_mas.orchestration.conflicts import ConflictMonitor
from autonomous_mas.orchestration.engine import AutonomousExecutionEngine

__all__ = [
    # Boundaries
    "TaskExecutor",
    "CallableExecutor",
    "EchoExecutor",
    "TaskStore",
    "InMemoryTaskStore",

    # Events
    "EngineEvent",
    "Event",
    "EventBus",

    # Drivers
    "EngineContext",
    "TaskDistributor",
    "SelfHealer",
    "ISSUE_STRATEGIES",
    "ExecutionCycle",
    "ExecutionOutcome",
    "CycleReport",
    "HealthMonitor",
    "ConflictMonitor",

    # Engine
    "AutonomousExecutionEngine",
]
