"""
Pytest configuration and fixtures for Autonomous MAS tests.

This module provides common test fixtures and configuration
for the entire test suite.
"""

import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

from autonomous_mas.agents.agent import Agent, AgentRole, HealingPolicy
from autonomous_mas.config.settings import EngineSettings
from autonomous_mas.core.logging import setup_logging
from autonomous_mas.models import Task, TaskPriority
from autonomous_mas.orchestration.backend import TaskExecutor
from autonomous_mas.orchestration.engine import AutonomousExecutionEngine
from autonomous_mas.orchestration.store import InMemoryTaskStore


class RecordingExecutor(TaskExecutor):
    """Backend double that records calls and fails or stalls on request."""

    def __init__(self):
        self.calls: List[str] = []
        self.fail_ids: set = set()
        self.delays: Dict[str, float] = {}
        self.hooks: Dict[str, Callable[[Task], Any]] = {}

    async def execute(self, task: Task) -> Dict[str, Any]:
        self.calls.append(task.task_id)

        hook = self.hooks.get(task.task_id)
        if hook is not None:
            result = hook(task)
            if inspect.isawaitable(result):
                await result

        delay = self.delays.get(task.task_id)
        if delay:
            await asyncio.sleep(delay)

        if task.task_id in self.fail_ids:
            raise RuntimeError(f"backend rejected {task.task_id}")
        return {"task_id": task.task_id, "ok": True}


class FakeClock:
    """Manually advanced clock for soft-timeout tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    setup_logging(log_level="DEBUG", environment="testing")


@pytest.fixture
def test_settings() -> EngineSettings:
    """Create test settings with safe defaults."""
    return EngineSettings(
        environment="testing",
        log_level="DEBUG",
        execution_interval=0.01,
        health_interval=0.05,
        conflict_interval=0.02,
    )


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Factory for tasks with readable ids."""
    counter = {"n": 0}

    def _make(
        task_type: str = "development",
        priority: TaskPriority = TaskPriority.MEDIUM,
        description: str = "",
        task_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Task:
        counter["n"] += 1
        return Task(
            task_id=task_id or f"task-{counter['n']:03d}",
            task_type=task_type,
            priority=priority,
            description=description,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_agent() -> Callable[..., Agent]:
    """Factory for agents with a given capability set and healing policy."""

    def _make(
        agent_id: str,
        capabilities: Iterable[str] = ("code_generation",),
        strategies: Iterable[str] = ("restart",),
        max_retries: int = 3,
        role: AgentRole = AgentRole.SPECIALIST,
        conflict_resolution_level: int = 1,
    ) -> Agent:
        return Agent(
            agent_id=agent_id,
            name=agent_id.replace("-", " ").title(),
            role=role,
            capabilities=frozenset(capabilities),
            policy=HealingPolicy.from_names(
                strategies,
                max_retries=max_retries,
                conflict_resolution_level=conflict_resolution_level,
            ),
        )

    return _make


@pytest.fixture
def build_engine(test_settings, store, executor, clock) -> Callable[..., AutonomousExecutionEngine]:
    """Factory for engines over the shared store, executor and clock."""

    def _build(
        agents: Optional[Iterable[Agent]] = None,
        settings: Optional[EngineSettings] = None,
    ) -> AutonomousExecutionEngine:
        return AutonomousExecutionEngine(
            store,
            executor,
            settings=settings or test_settings,
            agents=agents,
            clock=clock,
        )

    return _build


@pytest.fixture
def engine(build_engine) -> AutonomousExecutionEngine:
    """Engine with the default roster."""
    return build_engine()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file location."""
    for item in items:
        # Add unit marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add integration marker to tests in integration/ directory
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
