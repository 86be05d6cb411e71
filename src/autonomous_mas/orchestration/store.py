"""
Task store adapter.

The store is the sole source of truth for task existence: the engine pulls
pending tasks from it, reports status changes back and publishes agent
health snapshots into its agent metadata. ``InMemoryTaskStore`` is the
reference implementation used by the CLI and the tests.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from autonomous_mas.agents.agent import AgentSnapshot
from autonomous_mas.core.exceptions import TaskStoreError
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import Task, TaskStatus


class TaskStore(ABC):
    """External collaborator that persists tasks and agent metadata."""

    @abstractmethod
    async def fetch_pending(self, limit: int) -> List[Task]:
        """Return at most ``limit`` tasks whose status is pending."""
        pass

    @abstractmethod
    async def set_status(self, task_id: str, status: TaskStatus) -> None:
        """Persist a task status."""
        pass

    @abstractmethod
    async def upsert_agent_metadata(self, agent_id: str, snapshot: AgentSnapshot) -> None:
        """Create or update the stored metadata of an agent."""
        pass


class InMemoryTaskStore(TaskStore):
    """Dictionary-backed task store."""

    def __init__(self, tasks: Optional[List[Task]] = None):
        self._tasks: "OrderedDict[str, Task]" = OrderedDict()
        self._statuses: Dict[str, TaskStatus] = {}
        self._agent_metadata: Dict[str, Dict[str, Any]] = {}
        self.status_log: List[tuple] = []
        self.available = True
        self._logger = get_logger("task_store")

        for task in tasks or []:
            self.add(task)

    def add(self, task: Task) -> Task:
        """Insert a task; its current status is taken as the stored status."""
        self._tasks[task.task_id] = task
        self._statuses[task.task_id] = task.status
        return task

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def status(self, task_id: str) -> Optional[TaskStatus]:
        return self._statuses.get(task_id)

    def agent_metadata(self, agent_id: str) -> Optional[Dict[str, Any]]:
        return self._agent_metadata.get(agent_id)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for s in self._statuses.values() if s is status)

    async def fetch_pending(self, limit: int) -> List[Task]:
        self._check_available()
        pending = [
            task for task_id, task in self._tasks.items()
            if self._statuses.get(task_id) is TaskStatus.PENDING
        ]
        return pending[:limit]

    async def set_status(self, task_id: str, status: TaskStatus) -> None:
        self._check_available()
        if task_id not in self._tasks:
            self._logger.debug("Status set for task unknown to the store", task_id=task_id)
        self._statuses[task_id] = status
        self.status_log.append((task_id, status))

    async def upsert_agent_metadata(self, agent_id: str, snapshot: AgentSnapshot) -> None:
        self._check_available()
        existing = self._agent_metadata.get(agent_id, {})
        existing.update(snapshot.model_dump(mode="json"))
        self._agent_metadata[agent_id] = existing

    def _check_available(self) -> None:
        if not self.available:
            raise TaskStoreError("Task store unavailable")


__all__ = ["TaskStore", "InMemoryTaskStore"]
