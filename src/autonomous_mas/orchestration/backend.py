"""
Task execution backend boundary.

The engine is agnostic to what a backend does (LLM call, computation, ...);
it only awaits ``execute`` and treats any exception as a task failure.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from autonomous_mas.models import Task


class TaskExecutor(ABC):
    """Opaque executor that performs a task's actual work."""

    @abstractmethod
    async def execute(self, task: Task) -> Any:
        """
        Perform ``task``.

        Returns:
            Backend-specific result.

        Raises:
            Exception: Any error is reported as a task failure.
        """
        pass


class CallableExecutor(TaskExecutor):
    """Adapts a plain or async callable ``fn(task)`` to the executor interface."""

    def __init__(self, fn: Callable[[Task], Any]):
        self._fn = fn

    async def execute(self, task: Task) -> Any:
        result = self._fn(task)
        if inspect.isawaitable(result):
            result = await result
        return result


class EchoExecutor(TaskExecutor):
    """Returns the task payload after an optional delay. Used by the CLI demo."""

    def __init__(self, delay: float = 0.0, fail_types: Optional[set] = None):
        self.delay = delay
        self.fail_types = set(fail_types or ())

    async def execute(self, task: Task) -> Dict[str, Any]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if task.task_type in self.fail_types:
            raise RuntimeError(f"echo backend refuses task type {task.task_type}")
        return {"task_id": task.task_id, "echo": dict(task.payload)}


__all__ = ["TaskExecutor", "CallableExecutor", "EchoExecutor"]
