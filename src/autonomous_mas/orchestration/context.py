"""
Engine context shared by every driver.

Instead of a module-level singleton, the registry, collaborators, event bus,
metrics, audit histories and the coordination lock are bundled into one
explicit object that is passed to each component.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Iterable, List, Optional, Set, Tuple

from autonomous_mas.agents.agent import Agent, AgentRole
from autonomous_mas.agents.registry import AgentRegistry
from autonomous_mas.config.settings import EngineSettings, get_settings
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import ConflictRecord, HealingAction, Task, TaskStatus, utcnow
from autonomous_mas.monitoring.metrics import EngineMetrics
from autonomous_mas.orchestration.backend import TaskExecutor
from autonomous_mas.orchestration.events import EngineEvent, EventBus
from autonomous_mas.orchestration.store import TaskStore


@dataclass
class EngineContext:
    """
    Shared state of one engine instance.

    ``lock`` serializes every registry mutation across the three drivers. It
    is never held while a backend call is in flight.
    """
    settings: EngineSettings
    store: TaskStore
    executor: TaskExecutor
    registry: AgentRegistry = field(default=None)  # type: ignore[assignment]
    events: EventBus = field(default_factory=EventBus)
    metrics: EngineMetrics = field(default_factory=EngineMetrics)
    clock: Callable[[], datetime] = utcnow
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    conflicts: Deque[ConflictRecord] = field(init=False)
    healing_actions: Deque[HealingAction] = field(init=False)
    backlog: Deque[Task] = field(default_factory=deque)
    injected: Set[str] = field(default_factory=set)
    pending_writes: Deque[Tuple[Task, TaskStatus]] = field(default_factory=deque)

    def __post_init__(self) -> None:
        if self.registry is None:
            self.registry = AgentRegistry(clock=self.clock)
        self.conflicts = deque(maxlen=self.settings.conflict_history_limit)
        self.healing_actions = deque(maxlen=self.settings.healing_history_limit)
        self._logger = get_logger("engine_context")

    @classmethod
    def create(
        cls,
        store: TaskStore,
        executor: TaskExecutor,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "EngineContext":
        return cls(settings=settings or get_settings(), store=store, executor=executor, clock=clock)

    def required_capabilities(self, task: Task) -> frozenset:
        """Explicit requirements of ``task``, else those mapped from its type."""
        if task.required_capabilities:
            return task.required_capabilities
        return self.settings.capabilities_for(task.task_type)

    def orchestrator(self) -> Optional[Agent]:
        """The orchestrator's own agent record, used for degraded self-checks."""
        agent = self.registry.find(self.settings.orchestrator_id)
        if agent is not None:
            return agent
        for candidate in self.registry.agents():
            if candidate.role is AgentRole.ORCHESTRATOR:
                return candidate
        return None

    async def publish_agent(self, agent: Agent) -> None:
        """Upsert an agent's snapshot into the store's metadata. Store errors propagate."""
        await self.store.upsert_agent_metadata(agent.agent_id, agent.snapshot())
        self.metrics.update_agent(agent.agent_id, agent.queue_length, agent.status)

    async def add_agent(self, agent: Agent) -> Agent:
        """Register an agent, publish it, and announce it. Caller holds ``lock``."""
        self.registry.register(agent)
        try:
            await self.publish_agent(agent)
        except Exception as e:
            self._logger.error("Failed to register agent in store", agent_id=agent.agent_id, error=str(e))
        self.events.emit(EngineEvent.AGENT_REGISTERED, agent_id=agent.agent_id, role=agent.role.value)
        return agent

    async def set_task_status(self, task: Task, status: TaskStatus) -> None:
        """Persist a task status and mirror it on the held task object."""
        task.status = status
        await self.store.set_status(task.task_id, status)
        if status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            self.injected.discard(task.task_id)

    async def return_task(self, task: Task) -> None:
        """
        Hand a task no agent holds any more back for a later cycle.

        Store tasks are refetched once they are pending again; tasks injected
        through ``add_task`` are not fetchable and wait in ``backlog`` instead.
        """
        await self.set_task_status(task, TaskStatus.PENDING)
        if task.task_id in self.injected and all(t.task_id != task.task_id for t in self.backlog):
            self.backlog.append(task)

    async def persist_status(self, task: Task, status: TaskStatus) -> bool:
        """
        Write a status no agent will write again, keeping it for a retry if the store fails.

        Returns:
            False if the write was deferred to ``flush_pending_writes``.
        """
        try:
            await self._write(task, status)
        except Exception as e:
            self._logger.error(
                "Task status write failed, will retry",
                task_id=task.task_id,
                status=status.value,
                error=str(e),
            )
            self.pending_writes.append((task, status))
            return False
        return True

    async def flush_pending_writes(self) -> int:
        """Retry deferred status writes in order; stops at the first write that fails again."""
        written = 0
        while self.pending_writes:
            task, status = self.pending_writes[0]
            try:
                await self._write(task, status)
            except Exception as e:
                self._logger.warning("Deferred status write failed", task_id=task.task_id, error=str(e))
                break
            self.pending_writes.popleft()
            written += 1
        return written

    async def _write(self, task: Task, status: TaskStatus) -> None:
        if status is TaskStatus.PENDING:
            await self.return_task(task)
        else:
            await self.set_task_status(task, status)

    def open_conflicts(self) -> List[ConflictRecord]:
        return [c for c in self.conflicts if c.is_open]

    def record_conflicts(self, records: Iterable[ConflictRecord]) -> None:
        self.conflicts.extend(records)

    def record_healing(self, action: HealingAction) -> None:
        self.healing_actions.append(action)


__all__ = ["EngineContext"]
