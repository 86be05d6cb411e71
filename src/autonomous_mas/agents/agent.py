"""
Autonomous agent record for the execution engine.

An agent is a worker slot: a role, a capability set, an ordered queue of
pending tasks, at most one task in flight, performance history and a
self-healing policy. Agents carry no behaviour of their own; the actual work
is done by the task execution backend, and every state change goes through
the agent registry so the status/current-task invariant holds.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from autonomous_mas.models import HealingStrategy, Task, utcnow


class AgentRole(Enum):
    """Role tag of an agent in the roster hierarchy."""
    ORCHESTRATOR = "orchestrator"
    MANAGER = "manager"
    ENGINEER = "engineer"
    SPECIALIST = "specialist"


class AgentStatus(Enum):
    """Agent operational states."""
    IDLE = "idle"
    ACTIVE = "active"
    EXECUTING = "executing"
    HEALING = "healing"
    CONFLICTED = "conflicted"
    TERMINATED = "terminated"


# States from which an agent may take new work or dequeue.
ASSIGNABLE_STATES = frozenset({AgentStatus.IDLE, AgentStatus.ACTIVE, AgentStatus.CONFLICTED})


@dataclass
class AgentPerformance:
    """Running performance record of an agent."""
    tasks_completed: int = 0
    tasks_failed: int = 0
    average_execution_time: float = 0.0
    success_rate: float = 1.0
    last_execution_time: Optional[datetime] = None

    @property
    def tasks_attempted(self) -> int:
        return self.tasks_completed + self.tasks_failed

    def record_success(self, execution_time: float) -> None:
        """Fold a successful execution into the record."""
        if self.tasks_completed == 0:
            self.average_execution_time = execution_time
        else:
            self.average_execution_time = (self.average_execution_time + execution_time) / 2
        self.tasks_completed += 1
        self._recompute_success_rate()

    def record_failure(self) -> None:
        """Fold a failed execution into the record."""
        self.tasks_failed += 1
        self._recompute_success_rate()

    def _recompute_success_rate(self) -> None:
        attempted = self.tasks_attempted
        self.success_rate = self.tasks_completed / attempted if attempted else 1.0


@dataclass(frozen=True)
class HealingPolicy:
    """Per-agent self-healing configuration."""
    max_retries: int = 3
    allowed_strategies: FrozenSet[HealingStrategy] = frozenset({HealingStrategy.RESTART})
    conflict_resolution_level: int = 1

    @classmethod
    def from_names(
        cls,
        strategies: Iterable[str],
        max_retries: int = 3,
        conflict_resolution_level: int = 1,
    ) -> "HealingPolicy":
        """Build a policy from strategy names, ignoring names the engine does not implement."""
        known = {s.value: s for s in HealingStrategy}
        allowed = frozenset(known[name] for name in strategies if name in known)
        return cls(
            max_retries=max_retries,
            allowed_strategies=allowed,
            conflict_resolution_level=conflict_resolution_level,
        )

    def allows(self, strategy: HealingStrategy) -> bool:
        return strategy in self.allowed_strategies


@dataclass(eq=False)
class Agent:
    """A worker agent owned by the registry."""
    agent_id: str
    name: str
    role: AgentRole = AgentRole.SPECIALIST
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    status: AgentStatus = AgentStatus.IDLE
    current_task: Optional[Task] = None
    queue: Deque[Task] = field(default_factory=deque)
    performance: AgentPerformance = field(default_factory=AgentPerformance)
    policy: HealingPolicy = field(default_factory=HealingPolicy)

    # Bookkeeping owned by the registry and the healer
    registration_index: int = -1
    paused: bool = False
    consecutive_healings: int = 0
    attempts_at_last_healing: Optional[int] = None
    backup_of: Optional[str] = None
    registered_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.capabilities = frozenset(self.capabilities)
        if not isinstance(self.queue, deque):
            self.queue = deque(self.queue)

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    @property
    def is_terminated(self) -> bool:
        return self.status is AgentStatus.TERMINATED

    def can_handle(self, required: FrozenSet[str]) -> bool:
        """Whether the capability set is a superset of ``required``."""
        return self.capabilities >= required

    def task_ids(self) -> Tuple[str, ...]:
        """Ids of every task this agent references, in-flight first."""
        ids = [t.task_id for t in self.queue]
        if self.current_task is not None:
            ids.insert(0, self.current_task.task_id)
        return tuple(ids)

    def snapshot(self) -> "AgentSnapshot":
        return AgentSnapshot(
            agent_id=self.agent_id,
            name=self.name,
            role=self.role.value,
            status=self.status.value,
            queue_length=self.queue_length,
            success_rate=self.performance.success_rate,
            tasks_completed=self.performance.tasks_completed,
            tasks_failed=self.performance.tasks_failed,
            average_execution_time=self.performance.average_execution_time,
            last_activity=self.performance.last_execution_time,
            paused=self.paused,
            capabilities=sorted(self.capabilities),
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"id='{self.agent_id}', "
            f"status='{self.status.value}', "
            f"queue={self.queue_length}, "
            f"current={self.current_task.task_id if self.current_task else None}"
            f")"
        )


class AgentSnapshot(BaseModel):
    """Health snapshot persisted to the task store's agent metadata."""
    agent_id: str
    name: str
    role: str
    status: str
    queue_length: int = Field(ge=0)
    success_rate: float = Field(ge=0.0, le=1.0)
    tasks_completed: int = Field(ge=0, default=0)
    tasks_failed: int = Field(ge=0, default=0)
    average_execution_time: float = Field(ge=0.0, default=0.0)
    last_activity: Optional[datetime] = None
    paused: bool = False
    capabilities: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "Agent",
    "AgentRole",
    "AgentStatus",
    "AgentPerformance",
    "AgentSnapshot",
    "HealingPolicy",
    "ASSIGNABLE_STATES",
]
