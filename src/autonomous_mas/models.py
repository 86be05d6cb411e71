"""
Task, conflict and healing records shared by every engine component.

Tasks are owned by the external task store; the engine only holds them while
they sit in an agent queue or execute, and only ever changes their status.
Conflict and healing records are audit data kept in bounded histories.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(Enum):
    """Externally persisted task status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskPriority(Enum):
    """Task priority levels, ordered by value."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4
    EMERGENCY = 5

    @classmethod
    def from_label(cls, label: str) -> "TaskPriority":
        """Parse a priority label, defaulting to MEDIUM for unknown labels."""
        try:
            return cls[label.strip().upper()]
        except KeyError:
            return cls.MEDIUM

    def __lt__(self, other: "TaskPriority") -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.value < other.value


class ConflictKind(Enum):
    """Kinds of conflicts between concurrently active agents."""
    RESOURCE = "resource"
    TASK_OVERLAP = "task_overlap"
    PRIORITY = "priority"


class ConflictSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IssueKind(Enum):
    """Issues that trigger self-healing."""
    PERFORMANCE_DEGRADATION = "performance_degradation"
    TASK_FAILURE = "task_failure"
    COMMUNICATION_LOSS = "communication_loss"
    RESOURCE_EXHAUSTION = "resource_exhaustion"


class HealingStrategy(Enum):
    """Recovery strategies available to the self-healing subsystem."""
    RESTART = "restart"
    RESOURCE_REALLOCATION = "resource_reallocation"
    BACKUP_AGENT = "backup_agent"
    LOAD_BALANCING = "load_balancing"


@dataclass(eq=False)
class Task:
    """A unit of work supplied by the task store."""
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    task_type: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    payload: Dict[str, Any] = field(default_factory=dict)
    status: TaskStatus = TaskStatus.PENDING
    description: str = ""
    required_capabilities: FrozenSet[str] = field(default_factory=frozenset)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if isinstance(self.priority, str):
            self.priority = TaskPriority.from_label(self.priority)
        self.required_capabilities = frozenset(self.required_capabilities)


@dataclass
class ConflictRecord:
    """A detected conflict between agents, kept for audit."""
    kind: ConflictKind
    agent_ids: Tuple[str, ...]
    severity: ConflictSeverity = ConflictSeverity.MEDIUM
    conflict_id: str = field(default_factory=lambda: f"conflict-{uuid.uuid4().hex[:12]}")
    resolved: bool = False
    detected_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolution_attempts: int = 0
    abandoned: bool = False
    notes: str = ""

    @property
    def is_open(self) -> bool:
        """Unresolved and still being retried."""
        return not self.resolved and not self.abandoned

    @property
    def key(self) -> Tuple[ConflictKind, FrozenSet[str]]:
        """Identity used to avoid recording the same open conflict twice."""
        return self.kind, frozenset(self.agent_ids)


@dataclass(frozen=True)
class HealingAction:
    """Write-once record of one self-healing attempt."""
    agent_id: str
    issue: IssueKind
    strategy: HealingStrategy
    success: bool
    recovery_time: float
    action_id: str = field(default_factory=lambda: f"heal-{uuid.uuid4().hex[:12]}")
    executed_at: datetime = field(default_factory=utcnow)
    error: Optional[str] = None


__all__ = [
    "TaskStatus",
    "TaskPriority",
    "ConflictKind",
    "ConflictSeverity",
    "IssueKind",
    "HealingStrategy",
    "Task",
    "ConflictRecord",
    "HealingAction",
    "utcnow",
]
