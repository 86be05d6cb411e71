"""
Core exception classes for the Autonomous MAS engine.

This module defines the error taxonomy used by the scheduling, monitoring
and self-healing drivers. Only ``HealingExhaustedError`` is fatal, and only
to a single agent; every other error is recovered or logged.
"""

from typing import Optional


class AutonomousMASError(Exception):
    """Base exception for all Autonomous MAS errors."""
    pass


class ConfigurationError(AutonomousMASError):
    """Raised when there's a configuration error."""
    pass


class AgentError(AutonomousMASError):
    """Raised when agent registry operations fail."""
    pass


class AgentNotFoundError(AgentError):
    """Raised when an agent id is not registered."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not registered: {agent_id}")
        self.agent_id = agent_id


class InvalidTransitionError(AgentError):
    """Raised when a status change would break the agent state machine."""

    def __init__(self, agent_id: str, current: str, target: str):
        super().__init__(f"Agent {agent_id} cannot move from {current} to {target}")
        self.agent_id = agent_id
        self.current = current
        self.target = target


class TaskStoreError(AutonomousMASError):
    """Raised when the external task store is unavailable or rejects a call."""
    pass


class TaskExecutionError(AutonomousMASError):
    """Raised when the execution backend fails a task."""

    def __init__(self, task_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Task {task_id} failed: {message}")
        self.task_id = task_id
        self.cause = cause


class AgentUnresponsiveError(AutonomousMASError):
    """Raised when an executing agent exceeds the soft timeout."""

    def __init__(self, agent_id: str, elapsed_seconds: float):
        super().__init__(f"Agent {agent_id} unresponsive for {elapsed_seconds:.1f}s")
        self.agent_id = agent_id
        self.elapsed_seconds = elapsed_seconds


class NoSuitableAgentError(AutonomousMASError):
    """Raised when no eligible agent can take a task. Non-fatal."""

    def __init__(self, task_id: str, required_capabilities: Optional[frozenset] = None):
        required = sorted(required_capabilities or ())
        super().__init__(f"No suitable agent for task {task_id} (requires {required})")
        self.task_id = task_id
        self.required_capabilities = required_capabilities or frozenset()


class ConflictUnresolvedError(AutonomousMASError):
    """Raised when a conflict resolution could not apply a structural change."""

    def __init__(self, conflict_id: str, reason: str):
        super().__init__(f"Conflict {conflict_id} unresolved: {reason}")
        self.conflict_id = conflict_id
        self.reason = reason


class HealingExhaustedError(AgentError):
    """Raised when self-healing cannot recover an agent; the agent is terminated."""

    def __init__(self, agent_id: str, reason: str):
        super().__init__(f"Healing exhausted for agent {agent_id}: {reason}")
        self.agent_id = agent_id
        self.reason = reason
