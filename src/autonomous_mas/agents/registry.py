"""
Agent Registry.

Holds every agent the engine knows about, including terminated ones kept for
audit, and is the only place where queues, in-flight tasks and statuses are
mutated. A task index maps each referenced task id to the agent holding it,
so a task can never sit in two queues (or a queue and a slot) at once.

State machine::

    idle/active/conflicted --dequeue--> executing
    executing --finish--> active|idle
    executing --release + set_status--> healing
    healing --settle--> active|idle
    any --set_status--> terminated   (terminal)
"""

from typing import Callable, Dict, Iterator, List, Optional

from autonomous_mas.agents.agent import ASSIGNABLE_STATES, Agent, AgentStatus
from autonomous_mas.core.exceptions import (
    AgentError,
    AgentNotFoundError,
    InvalidTransitionError,
)
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import Task, utcnow


class AgentRegistry:
    """In-memory registry of agents and the tasks they reference."""

    def __init__(self, clock: Callable = utcnow):
        self._agents: Dict[str, Agent] = {}
        self._task_index: Dict[str, str] = {}
        self._next_index = 0
        self._clock = clock
        self._logger = get_logger("agent_registry")

    # Lookup

    def register(self, agent: Agent) -> Agent:
        """
        Register an agent.

        The agent keeps whatever it already has queued; those tasks are indexed
        and must not be held by another agent.

        Raises:
            AgentError: If the id is taken or a queued task is already held.
        """
        if agent.agent_id in self._agents:
            raise AgentError(f"Agent already registered: {agent.agent_id}")
        if agent.current_task is not None or agent.status is AgentStatus.EXECUTING:
            raise AgentError(f"Agent {agent.agent_id} must be registered without an in-flight task")

        for task in agent.queue:
            holder = self._task_index.get(task.task_id)
            if holder is not None:
                raise AgentError(f"Task {task.task_id} already held by agent {holder}")

        agent.registration_index = self._next_index
        self._next_index += 1
        self._agents[agent.agent_id] = agent
        for task in agent.queue:
            self._task_index[task.task_id] = agent.agent_id

        if agent.status in ASSIGNABLE_STATES or agent.status is AgentStatus.HEALING:
            self._settle(agent)

        self._logger.info(
            "Agent registered",
            agent_id=agent.agent_id,
            role=agent.role.value,
            capabilities=sorted(agent.capabilities),
            queue_length=agent.queue_length,
        )
        return agent

    def get(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def find(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def agents(self) -> List[Agent]:
        """All agents in registration order."""
        return sorted(self._agents.values(), key=lambda a: a.registration_index)

    def list_by_capability(self, capability: str) -> List[Agent]:
        return [a for a in self.agents() if capability in a.capabilities]

    def holder_of(self, task_id: str) -> Optional[str]:
        """Id of the agent currently referencing ``task_id``, if any."""
        return self._task_index.get(task_id)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[Agent]:
        return iter(self.agents())

    def __len__(self) -> int:
        return len(self._agents)

    # Status

    def set_status(self, agent_id: str, status: AgentStatus) -> Agent:
        """
        Move an agent to ``status``.

        ``executing`` is entered only through ``dequeue`` and left only through
        ``finish`` or ``release_current``; ``terminated`` is never left.
        """
        agent = self.get(agent_id)
        current = agent.status

        if current is status:
            return agent
        if current is AgentStatus.TERMINATED:
            raise InvalidTransitionError(agent_id, current.value, status.value)
        if status is AgentStatus.EXECUTING or current is AgentStatus.EXECUTING:
            raise InvalidTransitionError(agent_id, current.value, status.value)

        agent.status = status
        self._logger.debug("Agent status changed", agent_id=agent_id, old=current.value, new=status.value)
        return agent

    def settle(self, agent_id: str) -> Agent:
        """Recompute active/idle from the queue for a non-executing, live agent."""
        agent = self.get(agent_id)
        if agent.status in (AgentStatus.EXECUTING, AgentStatus.TERMINATED):
            return agent
        self._settle(agent)
        return agent

    def set_paused(self, agent_id: str, paused: bool) -> Agent:
        agent = self.get(agent_id)
        agent.paused = paused
        return agent

    # Queue primitives

    def enqueue(self, agent_id: str, task: Task, front: bool = False) -> Agent:
        """Append ``task`` to an agent's queue."""
        agent = self.get(agent_id)
        if agent.is_terminated:
            raise AgentError(f"Cannot enqueue on terminated agent {agent_id}")
        holder = self._task_index.get(task.task_id)
        if holder is not None:
            raise AgentError(f"Task {task.task_id} already held by agent {holder}")

        if front:
            agent.queue.appendleft(task)
        else:
            agent.queue.append(task)
        self._task_index[task.task_id] = agent_id

        if agent.status is AgentStatus.IDLE:
            agent.status = AgentStatus.ACTIVE
        return agent

    def dequeue(self, agent_id: str) -> Task:
        """Move the queue head into the in-flight slot and mark the agent executing."""
        agent = self.get(agent_id)
        if agent.status not in ASSIGNABLE_STATES:
            raise InvalidTransitionError(agent_id, agent.status.value, AgentStatus.EXECUTING.value)
        if not agent.queue:
            raise AgentError(f"Agent {agent_id} has an empty queue")

        task = agent.queue.popleft()
        agent.current_task = task
        agent.status = AgentStatus.EXECUTING
        agent.performance.last_execution_time = self._clock()
        return task

    def finish(self, agent_id: str, task_id: str) -> bool:
        """
        Clear the in-flight slot after the backend returned.

        Returns:
            False if the agent no longer holds ``task_id`` (the result is stale).
        """
        agent = self.get(agent_id)
        if agent.current_task is None or agent.current_task.task_id != task_id:
            return False
        agent.current_task = None
        self._task_index.pop(task_id, None)
        agent.status = AgentStatus.ACTIVE
        self._settle(agent)
        return True

    def release_current(self, agent_id: str) -> Optional[Task]:
        """Take the in-flight task away from an agent and free it."""
        agent = self.get(agent_id)
        task = agent.current_task
        if task is None:
            return None
        agent.current_task = None
        self._task_index.pop(task.task_id, None)
        if agent.status is AgentStatus.EXECUTING:
            agent.status = AgentStatus.ACTIVE
            self._settle(agent)
        return task

    def drain_queue(self, agent_id: str) -> List[Task]:
        """Remove and return every queued task."""
        return self.take_queued(agent_id, len(self.get(agent_id).queue))

    def take_queued(self, agent_id: str, count: int, from_end: bool = False) -> List[Task]:
        """Remove up to ``count`` queued tasks, from the head unless ``from_end``."""
        agent = self.get(agent_id)
        taken: List[Task] = []
        while agent.queue and len(taken) < count:
            task = agent.queue.pop() if from_end else agent.queue.popleft()
            self._task_index.pop(task.task_id, None)
            taken.append(task)
        if agent.status in ASSIGNABLE_STATES:
            self._settle(agent)
        return taken

    def remove_queued(self, agent_id: str, task_id: str) -> Optional[Task]:
        """Remove one specific queued task."""
        agent = self.get(agent_id)
        for task in agent.queue:
            if task.task_id == task_id:
                agent.queue.remove(task)
                self._task_index.pop(task_id, None)
                if agent.status in ASSIGNABLE_STATES:
                    self._settle(agent)
                return task
        return None

    def reorder_queue(self, agent_id: str, ordered: List[Task]) -> Agent:
        """Replace the queue order; ``ordered`` must hold exactly the queued tasks."""
        agent = self.get(agent_id)
        if sorted(t.task_id for t in ordered) != sorted(t.task_id for t in agent.queue):
            raise AgentError(f"Reordered queue for {agent_id} does not match its contents")
        agent.queue.clear()
        agent.queue.extend(ordered)
        return agent

    # Invariants

    def check_invariants(self) -> None:
        """
        Verify registry consistency.

        Raises:
            AgentError: On the first violated invariant.
        """
        seen: Dict[str, str] = {}
        for agent in self._agents.values():
            executing = agent.status is AgentStatus.EXECUTING
            if executing != (agent.current_task is not None):
                raise AgentError(
                    f"Agent {agent.agent_id} status {agent.status.value} "
                    f"disagrees with in-flight task {agent.current_task}"
                )
            for task_id in agent.task_ids():
                if task_id in seen:
                    raise AgentError(f"Task {task_id} held by {seen[task_id]} and {agent.agent_id}")
                seen[task_id] = agent.agent_id
                if self._task_index.get(task_id) != agent.agent_id:
                    raise AgentError(f"Task index out of date for {task_id}")
        if set(seen) != set(self._task_index):
            raise AgentError("Task index references tasks no agent holds")

    @staticmethod
    def _settle(agent: Agent) -> None:
        agent.status = AgentStatus.ACTIVE if agent.queue else AgentStatus.IDLE


__all__ = ["AgentRegistry"]
