"""
Task Distributor.

Matches a task to the best eligible agent. Eligibility is status, operator
pause flag, capability superset and queue headroom; ranking is a weighted
score of success rate against queue length with the earliest registration
winning ties, so the same registry state always yields the same choice.
"""

from typing import Collection, List, Optional, Tuple

from autonomous_mas.agents.agent import ASSIGNABLE_STATES, Agent
from autonomous_mas.core.exceptions import NoSuitableAgentError
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import Task, TaskStatus
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.events import EngineEvent


class TaskDistributor:
    """Assigns tasks to agent queues. Callers hold ``ctx.lock``."""

    def __init__(self, ctx: EngineContext):
        self.ctx = ctx
        self._logger = get_logger("task_distributor")

    def score(self, agent: Agent) -> float:
        settings = self.ctx.settings
        return (
            agent.performance.success_rate * settings.success_rate_weight
            - agent.queue_length * settings.queue_length_weight
        )

    def rank_candidates(self, task: Task, exclude: Collection[str] = ()) -> List[Tuple[float, Agent]]:
        """Eligible agents for ``task``, best first."""
        required = self.ctx.required_capabilities(task)
        max_queue = self.ctx.settings.max_queue_length

        candidates = [
            agent for agent in self.ctx.registry.agents()
            if agent.status in ASSIGNABLE_STATES
            and not agent.paused
            and agent.agent_id not in exclude
            and agent.can_handle(required)
            and agent.queue_length < max_queue
        ]
        ranked = [(self.score(agent), agent) for agent in candidates]
        ranked.sort(key=lambda pair: (-pair[0], pair[1].registration_index))
        return ranked

    def find_suitable_agent(self, task: Task, exclude: Collection[str] = ()) -> Optional[Agent]:
        ranked = self.rank_candidates(task, exclude)
        return ranked[0][1] if ranked else None

    async def distribute(self, task: Task, exclude: Collection[str] = ()) -> Optional[str]:
        """
        Queue ``task`` on the best agent.

        Calling this for a task some agent already holds is a no-op that
        returns the holder.

        Returns:
            The chosen agent id, or None when the task stays pending.
        """
        holder = self.ctx.registry.holder_of(task.task_id)
        if holder is not None:
            self._logger.debug("Task already held", task_id=task.task_id, agent_id=holder)
            return holder

        agent = self.find_suitable_agent(task, exclude)
        if agent is None:
            error = NoSuitableAgentError(task.task_id, self.ctx.required_capabilities(task))
            self._logger.info("Task left pending", task_id=task.task_id, reason=str(error))
            self.ctx.metrics.record_distribution(None)
            return None

        self.ctx.registry.enqueue(agent.agent_id, task)
        await self.ctx.set_task_status(task, TaskStatus.PROCESSING)

        self.ctx.metrics.record_distribution(agent.agent_id)
        self.ctx.events.emit(
            EngineEvent.TASK_DISTRIBUTED,
            task_id=task.task_id,
            agent_id=agent.agent_id,
            delegation={
                "from": self.ctx.settings.orchestrator_id,
                "to": agent.agent_id,
                "task_id": task.task_id,
                "task_type": task.task_type,
                "priority": task.priority.name.lower(),
            },
        )
        self._logger.info(
            "Task distributed",
            task_id=task.task_id,
            task_type=task.task_type,
            agent_id=agent.agent_id,
            queue_length=agent.queue_length,
        )
        return agent.agent_id


__all__ = ["TaskDistributor"]
