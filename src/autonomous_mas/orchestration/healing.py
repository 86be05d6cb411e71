"""
Self-Healing Subsystem.

Recovers degraded or failed agents with one of four strategies:

- restart: drop the agent's queue and in-flight task and re-register it fresh
- resource_reallocation: drain its queue back through the distributor
- backup_agent: clone it and hand the clone its queue
- load_balancing: move half its queue to the least-loaded capable peer

Every attempt is recorded as a ``HealingAction``. An agent whose strategy
fails, or that needs healing more often than its policy allows without a
successful task in between, is terminated.
"""

import time
from typing import Awaitable, Callable, Dict, List, Optional

from autonomous_mas.agents.agent import Agent, AgentPerformance, AgentStatus
from autonomous_mas.core.exceptions import AgentError, HealingExhaustedError
from autonomous_mas.core.logging import get_logger, get_performance_logger
from autonomous_mas.models import HealingAction, HealingStrategy, IssueKind, Task, TaskStatus
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.distributor import TaskDistributor
from autonomous_mas.orchestration.events import EngineEvent


# Preferred strategy per issue; restart is the fallback for every issue.
ISSUE_STRATEGIES: Dict[IssueKind, HealingStrategy] = {
    IssueKind.PERFORMANCE_DEGRADATION: HealingStrategy.LOAD_BALANCING,
    IssueKind.RESOURCE_EXHAUSTION: HealingStrategy.RESOURCE_REALLOCATION,
    IssueKind.TASK_FAILURE: HealingStrategy.BACKUP_AGENT,
    IssueKind.COMMUNICATION_LOSS: HealingStrategy.RESTART,
}


class SelfHealer:
    """Strategy catalogue invoked by the execution cycle and the monitors. Callers hold ``ctx.lock``."""

    def __init__(self, ctx: EngineContext, distributor: TaskDistributor):
        self.ctx = ctx
        self.distributor = distributor
        self._logger = get_logger("self_healer")
        self._perf_logger = get_performance_logger("self_healer")
        self._strategies: Dict[HealingStrategy, Callable[[Agent], Awaitable[str]]] = {
            HealingStrategy.RESTART: self._restart,
            HealingStrategy.RESOURCE_REALLOCATION: self._reallocate,
            HealingStrategy.BACKUP_AGENT: self._spawn_backup,
            HealingStrategy.LOAD_BALANCING: self._load_balance,
        }

    @staticmethod
    def select_strategy(agent: Agent, issue: IssueKind) -> HealingStrategy:
        preferred = ISSUE_STRATEGIES.get(issue, HealingStrategy.RESTART)
        if agent.policy.allows(preferred):
            return preferred
        return HealingStrategy.RESTART

    async def trigger(self, agent_id: str, issue: IssueKind) -> Optional[HealingAction]:
        """
        Heal ``agent_id`` for ``issue``.

        Returns:
            The recorded action, or None when the agent is already terminated.

        Raises:
            AgentNotFoundError: If the agent is unknown.
            HealingExhaustedError: If the agent could not be recovered and was terminated.
        """
        agent = self.ctx.registry.get(agent_id)
        if agent.is_terminated:
            self._logger.warning("Healing skipped for terminated agent", agent_id=agent_id, issue=issue.value)
            return None

        started = time.perf_counter()
        strategy = self.select_strategy(agent, issue)

        if agent.consecutive_healings >= agent.policy.max_retries:
            reason = f"{agent.consecutive_healings} healing attempts without a successful task"
            await self._terminate(agent)
            self._record(agent, issue, strategy, False, started, error=reason)
            raise HealingExhaustedError(agent_id, reason)

        agent.consecutive_healings += 1
        in_flight = self.ctx.registry.release_current(agent_id)
        if in_flight is not None:
            await self._return(in_flight)
        self.ctx.registry.set_status(agent_id, AgentStatus.HEALING)

        self._logger.info(
            "Self-healing started",
            agent_id=agent_id,
            issue=issue.value,
            strategy=strategy.value,
            attempt=agent.consecutive_healings,
        )

        try:
            detail = await self._strategies[strategy](agent)
        except Exception as e:
            await self._terminate(agent)
            self._record(agent, issue, strategy, False, started, error=str(e))
            raise HealingExhaustedError(agent_id, f"{strategy.value} failed: {e}") from e

        self.ctx.registry.settle(agent_id)
        agent.attempts_at_last_healing = agent.performance.tasks_attempted
        try:
            await self.ctx.publish_agent(agent)
        except Exception as e:
            self._logger.warning("Failed to publish healed agent", agent_id=agent_id, error=str(e))
        return self._record(agent, issue, strategy, True, started, detail=detail)

    # Strategies

    async def _restart(self, agent: Agent) -> str:
        dropped = self.ctx.registry.drain_queue(agent.agent_id)
        for task in dropped:
            await self._return(task)
        agent.performance = AgentPerformance()
        await self.ctx.publish_agent(agent)
        return f"dropped {len(dropped)} queued tasks"

    async def _reallocate(self, agent: Agent) -> str:
        drained = self.ctx.registry.drain_queue(agent.agent_id)
        placed = 0
        for task in drained:
            if await self.distributor.distribute(task, exclude={agent.agent_id}):
                placed += 1
            else:
                await self._return(task)
        return f"redistributed {placed} of {len(drained)} queued tasks"

    async def _spawn_backup(self, agent: Agent) -> str:
        registry = self.ctx.registry
        n = 1 + sum(1 for a in registry.agents() if a.backup_of == agent.agent_id)
        backup_id = f"{agent.agent_id}-backup-{n}"
        while backup_id in registry:
            n += 1
            backup_id = f"{agent.agent_id}-backup-{n}"

        backup = Agent(
            agent_id=backup_id,
            name=f"{agent.name} (backup {n})",
            role=agent.role,
            capabilities=agent.capabilities,
            policy=agent.policy,
            backup_of=agent.agent_id,
        )
        moved = registry.drain_queue(agent.agent_id)
        await self.ctx.add_agent(backup)
        for task in moved:
            registry.enqueue(backup_id, task)
        self.ctx.metrics.update_agent(backup_id, backup.queue_length, backup.status)
        return f"spawned {backup_id} with {len(moved)} tasks"

    async def _load_balance(self, agent: Agent) -> str:
        registry = self.ctx.registry
        to_move = agent.queue_length // 2
        moving: List[Task] = list(agent.queue)[agent.queue_length - to_move:] if to_move else []
        required = [self.ctx.required_capabilities(t) for t in moving]

        peers = [
            peer for peer in registry.agents()
            if peer.agent_id != agent.agent_id
            and peer.status in (AgentStatus.IDLE, AgentStatus.ACTIVE)
            and not peer.paused
            and all(peer.can_handle(r) for r in required)
        ]
        if not peers:
            raise AgentError(f"No peer available to take load from {agent.agent_id}")

        peer = min(peers, key=lambda p: (p.queue_length, p.registration_index))
        for task in registry.take_queued(agent.agent_id, to_move, from_end=True)[::-1]:
            registry.enqueue(peer.agent_id, task)
        self.ctx.metrics.update_agent(peer.agent_id, peer.queue_length, peer.status)
        return f"moved {to_move} tasks to {peer.agent_id}"

    # Helpers

    async def _return(self, task: Task) -> None:
        await self.ctx.persist_status(task, TaskStatus.PENDING)

    async def _terminate(self, agent: Agent) -> None:
        registry = self.ctx.registry
        released = registry.release_current(agent.agent_id)
        dropped = registry.drain_queue(agent.agent_id)
        for task in ([released] if released else []) + dropped:
            await self._return(task)
        registry.set_status(agent.agent_id, AgentStatus.TERMINATED)
        try:
            await self.ctx.publish_agent(agent)
        except Exception as e:
            self._logger.warning("Failed to publish terminated agent", agent_id=agent.agent_id, error=str(e))
        self._logger.error("Agent terminated", agent_id=agent.agent_id, returned_tasks=len(dropped))

    def _record(
        self,
        agent: Agent,
        issue: IssueKind,
        strategy: HealingStrategy,
        success: bool,
        started: float,
        error: Optional[str] = None,
        detail: str = "",
    ) -> HealingAction:
        recovery_time = time.perf_counter() - started
        action = HealingAction(
            agent_id=agent.agent_id,
            issue=issue,
            strategy=strategy,
            success=success,
            recovery_time=recovery_time,
            executed_at=self.ctx.clock(),
            error=error,
        )
        self.ctx.record_healing(action)
        self.ctx.metrics.record_healing(strategy.value, success)
        self._perf_logger.log_recovery(
            agent.agent_id, strategy.value, recovery_time * 1000, success, issue=issue.value
        )

        event = EngineEvent.HEALING_SUCCESSFUL if success else EngineEvent.HEALING_FAILED
        self.ctx.events.emit(
            event,
            agent_id=agent.agent_id,
            action_id=action.action_id,
            issue=issue.value,
            strategy=strategy.value,
            detail=detail,
            error=error or "",
        )
        if success:
            self._logger.info("Self-healing succeeded", agent_id=agent.agent_id, strategy=strategy.value, detail=detail)
        else:
            self._logger.error("Self-healing failed", agent_id=agent.agent_id, strategy=strategy.value, error=error)
        return action


__all__ = ["SelfHealer", "ISSUE_STRATEGIES"]
