"""
Health Monitor.

Inspects every live agent for responsiveness and success rate, triggers
``performance_degradation`` healing where needed, and publishes a health
snapshot of each agent to the task store's agent metadata.
"""

from datetime import datetime
from typing import Optional

from autonomous_mas.agents.agent import Agent, AgentStatus
from autonomous_mas.core.exceptions import AgentUnresponsiveError, HealingExhaustedError
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import IssueKind
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.healing import SelfHealer


class HealthMonitor:
    """Periodic driver checking agent health."""

    def __init__(self, ctx: EngineContext, healer: SelfHealer):
        self.ctx = ctx
        self.healer = healer
        self._logger = get_logger("health_monitor")

    async def tick(self) -> int:
        """
        Run one health pass.

        Returns:
            Number of agents for which healing was triggered.
        """
        healed = 0
        try:
            async with self.ctx.lock:
                now = self.ctx.clock()
                for agent in self.ctx.registry.agents():
                    if agent.is_terminated:
                        continue
                    try:
                        if await self._check_agent(agent, now):
                            healed += 1
                    except Exception as e:
                        self._logger.error("Health check failed", agent_id=agent.agent_id, error=str(e))
        except Exception as e:
            self._logger.error("Health monitor pass failed", error=str(e))
            self.ctx.metrics.record_driver_error("health")
        return healed

    def diagnose(self, agent: Agent, now: datetime) -> Optional[IssueKind]:
        """Issue to heal ``agent`` for, if any."""
        settings = self.ctx.settings
        performance = agent.performance

        if agent.status is AgentStatus.EXECUTING and performance.last_execution_time is not None:
            elapsed = (now - performance.last_execution_time).total_seconds()
            if elapsed > settings.unresponsive_timeout:
                error = AgentUnresponsiveError(agent.agent_id, elapsed)
                self._logger.warning("Agent unresponsive", agent_id=agent.agent_id, error=str(error))
                return IssueKind.PERFORMANCE_DEGRADATION

        # A record already healed is judged again only after new attempts.
        if (
            performance.tasks_completed > settings.degraded_min_tasks
            and performance.success_rate < settings.degraded_success_rate
            and performance.tasks_attempted != agent.attempts_at_last_healing
        ):
            self._logger.warning(
                "Agent performance degraded",
                agent_id=agent.agent_id,
                success_rate=round(performance.success_rate, 3),
                tasks_completed=performance.tasks_completed,
            )
            return IssueKind.PERFORMANCE_DEGRADATION

        return None

    async def _check_agent(self, agent: Agent, now: datetime) -> bool:
        issue = self.diagnose(agent, now)
        if issue is not None:
            try:
                await self.healer.trigger(agent.agent_id, issue)
            except HealingExhaustedError as e:
                self._logger.error("Agent could not be healed", agent_id=agent.agent_id, error=str(e))

        await self.ctx.publish_agent(agent)
        return issue is not None


__all__ = ["HealthMonitor"]
