"""
Autonomous Execution Engine.

Wires the agent registry, the task distributor, the self-healing subsystem
and the three periodic drivers around one ``EngineContext``, and exposes the
control surface used by operators and tests: start/stop, task injection,
agent pause/resume and read-only views of agents, conflicts and healing.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from autonomous_mas.agents.agent import Agent, AgentSnapshot
from autonomous_mas.agents.registry import AgentRegistry
from autonomous_mas.agents.roster import default_agents
from autonomous_mas.config.settings import EngineSettings, get_settings
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import ConflictRecord, HealingAction, Task, TaskStatus, utcnow
from autonomous_mas.monitoring.metrics import EngineMetrics
from autonomous_mas.orchestration.backend import TaskExecutor
from autonomous_mas.orchestration.conflicts import ConflictMonitor
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.distributor import TaskDistributor
from autonomous_mas.orchestration.events import EngineEvent, EventBus
from autonomous_mas.orchestration.execution import CycleReport, ExecutionCycle
from autonomous_mas.orchestration.healing import SelfHealer
from autonomous_mas.orchestration.health import HealthMonitor
from autonomous_mas.orchestration.store import TaskStore


class AutonomousExecutionEngine:
    """
    Continuously running scheduler and self-healing engine.

    The three drivers run as independent asyncio tasks. A failure inside one
    driver is logged at its boundary and never stops the others.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor,
        settings: Optional[EngineSettings] = None,
        agents: Optional[Iterable[Agent]] = None,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[EngineMetrics] = None,
        events: Optional[EventBus] = None,
    ):
        self.ctx = EngineContext(
            settings=settings or get_settings(),
            store=store,
            executor=executor,
            events=events or EventBus(),
            metrics=metrics or EngineMetrics(),
            clock=clock,
        )
        self.distributor = TaskDistributor(self.ctx)
        self.healer = SelfHealer(self.ctx, self.distributor)
        self.execution = ExecutionCycle(self.ctx, self.distributor, self.healer)
        self.health = HealthMonitor(self.ctx, self.healer)
        self.conflicts = ConflictMonitor(self.ctx, self.distributor)

        self._roster: List[Agent] = list(agents) if agents is not None else default_agents()
        self._initialized = False
        self._running = False
        self._driver_tasks: List[asyncio.Task] = []
        self._logger = get_logger("execution_engine")

    @property
    def settings(self) -> EngineSettings:
        return self.ctx.settings

    @property
    def registry(self) -> AgentRegistry:
        return self.ctx.registry

    @property
    def events(self) -> EventBus:
        return self.ctx.events

    @property
    def metrics(self) -> EngineMetrics:
        return self.ctx.metrics

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self) -> None:
        """Register the roster. Safe to call more than once."""
        if self._initialized:
            return
        self._initialized = True
        async with self.ctx.lock:
            for agent in self._roster:
                await self.ctx.add_agent(agent)
        self._logger.info("Execution engine initialized", agents=len(self.ctx.registry))

    async def start(self) -> None:
        """Start the execution cycle, health monitor and conflict monitor."""
        if self._running:
            return

        await self.initialize()
        self._running = True
        self._driver_tasks = [
            asyncio.create_task(self._execution_loop(), name="execution-cycle"),
            asyncio.create_task(self._health_loop(), name="health-monitor"),
            asyncio.create_task(self._conflict_loop(), name="conflict-monitor"),
        ]
        self.ctx.events.emit(EngineEvent.EXECUTION_STARTED, agents=len(self.ctx.registry))
        self._logger.info(
            "Execution engine started",
            execution_interval=self.settings.execution_interval,
            health_interval=self.settings.health_interval,
            conflict_interval=self.settings.conflict_interval,
        )

    async def stop(self) -> None:
        """Stop all drivers. In-flight backend calls are cancelled with them."""
        if not self._running:
            return
        self._running = False

        for task in self._driver_tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._driver_tasks = []
        await self.execution.cancel_in_flight()

        self.ctx.events.emit(EngineEvent.EXECUTION_STOPPED)
        await self.ctx.events.drain()
        self._logger.info("Execution engine stopped")

    # Control surface

    async def register_agent(self, agent: Agent) -> Agent:
        """Add an agent at runtime."""
        await self.initialize()
        async with self.ctx.lock:
            return await self.ctx.add_agent(agent)

    async def add_task(self, task: Task) -> Optional[str]:
        """
        Inject a task directly, bypassing the store fetch.

        Returns:
            The agent the task was queued on, or None if it waits for a later cycle.
        """
        await self.initialize()
        async with self.ctx.lock:
            self.ctx.injected.add(task.task_id)
            agent_id = await self.distributor.distribute(task)
            if agent_id is None:
                task.status = TaskStatus.PENDING
                self.ctx.backlog.append(task)
        return agent_id

    async def pause_agent(self, agent_id: str) -> bool:
        """Exclude an agent from distribution and execution without removing it."""
        return await self._set_paused(agent_id, True)

    async def resume_agent(self, agent_id: str) -> bool:
        return await self._set_paused(agent_id, False)

    async def _set_paused(self, agent_id: str, paused: bool) -> bool:
        async with self.ctx.lock:
            agent = self.ctx.registry.find(agent_id)
            if agent is None or agent.is_terminated:
                self._logger.warning("Cannot change pause state", agent_id=agent_id, paused=paused)
                return False
            self.ctx.registry.set_paused(agent_id, paused)
        self._logger.info("Agent paused" if paused else "Agent resumed", agent_id=agent_id)
        return True

    # Views

    def agent_status(self) -> Dict[str, AgentSnapshot]:
        return {agent.agent_id: agent.snapshot() for agent in self.ctx.registry.agents()}

    def conflict_history(self) -> List[ConflictRecord]:
        return list(self.ctx.conflicts)

    def healing_history(self) -> List[HealingAction]:
        return list(self.ctx.healing_actions)

    def get_stats(self) -> Dict[str, Any]:
        """Summary counters for dashboards and the CLI."""
        agents = self.ctx.registry.agents()
        by_status: Dict[str, int] = {}
        for agent in agents:
            by_status[agent.status.value] = by_status.get(agent.status.value, 0) + 1
        return {
            "running": self._running,
            "agents": len(agents),
            "agents_by_status": by_status,
            "queued_tasks": sum(a.queue_length for a in agents),
            "backlog": len(self.ctx.backlog),
            "in_flight": self.execution.in_flight,
            "pending_writes": len(self.ctx.pending_writes),
            "open_conflicts": len(self.ctx.open_conflicts()),
            "conflicts_recorded": len(self.ctx.conflicts),
            "healing_actions": len(self.ctx.healing_actions),
            "events": self.ctx.events.get_stats(),
        }

    # Single ticks, for deterministic driving

    async def run_execution_tick(self) -> Optional[CycleReport]:
        await self.initialize()
        return await self.execution.tick()

    async def run_health_tick(self) -> int:
        await self.initialize()
        return await self.health.tick()

    async def run_conflict_tick(self) -> List[ConflictRecord]:
        await self.initialize()
        return await self.conflicts.tick()

    # Driver loops

    async def _execution_loop(self) -> None:
        """Execution cycle loop."""
        while self._running:
            try:
                await self.execution.tick(wait=self.settings.execution_interval)
            except Exception as e:
                self._logger.error("Error in execution loop", error=str(e))
                self.ctx.metrics.record_driver_error("execution")
            await asyncio.sleep(self.settings.execution_interval)

    async def _health_loop(self) -> None:
        """Health monitoring loop."""
        while self._running:
            try:
                await self.health.tick()
            except Exception as e:
                self._logger.error("Error in health loop", error=str(e))
                self.ctx.metrics.record_driver_error("health")
            await asyncio.sleep(self.settings.health_interval)

    async def _conflict_loop(self) -> None:
        """Conflict monitoring loop."""
        while self._running:
            try:
                await self.conflicts.tick()
            except Exception as e:
                self._logger.error("Error in conflict loop", error=str(e))
                self.ctx.metrics.record_driver_error("conflict")
            await asyncio.sleep(self.settings.conflict_interval)


__all__ = ["AutonomousExecutionEngine"]
