"""
Execution Cycle.

One tick fetches a bounded batch of pending tasks, distributes all of them,
dequeues one task per eligible agent and runs those tasks against the
backend concurrently. The registry lock is held while distributing and while
applying results, never while the backend is awaited.

Backend calls run as tasks of their own. A tick waits a bounded time for
them and applies whichever have returned; the rest are applied by a later
tick. Terminal status writes that the store rejects are retried at the start
of the next tick.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, List, Optional

from autonomous_mas.agents.agent import ASSIGNABLE_STATES, AgentStatus
from autonomous_mas.core.exceptions import HealingExhaustedError, TaskExecutionError
from autonomous_mas.core.logging import get_logger, get_performance_logger
from autonomous_mas.models import IssueKind, Task, TaskStatus
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.distributor import TaskDistributor
from autonomous_mas.orchestration.events import EngineEvent
from autonomous_mas.orchestration.healing import SelfHealer


@dataclass
class ExecutionOutcome:
    """Result of one backend call."""
    agent_id: str
    task: Task
    success: bool
    execution_time: float
    result: Any = None
    error: Optional[TaskExecutionError] = None


@dataclass
class CycleReport:
    """Counts for one execution tick."""
    fetched: int = 0
    distributed: int = 0
    executed: int = 0
    completed: int = 0
    failed: int = 0
    stale: int = 0


class ExecutionCycle:
    """Periodic driver that moves tasks from the store through the agents."""

    def __init__(self, ctx: EngineContext, distributor: TaskDistributor, healer: SelfHealer):
        self.ctx = ctx
        self.distributor = distributor
        self.healer = healer
        self._logger = get_logger("execution_cycle")
        self._perf_logger = get_performance_logger("execution_cycle")
        self._in_flight: List["asyncio.Future[ExecutionOutcome]"] = []

    async def tick(self, wait: Optional[float] = None) -> Optional[CycleReport]:
        """
        Run one cycle.

        Args:
            wait: Seconds to wait for backend calls before returning; calls
                still running are applied by a later tick. None waits for all.

        A cycle-level failure is logged and answered with a degraded
        self-check on the orchestrator's own agent; it never propagates.
        """
        try:
            report = await self._run_cycle(wait)
        except Exception as e:
            self._logger.error("Execution cycle failed", error=str(e), error_type=type(e).__name__)
            self.ctx.metrics.record_driver_error("execution")
            await self._degraded_self_check()
            return None

        orchestrator = self.ctx.orchestrator()
        if orchestrator is not None and not orchestrator.is_terminated:
            orchestrator.consecutive_healings = 0
        return report

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def cancel_in_flight(self) -> None:
        """Cancel backend calls that have not returned; used on shutdown."""
        calls, self._in_flight = self._in_flight, []
        for call in calls:
            call.cancel()
        if calls:
            await asyncio.gather(*calls, return_exceptions=True)

    async def _run_cycle(self, wait: Optional[float]) -> CycleReport:
        report = CycleReport()

        async with self.ctx.lock:
            await self.ctx.flush_pending_writes()
            report.distributed += await self._distribute_backlog()

            pending = await self.ctx.store.fetch_pending(self.ctx.settings.fetch_batch_size)
            report.fetched = len(pending)
            for task in pending:
                if self.ctx.registry.holder_of(task.task_id) is not None:
                    continue
                if await self.distributor.distribute(task):
                    report.distributed += 1

            for agent in self.ctx.registry.agents():
                if agent.paused or not agent.queue or agent.status not in ASSIGNABLE_STATES:
                    continue
                task = self.ctx.registry.dequeue(agent.agent_id)
                self._in_flight.append(asyncio.ensure_future(self._execute(agent.agent_id, task)))
                report.executed += 1

        if not self._in_flight:
            return report

        if report.executed:
            self._logger.debug("Dispatching tasks", count=report.executed, in_flight=len(self._in_flight))
        if wait is None or wait > 0:
            await asyncio.wait(list(self._in_flight), timeout=wait)
        finished = [call for call in self._in_flight if call.done()]
        if not finished:
            return report
        self._in_flight = [call for call in self._in_flight if not call.done()]

        async with self.ctx.lock:
            for call in finished:
                outcome = call.result()
                try:
                    applied = await self._apply(outcome)
                except Exception as e:
                    self._logger.error(
                        "Failed to apply task result",
                        agent_id=outcome.agent_id,
                        task_id=outcome.task.task_id,
                        error=str(e),
                    )
                    self.ctx.metrics.record_driver_error("execution")
                    continue
                if not applied:
                    report.stale += 1
                elif outcome.success:
                    report.completed += 1
                else:
                    report.failed += 1

        return report

    async def _distribute_backlog(self) -> int:
        placed = 0
        for _ in range(len(self.ctx.backlog)):
            task = self.ctx.backlog.popleft()
            if await self.distributor.distribute(task):
                placed += 1
            else:
                self.ctx.backlog.append(task)
        return placed

    async def _execute(self, agent_id: str, task: Task) -> ExecutionOutcome:
        deadline = self.ctx.settings.execution_deadline
        started = time.perf_counter()
        try:
            if deadline is not None:
                result = await asyncio.wait_for(self.ctx.executor.execute(task), timeout=deadline)
            else:
                result = await self.ctx.executor.execute(task)
        except asyncio.TimeoutError as e:
            error = TaskExecutionError(task.task_id, f"deadline of {deadline}s exceeded", cause=e)
            return ExecutionOutcome(agent_id, task, False, time.perf_counter() - started, error=error)
        except Exception as e:
            error = TaskExecutionError(task.task_id, str(e) or type(e).__name__, cause=e)
            return ExecutionOutcome(agent_id, task, False, time.perf_counter() - started, error=error)
        return ExecutionOutcome(agent_id, task, True, time.perf_counter() - started, result=result)

    async def _apply(self, outcome: ExecutionOutcome) -> bool:
        """Fold one outcome into the registry and store. False when the result is stale."""
        registry = self.ctx.registry
        agent = registry.find(outcome.agent_id)
        task = outcome.task

        if agent is None or agent.current_task is not task:
            self._logger.warning(
                "Discarding stale result",
                agent_id=outcome.agent_id,
                task_id=task.task_id,
                success=outcome.success,
            )
            return False

        self.ctx.metrics.record_execution(agent.agent_id, outcome.success, outcome.execution_time)
        self._perf_logger.log_execution_time(
            "task_execution",
            outcome.execution_time * 1000,
            success=outcome.success,
            agent_id=agent.agent_id,
            task_id=task.task_id,
        )

        if outcome.success:
            registry.finish(agent.agent_id, task.task_id)
            agent.performance.record_success(outcome.execution_time)
            agent.consecutive_healings = 0
            await self.ctx.persist_status(task, TaskStatus.COMPLETED)
            self.ctx.events.emit(
                EngineEvent.TASK_COMPLETED,
                agent_id=agent.agent_id,
                task_id=task.task_id,
                execution_time=outcome.execution_time,
                result=outcome.result,
            )
            self._logger.info(
                "Task completed",
                agent_id=agent.agent_id,
                task_id=task.task_id,
                execution_time=round(outcome.execution_time, 4),
            )
            return True

        registry.release_current(agent.agent_id)
        agent.performance.record_failure()
        await self.ctx.persist_status(task, TaskStatus.FAILED)
        registry.set_status(agent.agent_id, AgentStatus.HEALING)
        self._logger.warning(
            "Task failed",
            agent_id=agent.agent_id,
            task_id=task.task_id,
            error=str(outcome.error),
        )
        try:
            await self.healer.trigger(agent.agent_id, IssueKind.TASK_FAILURE)
        except HealingExhaustedError as e:
            self._logger.error("Agent could not be healed", agent_id=agent.agent_id, error=str(e))
        self.ctx.events.emit(
            EngineEvent.TASK_FAILED,
            agent_id=agent.agent_id,
            task_id=task.task_id,
            error=str(outcome.error),
        )
        return True

    async def _degraded_self_check(self) -> None:
        orchestrator = self.ctx.orchestrator()
        if orchestrator is None:
            self._logger.warning("No orchestrator agent for degraded self-check")
            return
        async with self.ctx.lock:
            try:
                await self.healer.trigger(orchestrator.agent_id, IssueKind.PERFORMANCE_DEGRADATION)
            except HealingExhaustedError as e:
                self._logger.error("Orchestrator could not be healed", error=str(e))
            except Exception as e:
                self._logger.error("Degraded self-check failed", error=str(e))


__all__ = ["ExecutionCycle", "ExecutionOutcome", "CycleReport"]
