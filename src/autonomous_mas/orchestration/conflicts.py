"""
Conflict Monitor.

Three detectors look at the agents that are currently executing:

- resource: several agents executing tasks of the same type
- task overlap: two agents whose current task descriptions share
  significant words
- priority: an agent whose queue head outranks the task it is running

Each open conflict gets one resolution attempt per pass. A record that could
not be resolved stays open for later passes until it has used up its
attempts or ages out of the bounded history. Agents of open conflicts that
are not executing are marked conflicted, which does not block assignment.
"""

from collections import defaultdict
from itertools import combinations
from typing import Dict, FrozenSet, List, Set, Tuple

from autonomous_mas.agents.agent import Agent, AgentStatus
from autonomous_mas.core.exceptions import ConflictUnresolvedError
from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import ConflictKind, ConflictRecord, ConflictSeverity
from autonomous_mas.orchestration.context import EngineContext
from autonomous_mas.orchestration.distributor import TaskDistributor
from autonomous_mas.orchestration.events import EngineEvent


Resolution = Tuple[bool, str]


class ConflictMonitor:
    """Periodic driver detecting and resolving conflicts between executing agents."""

    def __init__(self, ctx: EngineContext, distributor: TaskDistributor):
        self.ctx = ctx
        self.distributor = distributor
        self._logger = get_logger("conflict_monitor")

    async def tick(self) -> List[ConflictRecord]:
        """
        Run one detection and resolution pass.

        Returns:
            Conflicts newly recorded in this pass.
        """
        try:
            async with self.ctx.lock:
                observed = self.detect()
                recorded = self._record_new(observed)
                for record in self.ctx.open_conflicts():
                    await self._attempt(record)
                self._refresh_conflicted()
                return recorded
        except Exception as e:
            self._logger.error("Conflict monitor pass failed", error=str(e))
            self.ctx.metrics.record_driver_error("conflict")
            return []

    # Detection

    def detect(self) -> List[ConflictRecord]:
        """Conflicts present in the registry right now."""
        executing = [a for a in self.ctx.registry.agents() if a.status is AgentStatus.EXECUTING]
        return (
            self.detect_resource_conflicts(executing)
            + self.detect_overlap_conflicts(executing)
            + self.detect_priority_conflicts(executing)
        )

    def detect_resource_conflicts(self, executing: List[Agent]) -> List[ConflictRecord]:
        groups: Dict[str, List[Agent]] = defaultdict(list)
        for agent in executing:
            groups[agent.current_task.task_type].append(agent)

        conflicts = []
        for task_type, agents in groups.items():
            if len(agents) < 2:
                continue
            high = len(agents) > self.ctx.settings.resource_conflict_high_threshold
            conflicts.append(self._new_record(
                ConflictKind.RESOURCE,
                agents,
                ConflictSeverity.HIGH if high else ConflictSeverity.MEDIUM,
                notes=f"{len(agents)} agents executing {task_type!r} tasks",
            ))
        return conflicts

    def detect_overlap_conflicts(self, executing: List[Agent]) -> List[ConflictRecord]:
        words = {a.agent_id: self.significant_words(a.current_task.description) for a in executing}

        conflicts = []
        for first, second in combinations(executing, 2):
            shared = words[first.agent_id] & words[second.agent_id]
            if len(shared) > self.ctx.settings.overlap_shared_words:
                conflicts.append(self._new_record(
                    ConflictKind.TASK_OVERLAP,
                    [first, second],
                    ConflictSeverity.MEDIUM,
                    notes=f"shared words: {', '.join(sorted(shared))}",
                ))
        return conflicts

    def detect_priority_conflicts(self, executing: List[Agent]) -> List[ConflictRecord]:
        conflicts = []
        for agent in executing:
            if agent.queue and agent.current_task.priority < agent.queue[0].priority:
                conflicts.append(self._new_record(
                    ConflictKind.PRIORITY,
                    [agent],
                    ConflictSeverity.HIGH,
                    notes=(
                        f"queued {agent.queue[0].task_id} ({agent.queue[0].priority.name.lower()}) "
                        f"behind {agent.current_task.task_id} ({agent.current_task.priority.name.lower()})"
                    ),
                ))
        return conflicts

    def significant_words(self, text: str) -> FrozenSet[str]:
        min_length = self.ctx.settings.overlap_min_word_length
        return frozenset(w for w in text.lower().split() if len(w) > min_length)

    def _new_record(
        self,
        kind: ConflictKind,
        agents: List[Agent],
        severity: ConflictSeverity,
        notes: str = "",
    ) -> ConflictRecord:
        return ConflictRecord(
            kind=kind,
            agent_ids=tuple(a.agent_id for a in agents),
            severity=severity,
            detected_at=self.ctx.clock(),
            notes=notes,
        )

    def _record_new(self, observed: List[ConflictRecord]) -> List[ConflictRecord]:
        known = {record.key for record in self.ctx.open_conflicts()}
        recorded = []
        for record in observed:
            if record.key in known:
                continue
            known.add(record.key)
            self.ctx.record_conflicts([record])
            recorded.append(record)

            self.ctx.metrics.record_conflict(record.kind.value, "detected")
            self.ctx.events.emit(
                EngineEvent.CONFLICT_DETECTED,
                conflict_id=record.conflict_id,
                kind=record.kind.value,
                severity=record.severity.value,
                agent_ids=list(record.agent_ids),
            )
            self._logger.warning(
                "Conflict detected",
                conflict_id=record.conflict_id,
                kind=record.kind.value,
                severity=record.severity.value,
                agent_ids=list(record.agent_ids),
            )
        return recorded

    # Resolution

    async def _attempt(self, record: ConflictRecord) -> bool:
        record.resolution_attempts += 1
        resolvers = {
            ConflictKind.RESOURCE: self.resolve_resource,
            ConflictKind.TASK_OVERLAP: self.resolve_overlap,
            ConflictKind.PRIORITY: self.resolve_priority,
        }
        try:
            resolved, note = await resolvers[record.kind](record)
        except Exception as e:
            resolved, note = False, f"resolution raised {type(e).__name__}: {e}"

        if not resolved:
            error = ConflictUnresolvedError(record.conflict_id, note)
            self.ctx.metrics.record_conflict(record.kind.value, "unresolved")
            self._logger.warning(
                "Conflict unresolved",
                conflict_id=record.conflict_id,
                attempt=record.resolution_attempts,
                error=str(error),
            )
            if record.resolution_attempts >= self.ctx.settings.conflict_max_attempts:
                record.abandoned = True
                self._logger.info("Conflict abandoned", conflict_id=record.conflict_id, reason=note)
            return False

        record.resolved = True
        record.resolved_at = self.ctx.clock()
        record.notes = note
        self.ctx.metrics.record_conflict(record.kind.value, "resolved")
        self.ctx.events.emit(
            EngineEvent.CONFLICT_RESOLVED,
            conflict_id=record.conflict_id,
            kind=record.kind.value,
            agent_ids=list(record.agent_ids),
            resolution=note,
        )
        self._logger.info("Conflict resolved", conflict_id=record.conflict_id, resolution=note)
        return True

    async def resolve_resource(self, record: ConflictRecord) -> Resolution:
        """Move one queued task from the most to the least loaded involved agent."""
        registry = self.ctx.registry
        agents = self._live_agents(record)
        if len(agents) < 2:
            return False, "fewer than two live agents involved"

        most = max(agents, key=lambda a: (a.queue_length, -a.registration_index))
        targets = [
            a for a in agents
            if a is not most and not a.paused and a.status is not AgentStatus.HEALING
        ]
        if not targets:
            return False, "no eligible agent to take load"
        least = min(targets, key=lambda a: (a.queue_length, a.registration_index))

        if most.queue_length <= least.queue_length + 1:
            return False, "load already balanced"

        for task in reversed(list(most.queue)):
            if least.can_handle(self.ctx.required_capabilities(task)):
                registry.remove_queued(most.agent_id, task.task_id)
                registry.enqueue(least.agent_id, task)
                return True, f"moved {task.task_id} from {most.agent_id} to {least.agent_id}"
        return False, f"{least.agent_id} cannot handle any task queued on {most.agent_id}"

    async def resolve_overlap(self, record: ConflictRecord) -> Resolution:
        """Keep the overlapping work on the stronger agent and reassign the other's task."""
        registry = self.ctx.registry
        agents = [a for a in self._live_agents(record) if a.current_task is not None]
        if len(agents) < 2:
            return False, "agents no longer executing"

        keeper = max(agents, key=lambda a: (
            a.performance.success_rate,
            a.policy.conflict_resolution_level,
            -a.registration_index,
        ))
        other = next(a for a in agents if a is not keeper)

        task = registry.release_current(other.agent_id)
        target = await self.distributor.distribute(task, exclude={other.agent_id})
        if target is None:
            await self.ctx.return_task(task)
            return True, f"freed {other.agent_id}; {task.task_id} returned to pending"
        return True, f"freed {other.agent_id}; {task.task_id} reassigned to {target}"

    async def resolve_priority(self, record: ConflictRecord) -> Resolution:
        """Requeue the in-flight task and reorder the queue by descending priority."""
        registry = self.ctx.registry
        agents = self._live_agents(record)
        if not agents or agents[0].current_task is None:
            return False, "agent no longer executing"
        agent = agents[0]

        task = registry.release_current(agent.agent_id)
        registry.enqueue(agent.agent_id, task, front=True)
        # Stable sort keeps the requeued task first among equal priorities.
        ordered = sorted(agent.queue, key=lambda t: -t.priority.value)
        registry.reorder_queue(agent.agent_id, ordered)
        return True, f"requeued {task.task_id} on {agent.agent_id} behind {ordered[0].task_id}"

    def _live_agents(self, record: ConflictRecord) -> List[Agent]:
        agents = [self.ctx.registry.find(agent_id) for agent_id in record.agent_ids]
        return [a for a in agents if a is not None and not a.is_terminated]

    def _refresh_conflicted(self) -> None:
        involved: Set[str] = set()
        for record in self.ctx.open_conflicts():
            involved.update(record.agent_ids)

        for agent in self.ctx.registry.agents():
            if agent.agent_id in involved and agent.status in (AgentStatus.IDLE, AgentStatus.ACTIVE):
                self.ctx.registry.set_status(agent.agent_id, AgentStatus.CONFLICTED)
            elif agent.agent_id not in involved and agent.status is AgentStatus.CONFLICTED:
                self.ctx.registry.settle(agent.agent_id)


__all__ = ["ConflictMonitor"]
