"""
Prometheus metrics for the execution engine.

Each engine owns its own ``CollectorRegistry`` so several engines (or test
cases) can coexist in one process without duplicate-collector errors.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from autonomous_mas.agents.agent import AgentStatus


_STATUS_CODES = {
    AgentStatus.IDLE: 0,
    AgentStatus.ACTIVE: 1,
    AgentStatus.EXECUTING: 2,
    AgentStatus.HEALING: 3,
    AgentStatus.CONFLICTED: 4,
    AgentStatus.TERMINATED: 5,
}


class EngineMetrics:
    """Collects task, conflict and healing metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metric collectors."""
        self.registry = registry or CollectorRegistry()
        self._init_prometheus_metrics()

    def _init_prometheus_metrics(self) -> None:
        self._distributed_counter = Counter(
            'engine_tasks_distributed_total',
            'Tasks assigned to an agent queue',
            ['agent_id'],
            registry=self.registry
        )

        self._task_counter = Counter(
            'engine_tasks_total',
            'Tasks executed by agent and outcome',
            ['agent_id', 'status'],
            registry=self.registry
        )

        self._execution_histogram = Histogram(
            'engine_task_execution_seconds',
            'Backend execution time in seconds',
            ['agent_id'],
            registry=self.registry
        )

        self._undistributed_counter = Counter(
            'engine_tasks_undistributed_total',
            'Distribution attempts that found no suitable agent',
            registry=self.registry
        )

        self._conflict_counter = Counter(
            'engine_conflicts_total',
            'Conflicts by kind and stage',
            ['kind', 'stage'],
            registry=self.registry
        )

        self._healing_counter = Counter(
            'engine_healing_actions_total',
            'Self-healing attempts by strategy and outcome',
            ['strategy', 'outcome'],
            registry=self.registry
        )

        self._queue_gauge = Gauge(
            'engine_agent_queue_length',
            'Queued tasks per agent',
            ['agent_id'],
            registry=self.registry
        )

        self._status_gauge = Gauge(
            'engine_agent_status',
            'Agent status (0=idle, 1=active, 2=executing, 3=healing, 4=conflicted, 5=terminated)',
            ['agent_id'],
            registry=self.registry
        )

        self._driver_error_counter = Counter(
            'engine_driver_errors_total',
            'Exceptions caught at a driver boundary',
            ['driver'],
            registry=self.registry
        )

    def record_distribution(self, agent_id: Optional[str]) -> None:
        if agent_id is None:
            self._undistributed_counter.inc()
        else:
            self._distributed_counter.labels(agent_id=agent_id).inc()

    def record_execution(self, agent_id: str, success: bool, execution_time: float) -> None:
        status = 'success' if success else 'failure'
        self._task_counter.labels(agent_id=agent_id, status=status).inc()
        self._execution_histogram.labels(agent_id=agent_id).observe(execution_time)

    def record_conflict(self, kind: str, stage: str) -> None:
        """Record a conflict ``stage`` (detected, resolved, unresolved)."""
        self._conflict_counter.labels(kind=kind, stage=stage).inc()

    def record_healing(self, strategy: str, success: bool) -> None:
        outcome = 'success' if success else 'failure'
        self._healing_counter.labels(strategy=strategy, outcome=outcome).inc()

    def record_driver_error(self, driver: str) -> None:
        self._driver_error_counter.labels(driver=driver).inc()

    def update_agent(self, agent_id: str, queue_length: int, status: AgentStatus) -> None:
        self._queue_gauge.labels(agent_id=agent_id).set(queue_length)
        self._status_gauge.labels(agent_id=agent_id).set(_STATUS_CODES[status])

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of one sample, 0.0 when it has not been recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def render(self) -> str:
        """Get metrics in Prometheus text format."""
        return generate_latest(self.registry).decode('utf-8')


__all__ = ["EngineMetrics"]
