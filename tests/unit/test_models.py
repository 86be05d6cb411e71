"""
Unit tests for the task, agent and record data model.
"""

import pytest

from autonomous_mas.agents.agent import AgentPerformance, AgentStatus, HealingPolicy
from autonomous_mas.agents.roster import DEFAULT_ROSTER, default_agents
from autonomous_mas.models import (
    ConflictKind,
    ConflictRecord,
    HealingStrategy,
    Task,
    TaskPriority,
)


class TestTaskPriority:
    """Test priority ordering and parsing."""

    def test_ordering(self):
        assert TaskPriority.LOW < TaskPriority.MEDIUM < TaskPriority.HIGH
        assert TaskPriority.CRITICAL < TaskPriority.EMERGENCY
        assert not TaskPriority.HIGH < TaskPriority.HIGH
        assert sorted([TaskPriority.EMERGENCY, TaskPriority.LOW]) == [TaskPriority.LOW, TaskPriority.EMERGENCY]

    def test_from_label(self):
        assert TaskPriority.from_label("critical") is TaskPriority.CRITICAL
        assert TaskPriority.from_label(" High ") is TaskPriority.HIGH
        assert TaskPriority.from_label("whenever") is TaskPriority.MEDIUM

    def test_task_accepts_label(self):
        """Test a string priority is parsed on construction."""
        task = Task(task_type="development", priority="emergency")
        assert task.priority is TaskPriority.EMERGENCY
        assert task.required_capabilities == frozenset()


class TestAgentPerformance:
    """Test running performance records."""

    def test_first_sample_taken_as_is(self):
        performance = AgentPerformance()
        performance.record_success(4.0)

        assert performance.average_execution_time == 4.0
        assert performance.tasks_completed == 1
        assert performance.success_rate == 1.0

    def test_two_point_moving_average(self):
        performance = AgentPerformance()
        for sample in [4.0, 2.0, 1.0]:
            performance.record_success(sample)

        # (4 + 2) / 2 = 3, then (3 + 1) / 2 = 2
        assert performance.average_execution_time == pytest.approx(2.0)

    def test_success_rate_is_running_fraction(self):
        performance = AgentPerformance()
        performance.record_success(1.0)
        performance.record_failure()
        performance.record_success(1.0)
        performance.record_failure()

        assert performance.tasks_attempted == 4
        assert performance.success_rate == pytest.approx(0.5)


class TestHealingPolicy:
    """Test healing policy construction."""

    def test_unknown_strategies_ignored(self):
        policy = HealingPolicy.from_names(["restart", "model_reload", "backup_agent"], max_retries=2)

        assert policy.allowed_strategies == frozenset({HealingStrategy.RESTART, HealingStrategy.BACKUP_AGENT})
        assert policy.allows(HealingStrategy.BACKUP_AGENT)
        assert not policy.allows(HealingStrategy.LOAD_BALANCING)
        assert policy.max_retries == 2


class TestRoster:
    """Test the default roster."""

    def test_default_agents(self):
        agents = default_agents()

        assert [a.agent_id for a in agents] == [entry["agent_id"] for entry in DEFAULT_ROSTER]
        assert all(a.status is AgentStatus.IDLE for a in agents)

        coders = [a for a in agents if "code_generation" in a.capabilities]
        assert [a.agent_id for a in coders] == ["dev-manager-001"]

    def test_fresh_instances(self):
        """Test each call builds independent agents."""
        first, second = default_agents(), default_agents()
        assert first[0] is not second[0]


class TestConflictRecord:
    """Test conflict record identity."""

    def test_key_ignores_agent_order(self):
        a = ConflictRecord(kind=ConflictKind.RESOURCE, agent_ids=("x", "y"))
        b = ConflictRecord(kind=ConflictKind.RESOURCE, agent_ids=("y", "x"))

        assert a.key == b.key
        assert a.conflict_id != b.conflict_id

    def test_open_until_resolved_or_abandoned(self):
        record = ConflictRecord(kind=ConflictKind.PRIORITY, agent_ids=("x",))
        assert record.is_open

        record.abandoned = True
        assert not record.is_open
