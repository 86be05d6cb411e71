"""
Unit tests for the agent registry.

This module tests registration, the agent status state machine, the queue
primitives and the single-holder task invariant.
"""

import pytest

from autonomous_mas.agents.agent import AgentStatus
from autonomous_mas.agents.registry import AgentRegistry
from autonomous_mas.core.exceptions import (
    AgentError,
    AgentNotFoundError,
    InvalidTransitionError,
)


@pytest.fixture
def registry(clock) -> AgentRegistry:
    return AgentRegistry(clock=clock)


class TestRegistration:
    """Test agent registration and lookup."""

    def test_registration_order(self, registry, make_agent):
        """Test agents are listed in registration order."""
        for agent_id in ["c", "a", "b"]:
            registry.register(make_agent(agent_id))

        assert [a.agent_id for a in registry.agents()] == ["c", "a", "b"]
        assert [a.registration_index for a in registry.agents()] == [0, 1, 2]
        assert len(registry) == 3
        assert "a" in registry

    def test_duplicate_id_rejected(self, registry, make_agent):
        """Test registering the same id twice fails."""
        registry.register(make_agent("dup"))

        with pytest.raises(AgentError):
            registry.register(make_agent("dup"))

    def test_unknown_agent(self, registry):
        """Test lookup of an unknown id."""
        with pytest.raises(AgentNotFoundError):
            registry.get("missing")
        assert registry.find("missing") is None

    def test_register_with_queue(self, registry, make_agent, make_task):
        """Test pre-queued tasks are indexed and the agent becomes active."""
        agent = make_agent("busy")
        tasks = [make_task(), make_task()]
        agent.queue.extend(tasks)

        registry.register(agent)

        assert agent.status is AgentStatus.ACTIVE
        assert registry.holder_of(tasks[0].task_id) == "busy"
        registry.check_invariants()

    def test_register_rejects_held_task(self, registry, make_agent, make_task):
        """Test a task already queued elsewhere cannot be registered again."""
        task = make_task()
        registry.register(make_agent("first"))
        registry.enqueue("first", task)

        second = make_agent("second")
        second.queue.append(task)
        with pytest.raises(AgentError):
            registry.register(second)

    def test_list_by_capability(self, registry, make_agent):
        """Test capability filtering."""
        registry.register(make_agent("coder", capabilities=["code_generation"]))
        registry.register(make_agent("writer", capabilities=["content_generation"]))

        assert [a.agent_id for a in registry.list_by_capability("content_generation")] == ["writer"]
        assert registry.list_by_capability("unknown") == []


class TestStateMachine:
    """Test status transitions."""

    def test_enqueue_dequeue_finish(self, registry, make_agent, make_task, clock):
        """Test the idle -> active -> executing -> idle cycle."""
        registry.register(make_agent("worker"))
        task = make_task()

        registry.enqueue("worker", task)
        agent = registry.get("worker")
        assert agent.status is AgentStatus.ACTIVE

        dequeued = registry.dequeue("worker")
        assert dequeued is task
        assert agent.status is AgentStatus.EXECUTING
        assert agent.current_task is task
        assert agent.performance.last_execution_time == clock.now
        registry.check_invariants()

        assert registry.finish("worker", task.task_id) is True
        assert agent.status is AgentStatus.IDLE
        assert agent.current_task is None
        assert registry.holder_of(task.task_id) is None
        registry.check_invariants()

    def test_finish_with_remaining_queue(self, registry, make_agent, make_task):
        """Test an agent with queued work settles to active."""
        registry.register(make_agent("worker"))
        first, second = make_task(), make_task()
        registry.enqueue("worker", first)
        registry.enqueue("worker", second)

        registry.dequeue("worker")
        registry.finish("worker", first.task_id)

        assert registry.get("worker").status is AgentStatus.ACTIVE

    def test_finish_stale_task(self, registry, make_agent, make_task):
        """Test finishing a task the agent no longer holds is rejected."""
        registry.register(make_agent("worker"))
        task = make_task()
        registry.enqueue("worker", task)
        registry.dequeue("worker")
        registry.release_current("worker")

        assert registry.finish("worker", task.task_id) is False

    def test_executing_only_via_dequeue(self, registry, make_agent):
        """Test executing cannot be set directly."""
        registry.register(make_agent("worker"))

        with pytest.raises(InvalidTransitionError):
            registry.set_status("worker", AgentStatus.EXECUTING)

    def test_cannot_leave_executing_via_set_status(self, registry, make_agent, make_task):
        """Test the in-flight task has to be released first."""
        registry.register(make_agent("worker"))
        registry.enqueue("worker", make_task())
        registry.dequeue("worker")

        with pytest.raises(InvalidTransitionError):
            registry.set_status("worker", AgentStatus.HEALING)

    def test_terminated_is_terminal(self, registry, make_agent):
        """Test terminated agents never change status again."""
        registry.register(make_agent("worker"))
        registry.set_status("worker", AgentStatus.TERMINATED)

        for status in [AgentStatus.IDLE, AgentStatus.ACTIVE, AgentStatus.HEALING]:
            with pytest.raises(InvalidTransitionError):
                registry.set_status("worker", status)

        # Same status is a no-op
        registry.set_status("worker", AgentStatus.TERMINATED)

    def test_dequeue_requires_assignable_status(self, registry, make_agent, make_task):
        """Test healing agents cannot dequeue and empty queues are rejected."""
        registry.register(make_agent("worker"))

        with pytest.raises(AgentError):
            registry.dequeue("worker")

        registry.enqueue("worker", make_task())
        registry.set_status("worker", AgentStatus.HEALING)
        with pytest.raises(InvalidTransitionError):
            registry.dequeue("worker")

    def test_conflicted_agent_can_dequeue(self, registry, make_agent, make_task):
        """Test conflicted is informational only."""
        registry.register(make_agent("worker"))
        registry.enqueue("worker", make_task())
        registry.set_status("worker", AgentStatus.CONFLICTED)

        registry.dequeue("worker")
        assert registry.get("worker").status is AgentStatus.EXECUTING


class TestQueuePrimitives:
    """Test queue mutation helpers."""

    def test_task_held_once(self, registry, make_agent, make_task):
        """Test a task cannot be queued on two agents."""
        registry.register(make_agent("a"))
        registry.register(make_agent("b"))
        task = make_task()
        registry.enqueue("a", task)

        with pytest.raises(AgentError):
            registry.enqueue("b", task)
        with pytest.raises(AgentError):
            registry.enqueue("a", task)

    def test_enqueue_on_terminated(self, registry, make_agent, make_task):
        """Test terminated agents take no work."""
        registry.register(make_agent("dead"))
        registry.set_status("dead", AgentStatus.TERMINATED)

        with pytest.raises(AgentError):
            registry.enqueue("dead", make_task())

    def test_release_current(self, registry, make_agent, make_task):
        """Test releasing the in-flight task frees the agent."""
        registry.register(make_agent("worker"))
        running, queued = make_task(), make_task()
        registry.enqueue("worker", running)
        registry.enqueue("worker", queued)
        registry.dequeue("worker")

        released = registry.release_current("worker")

        assert released is running
        assert registry.get("worker").status is AgentStatus.ACTIVE
        assert registry.holder_of(running.task_id) is None
        assert registry.release_current("worker") is None

    def test_drain_queue(self, registry, make_agent, make_task):
        """Test draining returns every queued task in order."""
        registry.register(make_agent("worker"))
        tasks = [make_task() for _ in range(3)]
        for task in tasks:
            registry.enqueue("worker", task)

        drained = registry.drain_queue("worker")

        assert drained == tasks
        assert registry.get("worker").status is AgentStatus.IDLE
        assert all(registry.holder_of(t.task_id) is None for t in tasks)

    def test_take_queued_from_end(self, registry, make_agent, make_task):
        """Test taking from the tail of the queue."""
        registry.register(make_agent("worker"))
        tasks = [make_task() for _ in range(4)]
        for task in tasks:
            registry.enqueue("worker", task)

        taken = registry.take_queued("worker", 2, from_end=True)

        assert taken == [tasks[3], tasks[2]]
        assert list(registry.get("worker").queue) == tasks[:2]

    def test_front_enqueue(self, registry, make_agent, make_task):
        """Test enqueueing at the head."""
        registry.register(make_agent("worker"))
        first, urgent = make_task(), make_task()
        registry.enqueue("worker", first)
        registry.enqueue("worker", urgent, front=True)

        assert registry.get("worker").queue[0] is urgent

    def test_reorder_requires_same_tasks(self, registry, make_agent, make_task):
        """Test reordering cannot add or drop tasks."""
        registry.register(make_agent("worker"))
        first, second = make_task(), make_task()
        registry.enqueue("worker", first)
        registry.enqueue("worker", second)

        registry.reorder_queue("worker", [second, first])
        assert list(registry.get("worker").queue) == [second, first]

        with pytest.raises(AgentError):
            registry.reorder_queue("worker", [second, make_task()])


class TestInvariants:
    """Test invariant checking."""

    def test_detects_status_mismatch(self, registry, make_agent):
        """Test executing without an in-flight task is reported."""
        agent = registry.register(make_agent("broken"))
        agent.status = AgentStatus.EXECUTING

        with pytest.raises(AgentError):
            registry.check_invariants()

    def test_detects_duplicate_reference(self, registry, make_agent, make_task):
        """Test a task referenced by two agents is reported."""
        task = make_task()
        registry.register(make_agent("a"))
        other = registry.register(make_agent("b"))
        registry.enqueue("a", task)
        other.queue.append(task)

        with pytest.raises(AgentError):
            registry.check_invariants()
