"""
Engine lifecycle events and the observer bus that delivers them.

Delivery is at-most-once and best-effort: synchronous observers run inline
and their errors are logged, coroutine observers are scheduled on the
running loop and never awaited by the emitter.
"""

import asyncio
import inspect
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Union

from autonomous_mas.core.logging import get_logger
from autonomous_mas.models import utcnow


class EngineEvent(Enum):
    """Named lifecycle events emitted by the engine."""
    AGENT_REGISTERED = "agent_registered"
    TASK_DISTRIBUTED = "task_distributed"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_RESOLVED = "conflict_resolved"
    HEALING_SUCCESSFUL = "healing_successful"
    HEALING_FAILED = "healing_failed"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_STOPPED = "execution_stopped"


@dataclass(frozen=True)
class Event:
    """One emitted lifecycle event."""
    event_type: EngineEvent
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)


EventHandler = Callable[[Event], Union[None, Awaitable[None]]]


class EventBus:
    """Typed observer list for engine events."""

    def __init__(self, history_size: int = 1000):
        self._handlers: Dict[Optional[EngineEvent], List[EventHandler]] = defaultdict(list)
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._pending: Set[asyncio.Task] = set()
        self._logger = get_logger("event_bus")
        self._stats = {
            "events_emitted": 0,
            "deliveries": 0,
            "delivery_failures": 0,
            "dropped": 0,
        }

    def subscribe(self, handler: EventHandler, *event_types: EngineEvent) -> None:
        """Subscribe ``handler`` to the given events, or to every event when none are given."""
        if not event_types:
            self._handlers[None].append(handler)
            return
        for event_type in event_types:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        for handlers in self._handlers.values():
            while handler in handlers:
                handlers.remove(handler)

    def emit(self, event_type: EngineEvent, **payload: Any) -> Event:
        """Record the event and hand it to every matching observer without blocking."""
        event = Event(event_type=event_type, payload=payload)
        self._history.append(event)
        self._stats["events_emitted"] += 1

        for handler in self._handlers[event_type] + self._handlers[None]:
            self._deliver(handler, event)

        self._logger.debug("Event emitted", event_type=event_type.value, **_loggable(payload))
        return event

    def history(self, event_type: Optional[EngineEvent] = None) -> List[Event]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.event_type is event_type]

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    async def drain(self) -> None:
        """Wait for scheduled coroutine observers; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _deliver(self, handler: EventHandler, event: Event) -> None:
        try:
            if inspect.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    self._stats["dropped"] += 1
                    self._logger.warning(
                        "No running loop for async observer, event dropped",
                        event_type=event.event_type.value,
                    )
                    return
                task = loop.create_task(handler(event))
                self._pending.add(task)
                task.add_done_callback(self._on_observer_done)
            else:
                handler(event)
            self._stats["deliveries"] += 1
        except Exception as e:
            self._stats["delivery_failures"] += 1
            self._logger.error(
                "Event observer failed",
                event_type=event.event_type.value,
                error=str(e),
            )

    def _on_observer_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._stats["delivery_failures"] += 1
            self._logger.error("Async event observer failed", error=str(error))


def _loggable(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Only scalar fields go to the log line; records stay in the event.
    return {
        k: v for k, v in payload.items()
        if isinstance(v, (str, int, float, bool)) and k != "event"
    }


__all__ = ["EngineEvent", "Event", "EventBus", "EventHandler"]
