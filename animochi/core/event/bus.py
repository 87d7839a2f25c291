"""
Animochi EventBus: async in-process pub/sub.

Purpose
-------
Decouple the quest and wallet core from whatever reacts to it (notifications,
analytics, achievements). Services publish after their transaction commits;
listeners never run inside a database transaction.

Responsibilities
----------------
- Register/unregister event listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners in priority order, awaiting each one
- Error isolation (one failing listener never blocks others or the publisher)

Design Decisions
----------------
- **Instance-based**: one bus per ServiceContainer; tests build their own
- **Wildcard support**: shell-style patterns such as "quest.*" or "*"
- **Sync or async listeners**: coroutine results are awaited
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from animochi.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Callable[[EventPayload], Union[Any, Awaitable[Any]]]


class ListenerPriority(IntEnum):
    """Lower value runs first."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass
class EventListener:
    pattern: str
    callback: CallbackType
    priority: ListenerPriority = ListenerPriority.NORMAL
    identifier: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    once: bool = False


@dataclass
class EventBusStats:
    published: int = 0
    delivered: int = 0
    listener_errors: int = 0


class EventBus:
    """
    Async EventBus with wildcard routing and per-listener error isolation.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("quest.completed", on_quest_completed)
    >>> await bus.publish("quest.completed", {"user_id": "u-1", "quest_id": "feed-creature-3"})
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []
        self._stats = EventBusStats()

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str:
            The listener identifier (for unsubscribing later).

        Raises
        ------
        ValueError:
            If the pattern is empty or the callback is not callable.
        """
        if not event_name:
            raise ValueError("event_name must be a non-empty string")
        if not callable(callback):
            raise ValueError("callback must be callable")

        listener = EventListener(
            pattern=event_name,
            callback=callback,
            priority=priority,
            once=once,
        )
        if identifier:
            listener.identifier = identifier

        self._listeners.append(listener)
        self._listeners.sort(key=lambda item: item.priority)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [item for item in self._listeners if item.identifier != identifier]
        return len(self._listeners) < before

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all subscribed listeners.

        Listener exceptions are logged and swallowed so that a broken
        subscriber can never undo or mask a committed state change.

        Returns
        -------
        list[Any]:
            Results of the listeners that completed successfully.
        """
        self._stats.published += 1

        matching = [item for item in self._listeners if fnmatchcase(event_name, item.pattern)]
        if not matching:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        once_ids = {item.identifier for item in matching if item.once}
        if once_ids:
            self._listeners = [item for item in self._listeners if item.identifier not in once_ids]

        results: List[Any] = []
        for listener in matching:
            try:
                result = listener.callback(data)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
                self._stats.delivered += 1
            except Exception as exc:
                self._stats.listener_errors += 1
                logger.error(
                    "EventBus: listener failed",
                    extra={
                        "event_name": event_name,
                        "listener_id": listener.identifier,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )

        return results

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_stats(self) -> Dict[str, int]:
        return {
            "published": self._stats.published,
            "delivered": self._stats.delivered,
            "listener_errors": self._stats.listener_errors,
            "listeners": len(self._listeners),
        }
