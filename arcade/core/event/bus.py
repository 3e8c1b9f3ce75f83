"""
In-process EventBus: async publish/subscribe for domain events.

Purpose
-------
Decouple game services from observers of their outcomes (audit, analytics,
live dashboards). Services publish `claw.game_started`, `gacha.pulled`,
`leaderboard.materialised` and similar events; listeners subscribe by exact
name or wildcard pattern (`gacha.*`).

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners according to a tiered model:
  * CRITICAL / HIGH: sequential, ordered, awaited
  * NORMAL: concurrent (gather), awaited
- Error isolation (one failing listener never blocks others)

Design Decisions
----------------
- **Instance-based**: allows separate buses per test
- **Error isolation**: listener failures are logged with traceback and
  reported in the publish result, never re-raised into the publisher
- Durable, cross-process delivery is not a goal here; the gacha history
  pipeline uses the Redis stream instead.
"""

from __future__ import annotations

import asyncio
import fnmatch
import inspect
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from arcade.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Union[
    Callable[[EventPayload], Awaitable[Any]],
    Callable[[EventPayload], Any],
]


class ListenerPriority(Enum):
    """Lower values run earlier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50


@dataclass
class EventListener:
    event_name: str
    callback: CallbackType
    priority: ListenerPriority = ListenerPriority.NORMAL
    identifier: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    once: bool = False

    def matches(self, event_name: str) -> bool:
        if self.event_name == event_name:
            return True
        return any(ch in self.event_name for ch in "*?[") and fnmatch.fnmatchcase(
            event_name, self.event_name
        )


@dataclass
class ListenerFailure:
    listener_id: str
    error: BaseException


class EventBus:
    """
    Async pub/sub bus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("gacha.pulled", on_pull, priority=ListenerPriority.HIGH)
    >>> await bus.publish("gacha.pulled", {"player_id": 7, "item_ids": [3]})
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []
        self._published: Dict[str, int] = {}

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
        Subscribe a callback taking a single payload dict.

        Returns the listener identifier for `unsubscribe`.

        Raises
        ------
        ValueError
            If the callback does not accept exactly one parameter.
        """
        try:
            params = list(inspect.signature(callback).parameters.values())
        except (TypeError, ValueError):
            params = None
        if params is not None and len(params) != 1:
            raise ValueError(
                "Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)}"
            )

        listener = EventListener(
            event_name=event_name,
            callback=callback,
            priority=priority,
            once=once,
        )
        if identifier:
            listener.identifier = identifier
        self._listeners.append(listener)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [
            lst
            for lst in self._listeners
            if not (lst.event_name == event_name and lst.identifier == identifier)
        ]
        return len(self._listeners) != before

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self) -> int:
        return len(self._listeners)

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all matching listeners.

        Returns the results of the listeners in execution order; a failed
        listener contributes a `ListenerFailure`.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1

        matching = sorted(
            (lst for lst in self._listeners if lst.matches(event_name)),
            key=lambda lst: lst.priority.value,
        )
        if not matching:
            return []

        for lst in matching:
            if lst.once:
                self._listeners.remove(lst)

        results: List[Any] = []
        ordered = [lst for lst in matching if lst.priority is not ListenerPriority.NORMAL]
        concurrent = [lst for lst in matching if lst.priority is ListenerPriority.NORMAL]

        for lst in ordered:
            results.append(await self._invoke(lst, event_name, data))

        if concurrent:
            results.extend(
                await asyncio.gather(
                    *(self._invoke(lst, event_name, data) for lst in concurrent)
                )
            )

        return results

    async def _invoke(
        self, listener: EventListener, event_name: str, data: EventPayload
    ) -> Any:
        try:
            result = listener.callback(dict(data))
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=True,
            )
            return ListenerFailure(listener_id=listener.identifier, error=exc)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "listeners": len(self._listeners),
            "published": dict(self._published),
        }
