"""Lightweight in-memory publish/subscribe hub for agent events."""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .models import AgentEvent

EventHandler = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class AgentEvents:
    """Event type catalog emitted by agent engines."""

    STARTED = "agent:started"
    STOPPED = "agent:stopped"
    PAUSED = "agent:paused"
    RESUMED = "agent:resumed"
    ERROR = "agent:error"
    EXECUTION_START = "agent:execution:start"
    EXECUTION_COMPLETE = "agent:execution:complete"
    EXECUTION_FAILED = "agent:execution:failed"
    SIGNAL_GENERATED = "agent:signal:generated"
    TRADE_EXECUTED = "agent:trade:executed"
    PORTFOLIO_UPDATED = "agent:portfolio:updated"
    METRICS_UPDATED = "agent:metrics:updated"


class ManagerEvents:
    """Event type catalog emitted by the fleet manager."""

    STARTING = "manager:starting"
    STARTED = "manager:started"
    STOPPING = "manager:stopping"
    STOPPED = "manager:stopped"


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    __slots__ = ("id", "_remove")

    def __init__(self, sub_id: str, remove: Callable[[], None]) -> None:
        self.id = sub_id
        self._remove: Optional[Callable[[], None]] = remove

    @property
    def active(self) -> bool:
        return self._remove is not None

    def unsubscribe(self) -> None:
        """Remove the handler; calling this again is a no-op."""
        remove, self._remove = self._remove, None
        if remove is not None:
            remove()


class EventBus:
    """Async event hub fanning each event out to its registered handlers.

    Handlers may be plain callables or coroutine functions. Every ``emit``
    works on a snapshot of the registrations, so handlers added or removed
    while an emission is in flight only affect later emissions.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._handlers: Dict[str, Dict[str, EventHandler]] = defaultdict(dict)
        self._wildcard_handlers: Dict[str, EventHandler] = {}
        self._counter = itertools.count(1)
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        """Register ``handler`` for exactly one event type."""
        sub_id = self._next_id()
        self._handlers[event_type][sub_id] = handler

        def remove() -> None:
            handlers = self._handlers.get(event_type)
            if handlers is None:
                return
            handlers.pop(sub_id, None)
            if not handlers:
                self._handlers.pop(event_type, None)

        return Subscription(sub_id, remove)

    def subscribe_all(self, handler: EventHandler) -> Subscription:
        """Register ``handler`` for every emitted event."""
        sub_id = self._next_id()
        self._wildcard_handlers[sub_id] = handler
        return Subscription(sub_id, lambda: self._wildcard_handlers.pop(sub_id, None))

    async def emit(self, event: AgentEvent) -> None:
        """Deliver ``event`` to matching and wildcard handlers concurrently."""
        handlers: List[EventHandler] = list(self._handlers.get(event.type, {}).values())
        handlers.extend(self._wildcard_handlers.values())
        if not handlers:
            return
        await asyncio.gather(*(self._invoke(handler, event) for handler in handlers))

    def clear(self) -> None:
        """Drop every registration."""
        self._handlers.clear()
        self._wildcard_handlers.clear()

    def handler_count(self, event_type: Optional[str] = None) -> int:
        if event_type is None:
            specific = sum(len(handlers) for handlers in self._handlers.values())
            return specific + len(self._wildcard_handlers)
        return len(self._handlers.get(event_type, {})) + len(self._wildcard_handlers)

    async def _invoke(self, handler: EventHandler, event: AgentEvent) -> None:
        try:
            result: Any = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            self._logger.exception("Event handler error for %s", event.type)

    def _next_id(self) -> str:
        return f"sub_{next(self._counter)}"
