"""Agent whose unit of work is supplied by composition."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from agentfleet.agents.base import Agent
from agentfleet.core.models import AgentConfig, AgentContext

if TYPE_CHECKING:
    from agentfleet.core.events import EventBus

WorkFn = Callable[[AgentContext], Awaitable[Any]]
ErrorFn = Callable[[BaseException], Awaitable[None]]


class CallableAgent(Agent):
    """Run ``work(context)`` every cycle instead of subclassing :class:`Agent`.

    An optional ``on_error`` coroutine replaces the default logging hook,
    e.g. to raise an alert once a cycle has exhausted its retries.
    """

    def __init__(
        self,
        config: AgentConfig,
        work: WorkFn,
        bus: Optional[EventBus] = None,
        logger: Optional[logging.Logger] = None,
        on_error: Optional[ErrorFn] = None,
    ) -> None:
        super().__init__(config, bus=bus, logger=logger)
        self._work = work
        self._error_fn = on_error

    async def execute(self, context: AgentContext) -> Any:
        return await self._work(context)

    async def on_error(self, error: BaseException) -> None:
        if self._error_fn is None:
            await super().on_error(error)
            return
        await self._error_fn(error)
