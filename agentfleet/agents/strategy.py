"""Agent that runs one signal strategy per cycle and publishes its signals."""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from agentfleet.agents.base import Agent
from agentfleet.core.events import AgentEvents
from agentfleet.core.models import AgentConfig, AgentContext

if TYPE_CHECKING:
    from agentfleet.core.events import EventBus
    from agentfleet.strategies import Strategy, StrategyInput, StrategySignal

MarketFeed = Callable[[], Awaitable["StrategyInput"]]


class StrategyAgent(Agent):
    """Pull a :class:`StrategyInput` from ``feed`` and analyse it each cycle.

    Non-null signals are stored under ``last_signal`` in the context metadata
    and published as ``agent:signal:generated``.
    """

    def __init__(
        self,
        config: AgentConfig,
        strategy: Strategy,
        feed: MarketFeed,
        bus: Optional[EventBus] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(config, bus=bus, logger=logger)
        self.strategy = strategy
        self._feed = feed

    async def execute(self, context: AgentContext) -> Optional[StrategySignal]:
        data = await self._feed()
        signal = await self.strategy.analyze(data)
        if signal is None:
            return None

        context.metadata["last_signal"] = signal
        context.metadata["signal_count"] = int(context.metadata.get("signal_count", 0)) + 1
        await self.emit(
            AgentEvents.SIGNAL_GENERATED,
            {"strategy": self.strategy.name, "signal": asdict(signal)},
        )
        return signal
