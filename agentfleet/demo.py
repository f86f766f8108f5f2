"""CLI demonstration of a manager-driven strategy fleet on a synthetic price feed."""
from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from typing import Deque, NoReturn

from agentfleet.agents.heartbeat import HeartbeatAgent
from agentfleet.agents.strategy import StrategyAgent
from agentfleet.config import config
from agentfleet.core.events import AgentEvents, EventBus
from agentfleet.core.models import AgentEvent
from agentfleet.orchestration.manager import AgentManager
from agentfleet.runtime import default_agent_config
from agentfleet.strategies import (
    AssetHolding,
    CompositeStrategy,
    MarketData,
    MovingAverageCrossover,
    PortfolioSnapshot,
    RSIStrategy,
    StrategyInput,
)


class RandomWalkFeed:
    """Synthetic market feed producing one new price per call."""

    def __init__(self, symbol: str, start: float = 100.0, history: int = 50) -> None:
        self.symbol = symbol
        self._prices: Deque[float] = deque([start], maxlen=history)

    async def __call__(self) -> StrategyInput:
        price = max(0.01, self._prices[-1] * (1 + random.gauss(0, 0.01)))
        self._prices.append(price)
        market = MarketData(symbol=self.symbol, price=price)
        portfolio = PortfolioSnapshot(
            total_value=10_000.0,
            assets=[AssetHolding(symbol=self.symbol, balance=10.0, value=price * 10, allocation=price * 10 / 10_000)],
        )
        return StrategyInput(market=market, portfolio=portfolio, historical_prices=list(self._prices))


async def main() -> None:
    bus = EventBus()
    manager = AgentManager(bus=bus)

    def print_event(event: AgentEvent) -> None:
        if event.type == AgentEvents.SIGNAL_GENERATED:
            signal = event.payload["signal"]
            print(f"[{event.agent_id}] {signal['action']:<4} conf={signal['confidence']:.2f} {signal['reason']}")
        elif event.type in (AgentEvents.STARTED, AgentEvents.STOPPED, AgentEvents.ERROR):
            print(f"[{event.agent_id}] {event.type}")

    manager.subscribe_to_agent_events(print_event)

    composite = CompositeStrategy([MovingAverageCrossover(5, 15), RSIStrategy(period=10)])
    manager.register(
        StrategyAgent(
            default_agent_config("btc-composite", "BTC composite", timeout_ms=1000),
            composite,
            RandomWalkFeed("BTC"),
            bus=bus,
        ),
        interval_ms=50,
    )
    manager.register(HeartbeatAgent(default_agent_config("heartbeat"), bus=bus), interval_ms=200)

    await manager.start_all()
    await asyncio.sleep(2)
    await manager.stop_all()

    totals = manager.get_aggregated_metrics()
    print(
        f"Executions: {totals.total_executions} "
        f"(ok={totals.successful_executions}, failed={totals.failed_executions}), "
        f"avg {totals.average_execution_time_ms:.2f} ms"
    )


def run() -> NoReturn:
    logging.basicConfig(level=config.log_level)
    asyncio.run(main())


if __name__ == "__main__":
    run()
