"""Signal strategies consumed by :class:`agentfleet.agents.strategy.StrategyAgent`.

Each strategy is a parameterised, stateless object exposing a single
``analyze(input) -> StrategySignal | None`` coroutine. ``None`` means the
strategy has nothing to say about the input (not enough history, symbol not
tracked, ...).
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol, Sequence

from agentfleet.core.models import utcnow

SignalAction = Literal["buy", "sell", "hold", "custom"]


@dataclass(slots=True)
class MarketData:
    symbol: str
    price: float
    volume_24h: float = 0.0
    change_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class AssetHolding:
    symbol: str
    balance: float
    value: float
    allocation: float


@dataclass(slots=True)
class PortfolioSnapshot:
    total_value: float
    assets: List[AssetHolding] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    def find(self, symbol: str) -> Optional[AssetHolding]:
        return next((asset for asset in self.assets if asset.symbol == symbol), None)


@dataclass(slots=True)
class StrategyInput:
    market: MarketData
    portfolio: PortfolioSnapshot
    historical_prices: Optional[Sequence[float]] = None


@dataclass(slots=True)
class StrategySignal:
    """Decision recommendation produced by a strategy."""

    action: SignalAction
    asset: str
    confidence: float
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class Strategy(Protocol):
    name: str

    async def analyze(self, data: StrategyInput) -> Optional[StrategySignal]:
        ...


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class MovingAverageCrossover:
    """Buy when the short moving average crosses above the long one, sell on the reverse."""

    name = "Moving Average Crossover"

    def __init__(self, short_period: int = 10, long_period: int = 20) -> None:
        self.short_period = short_period
        self.long_period = long_period

    async def analyze(self, data: StrategyInput) -> Optional[StrategySignal]:
        prices = data.historical_prices
        if not prices or len(prices) < self.long_period:
            return None

        short_ma = self._moving_average(prices, self.short_period)
        long_ma = self._moving_average(prices, self.long_period)
        prev_short_ma = self._moving_average(prices[:-1], self.short_period)
        prev_long_ma = self._moving_average(prices[:-1], self.long_period)
        symbol = data.market.symbol
        details = {
            "short_ma": short_ma,
            "long_ma": long_ma,
            "short_period": self.short_period,
            "long_period": self.long_period,
        }

        if prev_short_ma <= prev_long_ma and short_ma > long_ma:
            return StrategySignal(
                action="buy",
                asset=symbol,
                confidence=min((short_ma - long_ma) / long_ma * 100, 1),
                reason=f"Short MA ({short_ma:.2f}) crossed above Long MA ({long_ma:.2f})",
                metadata=details,
            )

        if prev_short_ma >= prev_long_ma and short_ma < long_ma:
            return StrategySignal(
                action="sell",
                asset=symbol,
                confidence=min((long_ma - short_ma) / long_ma * 100, 1),
                reason=f"Short MA ({short_ma:.2f}) crossed below Long MA ({long_ma:.2f})",
                metadata=details,
            )

        return StrategySignal(
            action="hold",
            asset=symbol,
            confidence=0.5,
            reason="No crossover detected",
            metadata={"short_ma": short_ma, "long_ma": long_ma},
        )

    @staticmethod
    def _moving_average(prices: Sequence[float], period: int) -> float:
        return _mean(list(prices)[-period:])


class RSIStrategy:
    """Relative strength index over simple averages of the last ``period`` changes."""

    name = "RSI Strategy"

    def __init__(self, period: int = 14, oversold: float = 30, overbought: float = 70) -> None:
        self.period = period
        self.oversold_threshold = oversold
        self.overbought_threshold = overbought

    async def analyze(self, data: StrategyInput) -> Optional[StrategySignal]:
        prices = data.historical_prices
        if not prices or len(prices) < self.period + 1:
            return None

        rsi = self.calculate_rsi(prices)
        symbol = data.market.symbol

        if rsi <= self.oversold_threshold:
            return StrategySignal(
                action="buy",
                asset=symbol,
                confidence=(self.oversold_threshold - rsi) / self.oversold_threshold,
                reason=f"RSI ({rsi:.2f}) is oversold (below {self.oversold_threshold})",
                metadata={"rsi": rsi, "threshold": self.oversold_threshold},
            )

        if rsi >= self.overbought_threshold:
            return StrategySignal(
                action="sell",
                asset=symbol,
                confidence=(rsi - self.overbought_threshold) / (100 - self.overbought_threshold),
                reason=f"RSI ({rsi:.2f}) is overbought (above {self.overbought_threshold})",
                metadata={"rsi": rsi, "threshold": self.overbought_threshold},
            )

        return StrategySignal(
            action="hold",
            asset=symbol,
            confidence=0.5,
            reason=f"RSI ({rsi:.2f}) is neutral",
            metadata={"rsi": rsi},
        )

    def calculate_rsi(self, prices: Sequence[float]) -> float:
        changes = [current - previous for previous, current in zip(prices, prices[1:])]
        recent = changes[-self.period:]
        # Both averages divide by the full period, not by the number of gains/losses.
        avg_gain = sum(change for change in recent if change > 0) / self.period
        avg_loss = sum(-change for change in recent if change < 0) / self.period
        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100 - (100 / (1 + rs))


class RebalanceStrategy:
    """Steer each tracked symbol's portfolio allocation back toward its target."""

    name = "Portfolio Rebalance"

    def __init__(self, allocations: Mapping[str, float], threshold: float = 0.05) -> None:
        self.target_allocations = dict(allocations)
        self.threshold = threshold

    async def analyze(self, data: StrategyInput) -> Optional[StrategySignal]:
        symbol = data.market.symbol
        target = self.target_allocations.get(symbol)
        if target is None:
            return None

        holding = data.portfolio.find(symbol)
        current = holding.allocation if holding else 0.0
        deviation = current - target
        details = {
            "current_allocation": current,
            "target_allocation": target,
            "deviation": deviation,
        }

        if abs(deviation) > self.threshold:
            return StrategySignal(
                action="sell" if deviation > 0 else "buy",
                asset=symbol,
                confidence=min(abs(deviation) / self.threshold, 1),
                reason=(
                    f"{symbol} allocation ({current * 100:.1f}%) deviates from target "
                    f"({target * 100:.1f}%) by {abs(deviation) * 100:.1f}%"
                ),
                metadata=details,
            )

        return StrategySignal(
            action="hold",
            asset=symbol,
            confidence=1 - abs(deviation) / self.threshold,
            reason=f"{symbol} allocation is within threshold",
            metadata=details,
        )


class CompositeStrategy:
    """Weighted vote across several strategies.

    Weights are matched by position against the signals that were actually
    produced, and the winning score is normalised by the sum of all
    configured weights, so absent sub-signals lower the final confidence.
    """

    name = "Composite Strategy"

    def __init__(self, strategies: Sequence[Strategy], weights: Optional[Sequence[float]] = None) -> None:
        self.strategies = list(strategies)
        if weights is None:
            weights = [1 / len(self.strategies)] * len(self.strategies) if self.strategies else []
        self.weights = list(weights)

    async def analyze(self, data: StrategyInput) -> Optional[StrategySignal]:
        signals = await asyncio.gather(*(strategy.analyze(data) for strategy in self.strategies))
        valid = [signal for signal in signals if signal is not None]
        if not valid:
            return None

        scores: Dict[str, float] = {"buy": 0.0, "sell": 0.0, "hold": 0.0}
        for idx, signal in enumerate(valid):
            weight = self.weights[idx] if idx < len(self.weights) and self.weights[idx] else 1 / len(valid)
            scores[signal.action] = scores.get(signal.action, 0.0) + signal.confidence * weight

        top_action = max(scores, key=scores.__getitem__)
        reasons = [signal.reason for signal in valid if signal.action == top_action]

        return StrategySignal(
            action=top_action,  # type: ignore[arg-type]
            asset=data.market.symbol,
            confidence=scores[top_action] / (sum(self.weights) or 1.0),
            reason="; ".join(reasons),
            metadata={"individual_signals": valid, "action_scores": scores},
        )
