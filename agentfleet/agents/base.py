"""Base agent engine: lifecycle state machine and supervised execution cycles."""
from __future__ import annotations

import abc
import asyncio
import logging
import time
from typing import Any, Optional, Set

from agentfleet.core.errors import ExecutionTimeoutError
from agentfleet.core.events import AgentEvents, EventBus
from agentfleet.core.models import (
    AgentConfig,
    AgentContext,
    AgentMetrics,
    AgentStatus,
    ExecutionResult,
    create_event,
    utcnow,
)


class Agent(abc.ABC):
    """Abstract agent encapsulating lifecycle hooks and supervised execution.

    Subclasses implement :meth:`execute`. Each eligible cycle runs it up to
    ``config.max_retries`` times with linear backoff, races every attempt
    against ``config.timeout_ms`` and folds the outcome into the metrics.
    """

    def __init__(
        self,
        config: AgentConfig,
        bus: Optional[EventBus] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._bus = bus or EventBus(logger=logger)
        self._logger = logger or logging.getLogger(__name__)
        self._status = AgentStatus.IDLE
        self._context = AgentContext(agent_id=config.agent_id)
        self._metrics = AgentMetrics()
        self._ticker: Optional[asyncio.Task[None]] = None
        self._started_monotonic: Optional[float] = None
        # Each start() opens a new run; only a cycle of the current run blocks ticks.
        self._run = 0
        self._in_flight_run: Optional[int] = None
        # Ticker cycles and attempts abandoned by a timeout keep running after
        # stop(); hold a reference until they settle.
        self._background: Set[asyncio.Future[Any]] = set()

    @property
    def agent_id(self) -> str:
        return self._config.agent_id

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def status(self) -> AgentStatus:
        return self._status

    @property
    def bus(self) -> EventBus:
        return self._bus

    @abc.abstractmethod
    async def execute(self, context: AgentContext) -> Any:
        """Perform one unit of work; raise to signal a retryable failure."""

    async def on_start(self) -> None:
        return None

    async def on_stop(self) -> None:
        return None

    async def on_pause(self) -> None:
        return None

    async def on_resume(self) -> None:
        return None

    async def on_error(self, error: BaseException) -> None:
        """Hook invoked once a cycle has exhausted its retries."""
        self._logger.error("Agent %s error: %s", self.agent_id, error, exc_info=error)

    async def start(self, interval_ms: Optional[float] = None) -> None:
        """Enter ``running``, arm the periodic trigger and run the first cycle."""
        if self._status is AgentStatus.RUNNING:
            return
        self._cancel_ticker()

        # A cycle left over from the previous run settles on its own.
        self._run += 1
        self._status = AgentStatus.RUNNING
        self._started_monotonic = time.monotonic()
        self._context.started_at = utcnow()

        await self.on_start()
        await self.emit(AgentEvents.STARTED, {"config": self._config.to_dict()})

        if interval_ms:
            self._ticker = asyncio.create_task(
                self._run_ticker(interval_ms / 1000), name=f"agent-ticker:{self.agent_id}"
            )

        await self._tick()

    async def stop(self) -> None:
        """Cancel the periodic trigger and enter ``stopped``.

        An attempt already in flight is not interrupted.
        """
        if self._status is AgentStatus.STOPPED:
            return
        self._cancel_ticker()
        self._status = AgentStatus.STOPPED
        await self.on_stop()
        await self.emit(AgentEvents.STOPPED, {"metrics": self.get_metrics()})

    async def pause(self) -> None:
        if self._status is not AgentStatus.RUNNING:
            return
        self._status = AgentStatus.PAUSED
        await self.on_pause()
        await self.emit(AgentEvents.PAUSED, {})

    async def resume(self) -> None:
        if self._status is not AgentStatus.PAUSED:
            return
        self._status = AgentStatus.RUNNING
        await self.on_resume()
        await self.emit(AgentEvents.RESUMED, {})

    async def emit(self, event_type: str, payload: Any) -> None:
        """Publish an event on behalf of this agent."""
        await self._bus.emit(create_event(event_type, self.agent_id, payload))

    def get_metrics(self) -> AgentMetrics:
        return self._metrics.copy()

    def get_config(self) -> AgentConfig:
        # AgentConfig is frozen, sharing it is safe
        return self._config

    def get_context(self) -> AgentContext:
        return self._context.copy()

    def set_metadata(self, key: str, value: Any) -> None:
        self._context.metadata[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self._context.metadata.get(key, default)

    async def _run_ticker(self, interval_s: float) -> None:
        task = asyncio.current_task()
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while self._ticker is task:
            next_at += interval_s
            now = loop.time()
            if next_at < now:
                # Deadlines missed while the loop was blocked are skipped, not replayed.
                next_at += interval_s * ((now - next_at) // interval_s + 1)
            await asyncio.sleep(next_at - now)
            if self._ticker is not task:
                break
            # Cycles run in their own task so cancelling the ticker never interrupts one.
            cycle = asyncio.ensure_future(self._tick())
            self._background.add(cycle)
            cycle.add_done_callback(self._cycle_done)

    def _cycle_done(self, cycle: asyncio.Future[Any]) -> None:
        self._background.discard(cycle)
        if cycle.cancelled():
            return
        exc = cycle.exception()
        if exc is not None:
            self._logger.error("Agent %s periodic cycle raised: %s", self.agent_id, exc, exc_info=exc)

    def _cancel_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        # Never cancel the running task itself; the loop exits on its next check.
        if ticker is not None and ticker is not asyncio.current_task():
            ticker.cancel()

    async def _tick(self) -> None:
        if self._status is not AgentStatus.RUNNING or not self._config.enabled:
            return
        run = self._run
        if self._in_flight_run == run:
            self._logger.debug("Agent %s skipped a tick: previous cycle still pending", self.agent_id)
            return

        self._in_flight_run = run
        try:
            self._context.iteration += 1
            await self.emit(AgentEvents.EXECUTION_START, {"iteration": self._context.iteration})
            result = await self._execute_with_retry(run)
            self._update_metrics(result)
            await self.emit(AgentEvents.METRICS_UPDATED, {"metrics": self.get_metrics()})
        finally:
            if self._in_flight_run == run:
                self._in_flight_run = None

    async def _execute_with_retry(self, run: int) -> ExecutionResult:
        started = time.perf_counter()
        last_error: Optional[BaseException] = None

        for attempt in range(self._config.max_retries):
            try:
                data = await self._with_timeout()
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                self._context.last_error = exc
                self._logger.debug(
                    "Agent %s attempt %d/%d failed: %s",
                    self.agent_id,
                    attempt + 1,
                    self._config.max_retries,
                    exc,
                )
                if attempt < self._config.max_retries - 1:
                    await self._delay(self._config.retry_delay_ms * (attempt + 1))
                continue

            elapsed_ms = _elapsed_ms(started)
            await self.emit(
                AgentEvents.EXECUTION_COMPLETE, {"data": data, "execution_time_ms": elapsed_ms}
            )
            return ExecutionResult(success=True, data=data, execution_time_ms=elapsed_ms)

        assert last_error is not None
        # Leave the status alone if the engine was stopped or restarted meanwhile.
        if run == self._run and self._status is not AgentStatus.STOPPED:
            self._status = AgentStatus.ERROR
        try:
            await self.on_error(last_error)
        except Exception:  # noqa: BLE001
            self._logger.exception("Agent %s error hook raised", self.agent_id)
        await self.emit(AgentEvents.EXECUTION_FAILED, {"error": last_error})
        await self.emit(AgentEvents.ERROR, {"error": last_error})
        return ExecutionResult(success=False, error=last_error, execution_time_ms=_elapsed_ms(started))

    async def _with_timeout(self) -> Any:
        """Race one attempt against ``timeout_ms`` without cancelling the loser."""
        work = asyncio.ensure_future(self.execute(self._context))
        done, _ = await asyncio.wait({work}, timeout=self._config.timeout_ms / 1000)
        if work in done:
            return work.result()
        self._background.add(work)
        work.add_done_callback(self._discard_abandoned)
        raise ExecutionTimeoutError()

    def _discard_abandoned(self, work: asyncio.Future[Any]) -> None:
        self._background.discard(work)
        if work.cancelled():
            return
        exc = work.exception()
        if exc is not None:
            self._logger.debug("Agent %s abandoned attempt finished with error: %s", self.agent_id, exc)

    async def _delay(self, ms: float) -> None:
        await asyncio.sleep(ms / 1000)

    def _update_metrics(self, result: ExecutionResult) -> None:
        metrics = self._metrics
        metrics.total_executions += 1
        if result.success:
            metrics.successful_executions += 1
        else:
            metrics.failed_executions += 1

        total_time = metrics.average_execution_time_ms * (metrics.total_executions - 1)
        metrics.average_execution_time_ms = (total_time + result.execution_time_ms) / metrics.total_executions
        metrics.last_execution_at = result.timestamp

        if self._started_monotonic is not None:
            metrics.uptime_ms = (time.monotonic() - self._started_monotonic) * 1000


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
