"""Fleet manager coordinating the lifecycle of many agent engines."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from agentfleet.agents.base import Agent
from agentfleet.core.errors import AgentAlreadyRegisteredError, AgentNotFoundError
from agentfleet.core.events import EventBus, EventHandler, ManagerEvents, Subscription
from agentfleet.core.models import AgentMetrics, AgentStatus, AggregatedMetrics, create_event

MANAGER_ID = "manager"


@dataclass(slots=True)
class ManagedAgent:
    """Registration entry pairing an engine with its recurring interval."""

    agent: Agent
    interval_ms: Optional[float] = None


class AgentManager:
    """Registry of named engines with fleet-wide commands and metrics."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._bus = bus or EventBus(logger=logger)
        self._agents: Dict[str, ManagedAgent] = {}

    @property
    def bus(self) -> EventBus:
        return self._bus

    def register(self, agent: Agent, interval_ms: Optional[float] = None) -> None:
        """Add ``agent`` to the fleet; ``interval_ms=None`` runs it once per start."""
        agent_id = agent.get_config().agent_id
        if agent_id in self._agents:
            raise AgentAlreadyRegisteredError(agent_id)
        self._agents[agent_id] = ManagedAgent(agent=agent, interval_ms=interval_ms)
        self._logger.debug("Registered agent %s (interval_ms=%s)", agent_id, interval_ms)

    async def unregister(self, agent_id: str) -> None:
        """Stop and remove an agent; stop failures are logged, not raised."""
        managed = self._agents.get(agent_id)
        if managed is None:
            return
        try:
            await managed.agent.stop()
        except Exception:  # noqa: BLE001
            self._logger.warning("Failed to stop agent %s during unregister", agent_id, exc_info=True)
        self._agents.pop(agent_id, None)
        self._logger.info("Unregistered agent %s", agent_id)

    async def start_agent(self, agent_id: str) -> None:
        managed = self._require(agent_id)
        await managed.agent.start(managed.interval_ms)

    async def stop_agent(self, agent_id: str) -> None:
        await self._require(agent_id).agent.stop()

    async def pause_agent(self, agent_id: str) -> None:
        await self._require(agent_id).agent.pause()

    async def resume_agent(self, agent_id: str) -> None:
        await self._require(agent_id).agent.resume()

    async def start_all(self) -> None:
        """Start every registered agent concurrently."""
        await self._broadcast(
            "start",
            lambda managed: managed.agent.start(managed.interval_ms),
            ManagerEvents.STARTING,
            ManagerEvents.STARTED,
        )

    async def stop_all(self) -> None:
        """Stop every registered agent concurrently."""
        await self._broadcast(
            "stop",
            lambda managed: managed.agent.stop(),
            ManagerEvents.STOPPING,
            ManagerEvents.STOPPED,
        )

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        managed = self._agents.get(agent_id)
        return managed.agent if managed else None

    def get_agent_interval(self, agent_id: str) -> Optional[float]:
        managed = self._agents.get(agent_id)
        return managed.interval_ms if managed else None

    def get_agent_status(self, agent_id: str) -> Optional[AgentStatus]:
        managed = self._agents.get(agent_id)
        return managed.agent.status if managed else None

    def get_agent_metrics(self, agent_id: str) -> Optional[AgentMetrics]:
        managed = self._agents.get(agent_id)
        return managed.agent.get_metrics() if managed else None

    def get_all_agent_ids(self) -> List[str]:
        return list(self._agents)

    def get_agent_count(self) -> int:
        return len(self._agents)

    def get_running_agent_count(self) -> int:
        return sum(1 for managed in self._agents.values() if managed.agent.status is AgentStatus.RUNNING)

    def get_aggregated_metrics(self) -> AggregatedMetrics:
        """Fold every engine's metrics; the average is weighted by executions."""
        totals = AggregatedMetrics()
        total_time_ms = 0.0
        for managed in self._agents.values():
            metrics = managed.agent.get_metrics()
            totals.total_executions += metrics.total_executions
            totals.successful_executions += metrics.successful_executions
            totals.failed_executions += metrics.failed_executions
            total_time_ms += metrics.average_execution_time_ms * metrics.total_executions

        if totals.total_executions > 0:
            totals.average_execution_time_ms = total_time_ms / totals.total_executions
        return totals

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        return self._bus.subscribe(event_type, handler)

    def subscribe_to_agent_events(self, handler: EventHandler) -> Subscription:
        return self._bus.subscribe_all(handler)

    def _require(self, agent_id: str) -> ManagedAgent:
        managed = self._agents.get(agent_id)
        if managed is None:
            raise AgentNotFoundError(agent_id)
        return managed

    async def _broadcast(
        self,
        verb: str,
        command: Callable[[ManagedAgent], Awaitable[None]],
        before: str,
        after: str,
    ) -> None:
        await self._bus.emit(create_event(before, MANAGER_ID, {"agent_count": len(self._agents)}))

        targets = list(self._agents.items())
        results = await asyncio.gather(
            *(command(managed) for _, managed in targets), return_exceptions=True
        )
        for (agent_id, _), result in zip(targets, results):
            if isinstance(result, Exception):
                self._logger.error(
                    "Failed to %s agent %s: %s", verb, agent_id, result, exc_info=result
                )

        await self._bus.emit(create_event(after, MANAGER_ID, {"agent_count": len(self._agents)}))
