"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional, Type

from agentfleet.agents.base import Agent
from agentfleet.agents.heartbeat import HeartbeatAgent
from agentfleet.config import EngineDefaults, config
from agentfleet.core.events import EventBus
from agentfleet.core.models import AgentConfig, AgentPriority
from agentfleet.orchestration.manager import AgentManager

_AGENT_CATALOG: Dict[str, Type[Agent]] = {
    "heartbeat": HeartbeatAgent,
}


@lru_cache
def get_bus() -> EventBus:
    return EventBus()


@lru_cache
def get_manager() -> AgentManager:
    return AgentManager(bus=get_bus())


def default_agent_config(
    agent_id: str,
    name: Optional[str] = None,
    *,
    defaults: EngineDefaults = config.engine,
    **overrides,
) -> AgentConfig:
    """Build an ``AgentConfig`` from the environment defaults."""
    values = {
        "max_retries": defaults.max_retries,
        "retry_delay_ms": defaults.retry_delay_ms,
        "timeout_ms": defaults.timeout_ms,
        "priority": AgentPriority.NORMAL,
    }
    values.update(overrides)
    return AgentConfig(agent_id=agent_id, name=name or agent_id, **values)


def create_catalog_agent(role: str, agent_config: AgentConfig, bus: Optional[EventBus] = None) -> Agent:
    """Instantiate a catalog agent wired to the shared bus."""
    if role not in _AGENT_CATALOG:
        raise KeyError(f"No agent registered for role '{role}'")
    return _AGENT_CATALOG[role](agent_config, bus=bus or get_bus())
