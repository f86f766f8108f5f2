"""Exceptions raised by the engine and the fleet manager."""
from __future__ import annotations


class AgentFleetError(Exception):
    """Base class for agentfleet errors."""


class AgentAlreadyRegisteredError(AgentFleetError, ValueError):
    """Raised when an agent id is registered twice with one manager."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f'Agent with id "{agent_id}" already registered')
        self.agent_id = agent_id


class AgentNotFoundError(AgentFleetError, KeyError):
    """Raised when a manager operation names an unknown agent id."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f'Agent "{agent_id}" not found')
        self.agent_id = agent_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ExecutionTimeoutError(AgentFleetError, TimeoutError):
    """Synthetic failure reported when an attempt outlives ``timeout_ms``."""

    def __init__(self, message: str = "Execution timeout") -> None:
        super().__init__(message)
