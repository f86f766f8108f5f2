"""Core data models shared across the engine, bus and manager."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentStatus(str, Enum):
    """Lifecycle states for an agent engine."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


class AgentPriority(str, Enum):
    """Advisory priority; the engine does not schedule by it."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """Identity and supervision settings, immutable after construction."""

    agent_id: str
    name: str
    description: str = ""
    priority: AgentPriority = AgentPriority.NORMAL
    max_retries: int = 3
    retry_delay_ms: float = 1000
    timeout_ms: float = 30000
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.agent_id:
            raise ValueError("agent_id must be a non-empty string")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if not isinstance(self.priority, AgentPriority):
            object.__setattr__(self, "priority", AgentPriority(self.priority))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        return data


@dataclass(slots=True)
class AgentContext:
    """Mutable per-engine state handed to ``execute`` on every cycle."""

    agent_id: str
    started_at: datetime = field(default_factory=utcnow)
    iteration: int = 0
    last_error: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> AgentContext:
        return replace(self, metadata=dict(self.metadata))


@dataclass(slots=True)
class AgentMetrics:
    """Running execution statistics, updated once at the end of each cycle."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time_ms: float = 0.0
    last_execution_at: Optional[datetime] = None
    uptime_ms: float = 0.0

    def copy(self) -> AgentMetrics:
        return replace(self)


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one supervised cycle."""

    success: bool
    execution_time_ms: float
    data: Any = None
    error: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class AgentEvent:
    """Immutable record broadcast through the event bus."""

    type: str
    agent_id: str
    payload: Any
    timestamp: datetime = field(default_factory=utcnow)


def create_event(event_type: str, agent_id: str, payload: Any) -> AgentEvent:
    return AgentEvent(type=event_type, agent_id=agent_id, payload=payload)


@dataclass(slots=True)
class AggregatedMetrics:
    """Fleet-wide totals folded from every registered engine."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time_ms: float = 0.0
