"""Configuration management for the agent fleet."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class EngineDefaults:
    """Supervision defaults applied to agents created by the runtime."""

    max_retries: int = 3
    retry_delay_ms: float = 1000
    timeout_ms: float = 30000
    interval_ms: Optional[float] = None


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    engine: EngineDefaults = field(default_factory=EngineDefaults)
    environment: str = "development"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        interval = os.getenv("AGENTFLEET_DEFAULT_INTERVAL_MS")

        engine = EngineDefaults(
            max_retries=int(os.getenv("AGENTFLEET_MAX_RETRIES", "3")),
            retry_delay_ms=float(os.getenv("AGENTFLEET_RETRY_DELAY_MS", "1000")),
            timeout_ms=float(os.getenv("AGENTFLEET_TIMEOUT_MS", "30000")),
            interval_ms=float(interval) if interval else None,
        )

        return cls(
            engine=engine,
            environment=os.getenv("AGENTFLEET_ENVIRONMENT", "development"),
            log_level=os.getenv("AGENTFLEET_LOG_LEVEL", "INFO").upper(),
        )


# Global config instance
config = Config.from_env()
