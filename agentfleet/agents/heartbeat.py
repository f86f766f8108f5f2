"""Simple agent implementation used by the HTTP catalog and the demo."""
from __future__ import annotations

import asyncio
import random
from typing import Any, Dict

from agentfleet.agents.base import Agent
from agentfleet.core.models import AgentContext


class HeartbeatAgent(Agent):
    """Agent that simulates a short unit of work and counts its beats."""

    async def execute(self, context: AgentContext) -> Dict[str, Any]:
        await asyncio.sleep(random.uniform(0.01, 0.05))  # Simulate work
        beats = int(context.metadata.get("beats", 0)) + 1
        context.metadata["beats"] = beats
        return {"agent": self.config.name, "beats": beats, "iteration": context.iteration}
