"""FastAPI entry-point exposing fleet manager controls."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentfleet.api.routes import router as agents_router
from agentfleet.config import config
from agentfleet.runtime import get_manager

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    yield
    # Shutdown: stop every agent in the fleet
    await get_manager().stop_all()


app = FastAPI(title="Agent Fleet", lifespan=lifespan)
app.include_router(agents_router)


@app.get("/health")
async def health() -> dict:
    manager = get_manager()
    return {
        "status": "ok",
        "environment": config.environment,
        "agents": manager.get_agent_count(),
        "running": manager.get_running_agent_count(),
    }
