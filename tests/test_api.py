"""HTTP API tests against a fresh fleet manager."""
from __future__ import annotations

from typing import AsyncIterator

import httpx
import pytest

from agentfleet.main import app
from agentfleet.orchestration.manager import AgentManager
from agentfleet.runtime import get_manager


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def manager() -> AgentManager:
    return AgentManager()


@pytest.fixture
async def client(manager: AgentManager) -> AsyncIterator[httpx.AsyncClient]:
    app.dependency_overrides[get_manager] = lambda: manager
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
    await manager.stop_all()


@pytest.mark.anyio
async def test_create_and_control_agent(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/agents",
        json={"agent_id": "hb-1", "role": "heartbeat", "max_retries": 2, "timeout_ms": 5000},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["agent_id"] == "hb-1"
    assert body["name"] == "hb-1"
    assert body["status"] == "idle"
    assert body["priority"] == "normal"

    response = await client.post("/agents/hb-1/start")
    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "running"
    assert body["iteration"] == 1
    assert body["metrics"]["total_executions"] == 1

    response = await client.post("/agents/hb-1/pause")
    assert response.json()["status"] == "paused"

    response = await client.post("/agents/hb-1/resume")
    assert response.json()["status"] == "running"

    response = await client.post("/agents/hb-1/stop")
    assert response.json()["status"] == "stopped"


@pytest.mark.anyio
async def test_create_rejects_duplicates_and_unknown_roles(client: httpx.AsyncClient) -> None:
    payload = {"agent_id": "hb-1", "role": "heartbeat"}
    assert (await client.post("/agents", json=payload)).status_code == 201

    duplicate = await client.post("/agents", json=payload)
    assert duplicate.status_code == 409
    assert "already registered" in duplicate.json()["detail"]

    unknown = await client.post("/agents", json={"agent_id": "x", "role": "nope"})
    assert unknown.status_code == 400
    assert "nope" in unknown.json()["detail"]

    invalid = await client.post("/agents", json={"agent_id": "y", "role": "heartbeat", "max_retries": 0})
    assert invalid.status_code == 422

    listing = await client.get("/agents")
    assert [agent["agent_id"] for agent in listing.json()] == ["hb-1"]


@pytest.mark.anyio
async def test_unknown_agent_and_command(client: httpx.AsyncClient) -> None:
    assert (await client.get("/agents/ghost")).status_code == 404

    missing = await client.post("/agents/ghost/start")
    assert missing.status_code == 404
    assert missing.json()["detail"] == 'Agent "ghost" not found'

    await client.post("/agents", json={"agent_id": "hb-1", "role": "heartbeat"})
    assert (await client.post("/agents/hb-1/explode")).status_code == 404


@pytest.mark.anyio
async def test_fleet_wide_commands_and_metrics(client: httpx.AsyncClient, manager: AgentManager) -> None:
    empty = await client.get("/agents/metrics")
    assert empty.json() == {
        "agent_count": 0,
        "running_agent_count": 0,
        "total_executions": 0,
        "successful_executions": 0,
        "failed_executions": 0,
        "average_execution_time_ms": 0.0,
    }

    for agent_id in ("hb-1", "hb-2"):
        await client.post("/agents", json={"agent_id": agent_id, "role": "heartbeat"})

    started = await client.post("/agents/start-all")
    assert started.status_code == 202
    assert started.json() == {"agent_count": 2, "running": 2}

    metrics = (await client.get("/agents/metrics")).json()
    assert metrics["total_executions"] == 2
    assert metrics["successful_executions"] == 2
    assert metrics["running_agent_count"] == 2
    assert metrics["average_execution_time_ms"] > 0

    stopped = await client.post("/agents/stop-all")
    assert stopped.json() == {"agent_count": 2, "running": 0}
    assert manager.get_running_agent_count() == 0


@pytest.mark.anyio
async def test_delete_agent(client: httpx.AsyncClient, manager: AgentManager) -> None:
    await client.post("/agents", json={"agent_id": "hb-1", "role": "heartbeat", "auto_start": True})
    assert manager.get_running_agent_count() == 1

    response = await client.delete("/agents/hb-1")
    assert response.status_code == 204
    assert manager.get_agent_count() == 0
    assert (await client.get("/agents/hb-1")).status_code == 404


@pytest.mark.anyio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
