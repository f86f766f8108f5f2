"""HTTP API exposing fleet manager controls."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentfleet.config import config
from agentfleet.core.errors import AgentAlreadyRegisteredError, AgentNotFoundError
from agentfleet.core.models import AgentMetrics, AgentPriority
from agentfleet.orchestration.manager import AgentManager
from agentfleet.runtime import create_catalog_agent, default_agent_config, get_manager

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentCreateRequest(BaseModel):
    agent_id: str = Field(..., min_length=1, description="Unique fleet-scoped identifier")
    role: str = Field(..., description="Catalog role to instantiate")
    name: Optional[str] = Field(default=None, description="Display name, defaults to agent_id")
    description: str = ""
    priority: AgentPriority = AgentPriority.NORMAL
    max_retries: int = Field(default=config.engine.max_retries, ge=1)
    retry_delay_ms: float = Field(default=config.engine.retry_delay_ms, ge=0)
    timeout_ms: float = Field(default=config.engine.timeout_ms, gt=0)
    enabled: bool = True
    interval_ms: Optional[float] = Field(default=config.engine.interval_ms, gt=0)
    auto_start: bool = False


class MetricsResponse(BaseModel):
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_execution_time_ms: float
    last_execution_at: Optional[datetime] = None
    uptime_ms: float = 0.0

    @classmethod
    def from_metrics(cls, metrics: AgentMetrics) -> "MetricsResponse":
        return cls(
            total_executions=metrics.total_executions,
            successful_executions=metrics.successful_executions,
            failed_executions=metrics.failed_executions,
            average_execution_time_ms=metrics.average_execution_time_ms,
            last_execution_at=metrics.last_execution_at,
            uptime_ms=metrics.uptime_ms,
        )


class AggregatedMetricsResponse(BaseModel):
    agent_count: int
    running_agent_count: int
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_execution_time_ms: float


class AgentResponse(BaseModel):
    agent_id: str
    name: str
    priority: str
    status: str
    enabled: bool
    interval_ms: Optional[float]
    iteration: int
    last_error: Optional[str]
    metrics: MetricsResponse

    @classmethod
    def from_manager(cls, manager: AgentManager, agent_id: str) -> "AgentResponse":
        agent = manager.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        agent_config = agent.get_config()
        context = agent.get_context()
        return cls(
            agent_id=agent_config.agent_id,
            name=agent_config.name,
            priority=agent_config.priority.value,
            status=agent.status.value,
            enabled=agent_config.enabled,
            interval_ms=manager.get_agent_interval(agent_id),
            iteration=context.iteration,
            last_error=str(context.last_error) if context.last_error is not None else None,
            metrics=MetricsResponse.from_metrics(agent.get_metrics()),
        )


def _not_found(exc: AgentNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=List[AgentResponse])
async def list_agents(manager: AgentManager = Depends(get_manager)) -> List[AgentResponse]:
    return [AgentResponse.from_manager(manager, agent_id) for agent_id in manager.get_all_agent_ids()]


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create_agent(
    request: AgentCreateRequest,
    manager: AgentManager = Depends(get_manager),
) -> AgentResponse:
    try:
        agent_config = default_agent_config(
            request.agent_id,
            request.name,
            description=request.description,
            priority=request.priority,
            max_retries=request.max_retries,
            retry_delay_ms=request.retry_delay_ms,
            timeout_ms=request.timeout_ms,
            enabled=request.enabled,
        )
        agent = create_catalog_agent(request.role, agent_config, bus=manager.bus)
        manager.register(agent, request.interval_ms)
    except AgentAlreadyRegisteredError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (KeyError, ValueError) as exc:
        detail = exc.args[0] if exc.args else str(exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc

    if request.auto_start:
        await manager.start_agent(request.agent_id)
    return AgentResponse.from_manager(manager, request.agent_id)


@router.get("/metrics", response_model=AggregatedMetricsResponse)
async def aggregated_metrics(manager: AgentManager = Depends(get_manager)) -> AggregatedMetricsResponse:
    totals = manager.get_aggregated_metrics()
    return AggregatedMetricsResponse(
        agent_count=manager.get_agent_count(),
        running_agent_count=manager.get_running_agent_count(),
        total_executions=totals.total_executions,
        successful_executions=totals.successful_executions,
        failed_executions=totals.failed_executions,
        average_execution_time_ms=totals.average_execution_time_ms,
    )


@router.post("/start-all", status_code=status.HTTP_202_ACCEPTED)
async def start_all(manager: AgentManager = Depends(get_manager)) -> dict:
    await manager.start_all()
    return {"agent_count": manager.get_agent_count(), "running": manager.get_running_agent_count()}


@router.post("/stop-all", status_code=status.HTTP_202_ACCEPTED)
async def stop_all(manager: AgentManager = Depends(get_manager)) -> dict:
    await manager.stop_all()
    return {"agent_count": manager.get_agent_count(), "running": manager.get_running_agent_count()}


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> AgentResponse:
    try:
        return AgentResponse.from_manager(manager, agent_id)
    except AgentNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(agent_id: str, manager: AgentManager = Depends(get_manager)) -> None:
    await manager.unregister(agent_id)


@router.post("/{agent_id}/{command}", response_model=AgentResponse, status_code=status.HTTP_202_ACCEPTED)
async def control_agent(
    agent_id: str,
    command: str,
    manager: AgentManager = Depends(get_manager),
) -> AgentResponse:
    handlers = {
        "start": manager.start_agent,
        "stop": manager.stop_agent,
        "pause": manager.pause_agent,
        "resume": manager.resume_agent,
    }
    handler = handlers.get(command)
    if handler is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown command '{command}'")
    try:
        await handler(agent_id)
    except AgentNotFoundError as exc:
        raise _not_found(exc) from exc
    return AgentResponse.from_manager(manager, agent_id)
