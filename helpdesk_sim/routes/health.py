"""
Health check and debug endpoints

- GET /health - Session counts and action-log store status
- GET /debug - Per-session state summary (stage, timers, tickets, colleagues)
"""
import asyncio
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from helpdesk_sim.config import get_settings
from helpdesk_sim.repositories.action_log_repository import ActionLogRepository
from helpdesk_sim.routes.dependencies import get_action_logs, get_engine, get_gateway
from helpdesk_sim.services.broadcast import WebSocketGateway
from helpdesk_sim.services.engine import SimulationEngine
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()
STORE_CHECK_TIMEOUT_SECONDS = 5.0


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Overall status: OK or degraded")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    environment: str
    uptime_seconds: float
    total_sessions: int
    active_sessions: int
    connected_clients: int
    database: str = Field(..., description="connected, error or disabled")


# ============================================================================
# Dependency Check
# ============================================================================

async def check_action_log_store(repository: Optional[ActionLogRepository]) -> str:
    """
    Probe the Supabase action_logs table

    Returns:
        "disabled" without a repository, otherwise "connected" or "error"
    """
    if repository is None:
        return "disabled"

    try:
        await asyncio.wait_for(
            asyncio.to_thread(repository.ping),
            timeout=STORE_CHECK_TIMEOUT_SECONDS
        )
        return "connected"
    except asyncio.TimeoutError:
        logger.error("Action log store health check timed out")
        return "error"
    except Exception as e:
        logger.error(f"Action log store health check failed: {e}")
        return "error"


# ============================================================================
# API Endpoints
# ============================================================================

@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(
    engine: SimulationEngine = Depends(get_engine),
    gateway: WebSocketGateway = Depends(get_gateway),
    repository: Optional[ActionLogRepository] = Depends(get_action_logs)
) -> HealthResponse:
    """Always 200; `status` is degraded when the action-log store fails"""
    database = await check_action_log_store(repository)
    summary = engine.health()

    return HealthResponse(
        status="degraded" if database == "error" else "OK",
        timestamp=datetime.utcnow(),
        environment=get_settings().fastapi_env,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
        total_sessions=summary["sessions"],
        active_sessions=summary["activeSessions"],
        connected_clients=gateway.connection_count,
        database=database,
    )


@router.get("/debug")
async def debug_state(
    engine: SimulationEngine = Depends(get_engine),
    gateway: WebSocketGateway = Depends(get_gateway)
):
    state = engine.debug_state()
    state["totalConnections"] = gateway.connection_count
    state["connectionToParticipant"] = engine.registry.connections()
    return state
