"""
Shared route dependencies

The engine, gateway and optional action-log repository are created once in
main.create_app() and stored on app.state.
"""
from typing import Optional

from fastapi import HTTPException, Request, status

from helpdesk_sim.exceptions import NotFoundError, SimulationError
from helpdesk_sim.repositories.action_log_repository import ActionLogRepository
from helpdesk_sim.services.broadcast import WebSocketGateway
from helpdesk_sim.services.engine import SimulationEngine


def get_engine(request: Request) -> SimulationEngine:
    return request.app.state.engine


def get_gateway(request: Request) -> WebSocketGateway:
    return request.app.state.gateway


def get_action_logs(request: Request) -> Optional[ActionLogRepository]:
    return getattr(request.app.state, "action_logs", None)


def to_http_error(error: SimulationError) -> HTTPException:
    """NotFoundError -> 404, any other refusal -> 403"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error.message)
