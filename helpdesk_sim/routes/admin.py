"""
Admin API Routes

Experiment operator endpoints: start a stage, switch the AI mode, inject
tutorial or critical tickets and reset a participant. No authentication.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from helpdesk_sim.exceptions import SimulationError
from helpdesk_sim.models.schemas import ChangeAiModeRequest, ParticipantRequest, StartStageRequest
from helpdesk_sim.routes.dependencies import get_engine, to_http_error
from helpdesk_sim.services.engine import SimulationEngine
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


@router.post("/admin/start")
async def start_stage(request: StartStageRequest, engine: SimulationEngine = Depends(get_engine)):
    """
    Start stage 1 (tutorial) or stage 2 (shift) for a participant

    Creates the session when participantParity is given and none exists.
    Connected clients receive a fresh `init` snapshot.

    Example:
        >>> POST /admin/start
        >>> {"participantId": "p-17", "stage": 2, "aiMode": "normal", "participantParity": "even"}
    """
    try:
        session = engine.start_stage(
            request.participant_id,
            request.stage,
            ai_mode=request.ai_mode,
            parity=request.participant_parity
        )
    except SimulationError as e:
        raise to_http_error(e)

    return {
        "success": True,
        "stage": session.stage,
        "aiMode": session.ai_mode.value,
        "participantParity": session.parity.value,
        "ticketsCount": len(session.tickets),
    }


@router.post("/admin/change-ai-mode")
async def change_ai_mode(request: ChangeAiModeRequest, engine: SimulationEngine = Depends(get_engine)):
    """Switch an AI-track participant between normal and autonomous AI (stage 2 only)"""
    try:
        session = engine.change_ai_mode(request.participant_id, request.ai_mode)
    except SimulationError as e:
        raise to_http_error(e)

    remaining = session.remaining_ms(engine.clock.now_ms())
    return {
        "success": True,
        "aiMode": session.ai_mode.value,
        "ticketsCount": len(session.tickets),
        "timeRemaining": (remaining or 0) // 1000,
    }


@router.post("/admin/tutorial/ticket")
async def spawn_tutorial_ticket(request: ParticipantRequest, engine: SimulationEngine = Depends(get_engine)):
    try:
        ticket = engine.spawn_tutorial_ticket(request.participant_id)
    except SimulationError as e:
        raise to_http_error(e)

    if ticket is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session is not active, no ticket created"
        )
    return {"success": True, "message": "Tutorial ticket created", "ticket": ticket}


@router.post("/admin/critical")
async def spawn_critical_ticket(request: ParticipantRequest, engine: SimulationEngine = Depends(get_engine)):
    try:
        ticket = engine.spawn_critical_ticket(request.participant_id)
    except SimulationError as e:
        raise to_http_error(e)

    if ticket is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session is not active, no ticket created"
        )
    return {"success": True, "message": "Critical ticket created", "ticket": ticket}


@router.post("/api/reset-participant")
async def reset_participant(request: ParticipantRequest, engine: SimulationEngine = Depends(get_engine)):
    """Tear down a participant's session; unknown participants are not an error"""
    existed = engine.reset_participant(request.participant_id)
    logger.info(f"Reset requested for {request.participant_id} (session existed: {existed})")
    return {
        "success": True,
        "message": f"Participant {request.participant_id} data has been reset",
    }
