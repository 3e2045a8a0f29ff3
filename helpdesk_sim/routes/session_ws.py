"""
Participant WebSocket

One connection per browser tab. Frames are JSON objects
{"event": "...", "data": {...}} in both directions; outbound frames are
produced by the WebSocketGateway. Refused actions come back as a
`client:notification` with the refusal's level, never as a closed socket.
"""
import json
from typing import Any, Callable, Dict
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from helpdesk_sim.exceptions import NotEligibleError, NotFoundError, SimulationError
from helpdesk_sim.models.schemas import (
    AskAiPayload,
    DelegatePayload,
    EventType,
    InitPayload,
    Notification,
    NotificationType,
    SocketPayload,
    SolvePayload,
    TicketStatusPayload,
)
from helpdesk_sim.services.broadcast import WebSocketGateway
from helpdesk_sim.services.engine import SimulationEngine
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["session"])


class SocketHandler:
    """Dispatches inbound frames of one connection to the engine"""

    def __init__(self, connection_id: str, engine: SimulationEngine, gateway: WebSocketGateway):
        self.connection_id = connection_id
        self.engine = engine
        self.gateway = gateway
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "request:init": self.on_init,
            "ticket:status:update": self.on_status_update,
            "ticket:solve": self.on_solve,
            "ai:ask": self.on_ask_ai,
            "bot:delegate": self.on_delegate,
            "tutorial:completed": self.on_tutorial_completed,
        }

    def reply(self, event: EventType, data: Any = None) -> None:
        self.gateway.send(self.connection_id, event, data)

    def refuse(self, message: str, level: NotificationType = NotificationType.ERROR) -> None:
        self.reply(EventType.CLIENT_NOTIFICATION, Notification(type=level, message=message))

    def dispatch(self, frame: Any) -> None:
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            self.refuse("Malformed message")
            return

        event = frame["event"]
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {self.connection_id}")
            return

        data = frame.get("data") or {}
        try:
            handler(data)
        except ValidationError as e:
            logger.warning(f"Invalid {event} payload from {self.connection_id}: {e.error_count()} errors")
            self.refuse(f"Invalid {event} request")
        except SimulationError as e:
            logger.info(f"{event} refused for {self.connection_id}: {e.message}")
            self.refuse(e.message, e.level)

    def _participant(self, payload: SocketPayload) -> str:
        """
        Participant the frame acts for: always the one this connection is bound to

        Raises:
            NotEligibleError: Payload names a different participant
        """
        bound = self.engine.participant_for(self.connection_id)
        if payload.participant_id and payload.participant_id != bound:
            raise NotEligibleError(f"This connection is bound to participant {bound}")
        return bound

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on_init(self, data: Dict[str, Any]) -> None:
        if not data.get("participantId"):
            self.reply(EventType.INIT_ERROR, {"message": "No participantId provided"})
            return
        try:
            payload = InitPayload.model_validate(data)
            snapshot = self.engine.connect(self.connection_id, payload.participant_id, payload.parity)
        except NotFoundError:
            self.reply(EventType.INIT_ERROR, {"message": "Participant not found"})
            return
        except ValidationError:
            self.reply(EventType.INIT_ERROR, {"message": "Invalid init request"})
            return
        self.reply(EventType.INIT, snapshot)

    def on_status_update(self, data: Dict[str, Any]) -> None:
        payload = TicketStatusPayload.model_validate(data)
        self.engine.set_ticket_status(self._participant(payload), payload.ticket_id, payload.new_status)

    def on_solve(self, data: Dict[str, Any]) -> None:
        payload = SolvePayload.model_validate(data)
        self.engine.solve_ticket(
            self._participant(payload), payload.ticket_id, payload.solution, payload.linked_kb_id
        )

    def on_ask_ai(self, data: Dict[str, Any]) -> None:
        payload = AskAiPayload.model_validate(data)
        advice = self.engine.ask_ai(self._participant(payload), payload.ticket_id)
        self.reply(EventType.AI_RESPONSE, advice)

    def on_delegate(self, data: Dict[str, Any]) -> None:
        payload = DelegatePayload.model_validate(data)
        self.engine.delegate_ticket(self._participant(payload), payload.ticket_id, payload.bot_id)

    def on_tutorial_completed(self, data: Dict[str, Any]) -> None:
        payload = SocketPayload.model_validate(data)
        self.reply(EventType.TUTORIAL_COMPLETED_ACK, self.engine.complete_tutorial(self._participant(payload)))


@router.websocket("/ws")
async def session_socket(websocket: WebSocket):
    engine: SimulationEngine = websocket.app.state.engine
    gateway: WebSocketGateway = websocket.app.state.gateway

    await websocket.accept()
    connection_id = str(uuid4())
    gateway.register(connection_id, websocket)
    handler = SocketHandler(connection_id, engine, gateway)
    logger.info(f"Connection {connection_id} opened")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                handler.refuse("Malformed message")
                continue
            handler.dispatch(frame)
    except WebSocketDisconnect:
        logger.info(f"Connection {connection_id} closed")
    finally:
        engine.disconnect(connection_id)
        await gateway.unregister(connection_id)
