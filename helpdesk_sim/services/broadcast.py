"""
Broadcast Gateway

Delivers session events to bound connections. Publishing is synchronous:
the payload is serialized and queued per connection at call time, so the
order a session's connections observe equals the order its state changed.
Delivery happens in one sender task per connection and never blocks the
caller.
"""
import asyncio
from typing import Any, Dict, Iterable, Protocol

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from helpdesk_sim.models.schemas import EventType
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)


class Broadcaster(Protocol):
    """What the engine needs from a transport"""

    def publish(self, connection_ids: Iterable[str], event: EventType, data: Any = None) -> None:
        ...

    def send(self, connection_id: str, event: EventType, data: Any = None) -> None:
        ...


def encode_event(event: EventType, data: Any = None) -> Dict[str, Any]:
    """Frame sent over the wire: {"event": ..., "data": ...}"""
    return {"event": EventType(event).value, "data": jsonable_encoder(data)}


class WebSocketGateway:
    """Broadcaster backed by FastAPI WebSockets"""

    def __init__(self):
        self._outboxes: Dict[str, asyncio.Queue] = {}
        self._senders: Dict[str, asyncio.Task] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        """Start the sender task for an accepted WebSocket"""
        queue: asyncio.Queue = asyncio.Queue()
        self._outboxes[connection_id] = queue
        self._senders[connection_id] = asyncio.create_task(
            self._pump(connection_id, websocket, queue)
        )
        logger.debug(f"Registered connection {connection_id}")

    async def unregister(self, connection_id: str) -> None:
        self._outboxes.pop(connection_id, None)
        task = self._senders.pop(connection_id, None)
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Unregistered connection {connection_id}")

    def publish(self, connection_ids: Iterable[str], event: EventType, data: Any = None) -> None:
        message = encode_event(event, data)
        for connection_id in list(connection_ids):
            self._enqueue(connection_id, message)

    def send(self, connection_id: str, event: EventType, data: Any = None) -> None:
        self._enqueue(connection_id, encode_event(event, data))

    @property
    def connection_count(self) -> int:
        return len(self._outboxes)

    def _enqueue(self, connection_id: str, message: Dict[str, Any]) -> None:
        queue = self._outboxes.get(connection_id)
        if queue is None:
            logger.debug(f"Dropping {message['event']} for unknown connection {connection_id}")
            return
        queue.put_nowait(message)

    async def _pump(self, connection_id: str, websocket: WebSocket, queue: asyncio.Queue) -> None:
        try:
            while True:
                message = await queue.get()
                await websocket.send_json(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Delivery to {connection_id} failed, dropping connection: {e}")
            self._outboxes.pop(connection_id, None)
            self._senders.pop(connection_id, None)
