"""
Session aggregate

One participant's isolated simulation state: tickets, colleagues, stage,
AI mode, its periodic timers and the deferred continuations its resolvers
have scheduled. Nothing here is shared with other sessions.
"""
import asyncio
from typing import Any, Callable, List, Optional, Set

from helpdesk_sim.models.schemas import (
    AI,
    PARTICIPANT,
    Agent,
    AiMode,
    EventType,
    MessageSender,
    Notification,
    NotificationType,
    Parity,
    Ticket,
    TicketStatus,
)
from helpdesk_sim.services.broadcast import Broadcaster
from helpdesk_sim.services.timers import TimerSet
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)


class Session:
    """Per-participant simulation state"""

    def __init__(
        self,
        participant_id: str,
        parity: Parity,
        broadcaster: Broadcaster,
        agents: List[Agent]
    ):
        self.participant_id = participant_id
        self.parity = Parity(parity)
        self.stage: int = 1
        self.ai_mode: AiMode = AiMode.NORMAL
        self.stage_started_at: Optional[int] = None
        self.stage_duration_ms: Optional[int] = None
        self.tickets: List[Ticket] = []
        self.agents: List[Agent] = agents
        self.connections: Set[str] = set()
        self.active: bool = False
        self.last_critical_spawn_at: Optional[int] = None
        self.shift_timed_out: bool = False
        self.tutorial_seeding: bool = False
        self.timers = TimerSet(participant_id)

        self._broadcaster = broadcaster
        self._deferred: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def find_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return next((t for t in self.tickets if t.id == ticket_id), None)

    def find_agent(self, agent_id: str) -> Optional[Agent]:
        return next((a for a in self.agents if a.id == agent_id), None)

    def remaining_ms(self, now_ms: int) -> Optional[int]:
        """Time left in the shift, None before stage 2 has started"""
        if self.stage_started_at is None or self.stage_duration_ms is None:
            return None
        return max(0, self.stage_duration_ms - (now_ms - self.stage_started_at))

    # ------------------------------------------------------------------
    # Outbound events
    # ------------------------------------------------------------------
    def emit(self, event: EventType, data: Any = None) -> None:
        self._broadcaster.publish(self.connections, event, data)

    def notify(
        self,
        message: str,
        level: NotificationType = NotificationType.INFO,
        event: EventType = EventType.CLIENT_NOTIFICATION,
        **extra
    ) -> None:
        self.emit(event, Notification(type=level, message=message, **extra))

    def emit_tickets(self) -> None:
        self.emit(EventType.TICKETS_UPDATE, self.tickets)

    def emit_agents(self) -> None:
        self.emit(EventType.AGENTS_UPDATE, self.agents)

    # ------------------------------------------------------------------
    # Deferred continuations
    # ------------------------------------------------------------------
    def defer(self, delay: float, callback: Callable[..., None], *args) -> asyncio.Task:
        """
        Run callback(*args) after delay seconds on the event loop

        The callback must re-check the state it expects before acting;
        pending continuations are cancelled when the session deactivates.
        """
        async def _continuation():
            await asyncio.sleep(delay)
            callback(*args)

        task = asyncio.get_running_loop().create_task(_continuation())
        self._deferred.add(task)
        task.add_done_callback(self._continuation_done)
        return task

    def _continuation_done(self, task: asyncio.Task) -> None:
        self._deferred.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Deferred continuation failed for {self.participant_id}: {error}",
                exc_info=error
            )

    @property
    def pending_continuations(self) -> int:
        return len(self._deferred)

    def cancel_deferred(self) -> int:
        pending = [task for task in self._deferred if not task.done()]
        for task in pending:
            task.cancel()
        self._deferred.clear()
        return len(pending)

    async def drain(self) -> None:
        """Wait until no continuation is pending, including ones scheduled meanwhile"""
        while self._deferred:
            await asyncio.gather(*list(self._deferred), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def activate(self) -> None:
        self.active = True

    def deactivate(self, now_ms: int) -> None:
        """Stop every timer and continuation; in-flight resolver claims are released"""
        self.active = False
        self.timers.stop_all()
        cancelled = self.cancel_deferred()
        self.tutorial_seeding = False
        released = self._release_claims(now_ms)
        logger.info(
            f"Session {self.participant_id} inactive "
            f"({cancelled} continuations cancelled, {released} claims released)"
        )

    def _release_claims(self, now_ms: int) -> int:
        released = 0
        for ticket in self.tickets:
            if ticket.status != TicketStatus.IN_PROGRESS or ticket.assignee == PARTICIPANT:
                continue
            if ticket.assignee == AI:
                ticket.status = TicketStatus.NOT_ASSIGNED
                ticket.assignee = None
                ticket.deadline_solve = None
                ticket.add_message(
                    MessageSender.SYSTEM,
                    "AI work interrupted. Ticket returned to queue.",
                    now_ms
                )
            else:
                ticket.assignee = PARTICIPANT
                ticket.add_message(
                    MessageSender.SYSTEM,
                    "Colleague work interrupted. Ticket returned to you.",
                    now_ms
                )
            released += 1
        return released
