"""
Simulation Engine

Entry point for every inbound trigger (WebSocket events and admin routes).
Wires the registry, ticket state machine, timers and resolvers together
and owns the stage rules: which timers run and what the roster looks like
in each stage.
"""
from typing import Any, Dict, Optional

from helpdesk_sim.agents import AIAssistant, AutonomousAIResolver, DelegateResolver
from helpdesk_sim.config import Settings
from helpdesk_sim.exceptions import NotEligibleError, NotFoundError
from helpdesk_sim.models.schemas import (
    AiAdvice,
    AiMode,
    AgentStatus,
    EventType,
    Parity,
    SessionSnapshot,
    Ticket,
    TicketStatus,
)
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.broadcast import Broadcaster
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.registry import SessionRegistry
from helpdesk_sim.services.roster import fresh_roster, set_all
from helpdesk_sim.services.session import Session
from helpdesk_sim.services.tickets import TicketService
from helpdesk_sim.services.timers import (
    AGENT_LIFECYCLE,
    DEADLINE_SWEEP,
    STAGE_TIMER,
    TICKET_SPAWNER,
    AgentLifecycle,
    DeadlineSweep,
    StageTimer,
    TicketSpawner,
)
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)


class SimulationEngine:
    """Per-participant helpdesk shift simulation"""

    def __init__(
        self,
        settings: Settings,
        catalog: ContentCatalog,
        broadcaster: Broadcaster,
        clock: Optional[Clock] = None,
        dice: Optional[Dice] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.settings = settings
        self.catalog = catalog
        self.broadcaster = broadcaster
        self.clock = clock or Clock()
        self.dice = dice or Dice()
        self.audit = audit or AuditLogger()

        self.registry = SessionRegistry(broadcaster, self.clock)
        self.tickets = TicketService(catalog, self.clock, self.dice, self.audit, settings)
        self.autonomous_ai = AutonomousAIResolver(catalog, self.clock, self.dice, self.audit, settings)
        self.delegates = DelegateResolver(self.clock, self.dice, self.audit, settings)
        self.assistant = AIAssistant(catalog, self.audit)

        self.tickets.add_spawn_listener(self.autonomous_ai.on_ticket_spawned)

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------
    def _session(self, participant_id: str) -> Session:
        return self.registry.require(participant_id)

    def _session_for(self, connection_id: str) -> Session:
        session = self.registry.lookup_connection(connection_id)
        if session is None:
            raise NotFoundError("Connection is not bound to a session. Send request:init first.")
        return session

    @staticmethod
    def _ticket(session: Session, ticket_id: str) -> Ticket:
        ticket = session.find_ticket(ticket_id)
        if ticket is None:
            logger.warning(f"Ticket {ticket_id} not found in session {session.participant_id}")
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    def snapshot(self, session: Session) -> SessionSnapshot:
        return SessionSnapshot(
            tickets=session.tickets,
            kb_articles=list(self.catalog.articles),
            agents=session.agents,
            current_stage=session.stage,
            ai_mode=session.ai_mode,
            participant_parity=session.parity,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def connect(self, connection_id: str, participant_id: str, parity: Optional[Parity] = None) -> SessionSnapshot:
        """
        Bind a connection to the participant's session and return its state

        A participant without a session needs a parity to get one created.

        Raises:
            NotFoundError: No session and no parity to create one with
        """
        if self.registry.get(participant_id) is None:
            if parity is None:
                raise NotFoundError(f"Participant {participant_id} not found")
            self.registry.get_or_create(participant_id, parity)

        resuming = not self.registry.get(participant_id).active
        session = self.registry.bind(connection_id, participant_id)
        if resuming:
            self.tickets.resume_reviews(session)
        self._start_timers(session)
        self._seed_tutorial(session)
        return self.snapshot(session)

    def disconnect(self, connection_id: str) -> Optional[Session]:
        return self.registry.unbind(connection_id)

    # ------------------------------------------------------------------
    # Stage control
    # ------------------------------------------------------------------
    def start_stage(
        self,
        participant_id: str,
        stage: int,
        ai_mode: Optional[AiMode] = None,
        parity: Optional[Parity] = None
    ) -> Session:
        """
        Enter stage 1 (tutorial) or stage 2 (live shift)

        Creates the session if needed. Running timers are restarted for the
        new stage; a stage-2 shift keeps its original start time.
        """
        session = self.registry.get(participant_id)
        if session is None:
            if parity is None:
                raise NotFoundError(f"Session not found for participant {participant_id}")
            session = self.registry.get_or_create(participant_id, parity)

        session.stage = stage
        session.ai_mode = AiMode(ai_mode) if ai_mode else AiMode.NORMAL
        session.timers.stop_all()
        logger.info(
            f"Starting stage {stage} for {participant_id} "
            f"({session.parity.value}, AI mode: {session.ai_mode.value})"
        )

        if stage == 1:
            set_all(session.agents, AgentStatus.OFFLINE)
        else:
            self._prepare_shift(session)

        self._start_timers(session)
        self._seed_tutorial(session)

        session.emit(EventType.INIT, self.snapshot(session))
        self.audit.record(
            session, "STAGE_START",
            aiMode=session.ai_mode.value, ticketsCount=len(session.tickets)
        )
        return session

    def _prepare_shift(self, session: Session) -> None:
        if session.parity.has_colleagues:
            roster = fresh_roster()
            count = self.dice.randint(1, len(roster))
            session.agents = self.dice.sample(roster, count)
            set_all(session.agents, AgentStatus.ONLINE)
            logger.info(f"Selected {count} colleagues for {session.participant_id}")
        else:
            set_all(session.agents, AgentStatus.OFFLINE)

        if session.stage_started_at is None:
            session.stage_started_at = self.clock.now_ms()
        if session.stage_duration_ms is None:
            session.stage_duration_ms = seconds_to_ms(self.settings.shift_duration_seconds)

    def _start_timers(self, session: Session) -> None:
        """Start whatever the current stage needs; no-op while inactive"""
        if not session.active:
            return

        timers = session.timers
        if not timers.is_running(DEADLINE_SWEEP):
            timers.start(DeadlineSweep(session, self.tickets, self.settings.deadline_sweep_interval_seconds))
        if session.stage != 2:
            return

        if not timers.is_running(TICKET_SPAWNER):
            timers.start(TicketSpawner(session, self.tickets, self.clock, self.dice, self.settings))
        if not session.shift_timed_out and not timers.is_running(STAGE_TIMER):
            timers.start(StageTimer(session, self.clock, self.audit, self.settings.stage_tick_seconds))
        if session.parity.has_colleagues and not timers.is_running(AGENT_LIFECYCLE):
            timers.start(AgentLifecycle(session, self.dice, self.audit, self.settings))

    def _seed_tutorial(self, session: Session) -> None:
        if (
            session.stage != 1
            or not session.active
            or session.tutorial_seeding
            or any(t.is_tutorial for t in session.tickets)
        ):
            return

        session.tutorial_seeding = True
        stagger = self.settings.tutorial_spawn_stagger_seconds
        count = self.settings.tutorial_ticket_count
        for index in range(count):
            session.defer(index * stagger, self._spawn_seeded, session, index == count - 1)

    def _spawn_seeded(self, session: Session, last: bool) -> None:
        if session.stage == 1:
            self.tickets.spawn(session, tutorial=True)
        if last:
            session.tutorial_seeding = False

    def change_ai_mode(self, participant_id: str, ai_mode: AiMode) -> Session:
        """
        Switch between normal and autonomous AI

        Raises:
            NotEligibleError: Outside stage 2 or not on the AI track
        """
        session = self._session(participant_id)
        if session.stage != 2 or not session.parity.has_ai:
            raise NotEligibleError("AI mode can only be changed by even participants during experiment stage")

        previous = session.ai_mode
        session.ai_mode = AiMode(ai_mode)
        session.emit(EventType.AI_MODE_CHANGED, {"aiMode": session.ai_mode.value})
        session.emit_tickets()

        remaining = session.remaining_ms(self.clock.now_ms())
        if remaining is not None:
            session.emit(EventType.TIMER_UPDATE, {"timeLeft": remaining // 1000})
            self._start_timers(session)

        self.audit.record(
            session, "AI_MODE_CHANGED",
            previousAiMode=previous.value,
            ticketsCount=len(session.tickets),
            timeRemaining=(remaining or 0) // 1000
        )
        return session

    def complete_tutorial(self, participant_id: str) -> Dict[str, Any]:
        """Advance to stage 2: tutorial tickets dropped, roster reset, timers paused until start"""
        session = self._session(participant_id)
        self.audit.record(session, "TUTORIAL_COMPLETED")

        session.stage = 2
        session.timers.stop_all()
        session.tutorial_seeding = False
        session.tickets = [t for t in session.tickets if not t.is_tutorial]
        session.agents = fresh_roster()
        logger.info(f"Tutorial completed for {participant_id}, ready for stage 2")

        return {
            "success": True,
            "currentStage": session.stage,
            "participantParity": session.parity.value,
        }

    # ------------------------------------------------------------------
    # Participant actions
    # ------------------------------------------------------------------
    def set_ticket_status(self, participant_id: str, ticket_id: str, new_status: TicketStatus) -> Ticket:
        session = self._session(participant_id)
        return self.tickets.set_status(session, self._ticket(session, ticket_id), new_status)

    def solve_ticket(
        self,
        participant_id: str,
        ticket_id: str,
        solution: str,
        linked_kb_id: Optional[str] = None
    ) -> Ticket:
        session = self._session(participant_id)
        return self.tickets.submit_solution(session, self._ticket(session, ticket_id), solution, linked_kb_id)

    def ask_ai(self, participant_id: str, ticket_id: str) -> AiAdvice:
        session = self._session(participant_id)
        return self.assistant.advise(session, self._ticket(session, ticket_id))

    def delegate_ticket(self, participant_id: str, ticket_id: str, agent_id: str) -> str:
        session = self._session(participant_id)
        ticket = self._ticket(session, ticket_id)
        agent = session.find_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Colleague {agent_id} not found")
        return self.delegates.delegate(session, ticket, agent)

    def participant_for(self, connection_id: str) -> str:
        """Participant bound to a connection"""
        return self._session_for(connection_id).participant_id

    # ------------------------------------------------------------------
    # Admin triggers
    # ------------------------------------------------------------------
    def spawn_tutorial_ticket(self, participant_id: str) -> Optional[Ticket]:
        return self.tickets.spawn(self._session(participant_id), tutorial=True)

    def spawn_critical_ticket(self, participant_id: str) -> Optional[Ticket]:
        return self.tickets.spawn(self._session(participant_id), critical=True)

    def reset_participant(self, participant_id: str) -> bool:
        session = self.registry.get(participant_id)
        if session is not None:
            self.audit.record(session, "PARTICIPANT_RESET")
        return self.registry.reset(participant_id)

    def shutdown(self) -> None:
        """Stop every session's timers and continuations"""
        for session in self.registry.sessions():
            self.registry.reset(session.participant_id)
        logger.info("Simulation engine stopped")

    # ------------------------------------------------------------------
    # Debug
    # ------------------------------------------------------------------
    def debug_state(self) -> Dict[str, Any]:
        now = self.clock.now_ms()
        sessions: Dict[str, Any] = {}
        for session in self.registry.sessions():
            remaining = session.remaining_ms(now)
            sessions[session.participant_id] = {
                "participantParity": session.parity.value,
                "currentStage": session.stage,
                "aiMode": session.ai_mode.value,
                "isActive": session.active,
                "connections": len(session.connections),
                "timeLeft": None if remaining is None else remaining // 1000,
                "timers": session.timers.running_names(),
                "pendingContinuations": session.pending_continuations,
                "tickets": [_ticket_summary(t) for t in session.tickets],
                "agents": [
                    {"id": a.id, "name": a.name, "status": a.status.value, "trust": a.trust}
                    for a in session.agents
                ],
            }

        return {
            "totalSessions": len(sessions),
            "activeSessions": sum(1 for s in sessions.values() if s["isActive"]),
            "kbArticlesCount": len(self.catalog.articles),
            "ticketTemplatesCount": len(self.catalog.templates),
            "sessions": sessions,
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "sessions": len(self.registry),
            "activeSessions": self.registry.active_count,
            "auditPersistence": self.audit.persistent,
        }


def _ticket_summary(ticket: Ticket) -> Dict[str, Any]:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status.value,
        "assignee": ticket.assignee,
        "isCritical": ticket.is_critical,
        "isTutorial": ticket.is_tutorial,
        "messages": len(ticket.messages),
    }
