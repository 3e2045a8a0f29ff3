"""
Autonomous AI resolver

Active in stage 2 for AI-track participants while the AI mode is
autonomous. For every spawned ticket it waits ai_pickup_delay_seconds,
then either misses the ticket or claims it, works for a random solve time
and finally fails (ticket back to the queue) or solves it with the first
matching knowledge-base article.

Each continuation re-checks that the ticket is still in the state it left
it in before acting.
"""
from helpdesk_sim.config import Settings
from helpdesk_sim.models.schemas import (
    AI,
    AiMode,
    EventType,
    MessageSender,
    Ticket,
    TicketStatus,
)
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.session import Session
from helpdesk_sim.services.tickets import critical_prefix
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger
from helpdesk_sim.utils.text import short_id

logger = get_logger(__name__)


class AutonomousAIResolver:
    """Simulated AI colleague that picks up tickets on its own"""

    def __init__(
        self,
        catalog: ContentCatalog,
        clock: Clock,
        dice: Dice,
        audit: AuditLogger,
        settings: Settings
    ):
        self._catalog = catalog
        self._clock = clock
        self._dice = dice
        self._audit = audit
        self._settings = settings

    @staticmethod
    def is_eligible(session: Session, ticket: Ticket) -> bool:
        return (
            session.stage == 2
            and session.parity.has_ai
            and session.ai_mode == AiMode.AUTONOMOUS
            and not ticket.is_tutorial
        )

    def on_ticket_spawned(self, session: Session, ticket: Ticket) -> None:
        """Spawn listener: schedule the pickup attempt"""
        if self.is_eligible(session, ticket):
            session.defer(self._settings.ai_pickup_delay_seconds, self.attempt, session, ticket)

    def _action(self, session: Session, kind: str, ticket: Ticket, message: str) -> None:
        session.emit(EventType.AI_AUTONOMOUS_ACTION, {
            "type": kind,
            "ticketId": ticket.id,
            "message": message,
        })

    def attempt(self, session: Session, ticket: Ticket) -> None:
        """Miss draw, then claim"""
        if not self.is_eligible(session, ticket):
            logger.debug(f"AI skips {short_id(ticket.id)}, autonomous mode no longer on")
            return
        if ticket.status != TicketStatus.NOT_ASSIGNED:
            logger.debug(f"AI skips {short_id(ticket.id)}, already {ticket.status.value}")
            return

        miss_probability = (
            self._settings.ai_miss_probability_critical if ticket.is_critical
            else self._settings.ai_miss_probability_normal
        )
        if self._dice.roll(miss_probability):
            self._audit.record(
                session, "AI_MISSED_TICKET", ticket.id,
                probability=miss_probability, isCritical=ticket.is_critical
            )
            self._action(session, "missed", ticket, f"AI missed {'CRITICAL ' if ticket.is_critical else ''}ticket")
            return

        now = self._clock.now_ms()
        window = (
            self._settings.ai_solve_window_critical_seconds if ticket.is_critical
            else self._settings.ai_solve_window_normal_seconds
        )
        ticket.status = TicketStatus.IN_PROGRESS
        ticket.assignee = AI
        ticket.assigned_at = now
        ticket.deadline_solve = now + seconds_to_ms(window)
        ticket.add_message(
            MessageSender.AI,
            "🚨 CRITICAL TICKET: Autonomous AI took ticket for immediate resolution" if ticket.is_critical
            else "Autonomous AI took ticket to work",
            now
        )

        self._audit.record(session, "AI_TOOK_TICKET", ticket.id, isCritical=ticket.is_critical)
        self._action(
            session, "taken", ticket,
            f"AI took {critical_prefix(ticket)}ticket #{short_id(ticket.id)} to work"
        )
        session.emit_tickets()

        if ticket.is_critical:
            low, high = self._settings.ai_solve_time_critical_min_seconds, self._settings.ai_solve_time_critical_max_seconds
        else:
            low, high = self._settings.ai_solve_time_normal_min_seconds, self._settings.ai_solve_time_normal_max_seconds
        session.defer(self._dice.uniform(low, high), self.finish, session, ticket)

    def finish(self, session: Session, ticket: Ticket) -> None:
        """Fail draw, then release or solve"""
        if not ticket.is_owned_by(AI):
            logger.info(f"AI result for {short_id(ticket.id)} discarded, ticket no longer held by AI")
            return

        fail_probability = (
            self._settings.ai_fail_probability_critical if ticket.is_critical
            else self._settings.ai_fail_probability_normal
        )
        now = self._clock.now_ms()

        if self._dice.roll(fail_probability):
            ticket.status = TicketStatus.NOT_ASSIGNED
            ticket.assignee = None
            ticket.deadline_solve = None
            ticket.add_message(
                MessageSender.AI,
                "🚨 CRITICAL TICKET: AI failed to solve. URGENT HUMAN INTERVENTION NEEDED!" if ticket.is_critical
                else "AI failed to solve ticket. Returning to queue.",
                now
            )
            self._audit.record(
                session, "AI_FAILED_TICKET", ticket.id,
                probability=fail_probability, isCritical=ticket.is_critical
            )
            self._action(
                session, "failed", ticket,
                f"AI failed to solve {critical_prefix(ticket)}ticket #{short_id(ticket.id)}"
            )
            session.emit_tickets()
            return

        article = self._catalog.match_article(ticket.title)
        ticket.status = TicketStatus.SOLVED
        ticket.solution_author = AI
        ticket.solution = (
            "🚨 CRITICAL RESOLVED: Server restarted and services restored. "
            "Root cause: hardware failure in power supply unit."
            if ticket.is_critical
            else f"Solved by autonomous AI based on problem analysis: {ticket.title}"
        )
        if article is not None:
            ticket.linked_kb_id = article.id
            ticket.solution += f" (used article: {article.title})"

        if ticket.is_critical:
            summary = "🚨 CRITICAL TICKET RESOLVED: Server back online. All services restored."
        elif article is not None:
            summary = f"Ticket solved. Used article: {article.title}"
        else:
            summary = "Ticket solved. Solution found without knowledge base"
        ticket.add_message(MessageSender.AI, summary, now)

        self._audit.record(
            session, "AI_SOLVED_TICKET", ticket.id,
            kbId=ticket.linked_kb_id, isCritical=ticket.is_critical
        )
        self._action(
            session, "solved", ticket,
            f"AI successfully solved {critical_prefix(ticket)}ticket #{short_id(ticket.id)}"
        )
        session.emit_tickets()
        session.defer(self._settings.client_thanks_delay_seconds, self.thank, session, ticket)

    def thank(self, session: Session, ticket: Ticket) -> None:
        """Scripted client reply after an AI resolution"""
        if ticket.status != TicketStatus.SOLVED or ticket.solution_author != AI:
            return
        ticket.add_message(
            MessageSender.CLIENT,
            "🚨 Thank you for quick response! Business operations restored." if ticket.is_critical
            else "Thank you, problem solved!",
            self._clock.now_ms() + 100
        )
        session.emit_tickets()
