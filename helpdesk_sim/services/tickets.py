"""
Ticket State Machine

not_assigned -> in_progress -> solved, with in_progress -> not_assigned
(unassign, failed resolver) and solved -> in_progress (client rejects the
participant's solution).

Handles spawning, participant actions, the delayed client review of a
submitted solution and the periodic overdue sweep. Autonomous AI and
colleague resolvers live in helpdesk_sim.agents.
"""
from typing import Callable, List, Optional

from helpdesk_sim.config import Settings
from helpdesk_sim.exceptions import NotEligibleError
from helpdesk_sim.models.schemas import (
    PARTICIPANT,
    AiMode,
    EventType,
    MessageSender,
    NotificationType,
    Severity,
    Ticket,
    TicketStatus,
)
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.session import Session
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger
from helpdesk_sim.utils.text import shares_keywords, short_id

logger = get_logger(__name__)

CRITICAL_TITLE = "🚨 CRITICAL: SERVER DOWN - URGENT!"
CRITICAL_DESCRIPTION = "🚨 ALL SYSTEMS UNAVAILABLE! Business operations halted! Immediate attention required!"
PLACEHOLDER_SOLUTION = "Marked as solved without detailed solution"

HAPPY_CLIENT_REPLIES = (
    "Thank you! Everything works.",
    "Excellent, thanks for help.",
    "Great, problem solved.",
    "Thanks, you saved me!",
    "All ok, close it.",
)
ANGRY_CLIENT_REPLIES = (
    "I did as you said, but nothing works!",
    "Problem persists. Did you even read the ticket?",
    "This didn't help. Waiting for proper solution.",
    "Still broken. Please figure it out!",
    "Article not suitable, same error.",
)

SpawnListener = Callable[[Session, Ticket], None]


def critical_prefix(ticket: Ticket) -> str:
    return "🚨 CRITICAL " if ticket.is_critical else ""


class TicketService:
    """Ticket creation, participant transitions and deadline bookkeeping"""

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
        self._spawn_listeners: List[SpawnListener] = []

    def add_spawn_listener(self, listener: SpawnListener) -> None:
        """Called with (session, ticket) after every non-tutorial spawn"""
        self._spawn_listeners.append(listener)

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------
    def spawn(self, session: Session, critical: bool = False, tutorial: bool = False) -> Optional[Ticket]:
        """
        Create a ticket in a session

        Args:
            session: Target session (must be active)
            critical: Use the scripted outage ticket and critical windows
            tutorial: Tutorial ticket, never carries deadlines

        Returns:
            The new ticket, or None if the session is inactive or no
            template is available
        """
        if not session.active:
            logger.warning(f"Skipping ticket spawn - session {session.participant_id} is not active")
            return None
        if not self._catalog.templates:
            logger.error("No ticket templates loaded!")
            return None

        template = self._dice.choice(self._catalog.templates)
        now = self._clock.now_ms()
        assign_window = (
            self._settings.assign_window_critical_seconds if critical
            else self._settings.assign_window_normal_seconds
        )

        ticket = Ticket(
            title=CRITICAL_TITLE if critical else template.title,
            description=CRITICAL_DESCRIPTION if critical else template.description,
            severity=Severity.CRITICAL if critical else Severity.NORMAL,
            created_at=now,
            deadline_assign=None if tutorial else now + seconds_to_ms(assign_window),
            is_critical=critical,
            is_tutorial=tutorial,
        )
        session.tickets.append(ticket)
        logger.info(
            f"Spawned {'critical ' if critical else ''}{'tutorial ' if tutorial else ''}"
            f"ticket {short_id(ticket.id)} for {session.participant_id} "
            f"({len(session.tickets)} total)"
        )

        session.emit(EventType.TICKET_NEW, ticket)
        if critical and not tutorial:
            session.notify(
                "🚨 CRITICAL TICKET: Server Down! Immediate action required! Business impact!",
                NotificationType.CRITICAL,
                ticket_id=ticket.id,
            )

        self._audit.record(
            session, "TICKET_SPAWN", ticket.id,
            severity=ticket.severity.value, isCritical=critical, tutorialTicket=tutorial
        )

        if tutorial:
            return ticket

        if session.stage == 2 and session.parity.has_ai and session.ai_mode == AiMode.NORMAL:
            session.defer(self._settings.ai_notice_delay_seconds, self._announce, session, ticket)

        for listener in self._spawn_listeners:
            listener(session, ticket)
        return ticket

    def _announce(self, session: Session, ticket: Ticket) -> None:
        session.emit(EventType.AI_NOTIFICATION, {
            "type": "new_ticket",
            "message": f"🚨 New {'CRITICAL ' if ticket.is_critical else ''}ticket: {ticket.title}",
            "isCritical": ticket.is_critical,
            "ticketId": ticket.id,
        })

    # ------------------------------------------------------------------
    # Participant transitions
    # ------------------------------------------------------------------
    def set_status(self, session: Session, ticket: Ticket, new_status: TicketStatus) -> Ticket:
        new_status = TicketStatus(new_status)
        if new_status == TicketStatus.IN_PROGRESS:
            return self.take(session, ticket)
        if new_status == TicketStatus.NOT_ASSIGNED:
            return self.unassign(session, ticket)
        return self.mark_solved(session, ticket)

    def take(self, session: Session, ticket: Ticket) -> Ticket:
        """Participant assigns the ticket to themselves"""
        if ticket.status != TicketStatus.NOT_ASSIGNED:
            raise NotEligibleError(f"Ticket #{short_id(ticket.id)} is not waiting for assignment")

        now = self._clock.now_ms()
        ticket.status = TicketStatus.IN_PROGRESS
        ticket.assignee = PARTICIPANT
        ticket.assigned_at = now
        if not ticket.is_tutorial:
            window = (
                self._settings.participant_solve_window_critical_seconds if ticket.is_critical
                else self._settings.participant_solve_window_normal_seconds
            )
            ticket.deadline_solve = now + seconds_to_ms(window)

        self._audit.record(
            session, "TICKET_TAKEN", ticket.id,
            isCritical=ticket.is_critical, tutorialTicket=ticket.is_tutorial
        )
        session.emit_tickets()
        return ticket

    def unassign(self, session: Session, ticket: Ticket) -> Ticket:
        """Participant hands a ticket they own back to the queue"""
        if not ticket.is_owned_by(PARTICIPANT):
            raise NotEligibleError(f"Ticket #{short_id(ticket.id)} is not assigned to you")

        ticket.status = TicketStatus.NOT_ASSIGNED
        ticket.assignee = None
        ticket.deadline_solve = None

        self._audit.record(session, "TICKET_UNASSIGNED", ticket.id, isCritical=ticket.is_critical)
        session.emit_tickets()
        return ticket

    def mark_solved(self, session: Session, ticket: Ticket) -> Ticket:
        """Status change to solved without submitting a solution"""
        if not ticket.is_owned_by(PARTICIPANT):
            raise NotEligibleError(f"Ticket #{short_id(ticket.id)} is not assigned to you")

        ticket.status = TicketStatus.SOLVED
        if not ticket.solution:
            ticket.solution = PLACEHOLDER_SOLUTION
            ticket.solution_author = PARTICIPANT

        self._audit.record(session, "TICKET_MARKED_SOLVED", ticket.id, isCritical=ticket.is_critical)
        session.emit_tickets()
        return ticket

    def submit_solution(
        self,
        session: Session,
        ticket: Ticket,
        solution: str,
        linked_kb_id: Optional[str] = None
    ) -> Ticket:
        """
        Participant submits a solution

        The ticket is solved immediately. Tutorial tickets get a scripted
        happy reply; any other ticket is reviewed by the client after
        client_review_delay_seconds and may be reopened.
        """
        if ticket.status == TicketStatus.SOLVED:
            raise NotEligibleError(f"Ticket #{short_id(ticket.id)} is already solved")
        if ticket.assignee not in (None, PARTICIPANT):
            raise NotEligibleError(f"Ticket #{short_id(ticket.id)} is being handled by someone else")

        now = self._clock.now_ms()
        ticket.status = TicketStatus.SOLVED
        ticket.assignee = PARTICIPANT
        ticket.solution = solution
        ticket.linked_kb_id = linked_kb_id or None
        ticket.solution_author = PARTICIPANT
        ticket.review_pending = not ticket.is_tutorial

        kb_suffix = f" (KB: {ticket.linked_kb_id})" if ticket.linked_kb_id else ""
        label = "🚨 CRITICAL SOLUTION" if ticket.is_critical else "Solution"
        ticket.add_message(MessageSender.AGENT, f"{label}: {solution}{kb_suffix}", now)

        self._audit.record(
            session, "TICKET_SOLVED", ticket.id,
            solution=solution, linkedKbId=ticket.linked_kb_id,
            isCritical=ticket.is_critical, tutorialTicket=ticket.is_tutorial
        )
        session.emit_tickets()

        if ticket.is_tutorial:
            ticket.add_message(MessageSender.CLIENT, "Thank you! The problem is solved!", now + 100)
            session.emit_tickets()
            return ticket

        self._schedule_review(session, ticket)
        return ticket

    def _schedule_review(self, session: Session, ticket: Ticket) -> None:
        session.defer(
            self._settings.client_review_delay_seconds,
            self._review_solution, session, ticket, ticket.solution
        )

    def resume_reviews(self, session: Session) -> int:
        """
        Reschedule client reviews cancelled by a deactivation

        Returns:
            Number of reviews scheduled again
        """
        pending = [t for t in session.tickets if t.review_pending]
        for ticket in pending:
            self._schedule_review(session, ticket)
        if pending:
            logger.info(f"Resumed {len(pending)} client reviews for {session.participant_id}")
        return len(pending)

    def evaluate_solution(self, ticket: Ticket) -> bool:
        """
        Client-side check of a submitted solution

        With a linked article the ticket and article keywords must overlap;
        without one the free text must be longer than min_solution_length.
        """
        if ticket.linked_kb_id:
            article = self._catalog.article(ticket.linked_kb_id)
            if article is None:
                return False
            return shares_keywords(
                f"{ticket.title} {ticket.description}",
                f"{article.title} {article.content}"
            )
        return len(ticket.solution or "") > self._settings.min_solution_length

    def _review_solution(self, session: Session, ticket: Ticket, solution: str) -> None:
        if not ticket.review_pending:
            return
        if (
            ticket.status != TicketStatus.SOLVED
            or ticket.solution_author != PARTICIPANT
            or ticket.solution != solution
        ):
            ticket.review_pending = False
            logger.info(f"Skipping client review of {short_id(ticket.id)}, ticket changed meanwhile")
            return

        ticket.review_pending = False
        now = self._clock.now_ms()
        success = self.evaluate_solution(ticket)
        replies = HAPPY_CLIENT_REPLIES if success else ANGRY_CLIENT_REPLIES
        ticket.add_message(MessageSender.CLIENT, self._dice.choice(replies), now)

        if success:
            session.notify(
                f"Client confirmed solution for {critical_prefix(ticket)}ticket #{short_id(ticket.id)}",
                NotificationType.SUCCESS,
                ticket_id=ticket.id,
            )
        else:
            window = (
                self._settings.reopen_window_critical_seconds if ticket.is_critical
                else self._settings.reopen_window_normal_seconds
            )
            ticket.status = TicketStatus.IN_PROGRESS
            ticket.deadline_solve = now + seconds_to_ms(window)
            ticket.add_message(
                MessageSender.SYSTEM,
                "🚨 CRITICAL TICKET RETURNED: Immediate action required!" if ticket.is_critical
                else "TICKET RETURNED: Client not satisfied with solution.",
                now + 10
            )
            session.notify(
                f"Error! {critical_prefix(ticket)}Ticket #{short_id(ticket.id)} returned to work.",
                NotificationType.ERROR,
                ticket_id=ticket.id,
            )

        self._audit.record(session, "CLIENT_REVIEW", ticket.id, success=success, isCritical=ticket.is_critical)
        session.emit_tickets()

    # ------------------------------------------------------------------
    # Deadline sweep
    # ------------------------------------------------------------------
    def sweep_deadlines(self, session: Session) -> bool:
        """
        Report newly overdue deadlines, at most once per ticket and kind

        Never changes ticket status.

        Returns:
            True if any ticket was flagged
        """
        now = self._clock.now_ms()
        changed = False

        for ticket in session.tickets:
            if ticket.is_tutorial:
                continue

            if (
                ticket.status == TicketStatus.NOT_ASSIGNED
                and ticket.deadline_assign is not None
                and now > ticket.deadline_assign
                and not ticket.assign_overdue_reported
            ):
                ticket.assign_overdue_reported = True
                ticket.add_message(
                    MessageSender.CLIENT,
                    "🚨 CRITICAL: Nobody has picked up the outage yet!" if ticket.is_critical
                    else "Is anyone looking at my request?",
                    now
                )
                session.notify(
                    "🚨 CRITICAL TICKET OVERDUE: Server still down! Immediate assignment required!"
                    if ticket.is_critical else "You took too long to assign the request!",
                    NotificationType.WARNING,
                    ticket_id=ticket.id,
                )
                self._audit.record(session, "DEADLINE_OVERDUE", ticket.id, kind="assign")
                changed = True

            if (
                ticket.status == TicketStatus.IN_PROGRESS
                and ticket.deadline_solve is not None
                and now > ticket.deadline_solve
                and not ticket.solve_overdue_reported
            ):
                ticket.solve_overdue_reported = True
                ticket.add_message(
                    MessageSender.CLIENT,
                    "🚨 CRITICAL: Time is up! System outage causing business losses!" if ticket.is_critical
                    else "You took too long to respond. Client is dissatisfied.",
                    now
                )
                session.notify(
                    "🚨 CRITICAL TICKET SOLUTION OVERDUE: Business operations affected!"
                    if ticket.is_critical else "Solution took too long. Client is dissatisfied!",
                    NotificationType.WARNING,
                    ticket_id=ticket.id,
                )
                self._audit.record(session, "DEADLINE_OVERDUE", ticket.id, kind="solve")
                changed = True

        if changed:
            session.emit_tickets()
        return changed
