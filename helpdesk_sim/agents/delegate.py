"""
Delegate colleague resolver

Colleague-track participants (stage 2) can hand a ticket they own to an
online colleague. The colleague accepts with probability `trust`; otherwise
they refuse or silently ignore the request after a short delay and nothing
changes. An accepted ticket is worked on for a random solve time and then
solved, or, for critical tickets almost always, handed back to the queue.
"""
from helpdesk_sim.config import Settings
from helpdesk_sim.exceptions import NotEligibleError
from helpdesk_sim.models.schemas import (
    PARTICIPANT,
    Agent,
    AgentStatus,
    EventType,
    MessageSender,
    NotificationType,
    Ticket,
    TicketStatus,
)
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.session import Session
from helpdesk_sim.services.tickets import critical_prefix
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger
from helpdesk_sim.utils.text import short_id

logger = get_logger(__name__)

# Knowledge-base reference recorded on colleague-resolved tickets
DELEGATE_KB_REF = "delegate_resolved"

ACCEPTED = "accepted"
DECLINED = "declined"


class DelegateResolver:
    """Simulated colleagues taking over delegated tickets"""

    def __init__(self, clock: Clock, dice: Dice, audit: AuditLogger, settings: Settings):
        self._clock = clock
        self._dice = dice
        self._audit = audit
        self._settings = settings

    def _bot_notice(self, session: Session, agent: Agent, message: str, level: NotificationType, ticket: Ticket) -> None:
        session.notify(message, level, EventType.BOT_NOTIFICATION, bot_name=agent.name, ticket_id=ticket.id)

    def delegate(self, session: Session, ticket: Ticket, agent: Agent) -> str:
        """
        Ask a colleague to take over a ticket

        Returns:
            ACCEPTED if the colleague took the ticket, DECLINED if a refusal
            or ignore notice is on its way

        Raises:
            NotEligibleError: Wrong stage/track, ticket not owned by the
                participant, or colleague not online
        """
        if session.stage != 2 or not session.parity.has_colleagues:
            raise NotEligibleError("Delegation is only available in stage 2 for the colleague track")
        if not ticket.is_owned_by(PARTICIPANT):
            raise NotEligibleError("You must assign the ticket to yourself first (status 'In Progress')")
        if agent.status != AgentStatus.ONLINE:
            where = "away (not at the workplace)" if agent.status == AgentStatus.AWAY else "offline"
            raise NotEligibleError(
                f"{agent.name} is {where}. Cannot delegate ticket.",
                level=NotificationType.WARNING
            )

        self._audit.record(
            session, "DELEGATE_REQUEST", ticket.id,
            botId=agent.id, botName=agent.name, botTrust=agent.trust, isCritical=ticket.is_critical
        )

        if self._dice.roll(1.0 - agent.trust):
            logger.info(f"{agent.name} declined ticket {short_id(ticket.id)} (trust {agent.trust})")
            delay = self._dice.uniform(
                self._settings.delegate_reply_delay_min_seconds,
                self._settings.delegate_reply_delay_max_seconds
            )
            session.defer(delay, self._decline, session, ticket, agent)
            return DECLINED

        now = self._clock.now_ms()
        ticket.assignee = agent.id
        if not ticket.is_tutorial:
            window = (
                self._settings.delegate_solve_window_critical_seconds if ticket.is_critical
                else self._settings.delegate_solve_window_normal_seconds
            )
            ticket.deadline_solve = now + seconds_to_ms(window)
        ticket.add_message(MessageSender.AGENT, f"{agent.name} accepted the task and started working...", now)

        session.emit_tickets()
        self._bot_notice(session, agent, "accepted the task and started working...", NotificationType.INFO, ticket)
        self._audit.record(session, "BOT_ACCEPT", ticket.id, botId=agent.id, botName=agent.name)

        if ticket.is_critical:
            low = self._settings.delegate_solve_time_critical_min_seconds
            high = self._settings.delegate_solve_time_critical_max_seconds
        else:
            low = self._settings.delegate_solve_time_normal_min_seconds
            high = self._settings.delegate_solve_time_normal_max_seconds
        session.defer(self._dice.uniform(low, high), self.finish, session, ticket, agent)
        return ACCEPTED

    def _decline(self, session: Session, ticket: Ticket, agent: Agent) -> None:
        if self._dice.roll(self._settings.delegate_ignore_share):
            self._bot_notice(session, agent, "read the request, but didn't respond.", NotificationType.WARNING, ticket)
            self._audit.record(session, "BOT_IGNORE", ticket.id, botId=agent.id, botName=agent.name)
        else:
            self._bot_notice(session, agent, "refused: «I'm busy with other tasks»", NotificationType.ERROR, ticket)
            self._audit.record(session, "BOT_REFUSAL", ticket.id, botId=agent.id, botName=agent.name)

    def finish(self, session: Session, ticket: Ticket, agent: Agent) -> None:
        """Outcome of the colleague's work"""
        if not ticket.is_owned_by(agent.id):
            logger.info(f"{agent.name}'s result for {short_id(ticket.id)} discarded, ticket changed meanwhile")
            return

        now = self._clock.now_ms()
        fail_probability = (
            self._settings.delegate_fail_probability_critical if ticket.is_critical
            else self._settings.delegate_fail_probability_normal
        )

        if self._dice.roll(fail_probability):
            ticket.status = TicketStatus.NOT_ASSIGNED
            ticket.assignee = None
            ticket.deadline_solve = None
            ticket.add_message(
                MessageSender.AGENT,
                f"{agent.name} tried but couldn't solve the {'critical ' if ticket.is_critical else ''}issue. "
                "Returning ticket to queue.",
                now
            )
            session.emit_tickets()
            self._bot_notice(
                session, agent,
                f"failed to solve {'critical ' if ticket.is_critical else ''}ticket, returning to queue.",
                NotificationType.ERROR, ticket
            )
            self._audit.record(
                session, "BOT_FAIL_CRITICAL" if ticket.is_critical else "BOT_FAIL", ticket.id,
                botId=agent.id, botName=agent.name, isCritical=ticket.is_critical
            )
            return

        ticket.status = TicketStatus.SOLVED
        ticket.solution_author = agent.id
        ticket.linked_kb_id = DELEGATE_KB_REF
        if ticket.is_critical:
            ticket.solution = (
                f"🚨 CRITICAL TICKET RESOLVED by {agent.name}: Emergency server restart performed, "
                "services restored. Root cause: hardware failure in power supply unit."
            )
            summary = f"🚨 CRITICAL ISSUE RESOLVED: {agent.name} completed emergency procedures. All systems back online."
        else:
            ticket.solution = f"Solved by {agent.name} based on standard operating procedures."
            summary = f"{agent.name}: Task completed successfully. Issue resolved."
        ticket.add_message(MessageSender.AGENT, summary, now)

        session.emit_tickets()
        self._bot_notice(
            session, agent,
            f"successfully solved {critical_prefix(ticket)}ticket \"{ticket.title[:30]}...\"",
            NotificationType.SUCCESS, ticket
        )
        self._audit.record(session, "BOT_SOLVE", ticket.id, botId=agent.id, botName=agent.name)
        session.defer(self._settings.client_thanks_delay_seconds, self.acknowledge, session, ticket, agent)

    def acknowledge(self, session: Session, ticket: Ticket, agent: Agent) -> None:
        """Scripted client reply after a colleague resolution"""
        if ticket.status != TicketStatus.SOLVED or ticket.solution_author != agent.id:
            return
        ticket.add_message(
            MessageSender.CLIENT,
            "🚨 Thank you for the quick response! Business operations restored, all systems working normally."
            if ticket.is_critical
            else "Thank you, the problem is solved! Everything works correctly now.",
            self._clock.now_ms() + 100
        )
        session.emit_tickets()
