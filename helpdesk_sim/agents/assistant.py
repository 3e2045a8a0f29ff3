"""
AI assistant (ask mode)

Answers a participant's question about a ticket with advice from the
knowledge base. Pure lookup: the ticket is never modified.
"""
from helpdesk_sim.exceptions import NotEligibleError
from helpdesk_sim.models.schemas import AiAdvice, EventType, Ticket
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.session import Session
from helpdesk_sim.utils.logger import get_logger
from helpdesk_sim.utils.text import short_id

logger = get_logger(__name__)

NO_MATCH_TEXT = "Unfortunately, I didn't find exact match in knowledge base."
CRITICAL_TEXT = "Request error, please try again"


class AIAssistant:
    """Knowledge-base advice for AI-track participants"""

    def __init__(self, catalog: ContentCatalog, audit: AuditLogger):
        self._catalog = catalog
        self._audit = audit

    def advise(self, session: Session, ticket: Ticket) -> AiAdvice:
        """
        Build advice for a ticket

        Raises:
            NotEligibleError: Outside stage 2 or not on the AI track
        """
        if session.stage != 2 or not session.parity.has_ai:
            raise NotEligibleError("AI assistant is only available in stage 2 for the AI track")

        article = self._catalog.match_article(ticket.title)
        if article is None:
            text = NO_MATCH_TEXT
        elif ticket.is_critical:
            text = CRITICAL_TEXT
        else:
            first_sentence = article.content.split(".")[0] + "."
            text = f'Advice: {first_sentence} Try this article from the knowledge base "{article.title}". '

        advice = AiAdvice(ticket_id=ticket.id, text=text, kb_id=article.id if article else None)
        logger.info(f"AI advice for {short_id(ticket.id)}: {text[:50]}...")

        session.emit(EventType.AI_NOTIFICATION, {
            "type": "advice_given",
            "message": f"AI provided advice for ticket #{short_id(ticket.id)}",
            "ticketId": ticket.id,
        })
        self._audit.record(
            session, "AI_ASK", ticket.id,
            question=ticket.title, foundKb=article is not None, kbId=advice.kb_id,
            isCritical=ticket.is_critical
        )
        return advice
