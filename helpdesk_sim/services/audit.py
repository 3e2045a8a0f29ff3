"""
Audit trail

Every simulation action is logged locally and, when a repository is
configured, persisted in the background. Persistence failures are logged and
never reach the state transition that produced the record.
"""
import asyncio
from typing import Optional, Set, TYPE_CHECKING

from helpdesk_sim.models.schemas import ActionLogCreate
from helpdesk_sim.repositories.action_log_repository import ActionLogRepository
from helpdesk_sim.utils.logger import get_logger
from helpdesk_sim.utils.text import short_id

if TYPE_CHECKING:
    from helpdesk_sim.services.session import Session

logger = get_logger(__name__)


class AuditLogger:
    """Fire-and-forget action log"""

    def __init__(self, repository: Optional[ActionLogRepository] = None):
        self._repository = repository
        self._pending: Set[asyncio.Task] = set()

    @property
    def persistent(self) -> bool:
        return self._repository is not None

    def record(
        self,
        session: "Session",
        action_type: str,
        ticket_id: Optional[str] = None,
        **details
    ) -> ActionLogCreate:
        """
        Record one action of a session

        Args:
            session: Session the action belongs to
            action_type: Upper-case action name (e.g. TICKET_SPAWN)
            ticket_id: Ticket concerned, if any
            **details: Extra JSON-serializable context

        Returns:
            The log entry (already scheduled for persistence)
        """
        entry = ActionLogCreate(
            participant_id=session.participant_id,
            stage=session.stage,
            action_type=action_type,
            ticket_id=ticket_id,
            details={
                "parity": session.parity.value,
                "aiMode": session.ai_mode.value,
                **details,
            },
        )
        suffix = f" ticket {short_id(ticket_id)}" if ticket_id else ""
        logger.info(f"[ACTION_LOG] {session.participant_id} (stage {session.stage}): {action_type}{suffix}")

        if self._repository is None:
            return entry

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write(entry)
            return entry

        task = loop.create_task(asyncio.to_thread(self._write, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return entry

    def _write(self, entry: ActionLogCreate) -> None:
        try:
            self._repository.log_action(entry)
        except Exception as e:
            logger.error(f"Error saving action log {entry.action_type} for {entry.participant_id}: {e}")

    async def flush(self) -> None:
        """Wait for background writes (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
