"""
Action Log Repository

Writes participant and simulation actions to the `action_logs` table in
Supabase. Used by the audit logger on a worker thread; callers treat every
write as best effort.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

from helpdesk_sim.config import get_settings
from helpdesk_sim.models.schemas import ActionLogCreate
from helpdesk_sim.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()


class ActionLogRepository:
    """Repository for action_logs table operations."""

    def __init__(self, supabase_client=None) -> None:
        if supabase_client is None:
            from supabase import create_client  # Lazy import for tests

            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
        else:
            self.client = supabase_client

        self.table_name = "action_logs"
        logger.info("ActionLogRepository initialized for table: %s", self.table_name)

    @staticmethod
    def _serialize_payload(entry: ActionLogCreate) -> Dict[str, Any]:
        """Prepare row for Supabase (JSON-safe details, strip None)."""
        payload = jsonable_encoder(entry)
        return {key: value for key, value in payload.items() if value is not None}

    def log_action(self, entry: ActionLogCreate) -> None:
        """
        Insert one action log row.

        Raises:
            Exception: Propagates Supabase errors to the caller
        """
        payload = self._serialize_payload(entry)
        self.client.table(self.table_name).insert(payload).execute()
        logger.debug(
            "Stored action %s for participant %s",
            entry.action_type,
            entry.participant_id
        )

    def ping(self) -> None:
        """Cheapest possible round trip, used by the health check."""
        self.client.table(self.table_name).select("id").limit(1).execute()
