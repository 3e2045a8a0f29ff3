"""
Repositories package for database operations

Provides repository classes for writes to:
- action_logs table (ActionLogRepository)
"""
from helpdesk_sim.repositories.action_log_repository import ActionLogRepository

__all__ = [
    "ActionLogRepository",
]
