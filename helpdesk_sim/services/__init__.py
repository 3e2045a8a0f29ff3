"""
Simulation Services

The engine itself lives in helpdesk_sim.services.engine; it is not
re-exported here because the resolvers in helpdesk_sim.agents import these
modules.
"""
from .audit import AuditLogger
from .broadcast import Broadcaster, WebSocketGateway
from .catalog import ContentCatalog
from .registry import SessionRegistry
from .session import Session
from .tickets import TicketService

__all__ = [
    "AuditLogger",
    "Broadcaster",
    "WebSocketGateway",
    "ContentCatalog",
    "SessionRegistry",
    "Session",
    "TicketService",
]
