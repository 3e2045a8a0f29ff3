"""
Pydantic models for the Helpdesk Shift Simulator
"""

from helpdesk_sim.models.schemas import (
    # Enums
    TicketStatus,
    Severity,
    Parity,
    AiMode,
    AgentStatus,
    MessageSender,
    NotificationType,
    EventType,

    # Markers
    PARTICIPANT,
    AI,

    # Catalog
    KBArticle,
    TicketTemplate,

    # Entities
    TicketMessage,
    Ticket,
    Agent,

    # Payloads
    Notification,
    SessionSnapshot,
    AiAdvice,
    ActionLogCreate,

    # Requests
    StartStageRequest,
    ChangeAiModeRequest,
    ParticipantRequest,

    # WebSocket payloads
    SocketPayload,
    InitPayload,
    TicketStatusPayload,
    SolvePayload,
    AskAiPayload,
    DelegatePayload,
)

__all__ = [
    "TicketStatus",
    "Severity",
    "Parity",
    "AiMode",
    "AgentStatus",
    "MessageSender",
    "NotificationType",
    "EventType",
    "PARTICIPANT",
    "AI",
    "KBArticle",
    "TicketTemplate",
    "TicketMessage",
    "Ticket",
    "Agent",
    "Notification",
    "SessionSnapshot",
    "AiAdvice",
    "ActionLogCreate",
    "StartStageRequest",
    "ChangeAiModeRequest",
    "ParticipantRequest",
    "SocketPayload",
    "InitPayload",
    "TicketStatusPayload",
    "SolvePayload",
    "AskAiPayload",
    "DelegatePayload",
]
