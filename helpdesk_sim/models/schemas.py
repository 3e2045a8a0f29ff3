"""
Pydantic models for the Helpdesk Shift Simulator

Entities (tickets, colleagues, catalog content), outbound event payloads and
inbound request bodies. Wire format is camelCase; Python attributes stay
snake_case.
"""
from enum import Enum
from typing import Optional, List, Dict, Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================

class TicketStatus(str, Enum):
    """Ticket lifecycle states"""
    NOT_ASSIGNED = "not_assigned"
    IN_PROGRESS = "in_progress"
    SOLVED = "solved"


class Severity(str, Enum):
    """Ticket severity"""
    NORMAL = "normal"
    CRITICAL = "critical"


class Parity(str, Enum):
    """Experimental track assigned to a participant"""
    EVEN = "even"  # works with the AI assistant
    ODD = "odd"    # works with simulated colleagues

    @property
    def has_ai(self) -> bool:
        return self is Parity.EVEN

    @property
    def has_colleagues(self) -> bool:
        return self is Parity.ODD


class AiMode(str, Enum):
    """AI assistant operating mode"""
    NORMAL = "normal"
    AUTONOMOUS = "autonomous"


class AgentStatus(str, Enum):
    """Colleague availability"""
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class MessageSender(str, Enum):
    """Author of a ticket conversation entry"""
    CLIENT = "client"
    AGENT = "agent"
    SYSTEM = "system"
    AI = "ai"


class NotificationType(str, Enum):
    """Severity of a participant-facing notification"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    CRITICAL = "critical"


class EventType(str, Enum):
    """Outbound events pushed to every connection of a session"""
    INIT = "init"
    TICKETS_UPDATE = "tickets:update"
    TICKET_NEW = "ticket:new"
    TIMER_UPDATE = "shift:timer:update"
    SHIFT_TIMEOUT = "shift:timeout"
    AGENTS_UPDATE = "agents:update"
    AI_MODE_CHANGED = "ai:mode_changed"
    CLIENT_NOTIFICATION = "client:notification"
    AI_NOTIFICATION = "ai:notification"
    AI_AUTONOMOUS_ACTION = "ai:autonomous_action"
    AI_RESPONSE = "ai:response"
    BOT_NOTIFICATION = "bot:notification"
    TUTORIAL_COMPLETED_ACK = "tutorial:completed:ack"
    INIT_ERROR = "init_error"


# Assignee / solution author markers besides colleague ids
PARTICIPANT = "participant"
AI = "ai"


class WireModel(BaseModel):
    """Base model serialized with camelCase keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Content Catalog
# ============================================================================

class KBArticle(WireModel):
    """Knowledge-base article"""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Article identifier (e.g. kb_101)")
    title: str = Field(..., min_length=1)
    content: str = ""


class TicketTemplate(WireModel):
    """Template the spawner draws normal tickets from"""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = Field(
        "",
        validation_alias=AliasChoices("description", "desc"),
        description="Ticket body; legacy files call it 'desc'"
    )


# ============================================================================
# Entities
# ============================================================================

class TicketMessage(WireModel):
    """One entry of a ticket conversation"""
    sender: MessageSender = Field(
        ...,
        validation_alias=AliasChoices("from", "sender"),
        serialization_alias="from"
    )
    text: str
    timestamp: int = Field(..., description="Epoch milliseconds")


class Ticket(WireModel):
    """
    Support request and its evolving state

    Invariants:
        - status == not_assigned  <=>  assignee is None
        - tutorial tickets never carry deadlines
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    description: str
    severity: Severity = Severity.NORMAL
    status: TicketStatus = TicketStatus.NOT_ASSIGNED
    assignee: Optional[str] = Field(None, description="participant | ai | colleague id")
    created_at: int
    assigned_at: Optional[int] = None
    deadline_assign: Optional[int] = None
    deadline_solve: Optional[int] = None
    messages: List[TicketMessage] = Field(default_factory=list)
    solution: str = ""
    linked_kb_id: Optional[str] = None
    solution_author: Optional[str] = None
    is_critical: bool = False
    is_tutorial: bool = False
    assign_overdue_reported: bool = False
    solve_overdue_reported: bool = False
    review_pending: bool = False

    def add_message(self, sender: MessageSender, text: str, timestamp: int) -> TicketMessage:
        message = TicketMessage(sender=sender, text=text, timestamp=timestamp)
        self.messages.append(message)
        return message

    def is_owned_by(self, assignee: str) -> bool:
        return self.status == TicketStatus.IN_PROGRESS and self.assignee == assignee


class Agent(WireModel):
    """Simulated colleague"""
    id: str
    name: str
    skill: float = Field(0.5, ge=0.0, le=1.0)
    trust: float = Field(..., ge=0.0, le=1.0, description="Probability of accepting a delegation")
    greeting: str = ""
    status: AgentStatus = AgentStatus.ONLINE


# ============================================================================
# Outbound payloads
# ============================================================================

class Notification(WireModel):
    """Typed participant-facing notification"""
    type: NotificationType
    message: str
    bot_name: Optional[str] = None
    ticket_id: Optional[str] = None


class SessionSnapshot(WireModel):
    """Full state sent on init and stage start"""
    tickets: List[Ticket]
    kb_articles: List[KBArticle]
    agents: List[Agent]
    current_stage: int
    ai_mode: AiMode
    participant_parity: Parity


class AiAdvice(WireModel):
    """Answer of the AI assistant for one ticket"""
    ticket_id: str
    text: str
    kb_id: Optional[str] = None


class ActionLogCreate(BaseModel):
    """Row for the action_logs table"""
    participant_id: str = Field(..., min_length=1, max_length=100)
    stage: int
    action_type: str = Field(..., min_length=1, max_length=50)
    ticket_id: Optional[str] = Field(None, max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Inbound requests
# ============================================================================

class StartStageRequest(WireModel):
    """Admin request to (re)start a stage"""
    participant_id: str = Field(..., min_length=1)
    stage: int = Field(..., ge=1, le=2)
    ai_mode: Optional[AiMode] = None
    participant_parity: Optional[Parity] = None


class ChangeAiModeRequest(WireModel):
    """Admin request to switch the AI mode"""
    participant_id: str = Field(..., min_length=1)
    ai_mode: AiMode
    participant_parity: Optional[Parity] = None


class ParticipantRequest(WireModel):
    """Request addressing one participant"""
    participant_id: str = Field(..., min_length=1)


# ============================================================================
# Inbound WebSocket payloads
# ============================================================================

class SocketPayload(WireModel):
    """participantId is optional once the connection has sent request:init"""
    participant_id: Optional[str] = None


class InitPayload(WireModel):
    """request:init"""
    participant_id: str = Field(..., min_length=1)
    parity: Optional[Parity] = None


class TicketStatusPayload(SocketPayload):
    """ticket:status:update"""
    ticket_id: str
    new_status: TicketStatus


class SolvePayload(SocketPayload):
    """ticket:solve"""
    ticket_id: str
    solution: str = Field(..., min_length=1)
    linked_kb_id: Optional[str] = None


class AskAiPayload(SocketPayload):
    """ai:ask"""
    ticket_id: str


class DelegatePayload(SocketPayload):
    """bot:delegate"""
    ticket_id: str
    bot_id: str
