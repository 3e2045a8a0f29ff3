"""
pytest configuration for simulation tests

Time and randomness are injected: FakeClock only moves when a test advances
it, ScriptedDice answers rolls from a queue, and every delay in
`sim_settings` is zero so deferred continuations run as soon as a test
awaits `session.drain()`. Periodic timers get hour-long intervals and are
ticked by hand.
"""
import random
from typing import Any, Iterable, List, Sequence, Tuple

import pytest
import pytest_asyncio

from helpdesk_sim.config import Settings
from helpdesk_sim.models.schemas import EventType, Parity
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.broadcast import encode_event
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.engine import SimulationEngine
from helpdesk_sim.services.roster import fresh_roster
from helpdesk_sim.services.session import Session
from helpdesk_sim.services.tickets import TicketService
from helpdesk_sim.utils.clock import Clock
from helpdesk_sim.utils.dice import Dice

START_MS = 1_700_000_000_000


class FakeClock(Clock):
    """Manually advanced clock"""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class ScriptedDice(Dice):
    """
    Deterministic dice

    roll() pops the next scripted outcome; with an empty script it only
    succeeds for certain events (probability >= 1). Ranges return their
    lower bound, choice the first item, sample the first k items and
    randint the upper bound.
    """

    def __init__(self):
        super().__init__(random.Random(0))
        self.outcomes: List[bool] = []
        self.probabilities: List[float] = []

    def script(self, *outcomes: bool) -> "ScriptedDice":
        self.outcomes.extend(outcomes)
        return self

    def roll(self, probability: float) -> bool:
        self.probabilities.append(probability)
        if self.outcomes:
            return self.outcomes.pop(0)
        return probability >= 1.0

    def uniform(self, low: float, high: float) -> float:
        return low

    def choice(self, items: Sequence[Any]) -> Any:
        return items[0]

    def sample(self, items: Sequence[Any], k: int) -> List[Any]:
        return list(items)[:k]

    def randint(self, low: int, high: int) -> int:
        return high


class RecordingGateway:
    """Broadcaster that keeps every frame, encoded exactly as sent"""

    def __init__(self):
        self.frames: List[Tuple[Tuple[str, ...], str, Any]] = []

    def publish(self, connection_ids: Iterable[str], event: EventType, data: Any = None) -> None:
        frame = encode_event(event, data)
        self.frames.append((tuple(sorted(connection_ids)), frame["event"], frame["data"]))

    def send(self, connection_id: str, event: EventType, data: Any = None) -> None:
        frame = encode_event(event, data)
        self.frames.append(((connection_id,), frame["event"], frame["data"]))

    def of(self, event: EventType) -> List[Any]:
        """Payloads of one event type, oldest first"""
        return [data for _, name, data in self.frames if name == EventType(event).value]

    def events(self) -> List[str]:
        return [name for _, name, _ in self.frames]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def sim_settings() -> Settings:
    """Settings with zero delays and timers that never fire on their own"""
    return Settings(
        supabase_url="",
        supabase_service_role_key="",
        stage_tick_seconds=3600,
        deadline_sweep_interval_seconds=3600,
        spawn_interval_seconds=3600,
        agent_check_interval_seconds=3600,
        tutorial_spawn_stagger_seconds=0,
        client_review_delay_seconds=0,
        client_thanks_delay_seconds=0,
        ai_pickup_delay_seconds=0,
        ai_notice_delay_seconds=0,
        ai_solve_time_normal_min_seconds=0,
        ai_solve_time_normal_max_seconds=0,
        ai_solve_time_critical_min_seconds=0,
        ai_solve_time_critical_max_seconds=0,
        delegate_reply_delay_min_seconds=0,
        delegate_reply_delay_max_seconds=0,
        delegate_solve_time_normal_min_seconds=0,
        delegate_solve_time_normal_max_seconds=0,
        delegate_solve_time_critical_min_seconds=0,
        delegate_solve_time_critical_max_seconds=0,
    )


@pytest.fixture
def catalog() -> ContentCatalog:
    return ContentCatalog.default()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dice() -> ScriptedDice:
    return ScriptedDice()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


@pytest_asyncio.fixture
async def engine(sim_settings, catalog, gateway, clock, dice, audit):
    """Engine on the test's event loop; every session is torn down afterwards"""
    engine = SimulationEngine(sim_settings, catalog, gateway, clock=clock, dice=dice, audit=audit)
    yield engine
    engine.shutdown()


@pytest.fixture
def connect():
    """Bind a connection and return the participant's session"""
    def _connect(engine: SimulationEngine, participant_id: str, parity: str, connection_id: str = None):
        engine.connect(connection_id or f"conn-{participant_id}", participant_id, parity)
        return engine.registry.get(participant_id)
    return _connect


@pytest.fixture
def ticket_service(sim_settings, catalog, clock, dice, audit) -> TicketService:
    return TicketService(catalog, clock, dice, audit, sim_settings)


@pytest.fixture
def idle_session(gateway) -> Session:
    """Colleague-track session that was never connected"""
    return Session("p-idle", Parity.ODD, gateway, fresh_roster())
