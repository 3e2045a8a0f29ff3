"""
Timer Subsystem

Four independent periodic schedulers per session:

- StageTimer: shift countdown, one update per tick, one-shot timeout
- DeadlineSweep: flags newly overdue assign/solve deadlines
- TicketSpawner: spawns normal tickets in the first half of the shift and
  critical tickets (under a cooldown) in the second half
- AgentLifecycle: flips colleague availability between online and away

Each timer is an asyncio task owned by the session's TimerSet. Starting a
timer whose name is already running is ignored, and stopping is idempotent.
"""
import asyncio
from typing import TYPE_CHECKING, Dict, List, Optional

from helpdesk_sim.config import Settings
from helpdesk_sim.models.schemas import AgentStatus, EventType
from helpdesk_sim.utils.clock import Clock, seconds_to_ms
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger

if TYPE_CHECKING:
    from helpdesk_sim.services.audit import AuditLogger
    from helpdesk_sim.services.session import Session
    from helpdesk_sim.services.tickets import TicketService

logger = get_logger(__name__)

STAGE_TIMER = "stage_timer"
DEADLINE_SWEEP = "deadline_sweep"
TICKET_SPAWNER = "ticket_spawner"
AGENT_LIFECYCLE = "agent_lifecycle"


class PeriodicTimer:
    """
    Base class: calls tick() every `interval` seconds until stopped

    tick() returning False ends the timer from the inside. An exception in
    tick() is logged and the timer keeps running.
    """

    name = "timer"

    def __init__(self, session: "Session", interval: float):
        self.session = session
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.on_start()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"{self.name}:{self.session.participant_id}"
        )

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def on_start(self) -> None:
        """Hook run synchronously before the first sleep"""

    def tick(self) -> bool:
        raise NotImplementedError

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    keep_going = self.tick()
                except Exception as e:
                    logger.error(
                        f"{self.name} tick failed for {self.session.participant_id}: {e}",
                        exc_info=True
                    )
                    continue
                if keep_going is False:
                    break
        finally:
            if self._task is asyncio.current_task():
                self._task = None


class TimerSet:
    """Named timers of one session"""

    def __init__(self, owner: str):
        self.owner = owner
        self._timers: Dict[str, PeriodicTimer] = {}

    def start(self, timer: PeriodicTimer) -> bool:
        """
        Start a timer unless one with the same name is already running

        Returns:
            True if the timer was started
        """
        current = self._timers.get(timer.name)
        if current is not None and current.running:
            logger.warning(f"{timer.name} already running for {self.owner}, skipping restart")
            return False
        self._timers[timer.name] = timer
        timer.start()
        logger.info(f"Started {timer.name} for {self.owner}")
        return True

    def stop(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is None:
            return
        if timer.running:
            logger.info(f"Stopped {name} for {self.owner}")
        timer.stop()

    def stop_all(self) -> None:
        for name in list(self._timers):
            self.stop(name)

    def is_running(self, name: str) -> bool:
        timer = self._timers.get(name)
        return timer is not None and timer.running

    def running_names(self) -> List[str]:
        return [name for name, timer in self._timers.items() if timer.running]


# ============================================================================
# Concrete timers
# ============================================================================

class StageTimer(PeriodicTimer):
    """Shift countdown; emits the timeout once and stops itself"""

    name = STAGE_TIMER

    def __init__(self, session: "Session", clock: Clock, audit: "AuditLogger", interval: float = 1.0):
        super().__init__(session, interval)
        self._clock = clock
        self._audit = audit

    def on_start(self) -> None:
        self._publish_remaining()

    def tick(self) -> bool:
        remaining = self._publish_remaining()
        if remaining > 0:
            return True

        session = self.session
        if not session.shift_timed_out:
            session.shift_timed_out = True
            session.emit(EventType.SHIFT_TIMEOUT)
            self._audit.record(session, "SHIFT_TIMEOUT")
            logger.info(f"Shift over for {session.participant_id}")
        return False

    def _publish_remaining(self) -> int:
        remaining = self.session.remaining_ms(self._clock.now_ms()) or 0
        self.session.emit(EventType.TIMER_UPDATE, {"timeLeft": remaining // 1000})
        return remaining


class DeadlineSweep(PeriodicTimer):
    """Periodic overdue check over every non-tutorial ticket"""

    name = DEADLINE_SWEEP

    def __init__(self, session: "Session", tickets: "TicketService", interval: float = 5.0):
        super().__init__(session, interval)
        self._tickets = tickets

    def tick(self) -> bool:
        if self.session.active:
            self._tickets.sweep_deadlines(self.session)
        return True


class TicketSpawner(PeriodicTimer):
    """Decides once per tick whether a ticket arrives and how severe it is"""

    name = TICKET_SPAWNER

    def __init__(
        self,
        session: "Session",
        tickets: "TicketService",
        clock: Clock,
        dice: Dice,
        settings: Settings
    ):
        super().__init__(session, settings.spawn_interval_seconds)
        self._tickets = tickets
        self._clock = clock
        self._dice = dice
        self._settings = settings

    def tick(self) -> bool:
        session = self.session
        if not session.active:
            logger.debug(f"Skipping spawn tick, session {session.participant_id} inactive")
            return True

        now = self._clock.now_ms()
        if self._in_second_half(now):
            cooldown = seconds_to_ms(self._settings.critical_cooldown_seconds)
            last = session.last_critical_spawn_at
            if last is None or now - last >= cooldown:
                if self._tickets.spawn(session, critical=True) is not None:
                    session.last_critical_spawn_at = now
        elif self._dice.roll(self._settings.spawn_probability):
            self._tickets.spawn(session)
        return True

    def _in_second_half(self, now: int) -> bool:
        session = self.session
        if session.stage_started_at is None or not session.stage_duration_ms:
            return False
        return now - session.stage_started_at > session.stage_duration_ms / 2


class AgentLifecycle(PeriodicTimer):
    """Random away/online flips of the colleague roster"""

    name = AGENT_LIFECYCLE

    def __init__(self, session: "Session", dice: Dice, audit: "AuditLogger", settings: Settings):
        super().__init__(session, settings.agent_check_interval_seconds)
        self._dice = dice
        self._audit = audit
        self._settings = settings

    def tick(self) -> bool:
        session = self.session
        if not session.active:
            return True

        changed = False
        for agent in session.agents:
            if agent.status == AgentStatus.ONLINE and self._dice.roll(self._settings.agent_leave_probability):
                agent.status = AgentStatus.AWAY
            elif agent.status == AgentStatus.AWAY and self._dice.roll(self._settings.agent_return_probability):
                agent.status = AgentStatus.ONLINE
            else:
                continue
            changed = True
            self._audit.record(session, "BOT_STATUS_CHANGE", agent=agent.name, status=agent.status.value)

        if changed:
            session.emit_agents()
        return True
