"""
Tests for the per-session timers

Most timers are ticked by hand; the stage timer test lets the real asyncio
loop drive a short interval.
"""
import asyncio

import pytest

from helpdesk_sim.models.schemas import AgentStatus, EventType, Parity, TicketStatus
from helpdesk_sim.services.timers import (
    AGENT_LIFECYCLE,
    DEADLINE_SWEEP,
    STAGE_TIMER,
    TICKET_SPAWNER,
    AgentLifecycle,
    DeadlineSweep,
    PeriodicTimer,
    StageTimer,
    TicketSpawner,
    TimerSet,
)


class CountingTimer(PeriodicTimer):
    name = "counting"

    def __init__(self, session, interval, limit=None, fail_first=False):
        super().__init__(session, interval)
        self.ticks = 0
        self.limit = limit
        self.fail_first = fail_first

    def tick(self):
        self.ticks += 1
        if self.fail_first and self.ticks == 1:
            raise RuntimeError("boom")
        return self.limit is None or self.ticks < self.limit


class TestTimerSet:

    @pytest.mark.asyncio
    async def test_duplicate_start_is_ignored(self, idle_session):
        timers = TimerSet("p1")
        first = CountingTimer(idle_session, 3600)

        assert timers.start(first)
        assert not timers.start(CountingTimer(idle_session, 3600))
        assert timers.running_names() == ["counting"]
        timers.stop_all()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, idle_session):
        timers = TimerSet("p1")
        timer = CountingTimer(idle_session, 3600)
        timers.start(timer)

        timers.stop("counting")
        timers.stop("counting")
        timer.stop()
        timers.stop_all()

        assert not timer.running
        assert timers.running_names() == []

    @pytest.mark.asyncio
    async def test_tick_returning_false_ends_timer(self, idle_session):
        timer = CountingTimer(idle_session, 0.001, limit=2)
        timer.start()

        for _ in range(50):
            if not timer.running:
                break
            await asyncio.sleep(0.01)

        assert timer.ticks == 2
        assert not timer.running

    @pytest.mark.asyncio
    async def test_tick_exception_keeps_timer_alive(self, idle_session):
        timer = CountingTimer(idle_session, 0.001, limit=3, fail_first=True)
        timer.start()

        for _ in range(50):
            if not timer.running:
                break
            await asyncio.sleep(0.01)

        assert timer.ticks == 3


class TestStageTimer:

    @pytest.mark.asyncio
    async def test_timeout_emitted_once(self, engine, connect, clock, gateway, audit):
        session = connect(engine, "p1", Parity.ODD)
        session.stage = 2
        session.stage_started_at = clock.now_ms()
        session.stage_duration_ms = 2_000
        timer = StageTimer(session, clock, audit, interval=0.001)

        timer.start()
        assert gateway.of(EventType.TIMER_UPDATE)[-1] == {"timeLeft": 2}
        clock.advance(5)
        for _ in range(50):
            if not timer.running:
                break
            await asyncio.sleep(0.01)

        assert not timer.running
        assert session.shift_timed_out
        assert len(gateway.of(EventType.SHIFT_TIMEOUT)) == 1
        assert gateway.of(EventType.TIMER_UPDATE)[-1] == {"timeLeft": 0}

        # a restarted timer does not re-announce the timeout
        StageTimer(session, clock, audit).tick()
        assert len(gateway.of(EventType.SHIFT_TIMEOUT)) == 1

    @pytest.mark.asyncio
    async def test_countdown_while_running(self, engine, connect, clock, gateway, audit):
        session = connect(engine, "p1", Parity.ODD)
        session.stage_started_at = clock.now_ms()
        session.stage_duration_ms = 600_000
        timer = StageTimer(session, clock, audit)

        clock.advance(61.5)
        assert timer.tick() is True
        assert gateway.of(EventType.TIMER_UPDATE)[-1] == {"timeLeft": 538}


class TestTicketSpawner:

    @pytest.fixture
    def spawner(self, engine, dice, clock, sim_settings):
        def _make(session):
            session.stage = 2
            session.stage_started_at = clock.now_ms()
            session.stage_duration_ms = 600_000
            return TicketSpawner(session, engine.tickets, clock, dice, sim_settings)
        return _make

    @pytest.mark.asyncio
    async def test_first_half_spawns_on_roll(self, engine, connect, spawner, dice, sim_settings):
        session = connect(engine, "p1", Parity.ODD)
        timer = spawner(session)
        dice.script(True, False)

        timer.tick()
        timer.tick()

        assert len(session.tickets) == 1
        assert not session.tickets[0].is_critical
        assert dice.probabilities == [sim_settings.spawn_probability] * 2

    @pytest.mark.asyncio
    async def test_second_half_spawns_critical_under_cooldown(self, engine, connect, spawner, clock):
        session = connect(engine, "p1", Parity.ODD)
        timer = spawner(session)
        clock.advance(301)

        timer.tick()
        clock.advance(29)
        timer.tick()
        critical = [t for t in session.tickets if t.is_critical]
        assert len(critical) == 1

        clock.advance(1)
        timer.tick()
        critical = [t for t in session.tickets if t.is_critical]
        assert len(critical) == 2
        assert all(t.is_critical for t in session.tickets)

    @pytest.mark.asyncio
    async def test_inactive_session_spawns_nothing(self, engine, connect, spawner, dice):
        session = connect(engine, "p1", Parity.ODD)
        timer = spawner(session)
        engine.disconnect("conn-p1")
        dice.script(True)

        assert timer.tick() is True
        assert session.tickets == []


class TestDeadlineSweepTimer:

    @pytest.mark.asyncio
    async def test_sweeps_only_while_active(self, engine, connect, clock):
        session = connect(engine, "p1", Parity.ODD)
        ticket = engine.tickets.spawn(session)
        clock.advance(200)
        engine.disconnect("conn-p1")

        DeadlineSweep(session, engine.tickets).tick()
        assert not ticket.assign_overdue_reported

        engine.connect("conn-p1", "p1")
        DeadlineSweep(session, engine.tickets).tick()
        assert ticket.assign_overdue_reported
        assert ticket.status == TicketStatus.NOT_ASSIGNED


class TestAgentLifecycle:

    @pytest.mark.asyncio
    async def test_flips_and_broadcasts(self, engine, connect, dice, gateway, audit, sim_settings):
        session = connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)
        lifecycle = AgentLifecycle(session, dice, audit, sim_settings)
        gateway.clear()

        dice.script(True, False, False, False, False)
        lifecycle.tick()
        assert session.find_agent("bot1").status == AgentStatus.AWAY
        assert len(gateway.of(EventType.AGENTS_UPDATE)) == 1

        dice.script(False, False, False, False, True)
        lifecycle.tick()
        assert session.find_agent("bot1").status == AgentStatus.AWAY
        assert session.find_agent("bot5").status == AgentStatus.AWAY
        assert len(gateway.of(EventType.AGENTS_UPDATE)) == 2

        dice.script(True)
        lifecycle.tick()
        assert session.find_agent("bot1").status == AgentStatus.ONLINE
        assert len(gateway.of(EventType.AGENTS_UPDATE)) == 3

    @pytest.mark.asyncio
    async def test_no_change_no_broadcast(self, engine, connect, dice, gateway, audit, sim_settings):
        session = connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)
        gateway.clear()

        AgentLifecycle(session, dice, audit, sim_settings).tick()

        assert gateway.of(EventType.AGENTS_UPDATE) == []


class TestSessionTimers:

    @pytest.mark.asyncio
    async def test_stage_two_colleague_track_runs_all_four(self, engine, connect):
        session = connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)

        assert sorted(session.timers.running_names()) == sorted(
            [STAGE_TIMER, DEADLINE_SWEEP, TICKET_SPAWNER, AGENT_LIFECYCLE]
        )

    @pytest.mark.asyncio
    async def test_ai_track_has_no_agent_lifecycle(self, engine, connect):
        session = connect(engine, "p-even", Parity.EVEN)
        engine.start_stage("p-even", 2)

        assert AGENT_LIFECYCLE not in session.timers.running_names()
        assert session.timers.is_running(TICKET_SPAWNER)

    @pytest.mark.asyncio
    async def test_tutorial_runs_only_the_sweep(self, engine, connect):
        session = connect(engine, "p1", Parity.ODD)
        assert session.timers.running_names() == [DEADLINE_SWEEP]

    @pytest.mark.asyncio
    async def test_deactivation_stops_everything(self, engine, connect, gateway, dice):
        session = connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)

        engine.disconnect("conn-p-odd")
        gateway.clear()
        dice.script(True, True, True)
        await asyncio.sleep(0.01)

        assert session.timers.running_names() == []
        assert session.pending_continuations == 0
        assert gateway.frames == []

    @pytest.mark.asyncio
    async def test_reconnect_resumes_without_duplicates(self, engine, connect):
        session = connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)
        engine.disconnect("conn-p-odd")

        engine.connect("conn-2", "p-odd")
        engine.connect("conn-3", "p-odd")

        assert len(session.timers.running_names()) == 4
        assert session.connections == {"conn-2", "conn-3"}
