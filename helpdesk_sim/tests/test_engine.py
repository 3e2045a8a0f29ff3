"""
Tests for the simulation engine: connections, stages and admin triggers
"""
import pytest

from helpdesk_sim.exceptions import NotEligibleError, NotFoundError
from helpdesk_sim.models.schemas import AgentStatus, AiMode, EventType, Parity, TicketStatus
from helpdesk_sim.services.timers import (
    AGENT_LIFECYCLE,
    DEADLINE_SWEEP,
    STAGE_TIMER,
    TICKET_SPAWNER,
)


class TestConnect:

    @pytest.mark.asyncio
    async def test_unknown_participant_without_parity(self, engine):
        with pytest.raises(NotFoundError):
            engine.connect("c1", "ghost")
        assert len(engine.registry) == 0

    @pytest.mark.asyncio
    async def test_snapshot_of_new_session(self, engine):
        snapshot = engine.connect("c1", "p1", Parity.EVEN)

        assert snapshot.current_stage == 1
        assert snapshot.ai_mode == AiMode.NORMAL
        assert snapshot.participant_parity == Parity.EVEN
        assert len(snapshot.kb_articles) == len(engine.catalog.articles)
        assert len(snapshot.agents) == 5

    @pytest.mark.asyncio
    async def test_tutorial_tickets_seeded_once(self, engine, connect, sim_settings):
        session = connect(engine, "p1", Parity.ODD)
        await session.drain()

        assert len(session.tickets) == sim_settings.tutorial_ticket_count
        assert all(t.is_tutorial for t in session.tickets)
        assert not session.tutorial_seeding

        engine.connect("c-second-tab", "p1")
        await session.drain()
        assert len(session.tickets) == sim_settings.tutorial_ticket_count

    @pytest.mark.asyncio
    async def test_interrupted_seeding_restarts_on_reconnect(self, engine, connect, sim_settings):
        session = connect(engine, "p1", Parity.ODD)
        engine.disconnect("conn-p1")
        await session.drain()
        assert session.tickets == []

        engine.connect("conn-p1", "p1")
        await session.drain()
        assert len(session.tickets) == sim_settings.tutorial_ticket_count

    @pytest.mark.asyncio
    async def test_participant_for_unbound_connection(self, engine):
        with pytest.raises(NotFoundError):
            engine.participant_for("nobody")

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, engine, connect):
        connect(engine, "p1", Parity.ODD)

        with pytest.raises(NotFoundError):
            engine.set_ticket_status("p1", "missing", TicketStatus.IN_PROGRESS)
        with pytest.raises(NotFoundError):
            engine.solve_ticket("p1", "missing", "done")


class TestStartStage:

    @pytest.mark.asyncio
    async def test_requires_session_or_parity(self, engine):
        with pytest.raises(NotFoundError):
            engine.start_stage("ghost", 2)

    @pytest.mark.asyncio
    async def test_colleague_shift(self, engine, connect, clock, gateway):
        session = connect(engine, "p-odd", Parity.ODD)
        gateway.clear()

        engine.start_stage("p-odd", 2)

        assert session.stage == 2
        assert [a.id for a in session.agents] == ["bot1", "bot2", "bot3", "bot4", "bot5"]
        assert all(a.status == AgentStatus.ONLINE for a in session.agents)
        assert session.stage_started_at == clock.now_ms()
        assert session.stage_duration_ms == 600_000
        init = gateway.of(EventType.INIT)[-1]
        assert init["currentStage"] == 2
        assert init["participantParity"] == "odd"
        assert len(init["agents"]) == 5

    @pytest.mark.asyncio
    async def test_ai_shift_has_everyone_offline(self, engine, connect):
        session = connect(engine, "p-even", Parity.EVEN)

        engine.start_stage("p-even", 2, ai_mode=AiMode.AUTONOMOUS)

        assert session.ai_mode == AiMode.AUTONOMOUS
        assert all(a.status == AgentStatus.OFFLINE for a in session.agents)

    @pytest.mark.asyncio
    async def test_restart_keeps_shift_start(self, engine, connect, clock, gateway):
        session = connect(engine, "p-even", Parity.EVEN)
        engine.start_stage("p-even", 2)
        started = session.stage_started_at
        clock.advance(100)

        engine.start_stage("p-even", 2)

        assert session.stage_started_at == started
        assert gateway.of(EventType.TIMER_UPDATE)[-1] == {"timeLeft": 500}
        assert sorted(session.timers.running_names()) == sorted([DEADLINE_SWEEP, TICKET_SPAWNER, STAGE_TIMER])

    @pytest.mark.asyncio
    async def test_stage_one_takes_colleagues_offline(self, engine, connect):
        session = connect(engine, "p-odd", Parity.ODD)

        engine.start_stage("p-odd", 1)

        assert all(a.status == AgentStatus.OFFLINE for a in session.agents)
        assert session.timers.running_names() == [DEADLINE_SWEEP]

    @pytest.mark.asyncio
    async def test_created_session_waits_for_connection(self, engine):
        session = engine.start_stage("p-new", 2, parity=Parity.ODD)

        assert not session.active
        assert session.timers.running_names() == []

        engine.connect("c1", "p-new")
        assert AGENT_LIFECYCLE in session.timers.running_names()

    @pytest.mark.asyncio
    async def test_timed_out_shift_does_not_restart_countdown(self, engine, connect):
        session = connect(engine, "p-even", Parity.EVEN)
        engine.start_stage("p-even", 2)
        session.shift_timed_out = True
        engine.disconnect("conn-p-even")

        engine.connect("conn-p-even", "p-even")

        assert not session.timers.is_running(STAGE_TIMER)
        assert session.timers.is_running(TICKET_SPAWNER)


class TestChangeAiMode:

    @pytest.mark.asyncio
    async def test_switch_on_ai_track(self, engine, connect, gateway):
        session = connect(engine, "p-even", Parity.EVEN)
        engine.start_stage("p-even", 2)
        gateway.clear()

        engine.change_ai_mode("p-even", AiMode.AUTONOMOUS)

        assert session.ai_mode == AiMode.AUTONOMOUS
        assert gateway.events() == ["ai:mode_changed", "tickets:update", "shift:timer:update"]
        assert gateway.of(EventType.AI_MODE_CHANGED) == [{"aiMode": "autonomous"}]

    @pytest.mark.asyncio
    async def test_refused_on_colleague_track(self, engine, connect):
        connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)

        with pytest.raises(NotEligibleError):
            engine.change_ai_mode("p-odd", AiMode.AUTONOMOUS)

    @pytest.mark.asyncio
    async def test_refused_in_tutorial(self, engine, connect):
        session = connect(engine, "p-even", Parity.EVEN)

        with pytest.raises(NotEligibleError):
            engine.change_ai_mode("p-even", AiMode.AUTONOMOUS)
        assert session.ai_mode == AiMode.NORMAL

    @pytest.mark.asyncio
    async def test_unknown_participant(self, engine):
        with pytest.raises(NotFoundError):
            engine.change_ai_mode("ghost", AiMode.AUTONOMOUS)


class TestCompleteTutorial:

    @pytest.mark.asyncio
    async def test_purges_tutorial_tickets(self, engine, connect):
        session = connect(engine, "p-odd", Parity.ODD)
        await session.drain()
        kept = engine.tickets.spawn(session)
        session.agents[0].status = AgentStatus.AWAY

        result = engine.complete_tutorial("p-odd")

        assert result == {"success": True, "currentStage": 2, "participantParity": "odd"}
        assert session.tickets == [kept]
        assert session.stage == 2
        assert session.timers.running_names() == []
        assert all(a.status == AgentStatus.ONLINE for a in session.agents)


class TestAdmin:

    @pytest.mark.asyncio
    async def test_spawn_on_inactive_session(self, engine, connect):
        session = connect(engine, "p1", Parity.ODD)
        engine.disconnect("conn-p1")

        assert engine.spawn_critical_ticket("p1") is None
        assert session.tickets == []

    @pytest.mark.asyncio
    async def test_spawn_tutorial_ticket(self, engine, connect):
        connect(engine, "p1", Parity.ODD)

        ticket = engine.spawn_tutorial_ticket("p1")

        assert ticket.is_tutorial

    @pytest.mark.asyncio
    async def test_reset_participant(self, engine, connect):
        session = connect(engine, "p1", Parity.ODD)
        engine.start_stage("p1", 2)

        assert engine.reset_participant("p1") is True
        assert engine.reset_participant("p1") is False
        assert engine.registry.get("p1") is None
        assert session.timers.running_names() == []
        with pytest.raises(NotFoundError):
            engine.connect("conn-p1", "p1")

    @pytest.mark.asyncio
    async def test_debug_state(self, engine, connect):
        connect(engine, "p-odd", Parity.ODD)
        engine.start_stage("p-odd", 2)
        engine.tickets.spawn(engine.registry.get("p-odd"))
        engine.start_stage("p-idle", 2, parity=Parity.EVEN)

        state = engine.debug_state()

        assert state["totalSessions"] == 2
        assert state["activeSessions"] == 1
        assert state["kbArticlesCount"] == len(engine.catalog.articles)
        detail = state["sessions"]["p-odd"]
        assert detail["isActive"] is True
        assert detail["timeLeft"] == 600
        assert detail["connections"] == 1
        assert detail["tickets"][0]["status"] == "not_assigned"
        assert len(detail["agents"]) == 5
        assert state["sessions"]["p-idle"]["timers"] == []

    @pytest.mark.asyncio
    async def test_health(self, engine, connect):
        connect(engine, "p1", Parity.ODD)

        assert engine.health() == {
            "status": "healthy",
            "sessions": 1,
            "activeSessions": 1,
            "auditPersistence": False,
        }
