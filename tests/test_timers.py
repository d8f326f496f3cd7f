"""Tests for the timer state machine and work-log durations."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from alignzo.core.errors import NotFoundError, TimerStateError, ValidationError
from alignzo.db.models import Timer, WorkLog
from alignzo.services.timers import (
    TimerState,
    create_manual_work_log,
    elapsed_seconds,
    net_duration_seconds,
    pause_timer,
    resume_timer,
    start_timer,
    stop_timer,
    timer_state,
)

T0 = datetime(2025, 8, 18, 9, 0, 0, tzinfo=timezone.utc)


def at(seconds):
    return T0 + timedelta(seconds=seconds)


async def _start(session, seed, now=T0):
    return await start_timer(
        session,
        user_email=seed["user"].email,
        project_id=seed["project"].id,
        ticket_id="INC1",
        task_detail="Investigate login failure",
        categories={"Activity": "Analysis"},
        now=now,
    )


class TestPureHelpers:
    """Tests for state and duration helpers that need no database."""

    def test_no_timer_is_idle(self):
        assert timer_state(None) is TimerState.IDLE

    def test_net_duration_never_negative(self):
        assert net_duration_seconds(at(100), at(50)) == 0
        assert net_duration_seconds(T0, at(60), paused_seconds=600) == 0

    def test_net_duration_subtracts_pauses(self):
        assert net_duration_seconds(T0, at(3600), paused_seconds=600) == 3000


class TestTimerTransitions:
    """Tests for start, pause, resume and stop."""

    @pytest.mark.asyncio
    async def test_start_creates_running_timer(self, session, seed):
        t = await _start(session, seed)
        assert timer_state(t) is TimerState.RUNNING
        assert t.total_pause_duration_seconds == 0
        assert t.dynamic_category_selections == {"Activity": "Analysis"}
        assert elapsed_seconds(t, at(90)) == 90

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["project_id", "ticket_id", "task_detail"])
    async def test_start_requires_fields(self, session, seed, field):
        kwargs = dict(
            user_email=seed["user"].email,
            project_id=seed["project"].id,
            ticket_id="INC1",
            task_detail="work",
        )
        kwargs[field] = None if field == "project_id" else "  "
        with pytest.raises(ValidationError):
            await start_timer(session, **kwargs)
        assert (await session.execute(select(func.count(Timer.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_start_requires_user(self, session, seed):
        with pytest.raises(ValidationError, match="signed in"):
            await start_timer(session, user_email="", project_id=seed["project"].id, ticket_id="INC1", task_detail="x")

    @pytest.mark.asyncio
    async def test_start_unknown_project(self, session, seed):
        with pytest.raises(NotFoundError, match="Project"):
            await start_timer(session, user_email=seed["user"].email, project_id=9999, ticket_id="INC1", task_detail="x")
        assert (await session.execute(select(func.count(Timer.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_pause_resume_stop_duration(self, session, seed):
        """logged = (end - start) - total pause."""
        t = await _start(session, seed)
        await pause_timer(session, t, now=at(60))
        assert timer_state(t) is TimerState.PAUSED
        assert elapsed_seconds(t, at(80)) == 60

        await resume_timer(session, t, now=at(90))
        assert timer_state(t) is TimerState.RUNNING
        assert t.total_pause_duration_seconds == 30
        assert t.pause_start_time is None

        log = await stop_timer(session, t, now=at(150))
        assert log.total_pause_duration_seconds == 30
        assert log.logged_duration_seconds == 120
        assert log.ticket_id == "INC1"
        assert log.dynamic_category_selections == {"Activity": "Analysis"}
        assert (await session.execute(select(func.count(Timer.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_stop_while_paused_closes_pause(self, session, seed):
        t = await _start(session, seed)
        await pause_timer(session, t, now=at(60))
        log = await stop_timer(session, t, now=at(100))
        assert log.total_pause_duration_seconds == 40
        assert log.logged_duration_seconds == 60

    @pytest.mark.asyncio
    async def test_stop_with_clock_skew_is_zero(self, session, seed):
        t = await _start(session, seed)
        log = await stop_timer(session, t, now=at(-30))
        assert log.logged_duration_seconds == 0

    @pytest.mark.asyncio
    async def test_invalid_transitions(self, session, seed):
        t = await _start(session, seed)
        with pytest.raises(TimerStateError):
            await resume_timer(session, t, now=at(10))
        await pause_timer(session, t, now=at(10))
        with pytest.raises(TimerStateError):
            await pause_timer(session, t, now=at(20))

    @pytest.mark.asyncio
    async def test_multiple_timers_per_user(self, session, seed):
        await _start(session, seed)
        await _start(session, seed, now=at(5))
        assert (await session.execute(select(func.count(Timer.id)))).scalar_one() == 2


class TestManualWorkLog:
    """Tests for manual time entries."""

    @pytest.mark.asyncio
    async def test_manual_log_duration(self, session, seed):
        log = await create_manual_work_log(
            session,
            user_email=seed["user"].email,
            project_id=seed["project"].id,
            ticket_id="INC7",
            task_detail="Backfill",
            start_time=T0,
            end_time=at(5400),
        )
        assert log.logged_duration_seconds == 5400
        assert log.total_pause_duration_seconds == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("end_offset", [0, -60])
    async def test_start_not_before_end_rejected(self, session, seed, end_offset):
        with pytest.raises(ValidationError, match="before end"):
            await create_manual_work_log(
                session,
                user_email=seed["user"].email,
                project_id=seed["project"].id,
                ticket_id="INC7",
                task_detail="Backfill",
                start_time=T0,
                end_time=at(end_offset),
            )
        assert (await session.execute(select(func.count(WorkLog.id)))).scalar_one() == 0

    @pytest.mark.asyncio
    async def test_unknown_project_rejected(self, session, seed):
        with pytest.raises(NotFoundError, match="Project"):
            await create_manual_work_log(
                session,
                user_email=seed["user"].email,
                project_id=9999,
                ticket_id="INC7",
                task_detail="Backfill",
                start_time=T0,
                end_time=at(60),
            )
        assert (await session.execute(select(func.count(WorkLog.id)))).scalar_one() == 0
