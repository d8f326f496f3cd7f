from __future__ import annotations
import enum
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, TimerStateError, ValidationError
from ..db.models import Project, Timer, WorkLog

logger = logging.getLogger(__name__)


class TimerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _seconds(later: datetime, earlier: datetime) -> int:
    return int((as_utc(later) - as_utc(earlier)).total_seconds())


def timer_state(timer: Optional[Timer]) -> TimerState:
    if timer is None:
        return TimerState.IDLE
    if timer.is_paused:
        return TimerState.PAUSED
    if timer.is_running:
        return TimerState.RUNNING
    return TimerState.STOPPED


def elapsed_seconds(timer: Timer, now: Optional[datetime] = None) -> int:
    """Net seconds shown on the clock. A paused timer stops at its pause point."""
    now = now or utcnow()
    end = timer.pause_start_time if (timer.is_paused and timer.pause_start_time) else now
    total = _seconds(end, timer.start_time) - (timer.total_pause_duration_seconds or 0)
    return max(0, total)


def net_duration_seconds(start: datetime, end: datetime, paused_seconds: int = 0) -> int:
    return max(0, _seconds(end, start) - (paused_seconds or 0))


def _require(**fields) -> None:
    empty = [name for name, value in fields.items() if value is None or (isinstance(value, str) and not value.strip())]
    if empty:
        raise ValidationError("Required fields missing: " + ", ".join(empty))


async def _require_project(session: AsyncSession, project_id: int) -> None:
    if await session.get(Project, project_id) is None:
        raise NotFoundError("Project not found")


async def start_timer(
    session: AsyncSession,
    *,
    user_email: str,
    project_id: Optional[int],
    ticket_id: str,
    task_detail: str,
    categories: Optional[Dict[str, str]] = None,
    now: Optional[datetime] = None,
) -> Timer:
    if not user_email:
        raise ValidationError("You must be signed in to start a timer")
    _require(project=project_id, ticket=ticket_id, task_detail=task_detail)
    await _require_project(session, project_id)
    timer = Timer(
        user_email=user_email,
        project_id=project_id,
        ticket_id=ticket_id.strip(),
        task_detail=task_detail.strip(),
        dynamic_category_selections=dict(categories or {}),
        start_time=now or utcnow(),
        is_running=True,
        is_paused=False,
        pause_start_time=None,
        total_pause_duration_seconds=0,
    )
    session.add(timer)
    await session.commit()
    logger.info("Timer %s started by %s on ticket %s", timer.id, user_email, timer.ticket_id)
    return timer


async def pause_timer(session: AsyncSession, timer: Timer, now: Optional[datetime] = None) -> Timer:
    if timer_state(timer) is not TimerState.RUNNING:
        raise TimerStateError("Only a running timer can be paused")
    timer.is_running = False
    timer.is_paused = True
    timer.pause_start_time = now or utcnow()
    await session.commit()
    logger.info("Timer %s paused", timer.id)
    return timer


async def resume_timer(session: AsyncSession, timer: Timer, now: Optional[datetime] = None) -> Timer:
    if timer_state(timer) is not TimerState.PAUSED:
        raise TimerStateError("Only a paused timer can be resumed")
    now = now or utcnow()
    paused_for = max(0, _seconds(now, timer.pause_start_time or now))
    timer.total_pause_duration_seconds = (timer.total_pause_duration_seconds or 0) + paused_for
    timer.pause_start_time = None
    timer.is_paused = False
    timer.is_running = True
    await session.commit()
    logger.info("Timer %s resumed after %ss paused", timer.id, paused_for)
    return timer


async def stop_timer(session: AsyncSession, timer: Timer, now: Optional[datetime] = None) -> WorkLog:
    """Close the timer into a WorkLog and delete it, in one commit."""
    if timer_state(timer) not in (TimerState.RUNNING, TimerState.PAUSED):
        raise TimerStateError("Timer is not active")
    now = now or utcnow()
    paused_total = timer.total_pause_duration_seconds or 0
    if timer.is_paused and timer.pause_start_time:
        paused_total += max(0, _seconds(now, timer.pause_start_time))

    log = WorkLog(
        user_email=timer.user_email,
        project_id=timer.project_id,
        ticket_id=timer.ticket_id,
        task_detail=timer.task_detail,
        dynamic_category_selections=dict(timer.dynamic_category_selections or {}),
        start_time=as_utc(timer.start_time),
        end_time=now,
        total_pause_duration_seconds=paused_total,
        logged_duration_seconds=net_duration_seconds(timer.start_time, now, paused_total),
    )
    timer_id = timer.id
    session.add(log)
    await session.delete(timer)
    await session.commit()
    logger.info("Timer %s stopped: work log %s, %ss logged", timer_id, log.id, log.logged_duration_seconds)
    return log


async def create_manual_work_log(
    session: AsyncSession,
    *,
    user_email: str,
    project_id: Optional[int],
    ticket_id: str,
    task_detail: str,
    start_time: datetime,
    end_time: datetime,
    categories: Optional[Dict[str, str]] = None,
) -> WorkLog:
    if not user_email:
        raise ValidationError("You must be signed in to log work")
    _require(project=project_id, ticket=ticket_id, task_detail=task_detail, start_time=start_time, end_time=end_time)
    start, end = as_utc(start_time), as_utc(end_time)
    if start >= end:
        raise ValidationError("Start time must be before end time")
    await _require_project(session, project_id)
    log = WorkLog(
        user_email=user_email,
        project_id=project_id,
        ticket_id=ticket_id.strip(),
        task_detail=task_detail.strip(),
        dynamic_category_selections=dict(categories or {}),
        start_time=start,
        end_time=end,
        total_pause_duration_seconds=0,
        logged_duration_seconds=net_duration_seconds(start, end),
    )
    session.add(log)
    await session.commit()
    logger.info("Manual work log %s created by %s (%ss)", log.id, user_email, log.logged_duration_seconds)
    return log
