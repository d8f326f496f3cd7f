import logging
from typing import AsyncIterator, Awaitable, Callable
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from ..core.config import get_settings
from ..core.errors import NotFoundError
from ..db.database import get_sessionmaker
from ..db.models import Timer
from ..schemas import TimerStartIn, TimerOut, TimerListOut, WorkLogOut
from ..services.timer_feed import get_timer_view
from ..services.timers import (
    start_timer, pause_timer, resume_timer, stop_timer, elapsed_seconds, timer_state, utcnow,
)
from .deps import current_user

router = APIRouter(prefix="/timers", tags=["timers"])

logger = logging.getLogger(__name__)

STREAM_KEEPALIVE_SECONDS = 15.0

def _timer_out(t, now) -> TimerOut:
    # t is a Timer row or a cached TimerSnapshot
    return TimerOut.model_validate(t).model_copy(
        update={"state": timer_state(t).value, "elapsed_seconds": elapsed_seconds(t, now)}
    )

async def _timer_list(session, email: str) -> TimerListOut:
    now = utcnow()
    snapshots = await get_timer_view().get(session, email)
    return TimerListOut(
        timers=[_timer_out(s, now) for s in snapshots],
        poll_interval_seconds=get_settings().timer_poll_seconds,
    )

async def _own_timer(session, timer_id: int, email: str) -> Timer:
    res = await session.execute(select(Timer).where(Timer.id == timer_id, Timer.user_email == email))
    t = res.scalar_one_or_none()
    if not t:
        raise NotFoundError("Timer not found")
    return t

def _sse(snapshot: TimerListOut) -> str:
    return f"event: timers\ndata: {snapshot.model_dump_json()}\n\n"

async def timer_events(
    user_email: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = STREAM_KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Server-sent events for one user's timers.

    Sends the current list first, then a fresh list after every change event.
    A comment line goes out when nothing changed for `keepalive` seconds.
    """
    view = get_timer_view()
    sub = view.feed.subscribe(user_email)
    Session = get_sessionmaker()
    try:
        async with Session() as session:
            snapshot = await _timer_list(session, user_email)
        yield _sse(snapshot)
        while not await is_disconnected():
            event = await sub.next_event(timeout=keepalive)
            if event is None:
                yield ": keepalive\n\n"
                continue
            async with Session() as session:
                snapshot = await _timer_list(session, user_email)
            yield _sse(snapshot)
    finally:
        view.feed.unsubscribe(sub)
        logger.debug("Timer stream closed for %s", user_email)

@router.get("", response_model=TimerListOut)
async def list_timers(user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        return await _timer_list(session, user.email)

@router.get("/stream")
async def stream_timers(request: Request, user=Depends(current_user)):
    return StreamingResponse(
        timer_events(user.email, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

@router.post("", response_model=TimerOut)
async def start(payload: TimerStartIn, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        t = await start_timer(
            session,
            user_email=user.email,
            project_id=payload.project_id,
            ticket_id=payload.ticket_id,
            task_detail=payload.task_detail,
            categories=payload.dynamic_category_selections,
        )
        get_timer_view().invalidate(user.email, "started", t.id)
        return _timer_out(t, utcnow())

@router.post("/{timer_id}/pause", response_model=TimerOut)
async def pause(timer_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        t = await pause_timer(session, await _own_timer(session, timer_id, user.email))
        get_timer_view().invalidate(user.email, "paused", timer_id)
        return _timer_out(t, utcnow())

@router.post("/{timer_id}/resume", response_model=TimerOut)
async def resume(timer_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        t = await resume_timer(session, await _own_timer(session, timer_id, user.email))
        get_timer_view().invalidate(user.email, "resumed", timer_id)
        return _timer_out(t, utcnow())

@router.post("/{timer_id}/stop", response_model=WorkLogOut)
async def stop(timer_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        log = await stop_timer(session, await _own_timer(session, timer_id, user.email))
        get_timer_view().invalidate(user.email, "stopped", timer_id)
        return log
