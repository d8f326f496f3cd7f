from __future__ import annotations
import abc
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import Timer

logger = logging.getLogger(__name__)


@dataclass
class TimerEvent:
    user_email: str
    action: str  # started|paused|resumed|stopped
    timer_id: Optional[int] = None


@dataclass(eq=False)
class Subscription:
    user_email: str
    queue: "asyncio.Queue[TimerEvent]" = field(default_factory=asyncio.Queue)

    async def next_event(self, timeout: Optional[float] = None) -> Optional[TimerEvent]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class TimerChangeFeed(abc.ABC):
    """Change notifications for a user's timers, whatever the transport."""

    @abc.abstractmethod
    def subscribe(self, user_email: str) -> Subscription: ...

    @abc.abstractmethod
    def unsubscribe(self, sub: Subscription) -> None: ...

    @abc.abstractmethod
    def publish(self, event: TimerEvent) -> None: ...


class InMemoryTimerChangeFeed(TimerChangeFeed):
    def __init__(self) -> None:
        self._subs: Dict[str, List[Subscription]] = {}

    def subscribe(self, user_email: str) -> Subscription:
        sub = Subscription(user_email)
        self._subs.setdefault(user_email, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.user_email, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subs.pop(sub.user_email, None)

    def publish(self, event: TimerEvent) -> None:
        for sub in list(self._subs.get(event.user_email, [])):
            sub.queue.put_nowait(event)

    def subscriber_count(self, user_email: str) -> int:
        return len(self._subs.get(user_email, []))


class ActiveTimerView:
    """Read-through cache of each user's open timers.

    Entries are frozen snapshots so they outlive the session that loaded them.
    Every local mutation must call `invalidate`, which also notifies the feed.
    """

    def __init__(self, feed: TimerChangeFeed):
        self.feed = feed
        self._cache: Dict[str, List[TimerSnapshot]] = {}
        # bumped on every invalidate; a read that straddles one must not fill the cache
        self._generation: Dict[str, int] = {}

    async def get(self, session: AsyncSession, user_email: str) -> List[TimerSnapshot]:
        cached = self._cache.get(user_email)
        if cached is not None:
            return cached
        generation = self._generation.get(user_email, 0)
        res = await session.execute(
            select(Timer)
            .where(Timer.user_email == user_email)
            .where((Timer.is_running == True) | (Timer.is_paused == True))  # noqa: E712
            .order_by(Timer.created_at.desc(), Timer.id.desc())
        )
        rows = [_snapshot(t) for t in res.scalars().all()]
        if self._generation.get(user_email, 0) == generation:
            self._cache[user_email] = rows
        else:
            logger.debug("Timer view for %s changed during read; not caching", user_email)
        return rows

    def is_cached(self, user_email: str) -> bool:
        return user_email in self._cache

    def invalidate(self, user_email: str, action: str = "changed", timer_id: Optional[int] = None) -> None:
        self._generation[user_email] = self._generation.get(user_email, 0) + 1
        self._cache.pop(user_email, None)
        self.feed.publish(TimerEvent(user_email=user_email, action=action, timer_id=timer_id))
        logger.debug("Timer view invalidated for %s (%s)", user_email, action)


@dataclass(frozen=True)
class TimerSnapshot:
    id: int
    user_email: str
    project_id: int
    ticket_id: str
    task_detail: str
    dynamic_category_selections: Dict[str, Any]
    start_time: datetime
    is_running: bool
    is_paused: bool
    pause_start_time: Optional[datetime]
    total_pause_duration_seconds: int


def _snapshot(t: Timer) -> TimerSnapshot:
    return TimerSnapshot(
        id=t.id,
        user_email=t.user_email,
        project_id=t.project_id,
        ticket_id=t.ticket_id,
        task_detail=t.task_detail,
        dynamic_category_selections=dict(t.dynamic_category_selections or {}),
        start_time=t.start_time,
        is_running=t.is_running,
        is_paused=t.is_paused,
        pause_start_time=t.pause_start_time,
        total_pause_duration_seconds=t.total_pause_duration_seconds or 0,
    )


_feed = InMemoryTimerChangeFeed()
_view = ActiveTimerView(_feed)

def get_timer_view() -> ActiveTimerView:
    return _view
