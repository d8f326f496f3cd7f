"""Tests for the active timer view, its change feed and the event stream."""

import asyncio
import json

import pytest

from alignzo.api.timers import timer_events
from alignzo.services.timer_feed import (
    ActiveTimerView,
    InMemoryTimerChangeFeed,
    TimerEvent,
    TimerSnapshot,
    get_timer_view,
)
from alignzo.services.timers import pause_timer, start_timer, stop_timer


async def _start(session, seed):
    return await start_timer(
        session,
        user_email=seed["user"].email,
        project_id=seed["project"].id,
        ticket_id="INC1",
        task_detail="work",
    )


class _HeldSession:
    """Wraps a session so a read can be held after its SELECT returns."""

    def __init__(self, session):
        self._session = session
        self.loaded = asyncio.Event()
        self.release = asyncio.Event()

    async def execute(self, statement):
        result = await self._session.execute(statement)
        self.loaded.set()
        await self.release.wait()
        return result


async def _connected():
    return False


def _payload(event):
    assert event.startswith("event: timers\n")
    return json.loads(event.split("data: ", 1)[1])


class TestInMemoryFeed:
    """Tests for subscribe/publish."""

    @pytest.mark.asyncio
    async def test_publish_reaches_subscriber(self):
        feed = InMemoryTimerChangeFeed()
        sub = feed.subscribe("a@example.com")
        feed.publish(TimerEvent("a@example.com", "started", 1))
        event = await sub.next_event(timeout=1)
        assert event == TimerEvent("a@example.com", "started", 1)

    @pytest.mark.asyncio
    async def test_events_scoped_to_user(self):
        feed = InMemoryTimerChangeFeed()
        sub = feed.subscribe("a@example.com")
        feed.publish(TimerEvent("b@example.com", "started", 1))
        assert await sub.next_event(timeout=0.05) is None

    def test_unsubscribe(self):
        feed = InMemoryTimerChangeFeed()
        first = feed.subscribe("a@example.com")
        feed.subscribe("a@example.com")
        assert feed.subscriber_count("a@example.com") == 2
        feed.unsubscribe(first)
        assert feed.subscriber_count("a@example.com") == 1


class TestActiveTimerView:
    """Tests for the read-through cache."""

    @pytest.mark.asyncio
    async def test_cache_fill_and_invalidate(self, session, seed):
        view = ActiveTimerView(InMemoryTimerChangeFeed())
        email = seed["user"].email
        assert await view.get(session, email) == []
        assert view.is_cached(email)

        t = await _start(session, seed)
        # stale until invalidated
        assert await view.get(session, email) == []

        view.invalidate(email, "started", t.id)
        assert not view.is_cached(email)
        timers = await view.get(session, email)
        assert [s.id for s in timers] == [t.id]
        assert isinstance(timers[0], TimerSnapshot)

    @pytest.mark.asyncio
    async def test_invalidate_publishes(self, session, seed):
        feed = InMemoryTimerChangeFeed()
        view = ActiveTimerView(feed)
        email = seed["user"].email
        sub = feed.subscribe(email)

        t = await _start(session, seed)
        view.invalidate(email, "started", t.id)
        await pause_timer(session, t)
        view.invalidate(email, "paused", t.id)

        assert (await sub.next_event(timeout=1)).action == "started"
        assert (await sub.next_event(timeout=1)).action == "paused"
        snapshot = (await view.get(session, email))[0]
        assert snapshot.is_paused

    @pytest.mark.asyncio
    async def test_stopped_timer_leaves_view(self, session, seed):
        view = ActiveTimerView(InMemoryTimerChangeFeed())
        email = seed["user"].email
        t = await _start(session, seed)
        assert len(await view.get(session, email)) == 1
        timer_id = t.id
        await stop_timer(session, t)
        view.invalidate(email, "stopped", timer_id)
        assert await view.get(session, email) == []

    @pytest.mark.asyncio
    async def test_invalidate_during_read_is_not_cached(self, session, seed):
        view = ActiveTimerView(InMemoryTimerChangeFeed())
        email = seed["user"].email
        t = await _start(session, seed)
        timer_id = t.id

        held = _HeldSession(session)
        reader = asyncio.create_task(view.get(held, email))
        await held.loaded.wait()
        await stop_timer(session, t)
        view.invalidate(email, "stopped", timer_id)
        held.release.set()

        # the straddling read may answer with what it saw, but must not keep it
        assert [s.id for s in await reader] == [timer_id]
        assert not view.is_cached(email)
        assert await view.get(session, email) == []
        assert view.is_cached(email)


class TestTimerEventStream:
    """Tests for the server-sent event generator behind /timers/stream."""

    @pytest.mark.asyncio
    async def test_initial_list_then_change(self, session, seed):
        email = seed["user"].email
        view = get_timer_view()
        stream = timer_events(email, _connected)

        first = await stream.__anext__()
        assert _payload(first)["timers"] == []
        assert view.feed.subscriber_count(email) == 1

        t = await _start(session, seed)
        view.invalidate(email, "started", t.id)
        body = _payload(await asyncio.wait_for(stream.__anext__(), timeout=2))
        assert [x["id"] for x in body["timers"]] == [t.id]
        assert body["timers"][0]["state"] == "running"

        await stream.aclose()
        assert view.feed.subscriber_count(email) == 0

    @pytest.mark.asyncio
    async def test_keepalive_when_idle(self, seed):
        stream = timer_events(seed["user"].email, _connected, keepalive=0.01)
        await stream.__anext__()
        assert await stream.__anext__() == ": keepalive\n\n"
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_ends_when_client_disconnects(self, seed):
        email = seed["user"].email

        async def gone():
            return True

        stream = timer_events(email, gone)
        await stream.__anext__()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert get_timer_view().feed.subscriber_count(email) == 0

    @pytest.mark.asyncio
    async def test_other_users_changes_not_streamed(self, seed):
        email = seed["user"].email
        stream = timer_events(email, _connected, keepalive=0.05)
        await stream.__anext__()
        get_timer_view().invalidate(seed["other"].email, "started", 1)
        assert await stream.__anext__() == ": keepalive\n\n"
        await stream.aclose()
