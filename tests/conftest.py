"""Shared fixtures: a throwaway SQLite database and an authenticated API client."""

import csv
import io

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from alignzo.core.config import get_settings
from alignzo.core.security import sign_session
from alignzo.db.database import dispose_engine, get_sessionmaker, init_db
from alignzo.db.models import (
    Project,
    TicketSource,
    TicketUploadMapping,
    TicketUploadUserMapping,
    User,
)
from alignzo.services import timer_feed
from alignzo.services.csv_tickets import REQUIRED_HEADERS, SAMPLE_ROW

MAPPED_ORG = "IT Support Team A"


def build_csv(rows, headers=None):
    """Write rows (dicts of header overrides on top of SAMPLE_ROW) as CSV bytes."""
    headers = headers or REQUIRED_HEADERS
    sio = io.StringIO()
    writer = csv.writer(sio, lineterminator="\n")
    writer.writerow(headers)
    for overrides in rows:
        row = {**SAMPLE_ROW, **overrides}
        writer.writerow([row.get(h, "") for h in headers])
    return sio.getvalue().encode("utf-8")


@pytest.fixture(autouse=True)
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("APP_SECRET", "test-secret-for-sessions")
    for name in ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN", "UPLOAD_MAX_BYTES", "UPLOAD_BATCH_SIZE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        timer_feed, "_view", timer_feed.ActiveTimerView(timer_feed.InMemoryTimerChangeFeed())
    )
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db(env):
    await dispose_engine()
    await init_db()
    yield get_sessionmaker()
    await dispose_engine()


@pytest_asyncio.fixture
async def session(db):
    async with db() as s:
        yield s


@pytest_asyncio.fixture
async def seed(db):
    """A user, an admin, a project, the Remedy source and one mapping."""
    async with db() as s:
        user = User(email="agent@example.com", name="Agent", role="user", password_hash="unused")
        other = User(email="other@example.com", name="Other", role="user", password_hash="unused")
        admin = User(email="admin@example.com", name="Admin", role="admin", password_hash="unused")
        project = Project(name="Billing", product="Portal", country="DE")
        source = TicketSource(name="Remedy")
        s.add_all([user, other, admin, project, source])
        await s.flush()
        mapping = TicketUploadMapping(
            source_id=source.id,
            project_id=project.id,
            source_organization_value=MAPPED_ORG,
            user_mappings=[
                TicketUploadUserMapping(user_email="john@example.com", source_assignee_value="john.doe"),
            ],
        )
        s.add(mapping)
        await s.commit()
        return {
            "user": user,
            "other": other,
            "admin": admin,
            "project": project,
            "source": source,
            "mapping": mapping,
        }


def _client(user):
    from alignzo.main import app

    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Session": sign_session(user.id, user.email)},
    )


@pytest_asyncio.fixture
async def client(seed):
    async with _client(seed["user"]) as c:
        yield c


@pytest_asyncio.fixture
async def other_client(seed):
    async with _client(seed["other"]) as c:
        yield c


@pytest_asyncio.fixture
async def admin_client(seed):
    async with _client(seed["admin"]) as c:
        yield c
