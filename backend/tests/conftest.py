"""Pytest configuration and fixtures for PulseWatch tests.

Tests run against a throwaway SQLite database. Environment variables are set
before the package is imported so the engine points at the temp directory.
"""
import os
import tempfile

_DATA_DIR = tempfile.mkdtemp(prefix="pulsewatch-tests-")
os.environ["DATA_PATH"] = _DATA_DIR
os.environ.pop("DATABASE_URL", None)
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["APP_KEY"] = "test-app-key"
os.environ.pop("PUSHOVER_USER_KEY", None)
os.environ.pop("PUSHOVER_API_TOKEN", None)

import pytest

import pulsewatch.models  # noqa: F401  (registers tables)
from pulsewatch.database import Base, engine, async_session, init_db
from pulsewatch.models import Monitor, NotificationSettings, User
from pulsewatch.services.dispatcher import NotificationDispatcher

from tests.fakes import FakeEmailSender, FakePushSender


@pytest.fixture
async def db():
    """Fresh schema per test; pooled connections are closed on this loop."""
    await init_db()
    yield async_session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(email=None, name="Test User"):
        counter["n"] += 1
        async with async_session() as session:
            user = User(name=name, email=email or f"user{counter['n']}@example.com")
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_monitor(db):
    async def _make_monitor(owner, name="Example", url="https://example.com", interval=5, **fields):
        async with async_session() as session:
            monitor = Monitor(
                owner_id=owner.id,
                name=name,
                url=url,
                check_interval_minutes=interval,
                status=fields.pop("status", "pending"),
                **fields,
            )
            session.add(monitor)
            await session.commit()
            return monitor

    return _make_monitor


@pytest.fixture
def make_settings(db):
    async def _make_settings(owner, **fields):
        async with async_session() as session:
            row = NotificationSettings(user_id=owner.id, **fields)
            session.add(row)
            await session.commit()
            return row

    return _make_settings


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def push_sender():
    return FakePushSender()


@pytest.fixture
def dispatcher(email_sender, push_sender):
    return NotificationDispatcher(email_sender=email_sender, push_sender=push_sender)


@pytest.fixture
def reload_monitor(db):
    async def _reload(monitor_id):
        async with async_session() as session:
            return await session.get(Monitor, monitor_id)

    return _reload
