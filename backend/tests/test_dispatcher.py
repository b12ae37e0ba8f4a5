import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from pulsewatch.database import async_session
from pulsewatch.models import Alert, Check
from pulsewatch.services.dispatcher import format_duration, NotificationDispatcher, NotificationNotConfiguredError
from pulsewatch.services.push_sender import PRIORITY_EMERGENCY, PRIORITY_NORMAL
from tests.fakes import FakeEmailSender, FakePushSender

T0 = datetime(2026, 3, 1, 12, 0, 0)
TOKEN = "a" * 30
USER_KEY = "u" * 30


def _down_check(monitor_id, **fields):
    values = dict(status="failed", error_message="Connection timeout after 30 seconds", checked_at=T0)
    values.update(fields)
    return Check(monitor_id=monitor_id, created_at=T0, **values)


def _up_check(monitor_id, checked_at=T0):
    return Check(monitor_id=monitor_id, status="success", status_code=200, response_time_ms=120,
                 checked_at=checked_at, created_at=checked_at)


async def _dispatch(dispatcher, monitor, direction, check, down_since=None):
    async with async_session() as session:
        return await dispatcher.dispatch(session, monitor, direction, check, down_since=down_since)


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (0, "0 minutes"),
        (1, "1 minute"),
        (5, "5 minutes"),
        (60, "1 hour"),
        (61, "1 hour and 1 minute"),
        (125, "2 hours and 5 minutes"),
        (1440, "1 day"),
        (1500, "1 day and 1 hour"),
        (3 * 1440 + 120, "3 days and 2 hours"),
    ],
)
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


async def test_no_settings_means_no_channels(make_user, make_monitor, dispatcher, email_sender, push_sender):
    owner = await make_user()
    monitor = await make_monitor(owner)

    result = await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    assert result.channels == {}
    assert email_sender.sent == [] and push_sender.sent == []


async def test_email_defaults_to_account_address(make_user, make_monitor, make_settings, dispatcher, email_sender):
    owner = await make_user(email="owner@example.com")
    monitor = await make_monitor(owner, name="API", url="https://api.example.com")
    await make_settings(owner, email_enabled=True)

    result = await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    assert result.channels == {"email": True}
    address, data = email_sender.sent[0]
    assert address == "owner@example.com"
    assert data["template"] == "monitor-down"
    assert data["monitor_name"] == "API"
    assert data["url"] == "https://api.example.com"
    assert data["status"] == "down"
    assert data["error_details"] == "Connection timeout after 30 seconds"
    assert data["status_code"] is None
    assert data["timestamp"] == "2026-03-01 12:00:00 UTC"


async def test_override_address_wins(make_user, make_monitor, make_settings, dispatcher, email_sender):
    owner = await make_user(email="owner@example.com")
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True, email_address="oncall@example.com")

    await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    assert email_sender.sent[0][0] == "oncall@example.com"


async def test_down_via_http_status_reports_code(make_user, make_monitor, make_settings, dispatcher, email_sender):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True)
    check = _down_check(monitor.id, status_code=503, response_time_ms=80, error_message=None)

    await _dispatch(dispatcher, monitor, "down", check)

    data = email_sender.sent[0][1]
    assert data["status_code"] == 503
    assert data["error_details"] == "HTTP 503 response received"


async def test_recovery_includes_downtime(make_user, make_monitor, make_settings, dispatcher, email_sender, push_sender):
    owner = await make_user()
    monitor = await make_monitor(owner, name="Shop")
    await make_settings(owner, email_enabled=True, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)

    result = await _dispatch(dispatcher, monitor, "up", _up_check(monitor.id),
                             down_since=T0 - timedelta(minutes=65))

    assert result.channels == {"email": True, "push": True}
    data = email_sender.sent[0][1]
    assert data["template"] == "monitor-recovery"
    assert data["downtime_duration"] == "1 hour and 5 minutes"
    assert data["downtime_minutes"] == 65
    _, _, message = push_sender.sent[0]
    assert message.title == "Monitor Recovered"
    assert message.priority == PRIORITY_NORMAL
    assert "after 1 hour and 5 minutes" in message.message


async def test_push_down_uses_emergency_priority(make_user, make_monitor, make_settings, dispatcher, push_sender):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=False, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)

    result = await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    assert result.channels == {"push": True}
    user_key, api_token, message = push_sender.sent[0]
    assert (user_key, api_token) == (USER_KEY, TOKEN)
    assert message.priority == PRIORITY_EMERGENCY
    assert message.url == monitor.url


async def test_push_without_credentials_is_skipped(make_user, make_monitor, make_settings, dispatcher, push_sender):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=False, push_enabled=True)

    result = await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    assert result.channels == {}
    assert push_sender.sent == []


async def test_email_failure_does_not_block_push(make_user, make_monitor, make_settings):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)
    email = FakeEmailSender(error=ConnectionRefusedError("smtp down"))
    push = FakePushSender()

    result = await _dispatch(NotificationDispatcher(email, push), monitor, "down", _down_check(monitor.id))

    assert result.channels == {"email": False, "push": True}
    assert len(push.sent) == 1
    assert result.all_succeeded is False


async def test_push_failure_does_not_block_email(make_user, make_monitor, make_settings):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)
    email = FakeEmailSender()
    push = FakePushSender(result=False)

    result = await _dispatch(NotificationDispatcher(email, push), monitor, "down", _down_check(monitor.id))

    assert result.channels == {"email": True, "push": False}


async def test_attempts_are_logged_as_alerts(make_user, make_monitor, make_settings):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)

    await _dispatch(NotificationDispatcher(FakeEmailSender(), FakePushSender(result=False)),
                    monitor, "down", _down_check(monitor.id))

    async with async_session() as session:
        alerts = (await session.execute(select(Alert).order_by(Alert.channel))).scalars().all()
    assert [(a.channel, a.alert_type, a.success) for a in alerts] == [("email", "down", 1), ("push", "down", 0)]
    assert all(TOKEN not in a.payload for a in alerts)


async def test_credentials_never_logged(make_user, make_monitor, make_settings, caplog):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=False, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)
    push = FakePushSender(error=RuntimeError("boom"))

    with caplog.at_level(logging.DEBUG):
        result = await _dispatch(NotificationDispatcher(FakeEmailSender(), push), monitor, "down",
                                 _down_check(monitor.id))

    assert result.channels == {"push": False}
    assert TOKEN not in caplog.text


async def test_env_credentials_override_stored_ones(make_user, make_monitor, make_settings, dispatcher,
                                                    push_sender, monkeypatch):
    from pulsewatch.config import settings

    monkeypatch.setattr(settings, "pushover_user_key", "e" * 30)
    monkeypatch.setattr(settings, "pushover_api_token", "f" * 30)
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=False, push_enabled=True, push_user_key="short", push_api_token="short")

    await _dispatch(dispatcher, monitor, "down", _down_check(monitor.id))

    user_key, api_token, _ = push_sender.sent[0]
    assert (user_key, api_token) == ("e" * 30, "f" * 30)


async def test_send_test_email_uses_account_address(make_user, make_settings, dispatcher, email_sender):
    owner = await make_user(email="owner@example.com")
    await make_settings(owner, email_enabled=True)

    async with async_session() as session:
        sent = await dispatcher.send_test(session, owner.id, "email")

    assert sent is True
    assert email_sender.sent == [("owner@example.com", {"template": "test"})]


async def test_send_test_push_uses_effective_credentials(make_user, make_settings, dispatcher, push_sender):
    owner = await make_user()
    await make_settings(owner, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)

    async with async_session() as session:
        sent = await dispatcher.send_test(session, owner.id, "push")

    assert sent is True
    user_key, api_token, message = push_sender.sent[0]
    assert (user_key, api_token) == (USER_KEY, TOKEN)
    assert message.title == "Test Notification"
    assert message.priority == PRIORITY_NORMAL


@pytest.mark.parametrize(
    "channel, fields, reason",
    [
        ("email", None, "not enabled"),
        ("email", {"email_enabled": False}, "not enabled"),
        ("push", {"push_enabled": False}, "not enabled"),
        ("push", {"push_enabled": True}, "credentials"),
    ],
)
async def test_send_test_requires_configured_channel(make_user, make_settings, dispatcher, channel, fields, reason):
    owner = await make_user()
    if fields is not None:
        await make_settings(owner, **fields)

    async with async_session() as session:
        with pytest.raises(NotificationNotConfiguredError, match=reason):
            await dispatcher.send_test(session, owner.id, channel)


async def test_send_test_delivery_failure_is_false(make_user, make_settings, caplog):
    owner = await make_user()
    await make_settings(owner, email_enabled=False, push_enabled=True, push_user_key=USER_KEY, push_api_token=TOKEN)
    dispatcher = NotificationDispatcher(FakeEmailSender(), FakePushSender(error=RuntimeError("boom")))

    async with async_session() as session:
        assert await dispatcher.send_test(session, owner.id, "push") is False

    assert TOKEN not in caplog.text
