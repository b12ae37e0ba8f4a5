from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from pulsewatch.database import async_session
from pulsewatch.models import Alert, Check
from pulsewatch.services import check_service as check_service_module
from pulsewatch.services.check_service import CheckService
from pulsewatch.services.probe import Responded, Unreachable
from tests.fakes import ScriptedProbe

T0 = datetime(2026, 3, 1, 9, 0, 0)


@pytest.fixture
def clock(monkeypatch):
    """Controls the time stamped on each check."""
    now = {"value": T0}
    monkeypatch.setattr(check_service_module, "utcnow", lambda: now["value"])
    return now


async def test_outage_and_recovery_end_to_end(make_user, make_monitor, make_settings, reload_monitor,
                                              dispatcher, email_sender, clock):
    owner = await make_user(email="owner@example.com")
    monitor = await make_monitor(owner, name="API", url="https://api.example.com", interval=5)
    await make_settings(owner, email_enabled=True)
    probe = ScriptedProbe(
        Unreachable("Connection timeout after 30 seconds"),
        Responded(200, 120),
    )
    service = CheckService(probe=probe, dispatcher=dispatcher)

    first = await service.perform_check(monitor.id)

    assert first.status == "failed"
    assert first.status_code is None
    assert first.error_message == "Connection timeout after 30 seconds"
    reloaded = await reload_monitor(monitor.id)
    assert reloaded.status == "down"
    assert reloaded.last_checked_at == T0
    assert reloaded.last_status_change_at == T0
    assert len(email_sender.sent) == 1
    assert email_sender.sent[0][1]["template"] == "monitor-down"

    clock["value"] = T0 + timedelta(minutes=5)
    second = await service.perform_check(monitor.id)

    assert second.status == "success"
    assert (second.status_code, second.response_time_ms, second.error_message) == (200, 120, None)
    reloaded = await reload_monitor(monitor.id)
    assert reloaded.status == "up"
    assert reloaded.last_status_change_at == T0 + timedelta(minutes=5)
    assert len(email_sender.sent) == 2
    recovery = email_sender.sent[1][1]
    assert recovery["template"] == "monitor-recovery"
    assert recovery["downtime_minutes"] == 5
    assert recovery["downtime_duration"] == "5 minutes"

    async with async_session() as session:
        alerts = (await session.execute(select(Alert.alert_type).order_by(Alert.id))).scalars().all()
    assert alerts == ["down", "up"]


async def test_first_success_is_silent(make_user, make_monitor, make_settings, reload_monitor,
                                       dispatcher, email_sender, clock):
    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True)
    service = CheckService(probe=ScriptedProbe(Responded(204, 15)), dispatcher=dispatcher)

    await service.perform_check(monitor.id)

    assert (await reload_monitor(monitor.id)).status == "up"
    assert email_sender.sent == []


async def test_repeated_failures_alert_once(make_user, make_monitor, make_settings, dispatcher, email_sender, clock):
    owner = await make_user()
    monitor = await make_monitor(owner, status="up")
    await make_settings(owner, email_enabled=True)
    service = CheckService(probe=ScriptedProbe(Responded(500, 30)), dispatcher=dispatcher)

    for minute in range(3):
        clock["value"] = T0 + timedelta(minutes=minute)
        await service.perform_check(monitor.id)

    assert len(email_sender.sent) == 1
    assert email_sender.sent[0][1]["error_details"] == "HTTP 500 response received"


async def test_missing_monitor_returns_none(db, dispatcher):
    probe = ScriptedProbe(Responded(200, 10))
    service = CheckService(probe=probe, dispatcher=dispatcher)

    assert await service.perform_check(12345) is None
    assert probe.calls == []


async def test_notification_failure_keeps_check(make_user, make_monitor, make_settings, reload_monitor, clock):
    class ExplodingDispatcher:
        async def dispatch(self, *args, **kwargs):
            raise RuntimeError("mail relay exploded")

    owner = await make_user()
    monitor = await make_monitor(owner)
    await make_settings(owner, email_enabled=True)
    service = CheckService(probe=ScriptedProbe(Unreachable("Connection refused")), dispatcher=ExplodingDispatcher())

    check = await service.perform_check(monitor.id)

    assert check.status == "failed"
    assert (await reload_monitor(monitor.id)).status == "down"


async def test_persistence_errors_propagate(make_user, make_monitor, dispatcher, clock):
    class BrokenRecorder:
        async def record(self, session, monitor_id, outcome, checked_at):
            raise RuntimeError("disk I/O error")

    owner = await make_user()
    monitor = await make_monitor(owner)
    service = CheckService(probe=ScriptedProbe(Responded(200, 10)), recorder=BrokenRecorder(), dispatcher=dispatcher)

    with pytest.raises(RuntimeError, match="disk I/O error"):
        await service.perform_check(monitor.id)


async def test_stored_check_is_stable(make_user, make_monitor, dispatcher, clock):
    owner = await make_user()
    monitor = await make_monitor(owner)
    service = CheckService(probe=ScriptedProbe(Responded(301, 42)), dispatcher=dispatcher)

    check = await service.perform_check(monitor.id)

    async def _read():
        async with async_session() as session:
            row = await session.get(Check, check.id)
            return (row.monitor_id, row.status, row.status_code, row.response_time_ms,
                    row.error_message, row.checked_at)

    first = await _read()
    assert first == await _read()
    assert first == (monitor.id, "success", 301, 42, None, T0)
