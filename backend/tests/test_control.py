import json

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from pingwatch.models import EventLogEntry, Monitor
from pingwatch.schemas.monitor import EventLogResponse, MonitorCreate, MonitorUpdate
from pingwatch.services import control

from conftest import FAILURE


@pytest.mark.asyncio
async def test_create_monitor_persists_and_starts(db_session, scheduler):
    data = MonitorCreate(url="https://example.com", keyword="Welcome", headers={"X-Token": "t"})

    monitor = await control.create_monitor(db_session, 10, data, scheduler=scheduler)

    assert monitor.id is not None
    assert monitor.interval == 300
    assert json.loads(monitor.headers) == {"X-Token": "t"}
    assert scheduler.is_live(monitor.id)
    assert scheduler.get_live(monitor.id).snapshot.keyword == "Welcome"


def test_create_rejects_short_interval():
    with pytest.raises(ValidationError):
        MonitorCreate(url="https://example.com", interval=10)


def test_create_rejects_non_http_url():
    with pytest.raises(ValidationError):
        MonitorCreate(url="ftp://example.com")


@pytest.mark.asyncio
async def test_update_probe_settings_restarts_timer(db_session, scheduler, make_monitor):
    monitor = await make_monitor()
    scheduler.start(monitor)
    before = scheduler.get_live(monitor.id)

    updated = await control.update_monitor(
        db_session, monitor.id, MonitorUpdate(interval=120, headers={}), scheduler=scheduler
    )

    live = scheduler.get_live(monitor.id)
    assert live is not before
    assert live.interval == 120
    assert live.consecutive_failures == 0
    assert updated.headers is None


@pytest.mark.asyncio
async def test_update_keyword_empty_string_clears_it(db_session, scheduler, make_monitor):
    monitor = await make_monitor(keyword="old")

    updated = await control.update_monitor(db_session, monitor.id, MonitorUpdate(keyword=""), scheduler=scheduler)

    assert updated.keyword is None


@pytest.mark.asyncio
async def test_set_maintenance_keeps_running_timer(db_session, scheduler, make_monitor):
    monitor = await make_monitor()
    scheduler.start(monitor)
    live = scheduler.get_live(monitor.id)

    updated = await control.set_maintenance(db_session, monitor.id, 8)
    assert updated.maintenance_until is not None
    assert updated.state_at().value == "maintenance"
    assert scheduler.get_live(monitor.id) is live

    cleared = await control.set_maintenance(db_session, monitor.id, 0)
    assert cleared.maintenance_until is None


@pytest.mark.asyncio
async def test_toggle_pauses_and_resumes(db_session, scheduler, make_monitor):
    monitor = await make_monitor()
    scheduler.start(monitor)

    paused = await control.toggle_monitor(db_session, monitor.id, scheduler=scheduler)
    assert paused.is_active is False
    assert not scheduler.is_live(monitor.id)

    resumed = await control.toggle_monitor(db_session, monitor.id, scheduler=scheduler)
    assert resumed.is_active is True
    assert scheduler.is_live(monitor.id)


@pytest.mark.asyncio
async def test_delete_stops_timer_and_removes_history(db_session, session_factory, scheduler, make_monitor):
    scheduler.prober.outcomes = [FAILURE]
    monitor = await make_monitor()
    scheduler.start(monitor)
    await scheduler.tick(scheduler.get_live(monitor.id))

    await control.delete_monitor(db_session, monitor.id, scheduler=scheduler)

    assert not scheduler.is_live(monitor.id)
    async with session_factory() as session:
        assert await session.get(Monitor, monitor.id) is None
        count = await session.execute(select(func.count()).select_from(EventLogEntry))
        assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_event_log_and_listing(db_session, scheduler, make_monitor):
    monitor = await make_monitor(user_id=3)
    await make_monitor(user_id=4)
    scheduler.start(monitor)
    await scheduler.tick(scheduler.get_live(monitor.id))

    entries = await control.get_event_log(db_session, monitor.id)
    assert all(isinstance(e, EventLogResponse) for e in entries)
    assert [e.message for e in entries] == ["OK"]

    monitors = await control.list_monitors(db_session, 3)
    assert [m.id for m in monitors] == [monitor.id]

    response = control.to_response(monitors[0])
    assert response.success_count == 1
    assert response.uptime_percent == 100.0
    assert response.state == "active"


@pytest.mark.asyncio
async def test_unknown_monitor_raises(db_session, scheduler):
    with pytest.raises(control.MonitorNotFoundError):
        await control.toggle_monitor(db_session, 999, scheduler=scheduler)


def test_headers_must_be_ascii():
    with pytest.raises(ValidationError):
        MonitorCreate(url="https://example.com", headers={"X-Name": "café"})
    with pytest.raises(ValidationError):
        MonitorUpdate(headers={"X-Näme": "value"})


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(db_session, scheduler, make_monitor):
    monitor = await make_monitor(interval=60)

    with pytest.raises(ValidationError):
        MonitorUpdate(interval=None)
    with pytest.raises(ValidationError):
        MonitorUpdate(url=None)

    # Clearing the optional fields is still allowed
    updated = await control.update_monitor(
        db_session, monitor.id, MonitorUpdate(keyword=None, headers=None), scheduler=scheduler
    )
    assert updated.interval == 60
    assert updated.keyword is None


@pytest.mark.asyncio
async def test_owner_ids_beyond_32_bits(db_session, scheduler):
    user_id = 5_000_000_000
    monitor = await control.create_monitor(
        db_session, user_id, MonitorCreate(url="https://example.com"), scheduler=scheduler
    )

    assert [m.id for m in await control.list_monitors(db_session, user_id)] == [monitor.id]
    assert scheduler.get_live(monitor.id).snapshot.user_id == user_id
