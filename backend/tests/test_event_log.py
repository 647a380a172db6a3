import pytest
from sqlalchemy import func, select

from pingwatch.models import EventLogEntry
from pingwatch.services.event_log import EventLogSink
from pingwatch.services.prober import ProbeOutcome, ProbeStatus

from conftest import FAILURE, SUCCESS


async def count_entries(session, monitor_id):
    result = await session.execute(
        select(func.count()).select_from(EventLogEntry).where(EventLogEntry.monitor_id == monitor_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_record_stores_outcome(db_session, make_monitor):
    monitor = await make_monitor()
    sink = EventLogSink(retention=10)

    await sink.record(db_session, monitor.id, SUCCESS)
    await sink.record(db_session, monitor.id, FAILURE)
    await db_session.commit()

    entries = await sink.recent(db_session, monitor.id)
    assert [e.status for e in entries] == ["fail", "success"]
    assert entries[0].message == "HTTP Status 503"
    assert entries[0].status_code == 503
    assert entries[1].message == "OK"


@pytest.mark.asyncio
async def test_record_keeps_only_newest_entries(db_session, make_monitor):
    monitor = await make_monitor()
    sink = EventLogSink(retention=10)

    for i in range(15):
        outcome = ProbeOutcome(status=ProbeStatus.FAIL, status_code=500, message=f"failure {i}")
        await sink.record(db_session, monitor.id, outcome)
        await db_session.commit()
        assert await count_entries(db_session, monitor.id) == min(i + 1, 10)

    entries = await sink.recent(db_session, monitor.id)
    assert [e.message for e in entries] == [f"failure {i}" for i in range(14, 4, -1)]


@pytest.mark.asyncio
async def test_retention_is_per_monitor(db_session, make_monitor):
    first = await make_monitor(url="https://one.example.com")
    second = await make_monitor(url="https://two.example.com")
    sink = EventLogSink(retention=3)

    for _ in range(2):
        await sink.record(db_session, second.id, SUCCESS)
    for _ in range(5):
        await sink.record(db_session, first.id, FAILURE)
    await db_session.commit()

    assert await count_entries(db_session, first.id) == 3
    assert await count_entries(db_session, second.id) == 2
