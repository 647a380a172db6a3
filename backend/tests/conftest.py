import json
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pingwatch.database import Base, configure_sqlite
from pingwatch.models import Monitor
from pingwatch.services.alerter import AlerterService
from pingwatch.services.event_log import EventLogSink
from pingwatch.services.prober import ProbeOutcome, ProbeStatus
from pingwatch.services.scheduler import SchedulerService

SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite://"


SUCCESS = ProbeOutcome(status=ProbeStatus.SUCCESS, status_code=200, latency_ms=12.5)
FAILURE = ProbeOutcome(status=ProbeStatus.FAIL, status_code=503, latency_ms=40.0, message="HTTP Status 503")


class ScriptedProber:
    """Returns queued outcomes in order; repeats the last one when exhausted."""

    def __init__(self, outcomes: Optional[List[ProbeOutcome]] = None):
        self.outcomes = list(outcomes or [SUCCESS])
        self.calls: List[Tuple[str, Optional[str], dict]] = []

    async def probe(self, target, keyword=None, headers=None):
        self.calls.append((target, keyword, headers or {}))
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class RecordingNotifier:
    def __init__(self, succeed: bool = True):
        self.sent: List[Tuple[int, str]] = []
        self.succeed = succeed

    async def notify(self, user_id, message):
        self.sent.append((user_id, message))
        return self.succeed


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def prober():
    return ScriptedProber()


@pytest_asyncio.fixture
async def scheduler(session_factory, prober, notifier):
    service = SchedulerService(
        session_factory=session_factory,
        prober=prober,
        event_log=EventLogSink(retention=10),
        alerter=AlerterService(notifier=notifier),
        fail_limit=5,
        min_interval=30,
    )
    yield service
    service.shutdown()


@pytest.fixture
def make_monitor(session_factory):
    async def _make(**fields) -> Monitor:
        headers = fields.pop("headers", None)
        values = dict(
            user_id=42,
            url="https://example.com",
            interval=60,
            is_active=True,
            success_count=0,
            fail_count=0,
        )
        values.update(fields)
        if headers is not None:
            values["headers"] = json.dumps(headers)
        async with session_factory() as session:
            monitor = Monitor(**values)
            session.add(monitor)
            await session.commit()
            await session.refresh(monitor)
            return monitor
    return _make
