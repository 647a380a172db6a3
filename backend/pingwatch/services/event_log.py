"""Event log sink - appends probe outcomes and trims each monitor's history."""
import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import EventLogEntry
from ..utils.db_utils import utcnow
from .prober import ProbeOutcome

logger = logging.getLogger(__name__)


class EventLogSink:
    """Keeps the newest ``retention`` outcomes per monitor.

    The log is a bounded ring: each insert is followed by a delete of
    everything older than the newest ``retention`` rows for that monitor.
    Ties on timestamp are broken by insertion id.
    """

    def __init__(self, retention: int = settings.event_log_retention):
        self.retention = retention

    async def record(self, session: AsyncSession, monitor_id: int, outcome: ProbeOutcome) -> EventLogEntry:
        """Append one entry and trim. The caller commits."""
        entry = EventLogEntry(
            monitor_id=monitor_id,
            status=outcome.status.value,
            status_code=outcome.status_code,
            message=outcome.log_message,
            timestamp=utcnow(),
        )
        session.add(entry)
        await session.flush()

        newest = (
            select(EventLogEntry.id)
            .where(EventLogEntry.monitor_id == monitor_id)
            .order_by(EventLogEntry.timestamp.desc(), EventLogEntry.id.desc())
            .limit(self.retention)
        )
        result = await session.execute(
            delete(EventLogEntry)
            .where(
                EventLogEntry.monitor_id == monitor_id,
                EventLogEntry.id.not_in(newest),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.debug(f"Trimmed {result.rowcount} event log entries for monitor {monitor_id}")
        return entry

    async def recent(self, session: AsyncSession, monitor_id: int) -> List[EventLogEntry]:
        """Retained entries for a monitor, newest first."""
        result = await session.execute(
            select(EventLogEntry)
            .where(EventLogEntry.monitor_id == monitor_id)
            .order_by(EventLogEntry.timestamp.desc(), EventLogEntry.id.desc())
            .limit(self.retention)
        )
        return list(result.scalars().all())


# Global instance
event_log_sink = EventLogSink()
