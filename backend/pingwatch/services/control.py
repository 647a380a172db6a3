"""Control layer - the operations a front end uses to configure monitors.

Writes go to the database first, then the scheduler is told about them:
``start`` is how configuration is applied, so any change to the probe
configuration restarts the monitor's timer. Maintenance windows are read
by every tick and never need a restart.
"""
import json
import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Monitor
from ..schemas.monitor import EventLogResponse, MonitorCreate, MonitorResponse, MonitorUpdate
from ..utils.db_utils import retry_on_lock, utcnow
from .event_log import event_log_sink
from .scheduler import scheduler_service, SchedulerService

logger = logging.getLogger(__name__)

# Fields whose change must be applied by restarting the timer
PROBE_FIELDS = ("url", "interval", "keyword", "headers")


class MonitorNotFoundError(LookupError):
    def __init__(self, monitor_id: int):
        super().__init__(f"Monitor {monitor_id} not found")
        self.monitor_id = monitor_id


async def _get_monitor(session: AsyncSession, monitor_id: int) -> Monitor:
    monitor = await session.get(Monitor, monitor_id)
    if monitor is None:
        raise MonitorNotFoundError(monitor_id)
    return monitor


def to_response(monitor: Monitor) -> MonitorResponse:
    total = (monitor.success_count or 0) + (monitor.fail_count or 0)
    uptime = round(monitor.success_count / total * 100, 2) if total else None
    return MonitorResponse(
        id=monitor.id,
        user_id=monitor.user_id,
        url=monitor.url,
        interval=monitor.interval,
        keyword=monitor.keyword,
        headers=monitor.header_map,
        is_active=bool(monitor.is_active),
        state=monitor.state_at().value,
        success_count=monitor.success_count or 0,
        fail_count=monitor.fail_count or 0,
        uptime_percent=uptime,
        last_ping_time=monitor.last_ping_time,
        last_status_code=monitor.last_status_code,
        last_response_time=monitor.last_response_time,
        maintenance_until=monitor.maintenance_until,
        ssl_expiry_date=monitor.ssl_expiry_date,
    )


async def create_monitor(
    session: AsyncSession,
    user_id: int,
    data: MonitorCreate,
    scheduler: Optional[SchedulerService] = None,
) -> Monitor:
    """Persist a new monitor and start probing it."""
    scheduler = scheduler or scheduler_service
    monitor = Monitor(
        user_id=user_id,
        url=data.url,
        interval=data.interval,
        keyword=data.keyword,
        headers=json.dumps(data.headers) if data.headers else None,
        is_active=True,
        success_count=0,
        fail_count=0,
    )
    session.add(monitor)
    await retry_on_lock(session.commit)
    await session.refresh(monitor)

    scheduler.start(monitor)
    logger.info(f"Monitor {monitor.id} created for user {user_id}: {monitor.url}")
    return monitor


async def update_monitor(
    session: AsyncSession,
    monitor_id: int,
    data: MonitorUpdate,
    scheduler: Optional[SchedulerService] = None,
) -> Monitor:
    """Apply a partial update; restarts the timer if probe settings changed."""
    scheduler = scheduler or scheduler_service
    monitor = await _get_monitor(session, monitor_id)

    changes = data.model_dump(exclude_unset=True)
    if "keyword" in changes:
        changes["keyword"] = changes["keyword"] or None
    if "headers" in changes:
        changes["headers"] = json.dumps(changes["headers"]) if changes["headers"] else None

    for key, value in changes.items():
        setattr(monitor, key, value)
    await retry_on_lock(session.commit)

    if any(key in PROBE_FIELDS for key in changes):
        scheduler.start(monitor)
    return monitor


async def toggle_monitor(
    session: AsyncSession,
    monitor_id: int,
    scheduler: Optional[SchedulerService] = None,
) -> Monitor:
    """Pause an active monitor or resume a paused one."""
    scheduler = scheduler or scheduler_service
    monitor = await _get_monitor(session, monitor_id)
    monitor.is_active = not monitor.is_active
    await retry_on_lock(session.commit)

    if monitor.is_active:
        scheduler.start(monitor)
    else:
        scheduler.stop(monitor.id)
    return monitor


async def set_maintenance(session: AsyncSession, monitor_id: int, hours: float) -> Monitor:
    """Suppress auto-stop alerting for ``hours``; 0 ends the window."""
    monitor = await _get_monitor(session, monitor_id)
    monitor.maintenance_until = utcnow() + timedelta(hours=hours) if hours > 0 else None
    await retry_on_lock(session.commit)
    logger.info(f"Maintenance for monitor {monitor_id} set until {monitor.maintenance_until}")
    return monitor


async def delete_monitor(
    session: AsyncSession,
    monitor_id: int,
    scheduler: Optional[SchedulerService] = None,
):
    scheduler = scheduler or scheduler_service
    monitor = await _get_monitor(session, monitor_id)
    scheduler.stop(monitor_id)
    await session.delete(monitor)
    await retry_on_lock(session.commit)
    logger.info(f"Monitor {monitor_id} deleted")


async def list_monitors(session: AsyncSession, user_id: int) -> List[Monitor]:
    result = await session.execute(
        select(Monitor).where(Monitor.user_id == user_id).order_by(Monitor.id)
    )
    return list(result.scalars().all())


async def get_event_log(session: AsyncSession, monitor_id: int) -> List[EventLogResponse]:
    """Retained probe outcomes for a monitor, newest first."""
    await _get_monitor(session, monitor_id)
    entries = await event_log_sink.recent(session, monitor_id)
    return [EventLogResponse.model_validate(entry) for entry in entries]
