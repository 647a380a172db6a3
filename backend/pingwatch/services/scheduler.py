"""Scheduler service - one repeating probe timer per active monitor.

Each active monitor owns an APScheduler interval job (``monitor_<id>``).
Every tick probes the monitor, persists the outcome, and applies the
auto-stop policy:

- a success resets the consecutive-failure counter
- a failure increments it; at ``fail_limit`` the monitor is deactivated,
  its job removed and the owner notified, unless a maintenance window is
  in effect, in which case the alert is suppressed and the counter kept

The live registry (monitor id -> LiveMonitor) is only mutated by
``start``/``stop`` and by ticks, all on the event loop thread. The
failure counter lives on the LiveMonitor, so a restart (new LiveMonitor)
always begins a fresh streak.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import async_session
from ..models import Monitor, MonitorState
from ..utils.db_utils import retry_on_lock, utcnow
from .alerter import alerter_service, AlerterService
from .event_log import event_log_sink, EventLogSink
from .prober import prober_service, ProberService, ProbeOutcome

logger = logging.getLogger(__name__)

# Ticks of one monitor may overlap when a probe outlasts the interval;
# counter updates are atomic increments so overlap is harmless
MAX_OVERLAPPING_TICKS = 2

CERTIFICATE_SWEEP_JOB = "certificate_sweep"


class FailureAction(str, enum.Enum):
    NONE = "none"
    SUPPRESS = "suppress"
    AUTO_STOP = "auto_stop"


def failure_action(consecutive_failures: int, state: MonitorState, fail_limit: int) -> FailureAction:
    """Decide what a failing tick does once its streak is known.

    The suppressed branch does not reset the streak: while maintenance
    lasts every further failure lands here again, and the first failure
    after the window ends stops the monitor.
    """
    if consecutive_failures < fail_limit:
        return FailureAction.NONE
    if state is MonitorState.MAINTENANCE:
        return FailureAction.SUPPRESS
    if state is MonitorState.ACTIVE:
        return FailureAction.AUTO_STOP
    # Paused while this probe was in flight
    return FailureAction.NONE


@dataclass(frozen=True)
class MonitorSnapshot:
    """Probe configuration captured when the timer starts."""
    id: int
    user_id: int
    url: str
    interval: int
    keyword: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_model(cls, monitor: Monitor) -> "MonitorSnapshot":
        return cls(
            id=monitor.id,
            user_id=monitor.user_id,
            url=monitor.url,
            interval=monitor.interval,
            keyword=monitor.keyword or None,
            headers=dict(monitor.header_map),
        )


@dataclass(eq=False)
class LiveMonitor:
    """A running timer and the state owned by its ticks."""
    snapshot: MonitorSnapshot
    interval: int
    consecutive_failures: int = 0

    @property
    def job_id(self) -> str:
        return f"monitor_{self.snapshot.id}"


class SchedulerService:
    """Owns the per-monitor probe timers."""

    def __init__(
        self,
        session_factory=async_session,
        prober: Optional[ProberService] = None,
        event_log: Optional[EventLogSink] = None,
        alerter: Optional[AlerterService] = None,
        fail_limit: int = settings.fail_limit,
        min_interval: int = settings.min_interval_seconds,
    ):
        self.session_factory = session_factory
        self.prober = prober or prober_service
        self.event_log = event_log or event_log_sink
        self.alerter = alerter or alerter_service
        self.fail_limit = fail_limit
        self.min_interval = min_interval

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._live: Dict[int, LiveMonitor] = {}
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def scheduler(self) -> AsyncIOScheduler:
        # Created on first use so it binds to the running event loop
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._running

    def startup(self):
        """Start the scheduler."""
        if self._running:
            return
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (fail_limit={self.fail_limit}, min_interval={self.min_interval}s)")

    def shutdown(self):
        """Stop the scheduler and forget every live timer."""
        if self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
        self._scheduler = None
        self._live.clear()
        logger.info("Scheduler stopped")

    def schedule_certificate_sweep(self, sweep, hours: int = settings.ssl_check_interval_hours):
        """Run ``sweep.run_sweep`` now and then every ``hours``."""
        self.scheduler.add_job(
            sweep.run_sweep,
            trigger=IntervalTrigger(hours=hours),
            id=CERTIFICATE_SWEEP_JOB,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        logger.info(f"Certificate sweep scheduled every {hours}h")

    # ------------------------------------------------------------------
    # Per-monitor timers
    # ------------------------------------------------------------------

    def start(self, monitor: Monitor) -> bool:
        """(Re)start the monitor's timer with its current configuration.

        Any existing timer for the id is torn down first. Returns False when
        the monitor is inactive and therefore left without a timer.
        """
        self.stop(monitor.id)
        if not monitor.is_active:
            logger.debug(f"Monitor {monitor.id} is inactive, not scheduling")
            return False

        snapshot = MonitorSnapshot.from_model(monitor)
        interval = snapshot.interval or settings.default_interval_seconds
        if interval < self.min_interval:
            logger.warning(
                f"Monitor {monitor.id} interval {interval}s below minimum, using {self.min_interval}s"
            )
            interval = self.min_interval

        live = LiveMonitor(snapshot=snapshot, interval=interval)
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=interval),
            args=[live],
            id=live.job_id,
            replace_existing=True,
            max_instances=MAX_OVERLAPPING_TICKS,
            coalesce=True,
            misfire_grace_time=interval,
        )
        self._live[monitor.id] = live
        logger.info(f"Pinger started for monitor {monitor.id} ({snapshot.url}) every {interval}s")
        return True

    def stop(self, monitor_id: int) -> bool:
        """Cancel the monitor's timer. In-flight probes are left to finish."""
        live = self._live.pop(monitor_id, None)
        if live is None:
            return False
        try:
            self.scheduler.remove_job(live.job_id)
        except JobLookupError:
            logger.debug(f"Job {live.job_id} already gone")
        logger.info(f"Pinger stopped for monitor {monitor_id}")
        return True

    async def initialize_all(self) -> int:
        """Start a timer for every persisted active monitor."""
        logger.info("Initializing all active pingers from database...")
        async with self.session_factory() as session:
            result = await session.execute(select(Monitor).where(Monitor.is_active.is_(True)))
            monitors = list(result.scalars().all())

        for monitor in monitors:
            self.start(monitor)
        logger.info(f"{len(monitors)} pingers initialized.")
        return len(monitors)

    async def restart(self, monitor_id: int) -> bool:
        """Reload a monitor from the database and apply its configuration."""
        async with self.session_factory() as session:
            monitor = await session.get(Monitor, monitor_id)
        if monitor is None:
            self.stop(monitor_id)
            return False
        return self.start(monitor)

    def is_live(self, monitor_id: int) -> bool:
        return monitor_id in self._live

    def live_monitor_ids(self) -> List[int]:
        return sorted(self._live)

    def get_live(self, monitor_id: int) -> Optional[LiveMonitor]:
        return self._live.get(monitor_id)

    def next_run_time(self, job_id: str) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None

    def _owns(self, live: LiveMonitor) -> bool:
        return self._live.get(live.snapshot.id) is live

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, live: LiveMonitor):
        """Probe once, persist the outcome and apply the auto-stop policy."""
        snapshot = live.snapshot
        outcome = await self.prober.probe(snapshot.url, snapshot.keyword, snapshot.headers)

        try:
            async with self.session_factory() as session:
                current = await self._persist_outcome(session, snapshot.id, outcome)
                if current is None:
                    logger.warning(f"Monitor {snapshot.id} no longer exists, stopping its pinger")
                    if self._owns(live):
                        self.stop(snapshot.id)
                    return

                if not self._owns(live):
                    # Restarted or stopped while this probe was running
                    return

                if outcome.ok:
                    live.consecutive_failures = 0
                    return

                live.consecutive_failures += 1
                action = failure_action(live.consecutive_failures, current.state_at(utcnow()), self.fail_limit)
                if action is FailureAction.SUPPRESS:
                    logger.info(f"[Maintenance] Down alert for monitor {snapshot.id} suppressed.")
                elif action is FailureAction.AUTO_STOP:
                    await self._auto_stop(session, live)
        except SQLAlchemyError as e:
            logger.error(f"Error recording tick for monitor {snapshot.id}: {e}")

    async def _persist_outcome(
        self,
        session: AsyncSession,
        monitor_id: int,
        outcome: ProbeOutcome,
    ) -> Optional[Monitor]:
        """Bump counters, append the event log entry and re-read the monitor."""
        counter = "success_count" if outcome.ok else "fail_count"
        result = await session.execute(
            update(Monitor)
            .where(Monitor.id == monitor_id)
            .values({
                counter: getattr(Monitor, counter) + 1,
                "last_ping_time": utcnow(),
                "last_status_code": outcome.status_code,
                "last_response_time": outcome.latency_ms,
            })
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await session.rollback()
            return None

        await self.event_log.record(session, monitor_id, outcome)
        await retry_on_lock(session.commit)

        # Maintenance windows are edited concurrently by the front end
        return await session.get(Monitor, monitor_id, populate_existing=True)

    async def _auto_stop(self, session: AsyncSession, live: LiveMonitor):
        snapshot = live.snapshot
        await session.execute(
            update(Monitor)
            .where(Monitor.id == snapshot.id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await retry_on_lock(session.commit)
        self.stop(snapshot.id)
        logger.info(f"[Auto-Stop] Monitor {snapshot.id} deactivated after {self.fail_limit} failures.")

        await self.alerter.send_auto_stop(session, snapshot.id, snapshot.user_id, snapshot.url, self.fail_limit)
        await retry_on_lock(session.commit)


# Global instance
scheduler_service = SchedulerService()
