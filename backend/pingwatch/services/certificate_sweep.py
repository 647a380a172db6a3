"""Certificate sweep - daily pass over active HTTPS monitors refreshing expiry data."""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..database import async_session
from ..models import Monitor
from ..utils.db_utils import retry_on_lock, utcnow
from .alerter import alerter_service, AlerterService
from .tls_inspector import certificate_inspector, CertificateInspector

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counters for one sweep run."""
    checked: int = 0
    updated: int = 0
    warned: int = 0
    errors: int = 0


def days_remaining(expiry: datetime, now: datetime) -> int:
    """Whole days until ``expiry``, rounded half up."""
    return int(math.floor((expiry - now) / timedelta(days=1) + 0.5))


class CertificateSweep:
    """Refreshes ``ssl_expiry_date`` on every active HTTPS monitor.

    Monitors are inspected one after another; an error on one never stops
    the others. A warning goes to the owner when the certificate expires
    within ``warning_days`` (and has not already expired).
    """

    def __init__(
        self,
        session_factory=async_session,
        inspector: Optional[CertificateInspector] = None,
        alerter: Optional[AlerterService] = None,
        warning_days: int = settings.ssl_warning_days,
    ):
        self.session_factory = session_factory
        self.inspector = inspector or certificate_inspector
        self.alerter = alerter or alerter_service
        self.warning_days = warning_days
        self.last_run: Optional[datetime] = None

    async def run_sweep(self) -> SweepReport:
        logger.info("Running daily SSL certificate check...")
        report = SweepReport()

        async with self.session_factory() as session:
            result = await session.execute(
                select(Monitor.id).where(
                    Monitor.url.like("https://%"),
                    Monitor.is_active.is_(True),
                )
            )
            monitor_ids = list(result.scalars().all())

        for monitor_id in monitor_ids:
            report.checked += 1
            try:
                await self._check_monitor(monitor_id, report)
            except Exception as e:
                report.errors += 1
                logger.error(f"SSL check error for monitor {monitor_id}: {e}")

        self.last_run = utcnow()
        logger.info(
            f"SSL check finished: {report.checked} checked, {report.updated} updated, "
            f"{report.warned} warned, {report.errors} errors"
        )
        return report

    async def _check_monitor(self, monitor_id: int, report: SweepReport):
        async with self.session_factory() as session:
            url = await session.scalar(select(Monitor.url).where(Monitor.id == monitor_id))
        if url is None:
            return

        # No connection is held while the handshake runs
        expiry = await self.inspector.inspect_expiry(url)
        if expiry is None:
            return

        async with self.session_factory() as session:
            monitor = await session.get(Monitor, monitor_id)
            if monitor is None:
                return

            try:
                await session.execute(
                    update(Monitor).where(Monitor.id == monitor_id).values(ssl_expiry_date=expiry)
                )
                await retry_on_lock(session.commit)
            except SQLAlchemyError:
                await session.rollback()
                raise
            report.updated += 1

            days = days_remaining(expiry, utcnow())
            if 0 < days <= self.warning_days:
                await self.alerter.send_ssl_warning(session, monitor, days)
                await retry_on_lock(session.commit)
                report.warned += 1
                logger.info(f"SSL certificate for monitor {monitor_id} expires in {days} days")


# Global instance
certificate_sweep = CertificateSweep()
