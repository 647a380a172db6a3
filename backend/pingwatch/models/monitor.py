"""Monitor model - endpoints being probed."""
import enum
import json
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class MonitorState(str, enum.Enum):
    """Lifecycle state of a monitor at a given instant."""
    ACTIVE = "active"
    MAINTENANCE = "maintenance"  # probed, but auto-stop alerting is suppressed
    DEACTIVATED = "deactivated"  # paused by its owner or auto-stopped


def state_of(is_active: bool, maintenance_until: Optional[datetime], now: datetime) -> MonitorState:
    if not is_active:
        return MonitorState.DEACTIVATED
    if maintenance_until is not None and maintenance_until > now:
        return MonitorState.MAINTENANCE
    return MonitorState.ACTIVE


class Monitor(Base):
    """A user-registered HTTP(S) endpoint and its accumulated health stats."""

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)  # owner, also the notification chat id
    url = Column(String, nullable=False)
    interval = Column(Integer, nullable=False, default=300)  # seconds
    keyword = Column(String, nullable=True)  # case-sensitive substring the body must contain
    headers = Column(String, nullable=True)  # JSON object of extra request headers
    is_active = Column(Boolean, nullable=False, default=True)

    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    last_ping_time = Column(DateTime, nullable=True)
    last_status_code = Column(Integer, nullable=True)
    last_response_time = Column(Float, nullable=True)  # ms

    maintenance_until = Column(DateTime, nullable=True)
    ssl_expiry_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    events = relationship(
        "EventLogEntry",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    alerts = relationship(
        "Alert",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def header_map(self) -> Dict[str, str]:
        """Custom headers as a dict; an unreadable column counts as none."""
        if not self.headers:
            return {}
        try:
            parsed = json.loads(self.headers)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def state_at(self, now: Optional[datetime] = None) -> MonitorState:
        return state_of(bool(self.is_active), self.maintenance_until, now or utcnow())

    def __repr__(self) -> str:
        return f"<Monitor id={self.id} url={self.url!r} active={self.is_active}>"
