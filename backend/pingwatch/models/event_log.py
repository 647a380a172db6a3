"""EventLogEntry model - bounded per-monitor probe history."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class EventLogEntry(Base):
    """Outcome of one probe tick. Only the newest few per monitor are kept."""

    __tablename__ = "event_log"
    __table_args__ = (
        Index("ix_event_log_monitor_timestamp", "monitor_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False)  # success, fail
    status_code = Column(Integer, nullable=True)
    message = Column(String, nullable=True)  # "OK" or the failure reason
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    # Relationship
    monitor = relationship("Monitor", back_populates="events")
