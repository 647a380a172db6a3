"""Alert model - log of sent notifications."""
from sqlalchemy import BigInteger, Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class Alert(Base):
    """Record of a notification sent to a monitor's owner."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(BigInteger, nullable=False)  # Telegram chat id
    alert_type = Column(String, nullable=False)  # auto_stop, ssl_expiring
    channel = Column(String, default="telegram")
    sent_at = Column(DateTime, default=utcnow)
    message = Column(String, nullable=True)
    success = Column(Integer, nullable=True)  # 1=delivered, 0=failed

    # Relationship
    monitor = relationship("Monitor", back_populates="alerts")
