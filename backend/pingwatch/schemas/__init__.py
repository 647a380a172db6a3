"""Pydantic schemas for the control layer and health API."""
from .monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    EventLogResponse,
)
from .status import (
    LiveTimer,
    SchedulerStatus,
)

__all__ = [
    "MonitorCreate",
    "MonitorUpdate",
    "MonitorResponse",
    "EventLogResponse",
    "LiveTimer",
    "SchedulerStatus",
]
