"""Database models."""
from .monitor import Monitor, MonitorState
from .event_log import EventLogEntry
from .alert import Alert

__all__ = ["Monitor", "MonitorState", "EventLogEntry", "Alert"]
