"""Scheduler liveness schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class LiveTimer(BaseModel):
    """A monitor with a running probe timer."""
    monitor_id: int
    interval: int
    next_run_time: Optional[datetime] = None


class SchedulerStatus(BaseModel):
    """Live timers and the certificate sweep schedule."""
    running: bool
    live_monitors: int
    timers: List[LiveTimer]
    certificate_sweep_next_run: Optional[datetime] = None
    certificate_sweep_last_run: Optional[datetime] = None
