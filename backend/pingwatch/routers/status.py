"""Scheduler liveness API."""
from fastapi import APIRouter

from ..schemas.status import LiveTimer, SchedulerStatus
from ..services.certificate_sweep import certificate_sweep
from ..services.scheduler import scheduler_service, CERTIFICATE_SWEEP_JOB

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("", response_model=SchedulerStatus)
async def get_scheduler_status():
    """List the running probe timers and the next certificate sweep."""
    timers = []
    for monitor_id in scheduler_service.live_monitor_ids():
        live = scheduler_service.get_live(monitor_id)
        if live is None:
            continue
        timers.append(LiveTimer(
            monitor_id=monitor_id,
            interval=live.interval,
            next_run_time=scheduler_service.next_run_time(live.job_id),
        ))

    return SchedulerStatus(
        running=scheduler_service.running,
        live_monitors=len(timers),
        timers=timers,
        certificate_sweep_next_run=scheduler_service.next_run_time(CERTIFICATE_SWEEP_JOB),
        certificate_sweep_last_run=certificate_sweep.last_run,
    )
