"""
API Routes definition.
Health, monitor status and on-demand room checks.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from room_monitor.api.dependencies import get_monitor, get_optional_monitor
from room_monitor.core.monitor_state import MonitorState, MonitorStatus
from room_monitor.core.snapshot import PollCycleResult
from room_monitor.services.monitor import PollScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(monitor: Optional[PollScheduler] = Depends(get_optional_monitor)) -> Dict[str, Any]:
    """Returns the service status"""
    return {"status": "online", "monitoring": bool(monitor and monitor.is_monitoring())}


@router.get("/monitor", response_model=MonitorStatus)
async def get_monitor_status(monitor: PollScheduler = Depends(get_monitor)) -> MonitorStatus:
    """Returns the monitored space, notification room and lifecycle state"""
    return monitor.status()


@router.post("/monitor/check", response_model=PollCycleResult)
async def check_now(monitor: PollScheduler = Depends(get_monitor)) -> PollCycleResult:
    """
    Runs a poll cycle immediately instead of waiting for the timer.
    Refused while another cycle is in flight.
    """
    if monitor.state is not MonitorState.RUNNING:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Room monitor is not running.")

    logger.info("Manual room check requested for %s", monitor.observed_space)
    result = await monitor.run_cycle(notify=True)

    if result.skipped:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A poll cycle is already in progress.")
    return result
