"""Lifecycle states of a room monitor and its public status view."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from room_monitor.core.snapshot import PollCycleResult


class MonitorState(Enum):
    """
    Lifecycle of a PollScheduler.

    Attributes:
        STOPPED: No timer is armed; start() may be called.
        STARTING: State loaded, first (possibly baseline) cycle in progress.
        RUNNING: The repeating timer drives poll cycles.
    """

    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"


class MonitorStatus(BaseModel):
    """Read-only view of a monitor, served by the status endpoint."""

    observed_space: Optional[str]
    notification_room: Optional[str]
    state: MonitorState
    is_running: bool
    last_result: Optional[PollCycleResult] = None
