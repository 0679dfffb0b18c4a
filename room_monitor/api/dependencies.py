"""
FastAPI dependencies for monitor access.
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from room_monitor.services.monitor import PollScheduler


async def get_optional_monitor(request: Request) -> Optional[PollScheduler]:
    """Returns the monitor built at startup, if any."""
    return getattr(request.app.state, "monitor", None)


async def get_monitor(request: Request) -> PollScheduler:
    """
    Dependency that checks a monitor was built at startup
    (homeserver credentials present).
    """
    monitor = await get_optional_monitor(request)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Room monitor not configured."
        )
    return monitor
