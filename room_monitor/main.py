"""
Main entry point for the FastAPI application.
Builds the Matrix client and room monitor, and starts/stops it with the app.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from room_monitor.api.routes import router as api_router
from room_monitor.config.settings import Settings, settings
from room_monitor.core.monitor_state import MonitorState
from room_monitor.services.matrix import HttpMatrixClient
from room_monitor.services.monitor import PollScheduler, create_monitor

# Setup Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_monitor(config: Settings) -> Optional[PollScheduler]:
    """Returns a monitor, or None when homeserver credentials are missing."""
    if not config.matrix_homeserver_url or not config.matrix_access_token:
        logger.warning("Matrix homeserver or access token missing - room monitoring disabled")
        return None

    client = HttpMatrixClient(
        config.matrix_homeserver_url,
        config.matrix_access_token,
        timeout=config.request_timeout_s,
        page_limit=config.hierarchy_page_limit,
    )
    return create_monitor(client, config)


async def _delayed_start(monitor: PollScheduler, delay: float) -> None:
    await asyncio.sleep(delay)

    client = monitor.fetcher.client
    if isinstance(client, HttpMatrixClient) and not settings.matrix_user_id:
        try:
            logger.info("Matrix client initialized with user ID: %s", await client.whoami())
        # pylint: disable=broad-exception-caught
        except Exception as e:
            logger.warning("Could not resolve Matrix user ID: %s", e)

    try:
        await monitor.start()
    # pylint: disable=broad-exception-caught
    except Exception as e:
        logger.error("Failed to start room monitoring: %s", e)


# Disable these warnings as they are false positives caused by fasapi syntax
# pylint: disable=redefined-outer-name
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application Lifecycle Manager.
    Starts the room monitor after a short delay and stops it on shutdown.
    """
    logger.info("Starting %s...", settings.app_name)

    monitor = build_monitor(settings)
    app.state.monitor = monitor
    start_task: Optional[asyncio.Task[None]] = None

    if monitor and settings.monitoring_configured:
        if settings.matrix_user_id:
            logger.info("Matrix client initialized with user ID: %s", settings.matrix_user_id)
        logger.info("Room monitoring starts in %ss", settings.startup_delay_s)
        start_task = asyncio.create_task(_delayed_start(monitor, settings.startup_delay_s))
    else:
        logger.info("Room monitoring not configured - skipping")

    yield

    logger.info("Shutting down %s...", settings.app_name)
    if start_task and not start_task.done() and monitor and monitor.state is MonitorState.STOPPED:
        # Still waiting out the startup delay
        start_task.cancel()
        try:
            await start_task
        except asyncio.CancelledError:
            pass
    if monitor:
        await monitor.stop()
    if start_task and not start_task.done():
        await start_task


def create_app() -> FastAPI:
    """Factory to create the app."""
    application = FastAPI(
        title=settings.app_name,
        description="Announces new rooms of a Matrix space",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.include_router(api_router, prefix="/api")

    return application


app = create_app()
