"""
Room monitor controller: owns the snapshot and the polling timer,
and runs fetch -> diff -> notify -> persist once per interval.
"""

import asyncio
import logging
from typing import Optional

from room_monitor.config.settings import Settings
from room_monitor.core.change_detector import ChangeDetector
from room_monitor.core.monitor_state import MonitorState, MonitorStatus
from room_monitor.core.snapshot import MonitorSnapshot, PollCycleResult, utc_now
from room_monitor.services.hierarchy import HierarchyFetcher
from room_monitor.services.matrix import IMatrixClient
from room_monitor.services.notifier import NotificationDispatcher
from room_monitor.services.storage import StatePersister

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL_MS = 300000


class PollScheduler:
    """
    Periodic watcher of one space.
    At most one poll cycle runs at a time; triggers arriving meanwhile are skipped.
    """

    def __init__(
        self,
        fetcher: HierarchyFetcher,
        dispatcher: Optional[NotificationDispatcher],
        persister: StatePersister,
        observed_space: Optional[str],
        check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS,
    ):
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.persister = persister
        self.observed_space = observed_space
        self.check_interval_ms = check_interval_ms
        self.last_result: Optional[PollCycleResult] = None

        self._state = MonitorState.STOPPED
        self._snapshot = MonitorSnapshot(observed_space_id=observed_space)
        # Set until a cycle has recorded the rooms present at startup
        self._baseline_pending = False
        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._timer_task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def snapshot(self) -> MonitorSnapshot:
        return self._snapshot

    @property
    def notification_room(self) -> Optional[str]:
        return self.dispatcher.room_id if self.dispatcher else None

    def is_configured(self) -> bool:
        return bool(self.observed_space and self.dispatcher)

    def is_monitoring(self) -> bool:
        return self._state is MonitorState.RUNNING

    def status(self) -> MonitorStatus:
        return MonitorStatus(
            observed_space=self.observed_space,
            notification_room=self.notification_room,
            state=self._state,
            is_running=self.is_monitoring(),
            last_result=self.last_result,
        )

    async def start(self) -> None:
        """
        Loads the saved state, runs the first cycle and arms the timer.
        Without a saved state the existing rooms are recorded without notifying,
        by the first cycle that completes a traversal.
        """
        if self._state is not MonitorState.STOPPED:
            return
        if not self.is_configured():
            logger.info("Room monitoring not configured")
            return

        logger.info("Starting room monitoring of %s...", self.observed_space)
        self._state = MonitorState.STARTING
        self._stop_event.clear()

        self._baseline_pending = not self._restore_snapshot()
        await self.run_cycle()

        if self._stop_event.is_set():
            # stop() was called during the first cycle
            self._state = MonitorState.STOPPED
            return

        self._state = MonitorState.RUNNING
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info("Room monitoring started (interval: %ss)", self.check_interval_ms / 1000)

    async def stop(self) -> None:
        """
        Cancels future cycles. A cycle already running is allowed to finish,
        persist step included, before this returns.
        """
        self._stop_event.set()

        if self._timer_task:
            await self._timer_task
            self._timer_task = None

        # Wait for cycles started outside the timer (first cycle, manual checks)
        async with self._cycle_lock:
            pass

        self._state = MonitorState.STOPPED
        logger.info("Room monitoring stopped")

    async def run_cycle(self, notify: bool = True) -> PollCycleResult:
        """
        Runs one poll cycle unless another one is in flight.
        Never raises: failures are reported in the returned result.
        Notifications stay suppressed while the baseline is still pending.
        """
        notify = notify and not self._baseline_pending
        if self._cycle_lock.locked():
            logger.warning("Poll cycle already in progress for %s, skipping trigger", self.observed_space)
            return PollCycleResult(skipped=True, baseline=not notify, error="poll cycle already in progress")

        async with self._cycle_lock:
            result = await self._poll(notify)

        self.last_result = result
        return result

    def _restore_snapshot(self) -> bool:
        snapshot = self.persister.load()
        if snapshot is None:
            logger.info("No previous state, first cycle is a baseline run")
            return False

        if snapshot.observed_space_id and snapshot.observed_space_id != self.observed_space:
            logger.warning(
                "Saved state belongs to space %s, not %s; first cycle is a baseline run",
                snapshot.observed_space_id,
                self.observed_space,
            )
            return False

        self._snapshot = snapshot.model_copy(update={"observed_space_id": self.observed_space})
        return True

    async def _poll(self, notify: bool) -> PollCycleResult:
        if not self.observed_space or self.dispatcher is None:
            return PollCycleResult(baseline=not notify, error="room monitoring not configured")

        try:
            report = await self.fetcher.traverse(self.observed_space)
            if not report.root_reachable:
                logger.error("Space %s is unreachable, keeping previous state", self.observed_space)
                return PollCycleResult(baseline=not notify, error=f"space {self.observed_space} unreachable")

            new_rooms, current_ids = ChangeDetector.diff(report.rooms, self._snapshot.known_room_ids)

            notified = 0
            if notify and new_rooms:
                notified = await self.dispatcher.notify_all(new_rooms)
            elif new_rooms:
                logger.info("Baseline run: recording %d rooms without notifying", len(new_rooms))

            room_names = dict(self._snapshot.room_names)
            for room in report.rooms:
                if room.name and room.name != room.room_id:
                    room_names[room.room_id] = room.name

            self._snapshot = MonitorSnapshot(
                known_room_ids=current_ids,
                room_names=room_names,
                observed_space_id=self.observed_space,
                last_updated_at=utc_now(),
            )
            self._baseline_pending = False

            problems = []
            if report.failed_spaces:
                problems.append(f"{len(report.failed_spaces)} sub-space(s) could not be expanded")
            if not self.persister.save(self._snapshot):
                problems.append("state not persisted")

            logger.info("Checked %d rooms in %s, %d new", len(current_ids), self.observed_space, len(new_rooms))
            return PollCycleResult(
                checked=len(current_ids),
                new=len(new_rooms),
                notified=notified,
                baseline=not notify,
                error="; ".join(problems) or None,
            )

        # pylint: disable=broad-exception-caught
        except Exception as e:
            logger.exception("Error checking for new rooms")
            return PollCycleResult(baseline=not notify, error=str(e))

    async def _run_timer(self) -> None:
        """
        Fixed-rate timer. Triggers missed while a cycle overran the interval are dropped.
        """
        interval = self.check_interval_ms / 1000
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + interval

        try:
            while not self._stop_event.is_set():
                delay = next_fire - loop.time()
                if delay > 0:
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                        break
                    except asyncio.TimeoutError:
                        pass

                await self.run_cycle()

                now = loop.time()
                next_fire += interval
                if next_fire <= now:
                    missed = int((now - next_fire) // interval) + 1
                    logger.warning("Poll cycle overran the interval, skipping %d trigger(s)", missed)
                    next_fire += missed * interval
        finally:
            logger.info("[%s] Monitor timer terminated.", self.observed_space)


def create_monitor(client: IMatrixClient, config: Settings) -> PollScheduler:
    """Builds a PollScheduler and its collaborators from settings."""
    dispatcher = None
    if config.notification_room:
        dispatcher = NotificationDispatcher(client, config.notification_room, config.notification_delay_ms)

    return PollScheduler(
        fetcher=HierarchyFetcher(client, max_depth=config.max_traversal_depth),
        dispatcher=dispatcher,
        persister=StatePersister(config.state_file),
        observed_space=config.observed_space,
        check_interval_ms=config.check_interval_ms,
    )
