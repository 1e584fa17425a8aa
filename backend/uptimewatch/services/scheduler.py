"""Scheduler service - manages periodic monitoring checks.

A fine-grained tick (1 second by default) runs a check pass; each pass only
probes the monitors whose own interval has elapsed. The on-demand "check now"
trigger runs a forced pass that probes everything.

Passes are serialized by a lock covering the whole read, probe, write and
publish cycle, so a forced pass overlapping a periodic one can never lose or
interleave history appends. Within a pass monitors are probed one at a time,
which keeps at most one ping process or HTTP request in flight.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..schemas.monitor import Monitor, Observation, STATUS_DOWN, STATUS_UNKNOWN
from .checker import CheckerService, checker_service
from .history import append_observation, refresh_uptime
from .publisher import UpdatePublisher
from .state_store import StateStore

logger = logging.getLogger(__name__)

HEALTH_FIELDS = (
    "last_status",
    "last_checked",
    "last_code",
    "last_ping",
    "uptime24",
    "uptime30",
    "history",
)


def current_time_ms() -> int:
    return int(time.time() * 1000)


class SchedulerService:
    """Runs check passes over the monitor collection, periodically or on demand."""

    def __init__(
        self,
        store: StateStore,
        publisher: UpdatePublisher,
        checker: Optional[CheckerService] = None,
        clock: Callable[[], int] = current_time_ms,
        tick_seconds: Optional[float] = None,
        history_limit: Optional[int] = None,
        default_interval: Optional[int] = None,
    ):
        self.store = store
        self.publisher = publisher
        self.checker = checker or checker_service
        self.clock = clock
        self.tick_seconds = tick_seconds or settings.tick_seconds
        self.history_limit = history_limit or settings.history_limit
        self.default_interval = default_interval or settings.default_interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._pass_lock = asyncio.Lock()

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        # Initial run respects intervals too; only monitors never checked are probed
        self.scheduler.add_job(
            self._run_periodic_pass,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(1, int(self.tick_seconds)),
            next_run_time=datetime.now(),
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={self.tick_seconds}s)")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _run_periodic_pass(self):
        """Periodic job body; a failed pass is logged and retried next tick."""
        try:
            await self.run_check_pass(force_all=False)
        except Exception as e:
            logger.error(f"Error running checks: {e}")

    def is_due(self, monitor: Monitor, now_ms: int) -> bool:
        """Whether the monitor's interval has elapsed since its last check."""
        if monitor.last_checked is None:
            return True
        return now_ms >= monitor.last_checked + monitor.interval_ms(self.default_interval)

    async def run_check_pass(self, force_all: bool = False) -> List[Monitor]:
        """Check every due monitor (or all of them), save and publish.

        Returns the updated collection. Errors from the store propagate;
        errors from a single monitor's check never do.
        """
        async with self._pass_lock:
            monitors = await self.store.read()
            now = self.clock()

            checked: Dict[str, Monitor] = {}
            for monitor in monitors:
                if not force_all and not self.is_due(monitor, now):
                    continue
                previous_status = monitor.last_status
                history_changed = await self._check_monitor(monitor, now)
                if history_changed:
                    refresh_uptime(monitor, now)
                self._log_status_change(monitor, previous_status)
                checked[monitor.id] = monitor

            if checked:
                logger.debug(f"Checked {len(checked)} of {len(monitors)} monitors")

            updated = await self._write_back(checked)
            await self.publisher.publish_latest()
            return updated

    async def _check_monitor(self, monitor: Monitor, now: int) -> bool:
        """Probe one monitor and update its health fields.

        Returns True if an observation was appended to its history.
        """
        try:
            executor = self.checker.executor_for(monitor.type)
            if executor is None:
                self._mark_unknown(monitor, now)
                logger.debug(f"monitor={monitor.id} name={monitor.name} unsupported type={monitor.type}")
                return False

            observation = await executor.execute(monitor, now)
            if observation is None:
                self._mark_unknown(monitor, now)
                logger.debug(f"monitor={monitor.id} name={monitor.name} has no target")
                return False

            self._record(monitor, observation)
            logger.info(
                f"monitor={monitor.id} name={monitor.name} status={monitor.last_status} "
                f"code={monitor.last_code} ping={monitor.last_ping}"
            )
            return True

        except Exception as e:
            observation = Observation(t=now, status=STATUS_DOWN, code=None, err=str(e) or type(e).__name__)
            self._record(monitor, observation)
            logger.error(f"Error checking monitor={monitor.id} name={monitor.name}: {e!r}")
            return True

    def _record(self, monitor: Monitor, observation: Observation):
        monitor.last_status = observation.status
        monitor.last_checked = observation.t
        monitor.last_code = observation.code
        if monitor.type == "ping":
            monitor.last_ping = observation.ping
        append_observation(monitor, observation, self.history_limit)

    @staticmethod
    def _mark_unknown(monitor: Monitor, now: int):
        monitor.last_status = STATUS_UNKNOWN
        monitor.last_checked = now

    @staticmethod
    def _log_status_change(monitor: Monitor, previous_status: Optional[str]):
        if previous_status == monitor.last_status:
            return
        message = (
            f"Status change monitor={monitor.id} name={monitor.name}: "
            f"{previous_status or 'none'} -> {monitor.last_status}"
        )
        if monitor.last_status == STATUS_DOWN:
            logger.warning(message)
        else:
            logger.info(message)

    async def _write_back(self, checked: Dict[str, Monitor]) -> List[Monitor]:
        """Merge checked monitors into the current collection and save it.

        Monitors added or deleted while the pass was probing are kept as
        they are now; only health fields of checked monitors are replaced.
        """
        def merge(current: List[Monitor]):
            for monitor in current:
                source = checked.get(monitor.id)
                if source is None:
                    continue
                for field in HEALTH_FIELDS:
                    setattr(monitor, field, getattr(source, field))

        return await self.store.update(merge)
