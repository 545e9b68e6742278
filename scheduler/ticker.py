"""Tick sources consumed by the ingest orchestrator."""
import logging
import queue
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

_STOP = object()


class Ticker:
    """Queue-backed tick source with a blocking receive."""

    def __init__(self, maxsize: int = 0):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._stopped = False

    def receive(self, timeout: Optional[float] = None) -> Optional[datetime]:
        """
        Block until the next tick.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            Time the tick fired, or None once the ticker is stopped or the
            timeout expires
        """
        if self._stopped and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _STOP:
            self._stopped = True
            return None
        return item

    def stop(self) -> None:
        """Wake any receiver and end the tick stream."""
        if self._stopped:
            return
        self._stopped = True
        # A full queue still has to deliver the stop marker.
        while True:
            try:
                self._queue.put_nowait(_STOP)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def _emit(self, at: Optional[datetime] = None) -> bool:
        if self._stopped:
            return False
        try:
            self._queue.put_nowait(at or datetime.now(timezone.utc))
        except queue.Full:
            logger.warning("Previous tick still pending. Dropping this tick.")
            return False
        return True


class ManualTicker(Ticker):
    """Ticker driven explicitly by the caller."""

    def tick(self, at: Optional[datetime] = None) -> bool:
        return self._emit(at)


class CronTicker(Ticker):
    """Ticker firing on a crontab schedule in a background thread."""

    DEFAULT_SCHEDULE = '0 */6 * * *'

    def __init__(self, schedule: str = DEFAULT_SCHEDULE, timezone_name: str = 'UTC'):
        """
        Initialize the cron ticker.

        Args:
            schedule: Crontab expression (default: every six hours)
            timezone_name: Timezone the expression is evaluated in
        """
        super().__init__(maxsize=1)
        self.schedule = schedule
        self._scheduler = BackgroundScheduler(timezone=timezone_name)
        self._scheduler.add_job(
            self._emit,
            CronTrigger.from_crontab(schedule, timezone=timezone_name),
            id='quicket-ingest-tick',
            max_instances=1,
            coalesce=True
        )

    def start(self) -> None:
        self._scheduler.start()
        logger.info(f"Schedule started: {self.schedule}")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        super().stop()
