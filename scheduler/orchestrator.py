"""Orchestrates one ingest run and the recurring run loop."""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from processor.event_processor import EventProcessor
from processor.models import FetchResult, UpsertResult
from scheduler.ticker import Ticker
from scraper.quicket_client import QuicketClient
from storage.event_gateway import EventGateway

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """Outcome of one ingest run."""
    status: str
    duration_seconds: float = 0.0
    deleted: int = 0
    created_by: Optional[str] = None
    fetch: Optional[FetchResult] = None
    upsert: Optional[UpsertResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 'completed'

    def statistics(self) -> dict:
        """Flat counters for logs and handler responses."""
        stats = {
            'events_deleted': self.deleted,
            'duration_seconds': round(self.duration_seconds, 2)
        }
        if self.fetch:
            stats.update({
                'fetched': self.fetch.fetched_count,
                'filtered': self.fetch.filtered_count,
                'mapped': self.fetch.mapped_count,
                'consolidated': self.fetch.consolidated_count
            })
        if self.upsert:
            stats.update({
                'inserted': self.upsert.inserted,
                'updated': self.upsert.updated,
                'skipped': self.upsert.skipped,
                'failed_batches': self.upsert.failed_batches
            })
        return stats


class IngestOrchestrator:
    """Runs the fetch, process and store pipeline, one run at a time."""

    def __init__(
        self,
        client: QuicketClient,
        processor: EventProcessor,
        gateway: EventGateway,
        business_id: str,
        preferred_user_id: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Upstream Quicket client
            processor: Filter and mapping processor
            gateway: Store gateway
            business_id: System business the rows are attributed to
            preferred_user_id: Optional configured acting user
            clock: Source of the current time
        """
        self.client = client
        self.processor = processor
        self.gateway = gateway
        self.business_id = business_id
        self.preferred_user_id = preferred_user_id
        self.clock = clock
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def run_ingest(self) -> Optional[IngestReport]:
        """
        Execute one full ingest run.

        Returns:
            IngestReport, or None if another run was already active
        """
        if not self._running.acquire(blocking=False):
            logger.warning("Previous ingest still running. Skipping this cycle.")
            return None

        start_time = time.monotonic()
        report = IngestReport(status='failed')
        logger.info("=== Quicket ingest starting ===")

        try:
            self.gateway.check_connection()

            now = self.clock()
            report.deleted = self.gateway.cleanup_old_events(now)

            report.created_by = self.gateway.resolve_created_by(
                self.business_id, self.preferred_user_id
            )
            logger.info(f"Using created_by user id: {report.created_by}")

            raw_events = self.client.fetch_all_events()
            report.fetch = self.processor.process_events(
                raw_events, self.business_id, report.created_by, now=now
            )
            logger.info(
                f"Fetch complete: {report.fetch.fetched_count} fetched, "
                f"{report.fetch.filtered_count} filtered, "
                f"{report.fetch.mapped_count} mapped, "
                f"{report.fetch.consolidated_count} consolidated"
            )

            if report.fetch.rows:
                report.upsert = self.gateway.upsert_events(report.fetch.rows)
            else:
                logger.info("No events to upsert")

            report.status = 'completed'

        except Exception as e:
            report.error = str(e)
            report.error_type = type(e).__name__
            logger.error(
                f"Ingest failed: {e}",
                extra={'error_type': report.error_type},
                exc_info=True
            )

        finally:
            report.duration_seconds = time.monotonic() - start_time
            self._running.release()
            logger.info(
                f"=== Ingest {report.status} in {report.duration_seconds:.1f}s ===",
                extra=report.statistics()
            )

        return report

    def run_forever(self, ticker: Ticker) -> None:
        """Run once per tick until the ticker stops."""
        while True:
            tick = ticker.receive()
            if tick is None:
                logger.info("Ticker stopped. Leaving run loop.")
                return
            logger.info(f"Tick received at {tick.isoformat()}")
            self.run_ingest()
