"""Gateway applying ingestion policy on top of the events store."""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from processor.models import EventRow, UpsertResult
from storage.event_store import (
    AttributionError,
    EventStore,
    StoreConnectionError,
    StoreError,
)

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value.strip()))


class EventGateway:
    """Resolves attribution, purges stale rows and writes rows in batches."""

    BATCH_SIZE = 200
    RETENTION_DAYS = 14

    def __init__(self, store: EventStore, icon: str = 'quicket', event_type: str = 'event'):
        """
        Initialize the gateway.

        Args:
            store: Backing events store
            icon: Provenance tag of rows written by this ingestor
            event_type: Discriminator of the rows handled here
        """
        self.store = store
        self.icon = icon
        self.event_type = event_type

    def check_connection(self) -> None:
        """
        Probe the store before any work is done.

        Raises:
            StoreConnectionError: If the store cannot be reached
        """
        logger.info("Testing store connection")
        try:
            self.store.ping()
        except StoreConnectionError:
            raise
        except StoreError as e:
            raise StoreConnectionError(str(e)) from e
        logger.info("Store connected")

    def resolve_created_by(self, business_id: str, preferred_user_id: Optional[str] = None) -> str:
        """
        Pick the user id ingested rows are attributed to.

        The preferred id wins when it exists; otherwise the system business
        owner is used.

        Args:
            business_id: System business id
            preferred_user_id: Optional configured user id

        Returns:
            Existing user id

        Raises:
            AttributionError: If neither candidate resolves to an existing user
        """
        try:
            if preferred_user_id:
                if is_uuid(preferred_user_id) and self.store.user_exists(preferred_user_id):
                    return preferred_user_id
                logger.warning(
                    f"Configured user id is invalid or unknown: {preferred_user_id}. "
                    f"Falling back to business owner."
                )

            owner_id = self.store.get_business_owner(business_id)
            if is_uuid(owner_id) and self.store.user_exists(owner_id):
                return owner_id

            if owner_id:
                logger.warning(f"Owner of business {business_id} is not a valid user: {owner_id}")
        except StoreError as e:
            raise AttributionError(f"Failed to resolve created_by user: {e}") from e

        raise AttributionError(
            "Unable to resolve a valid created_by user. Set SYSTEM_USER_ID to an "
            "existing user id or set an owner on SYSTEM_BUSINESS_ID."
        )

    def cleanup_old_events(self, now: Optional[datetime] = None) -> int:
        """
        Delete ingested events that started more than the retention window ago.

        Failures are logged and reported as zero deletions.

        Args:
            now: Reference time (default: current time)

        Returns:
            Number of rows deleted
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.RETENTION_DAYS)

        try:
            deleted = self.store.delete_events_before(self.icon, self.event_type, cutoff)
        except StoreError as e:
            logger.warning(f"Cleanup of old events failed: {e}")
            return 0

        logger.info(f"Cleaned up {deleted} events starting before {cutoff.isoformat()}")
        return deleted

    def upsert_events(self, rows: List[EventRow]) -> UpsertResult:
        """
        Upsert rows in batches of 200, skipping batches that fail.

        Args:
            rows: Consolidated rows to persist

        Returns:
            UpsertResult with inserted, updated and skipped counts
        """
        result = UpsertResult()
        if not rows:
            return result

        logger.info(f"Upserting {len(rows)} events")

        for i in range(0, len(rows), self.BATCH_SIZE):
            batch = rows[i:i + self.BATCH_SIZE]
            batch_number = i // self.BATCH_SIZE + 1

            try:
                inserted, updated = self.store.upsert_events(batch)
            except StoreError as e:
                error_msg = f"Batch {batch_number} ({len(batch)} rows) failed: {e}"
                logger.error(error_msg)
                result.failed_batches += 1
                result.errors.append(error_msg)
                continue

            result.inserted += inserted
            result.updated += updated

        result.skipped = max(len(rows) - result.inserted - result.updated, 0)

        logger.info(
            f"Upsert complete: {result.inserted} inserted, {result.updated} updated, "
            f"{result.skipped} skipped"
        )
        return result
