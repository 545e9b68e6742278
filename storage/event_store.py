"""Backing store contract used by the ingestion gateway."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from processor.models import EventRow


class StoreError(Exception):
    """A call to the backing store failed."""


class StoreConnectionError(StoreError):
    """The backing store could not be reached."""


class AttributionError(Exception):
    """No valid user could be resolved to attribute ingested rows to."""


class EventStore(ABC):
    """Operations the pipeline needs from the shared events store."""

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""

    @abstractmethod
    def user_exists(self, user_id: str) -> bool:
        """Whether the user id exists in the identity store."""

    @abstractmethod
    def get_business_owner(self, business_id: str) -> Optional[str]:
        """Configured owner id of a business, or None."""

    @abstractmethod
    def delete_events_before(self, icon: str, event_type: str, cutoff: datetime) -> int:
        """
        Delete rows with this icon and type that start before the cutoff.

        Returns:
            Number of rows removed
        """

    @abstractmethod
    def upsert_events(self, rows: List[EventRow]) -> Tuple[int, int]:
        """
        Idempotently upsert rows.

        Returns:
            Tuple of (inserted, updated) counts
        """
