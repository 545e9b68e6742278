"""Supabase implementation of the events store."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from processor.models import EventRow
from processor.text_utils import format_timestamp
from storage.event_store import EventStore, StoreConnectionError, StoreError

logger = logging.getLogger(__name__)

STORE_ERRORS = (APIError, httpx.HTTPError)


def _describe(error: Exception) -> str:
    return getattr(error, 'message', None) or str(error) or type(error).__name__


class SupabaseEventStore(EventStore):
    """Events store backed by the Supabase REST API."""

    TABLE_NAME = 'events_and_specials'
    UPSERT_FUNCTION = 'upsert_events_and_specials_consolidated'

    def __init__(self, client: Client):
        """
        Initialize the store.

        Args:
            client: Supabase client created with the service role key
        """
        self.client = client

    def ping(self) -> None:
        try:
            self.client.table(self.TABLE_NAME).select('id').limit(1).execute()
        except STORE_ERRORS as e:
            raise StoreConnectionError(f"Supabase connection test failed: {_describe(e)}") from e

    def user_exists(self, user_id: str) -> bool:
        """
        Check auth.users for the id, falling back to profiles when the auth
        schema is not exposed to the REST API.
        """
        try:
            response = (
                self.client.schema('auth').table('users')
                .select('id').eq('id', user_id).limit(1).execute()
            )
            if response.data:
                return True
        except STORE_ERRORS as e:
            logger.warning(
                f"Could not validate user via auth.users; falling back to profiles: {_describe(e)}"
            )

        try:
            response = (
                self.client.table('profiles')
                .select('user_id').eq('user_id', user_id).limit(1).execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Failed to look up profile {user_id}: {_describe(e)}") from e

        return bool(response.data)

    def get_business_owner(self, business_id: str) -> Optional[str]:
        try:
            response = (
                self.client.table('businesses')
                .select('owner_id').eq('id', business_id).limit(1).execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Failed to look up business {business_id}: {_describe(e)}") from e

        if not response.data:
            return None
        return response.data[0].get('owner_id')

    def delete_events_before(self, icon: str, event_type: str, cutoff: datetime) -> int:
        try:
            response = (
                self.client.table(self.TABLE_NAME)
                .delete()
                .eq('icon', icon)
                .eq('type', event_type)
                .lt('start_date', format_timestamp(cutoff))
                .execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Failed to delete old events: {_describe(e)}") from e

        return len(response.data or [])

    def upsert_events(self, rows: List[EventRow]) -> Tuple[int, int]:
        records = [self._row_to_record(row) for row in rows]
        try:
            response = self.client.rpc(
                self.UPSERT_FUNCTION, {'p_rows': records}
            ).execute()
        except STORE_ERRORS as e:
            raise StoreError(f"Upsert of {len(rows)} rows failed: {_describe(e)}") from e

        data = response.data
        first = data[0] if isinstance(data, list) and data else data
        if not isinstance(first, dict):
            return 0, 0
        return int(first.get('inserted') or 0), int(first.get('updated') or 0)

    def _row_to_record(self, row: EventRow) -> Dict[str, Any]:
        """
        Convert an EventRow to the JSON record expected by the upsert function.

        Args:
            row: EventRow object

        Returns:
            Record dictionary with ISO 8601 timestamps
        """
        return {
            'title': row.title,
            'type': row.type,
            'business_id': row.business_id,
            'created_by': row.created_by,
            'start_date': format_timestamp(row.start_date),
            'end_date': format_timestamp(row.end_date) if row.end_date else None,
            'location': row.location,
            'description': row.description,
            'icon': row.icon,
            'image': row.image,
            'price': row.price,
            'rating': row.rating,
            'booking_url': row.booking_url,
            'booking_contact': row.booking_contact
        }
