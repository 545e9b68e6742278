"""Shared fixtures for ingestor tests."""
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from processor.models import EventRow
from processor.text_utils import build_dedupe_key
from storage.event_store import EventStore, StoreConnectionError, StoreError

BUSINESS_ID = '22222222-2222-4222-8222-222222222222'
USER_ID = '11111111-1111-4111-8111-111111111111'
OWNER_ID = '33333333-3333-4333-9333-333333333333'
NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryEventStore(EventStore):
    """Store fake keyed by the same identity rules as the dedupe key."""

    def __init__(
        self,
        users=(),
        owners: Optional[Dict[str, str]] = None,
        fail_ping: bool = False,
        fail_delete: bool = False,
        fail_batches=()
    ):
        self.users = set(users)
        self.owners = dict(owners or {})
        self.fail_ping = fail_ping
        self.fail_delete = fail_delete
        self.fail_batches = set(fail_batches)
        self.rows: Dict[str, EventRow] = {}
        self.upsert_calls: List[List[EventRow]] = []
        self.calls: List[str] = []

    def add_row(self, row: EventRow) -> None:
        self.rows[build_dedupe_key(row.title, row.start_date, row.location)] = row

    def ping(self) -> None:
        self.calls.append('ping')
        if self.fail_ping:
            raise StoreConnectionError('connection refused')

    def user_exists(self, user_id: str) -> bool:
        return user_id in self.users

    def get_business_owner(self, business_id: str) -> Optional[str]:
        return self.owners.get(business_id)

    def delete_events_before(self, icon: str, event_type: str, cutoff: datetime) -> int:
        self.calls.append('delete')
        if self.fail_delete:
            raise StoreError('delete rejected')
        stale = [
            key for key, row in self.rows.items()
            if row.icon == icon and row.type == event_type and row.start_date < cutoff
        ]
        for key in stale:
            del self.rows[key]
        return len(stale)

    def upsert_events(self, rows: List[EventRow]):
        self.calls.append('upsert')
        self.upsert_calls.append(list(rows))
        if len(self.upsert_calls) in self.fail_batches:
            raise StoreError('batch rejected')

        inserted = updated = 0
        for row in rows:
            key = build_dedupe_key(row.title, row.start_date, row.location)
            if key in self.rows:
                updated += 1
            else:
                inserted += 1
            self.rows[key] = replace(row)
        return inserted, updated


@pytest.fixture
def memory_store():
    """Store fake with a valid preferred user and business owner."""
    return InMemoryEventStore(users=[USER_ID, OWNER_ID], owners={BUSINESS_ID: OWNER_ID})


@pytest.fixture
def make_raw_event():
    """Factory for Quicket API result dicts located in Cape Town."""
    def _make(**overrides):
        raw = {
            'id': 1001,
            'name': 'Jazz on the Lawn',
            'description': '<p>An evening of <b>live jazz</b>.</p>',
            'url': 'https://www.quicket.co.za/events/1001',
            'imageUrl': '//images.quicket.co.za/1001.jpg',
            'startDate': '2025-06-01T18:00:00Z',
            'endDate': '2025-06-01T22:00:00Z',
            'venue': {
                'id': 5,
                'name': 'Kirstenbosch Gardens',
                'addressLine1': 'Rhodes Drive',
                'addressLine2': 'Newlands',
                'latitude': -33.98,
                'longitude': 18.43
            },
            'locality': {
                'levelOne': 'South Africa',
                'levelTwo': 'Western Cape',
                'levelThree': 'Cape Town'
            },
            'organiser': {'id': 9, 'name': 'Garden Concerts'},
            'categories': [{'id': 1, 'name': 'Music'}],
            'tickets': [
                {'id': 1, 'name': 'General', 'price': 150, 'soldOut': False, 'donation': False}
            ]
        }
        raw.update(overrides)
        return raw

    return _make


@pytest.fixture
def make_row():
    """Factory for EventRow objects."""
    def _make(**overrides):
        values = {
            'title': 'Jazz on the Lawn',
            'business_id': BUSINESS_ID,
            'created_by': USER_ID,
            'start_date': datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc),
            'end_date': datetime(2025, 6, 1, 22, 0, tzinfo=timezone.utc),
            'location': 'Kirstenbosch Gardens • Cape Town • South Africa',
            'description': 'An evening of live jazz.',
            'image': 'https://images.quicket.co.za/1001.jpg',
            'price': 150,
            'booking_url': 'https://www.quicket.co.za/events/1001'
        }
        values.update(overrides)
        return EventRow(**values)

    return _make
