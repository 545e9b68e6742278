"""Event processor for filtering and normalizing Quicket listings."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from processor.consolidator import consolidate_events
from processor.models import EventRow, FetchResult, QuicketEvent, QuicketTicket
from processor.text_utils import (
    build_location_string,
    normalize_text,
    parse_timestamp,
    strip_html,
    truncate_text,
)

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor that reduces raw listings to rows for the target market."""

    MAX_DESCRIPTION_LENGTH = 500
    GENERIC_CATEGORY = 'Other'
    CATEGORY_SEPARATOR = ' · '
    ICON = 'quicket'

    def __init__(self, target_city: str = 'Cape Town', target_country: str = 'South Africa'):
        """
        Initialize the processor.

        Args:
            target_city: City events must be located in
            target_country: Country events must be located in, when given
        """
        self.target_city = normalize_text(target_city)
        self.target_country = normalize_text(target_country)

    def process_events(
        self,
        raw_events: List[Dict[str, Any]],
        business_id: str,
        created_by: str,
        now: Optional[datetime] = None
    ) -> FetchResult:
        """
        Parse, filter, map and consolidate raw API results.

        Args:
            raw_events: Result dicts from the Quicket API
            business_id: System business the rows are attributed to
            created_by: Acting user id for the rows
            now: Reference time for the upcoming filter (default: current time)

        Returns:
            FetchResult with stage counters and consolidated rows
        """
        now = now or datetime.now(timezone.utc)

        events = self.parse_events(raw_events)
        filtered = self.filter_events(events, now)
        logger.info(
            f"Filtered: {len(raw_events)} total -> {len(filtered)} matching "
            f"(country + city + upcoming)"
        )

        mapped = []
        for event in filtered:
            row = self.map_event(event, business_id, created_by)
            if row:
                mapped.append(row)
        logger.info(f"Mapped {len(mapped)} valid events")

        consolidated = consolidate_events(mapped)
        logger.info(
            f"Consolidation: {len(mapped)} mapped -> {len(consolidated)} unique events"
        )

        return FetchResult(
            fetched_count=len(raw_events),
            filtered_count=len(filtered),
            mapped_count=len(mapped),
            consolidated_count=len(consolidated),
            rows=consolidated
        )

    def parse_events(self, raw_events: List[Dict[str, Any]]) -> List[QuicketEvent]:
        """Parse raw result dicts, skipping any with an unexpected shape."""
        events = []
        for raw in raw_events:
            try:
                events.append(QuicketEvent.from_dict(raw))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unparseable event payload: {e}")
        return events

    def filter_events(self, events: List[QuicketEvent], now: datetime) -> List[QuicketEvent]:
        """
        Keep only upcoming events in the target market.

        Args:
            events: Parsed events
            now: Reference time; events starting before it are dropped

        Returns:
            Events passing the country, start time and city checks
        """
        filtered = []
        for event in events:
            try:
                if (
                    self._matches_country(event)
                    and self._starts_from(event, now)
                    and self._matches_city(event)
                ):
                    filtered.append(event)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed event '{event.name or event.id}': {e}")
        return filtered

    def map_event(
        self,
        event: QuicketEvent,
        business_id: str,
        created_by: str
    ) -> Optional[EventRow]:
        """
        Map a single event to a store row.

        Args:
            event: Parsed Quicket event
            business_id: System business id
            created_by: Acting user id

        Returns:
            EventRow or None if the event has no title or valid start date
        """
        try:
            title = (event.name or '').strip()
            if not title:
                logger.warning(f"Event {event.id} missing required field: name")
                return None

            start_date = parse_timestamp(event.start_date)
            if start_date is None:
                logger.warning(
                    f"Invalid start date for event '{title}': {event.start_date}"
                )
                return None

            venue = event.venue
            locality = event.locality

            return EventRow(
                title=title,
                business_id=business_id,
                created_by=created_by,
                start_date=start_date,
                end_date=parse_timestamp(event.end_date),
                location=build_location_string(
                    venue.name if venue else None,
                    locality.level_three if locality else None,
                    locality.level_one if locality else None
                ),
                description=self._build_description(event),
                image=self._normalize_image_url(event.image_url),
                price=self.get_cheapest_price(event.tickets),
                booking_url=event.url or None,
                booking_contact=None,
                icon=self.ICON
            )
        except Exception as e:
            logger.warning(f"Skipping malformed event '{event.name or event.id}': {e}")
            return None

    @staticmethod
    def get_cheapest_price(tickets: List[QuicketTicket]) -> Optional[float]:
        """Lowest price among paid tiers that are neither donations nor sold out."""
        prices = [
            ticket.price for ticket in tickets
            if not ticket.donation
            and not ticket.sold_out
            and ticket.price is not None
            and ticket.price > 0
        ]
        return min(prices) if prices else None

    def _build_description(self, event: QuicketEvent) -> Optional[str]:
        if event.description:
            plain = strip_html(event.description)
            if plain:
                return truncate_text(plain, self.MAX_DESCRIPTION_LENGTH)

        names = [
            category.name for category in event.categories
            if category.name and category.name != self.GENERIC_CATEGORY
        ]
        if names:
            return self.CATEGORY_SEPARATOR.join(names)

        return None

    @staticmethod
    def _normalize_image_url(url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        if url.startswith('//'):
            return f"https:{url}"
        return url

    def _matches_country(self, event: QuicketEvent) -> bool:
        country = normalize_text(event.locality.level_one if event.locality else None)
        return not country or country == self.target_country

    @staticmethod
    def _starts_from(event: QuicketEvent, now: datetime) -> bool:
        start = parse_timestamp(event.start_date)
        return start is not None and start >= now

    def _matches_city(self, event: QuicketEvent) -> bool:
        """
        Match on the locality city, falling back to venue and address text
        when the structured locality is missing or names somewhere else.
        """
        city = normalize_text(event.locality.level_three if event.locality else None)
        if city and (self.target_city in city or city in self.target_city):
            return True

        venue = event.venue
        if venue is None:
            return False

        address = ' '.join(
            part for part in (venue.name, venue.address_line1, venue.address_line2)
            if part and part.strip()
        )
        return self.target_city in address.lower()
