"""Data models for Quicket event ingestion."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class QuicketVenue:
    """Venue block of a Quicket listing."""
    id: Optional[int] = None
    name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['QuicketVenue']:
        if data is None:
            return None
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            address_line1=data.get('addressLine1'),
            address_line2=data.get('addressLine2'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude')
        )


@dataclass
class QuicketLocality:
    """Geographic locality: level one is the country, three the city."""
    level_one: Optional[str] = None
    level_two: Optional[str] = None
    level_three: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['QuicketLocality']:
        if data is None:
            return None
        return cls(
            level_one=data.get('levelOne'),
            level_two=data.get('levelTwo'),
            level_three=data.get('levelThree')
        )


@dataclass
class QuicketCategory:
    id: Optional[int] = None
    name: Optional[str] = None


@dataclass
class QuicketTicket:
    """A ticket tier on a listing."""
    id: Optional[int] = None
    name: Optional[str] = None
    price: Optional[float] = None
    sold_out: bool = False
    provisionally_sold_out: bool = False
    donation: bool = False
    vendor_ticket: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuicketTicket':
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            price=data.get('price'),
            sold_out=bool(data.get('soldOut')),
            provisionally_sold_out=bool(data.get('provisionallySoldOut')),
            donation=bool(data.get('donation')),
            vendor_ticket=bool(data.get('vendorTicket'))
        )


@dataclass
class QuicketEvent:
    """Raw event listing as returned by the Quicket API."""
    id: Optional[int]
    name: Optional[str]
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    date_created: Optional[str] = None
    last_modified: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    venue: Optional[QuicketVenue] = None
    locality: Optional[QuicketLocality] = None
    organiser_name: Optional[str] = None
    categories: List[QuicketCategory] = field(default_factory=list)
    tickets: List[QuicketTicket] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuicketEvent':
        """
        Build an event from a raw API result.

        Args:
            data: One entry of the response ``results`` list

        Returns:
            QuicketEvent object

        Raises:
            AttributeError, TypeError: If the payload has an unexpected shape
        """
        organiser = data.get('organiser') or {}
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            description=data.get('description'),
            url=data.get('url'),
            image_url=data.get('imageUrl'),
            date_created=data.get('dateCreated'),
            last_modified=data.get('lastModified'),
            start_date=data.get('startDate'),
            end_date=data.get('endDate'),
            venue=QuicketVenue.from_dict(data.get('venue')),
            locality=QuicketLocality.from_dict(data.get('locality')),
            organiser_name=organiser.get('name'),
            categories=[
                QuicketCategory(id=item.get('id'), name=item.get('name'))
                for item in data.get('categories') or []
            ],
            tickets=[
                QuicketTicket.from_dict(item)
                for item in data.get('tickets') or []
            ]
        )


@dataclass
class EventRow:
    """Normalized row for the events_and_specials table."""
    title: str
    business_id: str
    created_by: str
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    price: Optional[float] = None
    booking_url: Optional[str] = None
    booking_contact: Optional[str] = None
    type: str = 'event'
    icon: str = 'quicket'
    rating: float = 0


@dataclass
class FetchResult:
    """Stage counters and final rows of one fetch run."""
    fetched_count: int
    filtered_count: int
    mapped_count: int
    consolidated_count: int
    rows: List[EventRow]


@dataclass
class UpsertResult:
    """Result of a batched upsert."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed_batches: int = 0
    errors: List[str] = field(default_factory=list)
