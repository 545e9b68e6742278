"""Text, timestamp and dedupe key helpers."""
from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup

LOCATION_SEPARATOR = ' • '
TRUNCATION_MARKER = '...'
BLOCK_TAGS = ['br', 'p', 'div', 'li', 'tr', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6']


def normalize_text(value: Optional[str]) -> str:
    """Trim and lowercase, treating None as empty."""
    return (value or '').strip().lower()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Timestamps without an offset are taken to be UTC.

    Args:
        value: Timestamp string (e.g. "2025-06-01T20:00:00Z")

    Returns:
        Timezone-aware datetime or None if missing or unparseable
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render as UTC ISO 8601 with milliseconds, e.g. 2025-06-01T18:00:00.000Z."""
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def build_dedupe_key(title: str, start_date: datetime, location: Optional[str]) -> str:
    """
    Build the identity key used to recognise the same real-world event.

    Args:
        title: Event title
        start_date: Event start
        location: Location string or None

    Returns:
        Key of the form "title|YYYY-MM-DD|location"
    """
    start_day = start_date.astimezone(timezone.utc).date().isoformat()
    return f"{normalize_text(title)}|{start_day}|{normalize_text(location)}"


def strip_html(html: str) -> str:
    """Remove markup, keeping block boundaries as spaces, and collapse whitespace."""
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_after(' ')
    return ' '.join(soup.get_text().split())


def truncate_text(text: str, limit: int = 500) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def build_location_string(*parts: Optional[str]) -> Optional[str]:
    """Join the non-blank parts in order, or None if nothing is left."""
    present = [
        part.strip() for part in parts
        if isinstance(part, str) and part.strip()
    ]
    return LOCATION_SEPARATOR.join(present) if present else None
