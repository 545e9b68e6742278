"""Merge rows that describe the same event within a single run."""
import logging
from dataclasses import replace
from typing import Dict, List

from processor.models import EventRow
from processor.text_utils import build_dedupe_key

logger = logging.getLogger(__name__)


def consolidate_events(rows: List[EventRow]) -> List[EventRow]:
    """
    Collapse rows sharing a dedupe key into one row per key.

    The first row seen for a key is the base. Later rows contribute the
    earliest start, the latest end, the longer description, the lower
    price, and an image or booking URL only when the base has none.

    Args:
        rows: Mapped rows, possibly containing duplicates

    Returns:
        One row per dedupe key, in first-seen order
    """
    merged: Dict[str, EventRow] = {}

    for row in rows:
        key = build_dedupe_key(row.title, row.start_date, row.location)
        existing = merged.get(key)

        if existing is None:
            merged[key] = replace(row)
            continue

        _merge_into(existing, row)

    if len(merged) < len(rows):
        logger.debug(f"Merged {len(rows) - len(merged)} duplicate rows")

    return list(merged.values())


def _merge_into(existing: EventRow, incoming: EventRow) -> None:
    if incoming.start_date < existing.start_date:
        existing.start_date = incoming.start_date

    if incoming.end_date is not None:
        if existing.end_date is None or incoming.end_date > existing.end_date:
            existing.end_date = incoming.end_date

    if incoming.description and (
        not existing.description
        or len(incoming.description) > len(existing.description)
    ):
        existing.description = incoming.description

    if incoming.image and not existing.image:
        existing.image = incoming.image

    if incoming.booking_url and not existing.booking_url:
        existing.booking_url = incoming.booking_url

    if incoming.price is not None:
        if existing.price is None or incoming.price < existing.price:
            existing.price = incoming.price
