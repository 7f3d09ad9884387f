"""
Utility functions and constants for receipt records.
"""

import datetime as dt
import uuid
from typing import Optional

from .models import Record

# File type constants
PDF_EXTS = {".pdf"}

# OCR output shorter than this is treated as unreadable
MIN_OCR_TEXT_LENGTH = 5

# Sorts before every real date
_EPOCH_FLOOR = dt.datetime.min.replace(tzinfo=dt.timezone.utc)


def new_record_id() -> str:
    """Generate a fresh, never reused record id."""
    return str(uuid.uuid4())


def parse_transaction_date(value: Optional[str]) -> Optional[dt.datetime]:
    """
    Parse an ISO 8601 date or datetime string into an aware UTC datetime.

    Date-only strings are midnight UTC, naive datetimes are taken as UTC.
    Returns None for missing or unparseable values.
    """
    if not value:
        return None
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(s)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=dt.timezone.utc)
        return parsed.astimezone(dt.timezone.utc)
    except (ValueError, OverflowError):
        return None


def transaction_sort_key(record: Record) -> dt.datetime:
    """
    Sort key for the canonical order (use with reverse=True).

    Records with a missing or malformed date compare as the earliest
    possible date, so they land at the end of a descending sort.
    """
    return parse_transaction_date(record.transaction_date) or _EPOCH_FLOOR


def money_fmt(v: Optional[float], currency: str = "$") -> str:
    """Format amount as currency."""
    return f"{currency}{v:,.2f}" if v is not None else ""
