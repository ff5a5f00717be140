"""Shared validation utilities"""

import math
import uuid
from datetime import datetime, timezone
from typing import Optional

SUPPORTED_CURRENCIES = ("OMR", "USD", "EUR")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC for storage.

    Timestamps are stored without tzinfo; aware inputs (e.g. ISO strings with
    "Z" or an offset) are converted to UTC first.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def ensure_finite(value: Optional[float], label: str = "Value") -> Optional[float]:
    """Reject NaN and +/-Infinity"""
    if value is not None and not math.isfinite(value):
        raise ValueError(f"{label} must be a finite number")
    return value


def validate_currency(currency: str) -> str:
    currency = (currency or "").upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise ValueError(f"Currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}")
    return currency


def paginate(total: int, page: int, page_size: int) -> dict:
    """Pagination metadata in the shape the dashboard tables expect"""
    total_pages = (total + page_size - 1) // page_size if page_size else 0
    return {
        "page": page,
        "limit": page_size,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
