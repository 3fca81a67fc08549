"""Timestamp normalization.

Feeds, YAML documents and older Firestore exports hand us dates in several
shapes: ``datetime`` objects, RFC 822 / ISO 8601 strings, epoch seconds and
``{"_seconds": ...}`` wrappers. Everything is converted to an aware UTC
``datetime`` here so the rest of the pipeline never has to care.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

import structlog
from dateutil import parser as date_parser

logger = structlog.get_logger(__name__)


def _from_epoch(seconds: Any, nanoseconds: Any = 0) -> Optional[datetime]:
    try:
        value = float(seconds) + float(nanoseconds or 0) / 1e9
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Convert any supported representation to an aware UTC datetime.

    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return _from_epoch(value)

    if isinstance(value, str):
        try:
            return to_datetime(date_parser.parse(value.strip()))
        except (ValueError, OverflowError, TypeError):
            logger.debug("Unparseable timestamp", value=value)
            return None

    if isinstance(value, dict):
        for key in ("_seconds", "seconds"):
            if key in value:
                return _from_epoch(value[key], value.get("_nanoseconds", value.get("nanoseconds")))
        return None

    for attr in ("_seconds", "seconds"):
        if hasattr(value, attr):
            nanos = getattr(value, "_nanoseconds", getattr(value, "nanoseconds", 0))
            return _from_epoch(getattr(value, attr), nanos)

    logger.debug("Unsupported timestamp type", type=type(value).__name__)
    return None


def is_later(first: Any, second: Any) -> bool:
    """Return True if ``first`` is strictly later than ``second``.

    Either side failing to parse yields False.
    """
    first_dt = to_datetime(first)
    second_dt = to_datetime(second)
    if first_dt is None or second_dt is None:
        return False
    return first_dt > second_dt
