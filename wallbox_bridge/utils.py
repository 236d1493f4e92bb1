"""
Utility functions for result values, timestamps and membership ids.
"""

from datetime import datetime, timezone
from loguru import logger

from wallbox_bridge.constants import MEMBERSHIP_ID_NOBODY


def ok(value=None):
    """Build a successful result value."""
    return {"ok": True, "value": value}


def error(message: str):
    """Build a failed result value carrying a short, non-sensitive message."""
    return {"ok": False, "error": message}


def log_error_and_return_clean_message(clean_message: str, *details):
    """
    Log an error with all of its details and return a sanitized error result.

    Lower-level failures (network, HTTP status, parsing, validation) must
    never leak their internals to callers, so only ``clean_message`` ends up
    in the returned result.

    Args:
        clean_message: Message safe to show to callers
        *details: Exceptions, status codes or bodies that are logged only

    Returns:
        dict: ``{"ok": False, "error": clean_message}``
    """
    if details:
        logger.error(f"{clean_message}: {' | '.join(str(d) for d in details)}")
    else:
        logger.error(clean_message)
    return error(clean_message)


def utc_now():
    """Get current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime):
    """
    Format a datetime as an ISO 8601 string with Z suffix.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(timestamp_str: str):
    """
    Parse an ISO timestamp string to a timezone-aware UTC datetime.

    Handles Z suffix, explicit offsets (the membership backend answers in
    the space's local offset) and naive strings, which are taken as UTC.

    Returns:
        datetime: Timezone-aware UTC datetime
    """
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    dt = datetime.fromisoformat(timestamp_str)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_membership_id(membership_id):
    """
    Map the UI's "nobody" placeholder and empty values onto ``None``.

    ``None`` means "no specific member" everywhere below the API layer.
    """
    if membership_id is None or membership_id in ("", MEMBERSHIP_ID_NOBODY):
        return None
    return membership_id
