"""
Timezone utilities for the Sessly client.

Appointment timestamps come back from the backend either as ISO datetimes
(with or without offset) or as bare dates. These helpers turn them into
comparable aware datetimes so list views behave the same regardless of the
machine's local timezone.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Naive values are assumed to be UTC. Returns None for empty or
    unparseable input.
    """
    if not value:
        return None

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with parsed timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
