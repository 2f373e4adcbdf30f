"""ISO-8601 helpers.

Signals carry their timestamps as ISO-8601 strings (UTC, millisecond
precision, "Z" suffix) so they serialize identically wherever they are
stored or displayed. Everything else in the engine works with aware
datetimes; these helpers convert between the two.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as e.g. "2026-02-13T10:00:00.000Z"."""
    text = ensure_utc(value).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_iso(text: str) -> datetime:
    """Parse an ISO-8601 timestamp (or bare date) into an aware UTC datetime.

    Raises:
        ValueError: If the text is not a recognisable ISO-8601 value.
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from earlier to later (negative if reversed)."""
    return (later - earlier).days
