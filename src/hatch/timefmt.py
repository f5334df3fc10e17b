"""Publish date parsing and relative time rendering."""

from __future__ import annotations

from datetime import datetime, timezone

PUBLISH_FORMAT = "%d-%b-%Y %H:%M:%S"


def _as_datetime(value) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_publish_date(value) -> datetime | None:
    """Accepts the edit form format ('4-Mar-2013 09:15:00') or ISO 8601."""
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), PUBLISH_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    return _as_datetime(value)


def format_publish_date(value, now: datetime | None = None) -> str:
    dt = _as_datetime(value) or now or datetime.now(timezone.utc)
    # day of month is not zero padded in the edit form
    return f"{dt.day}-{dt.strftime('%b-%Y %H:%M:%S')}"


def _round(value: float) -> int:
    # half up, not banker's rounding
    return int(value + 0.5)


def _relative_phrase(seconds: float) -> str:
    # each unit is rounded from the one below it, then bucketed
    secs = _round(seconds)
    minutes = _round(secs / 60)
    hours = _round(minutes / 60)
    days = _round(hours / 24)
    months = _round(days / 30.4375)
    years = _round(days / 365.25)
    if secs < 45:
        return "a few seconds"
    if minutes <= 1:
        return "a minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if hours <= 1:
        return "an hour"
    if hours < 22:
        return f"{hours} hours"
    if days <= 1:
        return "a day"
    if days < 26:
        return f"{days} days"
    if months <= 1:
        return "a month"
    if months < 11:
        return f"{months} months"
    if years <= 1:
        return "a year"
    return f"{years} years"


def from_now(value, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    dt = _as_datetime(value) or now
    seconds = (now - dt).total_seconds()
    phrase = _relative_phrase(abs(seconds))
    return f"in {phrase}" if seconds < 0 else f"{phrase} ago"
