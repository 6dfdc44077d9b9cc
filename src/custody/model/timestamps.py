"""UTC timestamp helpers shared by records and stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from custody.exceptions import ValidationError

TimestampLike = Union[datetime, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: TimestampLike) -> datetime:
    """
    Coerce a datetime or ISO-8601 string to an aware UTC datetime.

    Naive values are taken as UTC.

    Raises:
        ValidationError: on unparseable input.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError("Invalid timestamp") from exc
    else:
        raise ValidationError("Invalid timestamp")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional(value: Optional[TimestampLike]) -> Optional[datetime]:
    return None if value is None else parse_timestamp(value)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a 'Z' suffix."""
    return (
        parse_timestamp(value)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def format_optional(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else format_timestamp(value)


__all__ = [
    "utcnow",
    "parse_timestamp",
    "parse_optional",
    "format_timestamp",
    "format_optional",
]
