"""
Nanosecond timestamp codec.

Loki timestamps are integer UTC epoch nanoseconds, which `datetime` cannot
hold. Stored cells use a fixed-offset ISO-8601 form with exactly nine
fractional digits:

    2024-05-01T09:30:05.123456789+09:00

Decoding reads the calendar digits literally as naive UTC, builds a
millisecond baseline from them, adds the nine fractional digits, and only then
subtracts the offset. That order keeps the conversion correct for whatever
offset is embedded in the string, independent of the fallback offset.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from logsync.errors import TimestampFormatError, TimestampParseError
from logsync.utils.logging import get_logger

log = get_logger(__name__)

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000
DATETIME_PREFIX_LENGTH = 29  # YYYY-MM-DDTHH:mm:ss.fffffffff

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")
_DATETIME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d{9})$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_valid_offset(offset: Any) -> bool:
    return isinstance(offset, str) and _OFFSET_RE.match(offset) is not None


def parse_offset(offset: Any) -> int:
    """
    Convert a `±HH:MM` offset into signed nanoseconds.

    Raises
    ------
    TimestampParseError
        If the offset does not match `^[+-]\\d{2}:\\d{2}$`.
    """
    match = _OFFSET_RE.match(offset) if isinstance(offset, str) else None
    if match is None:
        raise TimestampParseError(f"Invalid timezone offset format: {offset!r}")
    sign = 1 if match.group(1) == "+" else -1
    hours, minutes = int(match.group(2)), int(match.group(3))
    return sign * (hours * 3600 + minutes * 60) * NANOS_PER_SECOND


def decode(iso_string: Any, fallback_offset: str = "+00:00") -> int:
    """
    Decode an ISO-8601 nanosecond string into UTC epoch nanoseconds.

    The offset embedded after the 29-character date-time prefix wins; when the
    string carries none, `fallback_offset` is used.
    """
    if not isinstance(iso_string, str):
        raise TimestampParseError(f"Timestamp must be a string, got {type(iso_string).__name__}")
    text = iso_string.strip()
    prefix, suffix = text[:DATETIME_PREFIX_LENGTH], text[DATETIME_PREFIX_LENGTH:]
    offset_ns = parse_offset(suffix or fallback_offset)

    match = _DATETIME_RE.match(prefix)
    if match is None:
        raise TimestampParseError(f"Unparsable timestamp: {iso_string!r}")
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    fraction_ns = int(match.group(7))
    try:
        wall = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError as exc:
        raise TimestampParseError(f"Unparsable timestamp: {iso_string!r} ({exc})") from exc

    delta = wall - _EPOCH
    calendar_millis = (delta.days * 86_400 + delta.seconds) * 1000
    pseudo_ns = calendar_millis * NANOS_PER_MILLI + fraction_ns
    return pseudo_ns - offset_ns


def encode(utc_ns: int, offset: str) -> str:
    """
    Render UTC epoch nanoseconds as `YYYY-MM-DDTHH:mm:ss.fffffffff±HH:MM`.

    Exact inverse of `decode`: `decode(encode(t, o), o) == t`.
    """
    if isinstance(utc_ns, bool) or not isinstance(utc_ns, int):
        raise TimestampFormatError(f"Timestamp must be integer nanoseconds, got {utc_ns!r}")
    try:
        offset_ns = parse_offset(offset)
    except TimestampParseError as exc:
        raise TimestampFormatError(str(exc)) from exc

    local_ns = utc_ns + offset_ns
    # floor division keeps the fraction non-negative before 1970
    seconds, fraction_ns = divmod(local_ns, NANOS_PER_SECOND)
    try:
        wall = _EPOCH + timedelta(seconds=seconds)
    except (OverflowError, ValueError) as exc:
        raise TimestampFormatError(f"Timestamp {utc_ns} is out of range") from exc
    return (
        f"{wall.year:04d}-{wall.month:02d}-{wall.day:02d}"
        f"T{wall.hour:02d}:{wall.minute:02d}:{wall.second:02d}"
        f".{fraction_ns:09d}{offset}"
    )


class TimestampCodec:
    """Codec bound to the configured destination offset."""

    def __init__(self, offset: str) -> None:
        parse_offset(offset)
        self.offset = offset

    def decode(self, iso_string: Any) -> int:
        return decode(iso_string, self.offset)

    def encode(self, utc_ns: int) -> str:
        return encode(utc_ns, self.offset)

    def try_decode(self, iso_string: Any) -> Optional[int]:
        """Decode, or log and return None. Empty cells are silently None."""
        if iso_string is None or iso_string == "":
            return None
        try:
            return self.decode(iso_string)
        except TimestampParseError as exc:
            log.warning(f"Skipping unparsable stored timestamp: {exc}")
            return None


__all__ = [
    "NANOS_PER_SECOND",
    "TimestampCodec",
    "decode",
    "encode",
    "is_valid_offset",
    "parse_offset",
]
