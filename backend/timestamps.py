"""
Timestamp normalization.

Every timestamp that enters the store is an integer count of
milliseconds since the Unix epoch. Callers hand us one of three
encodings:

- epoch seconds (a number below `SECONDS_THRESHOLD`),
- epoch milliseconds (a number at or above it),
- a calendar string, ISO-8601 first and the Apple Health export layout
  (`2025-02-10 08:45:23 -0500`) as a fallback.

Strings without a UTC offset are read as UTC.
"""

import math
from datetime import datetime, timezone

from errors import InvalidTimestamp


SECONDS_THRESHOLD = 10_000_000_000

_FALLBACK_FORMATS = ("%Y-%m-%d %H:%M:%S %z",)


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def normalize(raw) -> int:
    """Return `raw` as epoch milliseconds or raise `InvalidTimestamp`."""

    # bool is an int subclass; True is not a point in time
    if isinstance(raw, bool):
        raise InvalidTimestamp(f"Invalid timestamp: {raw!r}")

    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            raise InvalidTimestamp(f"Invalid timestamp: {raw!r}")
        if raw < SECONDS_THRESHOLD:
            return int(round(raw * 1000))
        return int(raw)

    if isinstance(raw, str):
        return _parse_calendar(raw)

    raise InvalidTimestamp(f"Invalid timestamp: {raw!r}")


def _parse_calendar(value: str) -> int:
    text = value.strip()
    if not text:
        raise InvalidTimestamp("Invalid timestamp: empty value")

    dt = None
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _FALLBACK_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        raise InvalidTimestamp(f"Invalid timestamp: {value}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    try:
        return int(round(dt.timestamp() * 1000))
    except (OverflowError, OSError, ValueError) as e:
        raise InvalidTimestamp(f"Invalid timestamp: {value}") from e
