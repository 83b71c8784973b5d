# commander/utils/time_utils.py
"""
Time helpers shared by the broadcast and watch paths.
All timestamps leave the process as ISO8601 UTC strings with a trailing "Z".
"""

from __future__ import annotations

import time
import datetime


def monotonic_ts() -> float:
    return time.monotonic()


def utc_now() -> datetime.datetime:
    """Timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def to_iso(dt: datetime.datetime) -> str:
    """Format datetime into ISO string (UTC Z). Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    else:
        dt = dt.astimezone(datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_now() -> str:
    """Return current UTC time in ISO8601 format."""
    return to_iso(utc_now())
