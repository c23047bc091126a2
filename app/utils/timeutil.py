"""
Canonical time handling.

Instants are always timezone-aware and stored as UTC. Business rules (meal
windows, "today", cancellation cutoffs) look at civil time, and the only way to
get civil time is ``to_civil``. Never add or subtract a fixed offset by hand.
"""

import datetime as dt
from functools import lru_cache
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

UTC = dt.timezone.utc


@lru_cache(maxsize=8)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def ensure_aware(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("naive datetime is ambiguous; attach a timezone first")
    return value


def to_utc(value: dt.datetime) -> dt.datetime:
    return ensure_aware(value).astimezone(UTC)


def to_civil(value: dt.datetime, zone_name: str) -> dt.datetime:
    """Project an absolute instant into the civil time of ``zone_name``."""
    return ensure_aware(value).astimezone(get_zone(zone_name))


def civil_date(value: dt.datetime, zone_name: str) -> dt.date:
    return to_civil(value, zone_name).date()


def civil_instant(day: dt.date, at: dt.time, zone_name: str) -> dt.datetime:
    """The absolute instant at which ``day`` reaches wall-clock ``at``."""
    return dt.datetime.combine(day, at, tzinfo=get_zone(zone_name))


def isoformat_utc(value: Optional[dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    return to_utc(value).isoformat().replace("+00:00", "Z")


def parse_date(value: str) -> dt.date:
    return dt.date.fromisoformat(value)


def parse_instant(value: str) -> dt.datetime:
    """Parse an ISO-8601 instant. A trailing ``Z`` means UTC; an offset is required."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_aware(dt.datetime.fromisoformat(value))


# Clock

class Clock(Protocol):
    def now_utc(self) -> dt.datetime:
        ...


class SystemClock:
    def now_utc(self) -> dt.datetime:
        return dt.datetime.now(UTC)


class FixedClock:
    """Clock frozen at a given instant. Used by tests and replay scripts."""

    def __init__(self, fixed: dt.datetime):
        self._fixed = to_utc(fixed)

    def now_utc(self) -> dt.datetime:
        return self._fixed

    def set(self, fixed: dt.datetime) -> None:
        self._fixed = to_utc(fixed)

    def advance(self, seconds: float) -> None:
        self._fixed = self._fixed + dt.timedelta(seconds=seconds)


def utcnow() -> dt.datetime:
    """Wall-clock UTC for bookkeeping columns; business rules take ``now`` explicitly."""
    return dt.datetime.now(UTC)
