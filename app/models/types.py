import datetime as dt
from sqlalchemy.types import DateTime, TypeDecorator

from app.utils.timeutil import UTC, to_utc


class UTCDateTime(TypeDecorator):
    """
    Absolute instant stored as naive UTC.

    Writes refuse naive datetimes (they would be ambiguous) and convert aware
    ones to UTC; reads come back UTC-aware on every backend, SQLite included.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = dt.datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
