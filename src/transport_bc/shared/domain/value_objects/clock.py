"""Clock helpers.

Services take a ``Clock`` (epoch seconds, ``time.time`` by default) so that
TTL and window behaviour can be driven from tests. The relational store keeps
naive UTC datetimes; the domain works with aware UTC datetimes.
"""
import time
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], float]

system_clock: Clock = time.time


def utc_from_timestamp(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_aware_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
