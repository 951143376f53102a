"""Conversion of receiver time to Unix epoch timestamps."""

from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import (
    DEFAULT_LEAP_SECONDS,
    GPS_EPOCH_UNIX,
    MS_PER_WEEK,
    TOW_DO_NOT_USE,
    WNC_DO_NOT_USE,
)

Clock = Callable[[], int]
"""Returns the current Unix time in nanoseconds, like ``time.time_ns``."""

_NS_PER_SEC = 1_000_000_000
_NS_PER_MS = 1_000_000
_MS_PER_DAY = 86_400_000

# Distance from a week rollover within which a wall-clock week estimate
# may be moved to the neighbouring week
ROLLOVER_WINDOW_MS = 6 * 3_600_000


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """Seconds and nanoseconds since the Unix epoch."""

    sec: int
    nsec: int

    @classmethod
    def from_ns(cls, total_ns: int) -> "Timestamp":
        sec, nsec = divmod(total_ns, _NS_PER_SEC)
        return cls(sec, nsec)

    @classmethod
    def from_ms(cls, total_ms: int) -> "Timestamp":
        return cls.from_ns(total_ms * _NS_PER_MS)

    def to_ns(self) -> int:
        return self.sec * _NS_PER_SEC + self.nsec

    def to_float(self) -> float:
        return self.sec + self.nsec / _NS_PER_SEC

    def to_datetime(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.sec, tz=dt.timezone.utc) + dt.timedelta(
            microseconds=self.nsec // 1000
        )


def gps_week_from_clock(now_ns: int, leap_seconds: int = DEFAULT_LEAP_SECONDS) -> int:
    """GPS week number containing the wall-clock instant ``now_ns``."""
    gps_ms = now_ns // _NS_PER_MS - GPS_EPOCH_UNIX * 1000 + leap_seconds * 1000
    return gps_ms // MS_PER_WEEK


def timestamp_from_tow(
    tow_ms: int,
    use_gnss_time: bool = True,
    *,
    wnc: Optional[int] = None,
    leap_seconds: int = DEFAULT_LEAP_SECONDS,
    clock: Clock = time.time_ns,
) -> Timestamp:
    """Unix timestamp for a time-of-week value in milliseconds.

    ``wnc`` is the week number the receiver sent alongside the TOW. When it
    is missing or marked do-not-use, the week is taken from the wall clock
    and only moved near a rollover: a TOW from the last hours of a week
    seen in the first hours of the next keeps the earlier week, and a TOW
    from the first hours seen just before the rollover gets the next one.
    Elsewhere the estimated week is left alone, so stamps follow TOW order
    across the whole week.

    With ``use_gnss_time`` false, or when the receiver reports the TOW as
    unknown, the wall clock is returned.
    """
    now_ns = clock()
    if not use_gnss_time or tow_ms == TOW_DO_NOT_USE or not 0 <= tow_ms < MS_PER_WEEK:
        return Timestamp.from_ns(now_ns)

    leap_ms = leap_seconds * 1000
    if wnc is not None and wnc != WNC_DO_NOT_USE:
        week = wnc
    else:
        gps_now_ms = now_ns // _NS_PER_MS - GPS_EPOCH_UNIX * 1000 + leap_ms
        week, now_tow = divmod(gps_now_ms, MS_PER_WEEK)
        if now_tow < ROLLOVER_WINDOW_MS and tow_ms >= MS_PER_WEEK - ROLLOVER_WINDOW_MS:
            week -= 1
        elif now_tow >= MS_PER_WEEK - ROLLOVER_WINDOW_MS and tow_ms < ROLLOVER_WINDOW_MS:
            week += 1

    unix_ms = GPS_EPOCH_UNIX * 1000 + week * MS_PER_WEEK + tow_ms - leap_ms
    return Timestamp.from_ms(unix_ms)


def timestamp_from_utc_time(
    time_of_day: Optional[dt.time],
    use_gnss_time: bool = True,
    *,
    clock: Clock = time.time_ns,
) -> Timestamp:
    """Unix timestamp for a UTC time of day such as the one in a GGA sentence.

    The date comes from the wall clock. A time of day more than twelve hours
    away from the wall clock is moved to the neighbouring day.
    """
    now_ns = clock()
    if not use_gnss_time or time_of_day is None:
        return Timestamp.from_ns(now_ns)

    now_ms = now_ns // _NS_PER_MS
    midnight_ms = now_ms - now_ms % _MS_PER_DAY
    day_ms = (
        ((time_of_day.hour * 60 + time_of_day.minute) * 60 + time_of_day.second) * 1000
        + time_of_day.microsecond // 1000
    )
    unix_ms = midnight_ms + day_ms
    if unix_ms - now_ms > _MS_PER_DAY // 2:
        unix_ms -= _MS_PER_DAY
    elif now_ms - unix_ms > _MS_PER_DAY // 2:
        unix_ms += _MS_PER_DAY
    return Timestamp.from_ms(unix_ms)


__all__ = [
    "Clock",
    "Timestamp",
    "gps_week_from_clock",
    "timestamp_from_tow",
    "timestamp_from_utc_time",
]
