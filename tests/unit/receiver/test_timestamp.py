"""Unit tests for receiver time conversion."""

import datetime as dt

import pytest

from mosaic_stream.receiver.constants import (
    GPS_EPOCH_UNIX,
    MS_PER_WEEK,
    SECONDS_PER_WEEK,
    TOW_DO_NOT_USE,
    WNC_DO_NOT_USE,
)
from mosaic_stream.receiver.timestamp import (
    Timestamp,
    gps_week_from_clock,
    timestamp_from_tow,
    timestamp_from_utc_time,
)

# 2024-01-10T12:00:00Z
NOW_NS = 1_704_888_000 * 1_000_000_000
WEEK = 2296
# GPS time of week at NOW_NS
NOW_TOW = 302_418_000


def _clock(ns):
    return lambda: ns


def _unix_for(week, tow_ms, leap=18):
    return GPS_EPOCH_UNIX + week * SECONDS_PER_WEEK + tow_ms // 1000 - leap


class TestTimestamp:
    """Test the Timestamp value type."""

    def test_from_ns_splits_seconds(self):
        stamp = Timestamp.from_ns(1_500_000_000_123)
        assert stamp == Timestamp(1500, 123)
        assert stamp.to_ns() == 1_500_000_000_123

    def test_from_ms(self):
        assert Timestamp.from_ms(1234) == Timestamp(1, 234_000_000)

    def test_ordering(self):
        assert Timestamp(10, 5) < Timestamp(10, 6) < Timestamp(11, 0)

    def test_to_datetime(self):
        stamp = Timestamp(1_704_888_000, 500_000_000)
        assert stamp.to_datetime() == dt.datetime(2024, 1, 10, 12, 0, 0, 500_000, tzinfo=dt.timezone.utc)
        assert stamp.to_float() == pytest.approx(1_704_888_000.5)


class TestGpsWeek:
    """Test week estimation from the wall clock."""

    def test_week_from_clock(self):
        assert gps_week_from_clock(NOW_NS) == WEEK

    def test_leap_seconds_move_week_boundary(self):
        """Test that the GPS week starts 18 s before the UTC week boundary."""
        boundary_ns = (GPS_EPOCH_UNIX + 2297 * SECONDS_PER_WEEK - 18) * 1_000_000_000
        assert gps_week_from_clock(boundary_ns) == 2297
        assert gps_week_from_clock(boundary_ns - 1_000_000) == 2296


class TestTimestampFromTow:
    """Test conversion of time-of-week values."""

    def test_gnss_time(self):
        tow = 302_400_000
        stamp = timestamp_from_tow(tow, clock=_clock(NOW_NS))
        assert stamp == Timestamp(_unix_for(WEEK, tow), 0)
        assert stamp == Timestamp(1_704_887_982, 0)

    def test_milliseconds_kept(self):
        stamp = timestamp_from_tow(302_400_250, clock=_clock(NOW_NS))
        assert stamp.nsec == 250_000_000

    def test_custom_leap_seconds(self):
        tow = 302_400_000
        stamp = timestamp_from_tow(tow, leap_seconds=0, clock=_clock(NOW_NS))
        assert stamp.sec == _unix_for(WEEK, tow, leap=0)

    def test_wall_clock_mode(self):
        """Test that device time off ignores the TOW entirely."""
        stamp = timestamp_from_tow(12345, use_gnss_time=False, clock=_clock(NOW_NS + 7))
        assert stamp == Timestamp.from_ns(NOW_NS + 7)

    def test_do_not_use_tow_falls_back_to_clock(self):
        stamp = timestamp_from_tow(TOW_DO_NOT_USE, clock=_clock(NOW_NS))
        assert stamp == Timestamp.from_ns(NOW_NS)

    def test_out_of_range_tow_falls_back_to_clock(self):
        stamp = timestamp_from_tow(MS_PER_WEEK + 1, clock=_clock(NOW_NS))
        assert stamp == Timestamp.from_ns(NOW_NS)

    def test_block_from_previous_week(self):
        """Test a block sent just before rollover and stamped just after it."""
        after_rollover_ns = (GPS_EPOCH_UNIX + 2297 * SECONDS_PER_WEEK - 18 + 10) * 1_000_000_000
        tow = MS_PER_WEEK - 10_000
        stamp = timestamp_from_tow(tow, clock=_clock(after_rollover_ns))
        assert stamp.sec == _unix_for(2296, tow)

    def test_block_from_next_week(self):
        """Test a clock lagging slightly behind the receiver over rollover."""
        before_rollover_ns = (GPS_EPOCH_UNIX + 2297 * SECONDS_PER_WEEK - 18 - 10) * 1_000_000_000
        stamp = timestamp_from_tow(5_000, clock=_clock(before_rollover_ns))
        assert stamp.sec == _unix_for(2297, 5_000)

    def test_monotonic_in_tow(self):
        """Test that later TOW values within a week give later stamps."""
        clock = _clock(NOW_NS)
        tows = [NOW_TOW - delta for delta in (3_000_000, 1_000, 1, 0)] + [NOW_TOW + 1, NOW_TOW + 86_400_000]
        stamps = [timestamp_from_tow(tow, clock=clock) for tow in tows]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)

    def test_monotonic_across_week_at_midweek_clock(self):
        """Test that the start and end of the week keep their order mid-week."""
        clock = _clock(NOW_NS)
        tows = list(range(0, MS_PER_WEEK, 3_600_000)) + [100_000, NOW_TOW, MS_PER_WEEK - 1]
        tows.sort()
        stamps = [timestamp_from_tow(tow, clock=clock) for tow in tows]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)
        assert timestamp_from_tow(0, clock=clock).sec == _unix_for(WEEK, 0)
        assert timestamp_from_tow(MS_PER_WEEK - 1, clock=clock).sec == _unix_for(WEEK, MS_PER_WEEK - 1)

    def test_block_week_number_used(self):
        """Test that a valid WNc replaces the wall-clock week estimate."""
        stamp = timestamp_from_tow(0, wnc=2100, clock=_clock(NOW_NS))
        assert stamp == Timestamp(_unix_for(2100, 0), 0)

    def test_block_week_number_monotonic(self):
        clock = _clock(NOW_NS)
        tows = [0, 100_000, NOW_TOW, MS_PER_WEEK - 1]
        stamps = [timestamp_from_tow(tow, wnc=WEEK, clock=clock) for tow in tows]
        assert stamps == sorted(stamps)
        assert stamps[0].sec == _unix_for(WEEK, 0)

    def test_do_not_use_week_number_falls_back_to_clock(self):
        stamp = timestamp_from_tow(302_400_000, wnc=WNC_DO_NOT_USE, clock=_clock(NOW_NS))
        assert stamp == Timestamp(_unix_for(WEEK, 302_400_000), 0)

    def test_block_week_number_across_rollover(self):
        """Test that WNc from the previous week is kept after the rollover."""
        after_rollover_ns = (GPS_EPOCH_UNIX + 2297 * SECONDS_PER_WEEK - 18 + 10) * 1_000_000_000
        tow = MS_PER_WEEK - 10_000
        stamp = timestamp_from_tow(tow, wnc=2296, clock=_clock(after_rollover_ns))
        assert stamp.sec == _unix_for(2296, tow)


class TestTimestampFromUtcTime:
    """Test stamping of sentence times of day."""

    def test_same_day(self):
        stamp = timestamp_from_utc_time(dt.time(12, 0, 0), clock=_clock(NOW_NS))
        assert stamp == Timestamp(1_704_888_000, 0)

    def test_fraction_of_second(self):
        stamp = timestamp_from_utc_time(dt.time(11, 59, 59, 250_000), clock=_clock(NOW_NS))
        assert stamp == Timestamp(1_704_887_999, 250_000_000)

    def test_time_from_previous_day(self):
        """Test a late evening time seen just after midnight."""
        just_after_midnight_ns = (1_704_931_200 + 30) * 1_000_000_000  # 2024-01-11T00:00:30Z
        stamp = timestamp_from_utc_time(dt.time(23, 59, 50), clock=_clock(just_after_midnight_ns))
        assert stamp.sec == 1_704_931_200 - 10

    def test_time_from_next_day(self):
        just_before_midnight_ns = (1_704_931_200 - 30) * 1_000_000_000
        stamp = timestamp_from_utc_time(dt.time(0, 0, 10), clock=_clock(just_before_midnight_ns))
        assert stamp.sec == 1_704_931_200 + 10

    def test_missing_time_uses_clock(self):
        assert timestamp_from_utc_time(None, clock=_clock(NOW_NS)) == Timestamp.from_ns(NOW_NS)

    def test_wall_clock_mode(self):
        stamp = timestamp_from_utc_time(dt.time(1, 2, 3), use_gnss_time=False, clock=_clock(NOW_NS))
        assert stamp == Timestamp.from_ns(NOW_NS)
