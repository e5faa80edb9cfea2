"""Tests for interval_start and interval_end (bucket boundaries)."""

from datetime import datetime, timezone

import pytest
from dateutil import tz

from prune import MS_IN_HOUR, Interval, Weekday, interval_end, interval_start


# 2023-12-01 15:18:11 UTC (a friday)
START_DATE_TIME_MS = 1_701_443_891_000

MS_IN_DAY = 24 * MS_IN_HOUR


def _ms(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp()) * 1000


@pytest.mark.parametrize(
    "interval, offset, start_of_week, expected",
    [
        (Interval.LAST, 0, 0, START_DATE_TIME_MS),
        (Interval.LAST, -1, 3, START_DATE_TIME_MS),  # offset and start of week are ignored
        (Interval.HOURLY, 0, 0, 1_701_442_800_000),  # 2023-12-01 15:00:00
        (Interval.HOURLY, -1, 0, 1_701_439_200_000),  # 2023-12-01 14:00:00
        (Interval.DAILY, 0, 0, 1_701_388_800_000),  # 2023-12-01 00:00:00
        (Interval.DAILY, -1, 0, 1_701_302_400_000),  # 2023-11-30 00:00:00
        (Interval.WEEKLY, 0, Weekday.MONDAY, 1_701_043_200_000),  # 2023-11-27 00:00:00
        (Interval.WEEKLY, -1, Weekday.MONDAY, 1_700_438_400_000),  # 2023-11-20 00:00:00
        (Interval.WEEKLY, 0, Weekday.SUNDAY, 1_700_956_800_000),  # 2023-11-26 00:00:00
        (Interval.MONTHLY, 0, 0, 1_701_388_800_000),  # 2023-12-01 00:00:00
        (Interval.MONTHLY, -1, 0, 1_698_796_800_000),  # 2023-11-01 00:00:00
        (Interval.YEARLY, 0, 1, 1_672_531_200_000),  # 2023-01-01 00:00:00
        (Interval.YEARLY, -1, 1, 1_640_995_200_000),  # 2022-01-01 00:00:00
    ],
)
def test_interval_start_literals(interval: Interval, offset: int, start_of_week: int, expected: int) -> None:
    assert interval_start(interval, START_DATE_TIME_MS, offset, start_of_week) == expected


def test_hourly_previous_bucket_at_top_of_hour() -> None:
    """At the top of an hour, offset -1 must land exactly one hour earlier."""
    top_of_hour = _ms(2023, 12, 1, 15)
    assert interval_start(Interval.HOURLY, top_of_hour, -1) == top_of_hour - MS_IN_HOUR
    assert interval_start(Interval.HOURLY, top_of_hour - 1, -1) == top_of_hour - 2 * MS_IN_HOUR


@pytest.mark.parametrize(
    "interval, start, expected_end",
    [
        (Interval.HOURLY, _ms(2023, 12, 1, 15), _ms(2023, 12, 1, 16) - 1),
        (Interval.DAILY, _ms(2023, 12, 1), _ms(2023, 12, 2) - 1),
        (Interval.WEEKLY, _ms(2023, 11, 26), _ms(2023, 12, 3) - 1),
        (Interval.MONTHLY, _ms(2024, 2, 1), _ms(2024, 3, 1) - 1),  # leap year february
        (Interval.MONTHLY, _ms(2023, 12, 1), _ms(2024, 1, 1) - 1),
        (Interval.YEARLY, _ms(2023, 1, 1), _ms(2024, 1, 1) - 1),
    ],
)
def test_interval_end(interval: Interval, start: int, expected_end: int) -> None:
    assert interval_end(interval, start) == expected_end


@pytest.mark.parametrize("timestamp_ms", [_ms(2024, 1, 31, 23, 59, 59), _ms(2023, 12, 31, 12), _ms(2024, 2, 29, 6)])
def test_monthly_offsets_are_calendar_aware(timestamp_ms: int) -> None:
    """Adding months to a first-of-month always lands on a first-of-month."""
    for offset in range(-14, 15):
        start = datetime.fromtimestamp(interval_start(Interval.MONTHLY, timestamp_ms, offset) / 1000, timezone.utc)
        assert (start.day, start.hour, start.minute, start.second) == (1, 0, 0, 0)
    assert interval_start(Interval.MONTHLY, _ms(2024, 1, 31, 12), 1) == _ms(2024, 2, 1)
    assert interval_start(Interval.MONTHLY, _ms(2023, 12, 31, 12), 1) == _ms(2024, 1, 1)


BUCKETED_INTERVALS = [Interval.HOURLY, Interval.DAILY, Interval.WEEKLY, Interval.MONTHLY, Interval.YEARLY]
TIMESTAMPS = [START_DATE_TIME_MS, _ms(2024, 2, 29, 23, 59, 59), _ms(2023, 1, 1), _ms(1999, 12, 31, 23, 30), _ms(2023, 7, 16, 4) + 999]


@pytest.mark.parametrize("interval", list(Interval))
@pytest.mark.parametrize("timestamp_ms", TIMESTAMPS)
@pytest.mark.parametrize("start_of_week", [Weekday.SUNDAY, Weekday.MONDAY, Weekday.SATURDAY])
def test_interval_start_is_idempotent(interval: Interval, timestamp_ms: int, start_of_week: int) -> None:
    start = interval_start(interval, timestamp_ms, 0, start_of_week)
    assert interval_start(interval, start, 0, start_of_week) == start
    assert start <= timestamp_ms


@pytest.mark.parametrize("interval", BUCKETED_INTERVALS)
@pytest.mark.parametrize("timestamp_ms", TIMESTAMPS)
@pytest.mark.parametrize("offset", [-3, -1, 0, 1, 2])
def test_interval_start_offset_law(interval: Interval, timestamp_ms: int, offset: int) -> None:
    """Moving by n + 1 buckets equals moving by n buckets and then by one more."""
    moved = interval_start(interval, timestamp_ms, offset, Weekday.WEDNESDAY)
    assert interval_start(interval, timestamp_ms, offset + 1, Weekday.WEDNESDAY) == interval_start(interval, moved, 1, Weekday.WEDNESDAY)


@pytest.mark.parametrize("day", range(1, 15))
@pytest.mark.parametrize("start_of_week", list(Weekday))
def test_weekly_start_lands_on_start_of_week(day: int, start_of_week: Weekday) -> None:
    timestamp_ms = _ms(2023, 7, day, 13, 37)
    start = interval_start(Interval.WEEKLY, timestamp_ms, 0, start_of_week)
    start_date = datetime.fromtimestamp(start / 1000, timezone.utc)
    assert start_date.isoweekday() % 7 == start_of_week
    assert (start_date.hour, start_date.minute) == (0, 0)
    assert 0 <= timestamp_ms - start < 7 * MS_IN_DAY


@pytest.mark.parametrize("day", range(1, 8))
def test_weekly_start_monday_vs_sunday(day: int) -> None:
    """Monday and sunday based weeks of the same timestamp differ by whole days, never by more than 6."""
    timestamp_ms = _ms(2023, 7, day, 8)
    monday = interval_start(Interval.WEEKLY, timestamp_ms, 0, Weekday.MONDAY)
    sunday = interval_start(Interval.WEEKLY, timestamp_ms, 0, Weekday.SUNDAY)
    assert (monday - sunday) % MS_IN_DAY == 0
    assert abs(monday - sunday) <= 6 * MS_IN_DAY
    # 2023-07-02 is a sunday: the sunday week starts that day, the monday week six days earlier
    if day == 2:
        assert sunday - monday == 6 * MS_IN_DAY
    else:
        assert monday - sunday == MS_IN_DAY


def test_weekly_start_after_current_weekday_wraps() -> None:
    """A week start numerically after today's weekday wraps back into the previous calendar week."""
    tuesday = _ms(2023, 7, 4, 10)
    assert interval_start(Interval.WEEKLY, tuesday, 0, Weekday.THURSDAY) == _ms(2023, 6, 29)
    assert interval_start(Interval.WEEKLY, tuesday, 0, Weekday.SATURDAY) == _ms(2023, 7, 1)


def test_interval_start_with_time_zone() -> None:
    """Days start at local midnight of the given time zone."""
    berlin = tz.gettz("Europe/Berlin")
    assert interval_start(Interval.DAILY, START_DATE_TIME_MS, zone=berlin) == _ms(2023, 11, 30, 23)
    assert interval_start(Interval.MONTHLY, START_DATE_TIME_MS, zone=berlin) == _ms(2023, 11, 30, 23)


def test_daily_bucket_across_daylight_saving_time() -> None:
    """The day daylight saving time starts has 23 hours."""
    berlin = tz.gettz("Europe/Berlin")
    start = interval_start(Interval.DAILY, _ms(2023, 3, 26, 12), zone=berlin)
    assert start == _ms(2023, 3, 25, 23)
    assert interval_end(Interval.DAILY, start, zone=berlin) - start + 1 == 23 * MS_IN_HOUR


def test_interval_start_invalid_interval() -> None:
    with pytest.raises(ValueError, match="invalid interval"):
        interval_start("fortnightly", START_DATE_TIME_MS)  # type: ignore[arg-type]
