"""Wall-clock helpers used for appointment times and monthly buckets."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from pethub.time_utils import (
    add_minutes,
    format_clock_time,
    month_key,
    parse_clock_time,
    parse_date,
    parse_month,
    to_utc_z,
)


class TestAddMinutes:

    def test_same_day(self):
        assert add_minutes(date(2024, 3, 10), time(9, 0), 60) == datetime(2024, 3, 10, 10, 0)

    def test_rolls_over_midnight(self):
        assert add_minutes(date(2024, 3, 10), time(23, 30), 60) == datetime(2024, 3, 11, 0, 30)

    def test_rolls_over_month_end(self):
        assert add_minutes(date(2024, 2, 29), time(23, 0), 90) == datetime(2024, 3, 1, 0, 30)


class TestClockTime:

    def test_parse_hh_mm(self):
        assert parse_clock_time("09:05") == time(9, 5)

    def test_parse_drops_microseconds(self):
        assert parse_clock_time(time(9, 5, 0, 123)) == time(9, 5)

    def test_rejects_timezone(self):
        with pytest.raises(ValueError):
            parse_clock_time(time(9, 0, tzinfo=timezone.utc))

    @pytest.mark.parametrize("value", ["25:00", "nine", 900, None])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_clock_time(value)

    def test_format(self):
        assert format_clock_time(time(7, 0)) == "07:00"
        assert format_clock_time(None) is None


class TestDates:

    def test_parse_date_string(self):
        assert parse_date("2024-03-10") == date(2024, 3, 10)

    def test_parse_date_from_datetime(self):
        assert parse_date(datetime(2024, 3, 10, 15, 0)) == date(2024, 3, 10)

    def test_parse_date_rejects_bad_string(self):
        with pytest.raises(ValueError):
            parse_date("10/03/2024")


class TestMonths:

    def test_parse_month(self):
        assert parse_month("2024-03") == (date(2024, 3, 1), date(2024, 4, 1))

    def test_parse_december(self):
        assert parse_month("2023-12") == (date(2023, 12, 1), date(2024, 1, 1))

    @pytest.mark.parametrize("value", ["2024-3", "2024-13", "202403", "2024-03-01", None])
    def test_parse_month_rejects(self, value):
        with pytest.raises(ValueError):
            parse_month(value)

    def test_month_key(self):
        assert month_key(date(2024, 3, 31)) == "2024-03"


def test_to_utc_z_converts_aware_datetimes():
    brt = timezone(timedelta(hours=-3))
    assert to_utc_z(datetime(2024, 3, 10, 9, 0, tzinfo=brt)) == "2024-03-10T12:00:00Z"
