"""
Unit tests for period resolution and calendar buckets.

Weeks run Saturday through Friday and every boundary is computed in the
configured timezone.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from workshop_ledger.core.calendar import (
    custom_range,
    day_key,
    days_of_week,
    end_of_day,
    local_today,
    month_range,
    months_of_year,
    parse_date,
    resolve_period_range,
    sunday_index,
    week_label,
    week_range,
    week_start_key,
    week_start_of,
    weeks_of_month,
    year_range,
)
from workshop_ledger.core.errors import ValidationError

ALGIERS = ZoneInfo("Africa/Algiers")


class TestWeekBoundaries:
    """Saturday-to-Friday week resolution."""

    @pytest.mark.parametrize("day,expected", [
        (date(2024, 5, 4), date(2024, 5, 4)),    # Saturday
        (date(2024, 5, 5), date(2024, 5, 4)),    # Sunday
        (date(2024, 5, 10), date(2024, 5, 4)),   # Friday
        (date(2024, 5, 11), date(2024, 5, 11)),  # next Saturday
        (date(2024, 3, 1), date(2024, 2, 24)),   # crosses a month
    ])
    def test_week_start_of(self, day, expected):
        assert week_start_of(day) == expected

    def test_sunday_index(self):
        """0 is Sunday and 6 is Saturday."""
        assert sunday_index(date(2024, 5, 5)) == 0
        assert sunday_index(date(2024, 5, 4)) == 6

    def test_week_range_spans_saturday_to_friday(self):
        """The range starts Saturday 00:00 and ends Friday at the last microsecond."""
        period = week_range(date(2024, 5, 7), ALGIERS, now=datetime(2024, 6, 1, 12, 0))

        assert period.start == datetime(2024, 5, 4, tzinfo=ALGIERS)
        assert period.end == datetime(2024, 5, 10, 23, 59, 59, 999999, tzinfo=ALGIERS)
        assert period.active_end == period.end
        assert period.period == "weekly"

    def test_active_end_stops_at_today(self):
        """A week in progress is only active up to the end of today."""
        period = week_range(date(2024, 5, 7), ALGIERS, now=datetime(2024, 5, 7, 8, 0))

        assert period.active_end == end_of_day(date(2024, 5, 7), ALGIERS)
        assert period.active_end < period.end


class TestTimezoneHandling:
    """Day boundaries follow the configured zone, not UTC."""

    def test_local_today_uses_configured_zone(self):
        """23:30 UTC on May 4 is already May 5 in Algiers (UTC+1)."""
        now = datetime(2024, 5, 4, 23, 30, tzinfo=timezone.utc)
        assert local_today(ALGIERS, now) == date(2024, 5, 5)

    def test_naive_now_is_local_wall_time(self):
        assert local_today(ALGIERS, datetime(2024, 5, 4, 23, 30)) == date(2024, 5, 4)

    def test_day_key_converts_aware_datetimes(self):
        moment = datetime(2024, 5, 4, 23, 30, tzinfo=timezone.utc)
        assert day_key(moment, ALGIERS) == "2024-05-05"

    def test_end_of_day(self):
        end = end_of_day(date(2024, 5, 4), ALGIERS)
        assert end + timedelta(microseconds=1) == datetime(2024, 5, 5, tzinfo=ALGIERS)


class TestParseDate:
    """Date coercion."""

    def test_parses_iso_string(self):
        assert parse_date("2024-05-04") == date(2024, 5, 4)

    def test_passes_dates_through(self):
        assert parse_date(date(2024, 5, 4)) == date(2024, 5, 4)

    @pytest.mark.parametrize("value", ["04/05/2024", "2024-13-01", "", 20240504])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_date(value)


class TestPeriodResolution:
    """Named periods and explicit overrides."""

    NOW = datetime(2024, 5, 15, 10, 0)

    def test_monthly(self):
        period = resolve_period_range("monthly", ALGIERS, self.NOW)

        assert period.start == datetime(2024, 5, 1, tzinfo=ALGIERS)
        assert period.end == end_of_day(date(2024, 5, 31), ALGIERS)
        assert period.active_end == end_of_day(date(2024, 5, 15), ALGIERS)

    def test_yearly(self):
        period = resolve_period_range("yearly", ALGIERS, self.NOW)

        assert period.start == datetime(2024, 1, 1, tzinfo=ALGIERS)
        assert period.end == end_of_day(date(2024, 12, 31), ALGIERS)

    def test_weekly(self):
        period = resolve_period_range("weekly", ALGIERS, self.NOW)
        assert period.start == datetime(2024, 5, 11, tzinfo=ALGIERS)

    def test_unknown_period_rejected(self):
        with pytest.raises(ValidationError, match="Unknown period"):
            resolve_period_range("daily", ALGIERS, self.NOW)

    def test_override_replaces_period(self):
        period = resolve_period_range("yearly", ALGIERS, self.NOW, "2024-01-10", "2024-01-12")

        assert period.period == "custom"
        assert period.start == datetime(2024, 1, 10, tzinfo=ALGIERS)
        assert period.active_end == end_of_day(date(2024, 1, 12), ALGIERS)

    def test_half_override_rejected(self):
        with pytest.raises(ValidationError, match="together"):
            resolve_period_range("weekly", ALGIERS, self.NOW, from_date="2024-01-10")

    def test_reversed_custom_range_rejected(self):
        with pytest.raises(ValidationError):
            custom_range("2024-02-01", "2024-01-01", ALGIERS)

    def test_invalid_month_rejected(self):
        with pytest.raises(ValidationError):
            month_range(2024, 13, ALGIERS)

    def test_leap_february(self):
        period = month_range(2024, 2, ALGIERS, self.NOW)
        assert period.end.date() == date(2024, 2, 29)

    def test_year_range_bounds(self):
        period = year_range(2023, ALGIERS, self.NOW)
        assert period.active_end == period.end


class TestBuckets:
    """Day, week and month bucket layout."""

    def test_days_of_week(self):
        """Seven buckets, Saturday first, labelled with weekday name and date."""
        days = days_of_week(date(2024, 5, 4), "en")

        assert len(days) == 7
        assert days[0].key == "2024-05-04"
        assert days[0].weekday_name == "Saturday"
        assert days[0].label == "Saturday (2024-05-04)"
        assert days[-1].key == "2024-05-10"
        assert days[-1].weekday_name == "Friday"

    def test_days_of_week_arabic_labels(self):
        days = days_of_week(date(2024, 5, 4))
        assert days[0].label == "السبت (2024-05-04)"
        assert days[1].weekday_name == "الأحد"

    def test_five_week_month(self):
        """June 2024 starts on a Saturday and spans five weeks."""
        weeks = weeks_of_month(2024, 6, "en")

        assert [w.key for w in weeks] == [
            "2024-06-01", "2024-06-08", "2024-06-15", "2024-06-22", "2024-06-29"
        ]
        assert weeks[4].label == "fifth week"

    def test_six_week_month(self):
        """March 2024 starts on a Friday, so its first week starts in February."""
        weeks = weeks_of_month(2024, 3, "en")

        assert len(weeks) == 6
        assert weeks[0].key == "2024-02-24"
        assert weeks[5].label == "week 6"

    def test_week_labels(self):
        assert week_label(0) == "الأسبوع الأول"
        assert week_label(1, "en") == "second week"

    def test_months_of_year(self):
        months = months_of_year(2024, "en")

        assert len(months) == 12
        assert months[0].key == "2024-01"
        assert months[11].label == "month 12"

    def test_week_start_key(self):
        assert week_start_key("2024-03-01") == "2024-02-24"
