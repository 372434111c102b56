"""
Calendar resolution for report periods.

Converts a reference instant into week, month and year boundaries in the
configured timezone, and lays out the day, week and month buckets the
reports are built on. Weeks run Saturday through Friday.

All boundaries are timezone-aware: a day starts at local midnight, not at
UTC midnight, because the day boundary decides which bucket an entry
belongs to.
"""

import calendar as _stdlib_calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

from .errors import ValidationError


DateLike = Union[date, datetime, str]

PERIODS = ("weekly", "monthly", "yearly")

# Indexed 0=Sunday .. 6=Saturday
WEEKDAY_NAMES = {
    "ar": ("الأحد", "الاثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت"),
    "en": ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"),
}

WEEK_ORDINALS = {
    "ar": ("الأسبوع الأول", "الأسبوع الثاني", "الأسبوع الثالث", "الأسبوع الرابع", "الأسبوع الخامس"),
    "en": ("first week", "second week", "third week", "fourth week", "fifth week"),
}

WEEK_FALLBACK = {
    "ar": "الأسبوع {number}",
    "en": "week {number}",
}

MONTH_LABELS = {
    "ar": "الشهر {number:02d}",
    "en": "month {number:02d}",
}


@dataclass(frozen=True)
class DateRange:
    """Resolved reporting range.

    `active_end` is where summing stops: the range end for elapsed
    periods, the end of today for the period in progress.
    """
    start: datetime
    end: datetime
    active_end: datetime
    period: str


@dataclass(frozen=True)
class DayBucket:
    key: str
    day: date
    weekday_index: int
    weekday_name: str
    label: str


@dataclass(frozen=True)
class WeekBucket:
    key: str
    week_start: date
    label: str


@dataclass(frozen=True)
class MonthBucket:
    key: str
    month: int
    label: str


def sunday_index(day: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def parse_date(value: DateLike, tz: Optional[ZoneInfo] = None) -> date:
    """Coerce a date, datetime or ISO 'YYYY-MM-DD' string into a calendar date.

    Aware datetimes are converted into tz first when one is given.

    Raises:
        ValidationError: If the value is not a recognizable date
    """
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Malformed date {value!r}, expected YYYY-MM-DD")
    raise ValidationError(f"Unsupported date value: {value!r}")


def local_now(tz: ZoneInfo, now: Optional[datetime] = None) -> datetime:
    """Current instant in tz; naive values are read as wall time in tz."""
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def local_today(tz: ZoneInfo, now: Optional[datetime] = None) -> date:
    return local_now(tz, now).date()


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    """Last microsecond of the day in tz."""
    return start_of_day(day + timedelta(days=1), tz) - timedelta(microseconds=1)


def day_key(value: Union[date, datetime], tz: ZoneInfo) -> str:
    """Canonical YYYY-MM-DD key of a day in tz."""
    return parse_date(value, tz).isoformat()


def active_end(range_end: datetime, tz: ZoneInfo, now: Optional[datetime] = None) -> datetime:
    """The earlier of range_end and the end of now's day."""
    today_end = end_of_day(local_today(tz, now), tz)
    return min(range_end, today_end)


def week_start_of(day: date) -> date:
    """The Saturday at or before day."""
    return day - timedelta(days=(sunday_index(day) + 1) % 7)


def week_range(reference: date, tz: ZoneInfo, now: Optional[datetime] = None) -> DateRange:
    """Saturday-to-Friday week containing reference."""
    first = week_start_of(reference)
    start = start_of_day(first, tz)
    end = end_of_day(first + timedelta(days=6), tz)
    return DateRange(start=start, end=end, active_end=active_end(end, tz, now), period="weekly")


def month_range(year: int, month: int, tz: ZoneInfo, now: Optional[datetime] = None) -> DateRange:
    _check_year(year)
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    last_day = _stdlib_calendar.monthrange(year, month)[1]
    start = start_of_day(date(year, month, 1), tz)
    end = end_of_day(date(year, month, last_day), tz)
    return DateRange(start=start, end=end, active_end=active_end(end, tz, now), period="monthly")


def year_range(year: int, tz: ZoneInfo, now: Optional[datetime] = None) -> DateRange:
    _check_year(year)
    start = start_of_day(date(year, 1, 1), tz)
    end = end_of_day(date(year, 12, 31), tz)
    return DateRange(start=start, end=end, active_end=active_end(end, tz, now), period="yearly")


def custom_range(from_date: DateLike, to_date: DateLike, tz: ZoneInfo) -> DateRange:
    """Explicit [from, to] range; summing runs to the full end."""
    first = parse_date(from_date, tz)
    last = parse_date(to_date, tz)
    if first > last:
        raise ValidationError(f"from date {first} is after to date {last}")
    end = end_of_day(last, tz)
    return DateRange(start=start_of_day(first, tz), end=end, active_end=end, period="custom")


def resolve_period_range(
    period: str,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
    from_date: Optional[DateLike] = None,
    to_date: Optional[DateLike] = None
) -> DateRange:
    """Resolve a named period around now, or an explicit from/to override.

    Args:
        period: One of 'weekly', 'monthly', 'yearly'
        tz: Configured timezone
        now: Reference instant, defaults to the current time
        from_date: Optional explicit range start (requires to_date)
        to_date: Optional explicit range end (requires from_date)

    Returns:
        The resolved DateRange

    Raises:
        ValidationError: On an unknown period or a half-specified override
    """
    if from_date is not None or to_date is not None:
        if from_date is None or to_date is None:
            raise ValidationError("from and to dates must be given together")
        return custom_range(from_date, to_date, tz)

    today = local_today(tz, now)
    if period == "weekly":
        return week_range(today, tz, now)
    if period == "monthly":
        return month_range(today.year, today.month, tz, now)
    if period == "yearly":
        return year_range(today.year, tz, now)
    raise ValidationError(f"Unknown period {period!r}, expected one of: {list(PERIODS)}")


def days_of_week(week_start: date, locale: str = "ar") -> List[DayBucket]:
    """The 7 day buckets of a week, Saturday through Friday."""
    names = WEEKDAY_NAMES[locale]
    buckets = []
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        index = sunday_index(day)
        key = day.isoformat()
        buckets.append(DayBucket(
            key=key,
            day=day,
            weekday_index=index,
            weekday_name=names[index],
            label=f"{names[index]} ({key})"
        ))
    return buckets


def weeks_of_month(year: int, month: int, locale: str = "ar") -> List[WeekBucket]:
    """Saturday-aligned week buckets touching the month, in order.

    A bucket is keyed by its Saturday start, which may fall in the
    previous month for the first bucket.
    """
    _check_year(year)
    last_day = _stdlib_calendar.monthrange(year, month)[1]
    starts: List[date] = []
    for number in range(1, last_day + 1):
        start = week_start_of(date(year, month, number))
        if not starts or starts[-1] != start:
            starts.append(start)
    return [
        WeekBucket(key=start.isoformat(), week_start=start, label=week_label(index, locale))
        for index, start in enumerate(starts)
    ]


def week_label(index: int, locale: str = "ar") -> str:
    ordinals = WEEK_ORDINALS[locale]
    if index < len(ordinals):
        return ordinals[index]
    return WEEK_FALLBACK[locale].format(number=index + 1)


def months_of_year(year: int, locale: str = "ar") -> List[MonthBucket]:
    """The 12 month buckets of a year keyed YYYY-MM."""
    _check_year(year)
    template = MONTH_LABELS[locale]
    return [
        MonthBucket(key=f"{year:04d}-{month:02d}", month=month, label=template.format(number=month))
        for month in range(1, 13)
    ]


def week_start_key(day_key_value: str) -> str:
    """Bucket key of the Saturday week holding a YYYY-MM-DD day key."""
    return week_start_of(date.fromisoformat(day_key_value)).isoformat()


def month_key(day_key_value: str) -> str:
    """Bucket key YYYY-MM of a YYYY-MM-DD day key."""
    return day_key_value[:7]


def _check_year(year: int) -> None:
    # Leave room for the day after Dec 31 in end_of_day
    if not 1 <= year <= 9998:
        raise ValidationError(f"Year out of range: {year}")
