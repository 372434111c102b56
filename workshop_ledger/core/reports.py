"""
Structured report generation.

Combines calendar buckets with aggregated ledger sums into weekly,
monthly and yearly reports, plus the flat summary and outstanding-debt
views. Reports are immutable; report_to_dict gives the JSON shape.

Per-bucket `total_amount` is debt incurred in the bucket, not the
outstanding balance. `debt_amount` is the clamped outstanding value of
that level. A report's grand `totals` add up the workshops' already
clamped totals.
"""

import re
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from workshop_ledger.config.loader import LedgerConfig
from workshop_ledger.storage.repository import LedgerRepository
from .aggregation import (
    ZERO,
    Totals,
    aggregate_buckets,
    aggregate_range,
    day_bucket,
    month_bucket,
    week_bucket,
)
from .calendar import (
    DateLike,
    days_of_week,
    end_of_day,
    local_now,
    local_today,
    month_range,
    months_of_year,
    parse_date,
    resolve_period_range,
    start_of_day,
    week_range,
    week_start_of,
    weeks_of_month,
    year_range,
)
from .errors import ValidationError


@dataclass(frozen=True)
class PeriodTotals:
    """Counts and amounts of one report level."""
    orders_count: int = 0
    total_amount: float = 0.0
    paid_amount: float = 0.0
    debt_amount: float = 0.0

    @classmethod
    def from_totals(cls, totals: Totals) -> "PeriodTotals":
        return cls(
            orders_count=totals.orders_count,
            total_amount=totals.total_debt,
            paid_amount=totals.total_paid,
            debt_amount=totals.outstanding
        )

    def __add__(self, other: "PeriodTotals") -> "PeriodTotals":
        return PeriodTotals(
            orders_count=self.orders_count + other.orders_count,
            total_amount=self.total_amount + other.total_amount,
            paid_amount=self.paid_amount + other.paid_amount,
            debt_amount=self.debt_amount + other.debt_amount
        )


@dataclass(frozen=True)
class ReportRange:
    start: str
    end: str


@dataclass(frozen=True)
class BucketLabel:
    key: str
    label: str


@dataclass(frozen=True)
class DayTotals:
    date: str
    label: str
    orders_count: int
    total_amount: float
    paid_amount: float
    debt_amount: float
    note: str = ""


@dataclass(frozen=True)
class WeekTotals:
    week_start: str
    label: str
    orders_count: int
    total_amount: float
    paid_amount: float
    debt_amount: float


@dataclass(frozen=True)
class MonthTotals:
    ym: str
    label: str
    orders_count: int
    total_amount: float
    paid_amount: float
    debt_amount: float


@dataclass(frozen=True)
class WeeklyWorkshopReport:
    workshop_id: int
    workshop_name: str
    days: Tuple[DayTotals, ...]
    weekly_totals: PeriodTotals


@dataclass(frozen=True)
class MonthlyWorkshopReport:
    workshop_id: int
    workshop_name: str
    weeks: Tuple[WeekTotals, ...]
    monthly_totals: PeriodTotals


@dataclass(frozen=True)
class YearlyWorkshopReport:
    workshop_id: int
    workshop_name: str
    months: Tuple[MonthTotals, ...]
    yearly_totals: PeriodTotals


@dataclass(frozen=True)
class WeeklyMeta:
    timezone: str
    range: ReportRange
    days: Tuple[BucketLabel, ...]
    type: str = "weekly-structured"


@dataclass(frozen=True)
class MonthlyMeta:
    timezone: str
    month: str
    range: ReportRange
    weeks: Tuple[BucketLabel, ...]
    type: str = "monthly-structured"


@dataclass(frozen=True)
class YearlyMeta:
    timezone: str
    year: int
    range: ReportRange
    months: Tuple[str, ...]
    type: str = "yearly-structured"


@dataclass(frozen=True)
class WeeklyReport:
    meta: WeeklyMeta
    workshops: Tuple[WeeklyWorkshopReport, ...]
    totals: PeriodTotals


@dataclass(frozen=True)
class MonthlyReport:
    meta: MonthlyMeta
    workshops: Tuple[MonthlyWorkshopReport, ...]
    totals: PeriodTotals


@dataclass(frozen=True)
class YearlyReport:
    meta: YearlyMeta
    workshops: Tuple[YearlyWorkshopReport, ...]
    totals: PeriodTotals


@dataclass(frozen=True)
class WorkshopSummary:
    workshop_id: int
    workshop_name: str
    orders_count: int
    total_amount: float
    paid_amount: float
    debt_amount: float


@dataclass(frozen=True)
class SummaryMeta:
    period: str
    timezone: str
    start: Optional[str]
    end: str
    active_end: str
    generated_at: str


@dataclass(frozen=True)
class SummaryReport:
    """Flat per-workshop report over a period or an explicit range.

    `totals.debt_amount` adds up the per-workshop clamped values.
    """
    meta: SummaryMeta
    workshops: Tuple[WorkshopSummary, ...]
    totals: PeriodTotals
    workshops_count: int


def generate_weekly_report(
    repository: LedgerRepository,
    config: LedgerConfig,
    reference_date: Optional[DateLike] = None,
    now: Optional[datetime] = None
) -> WeeklyReport:
    """Build the Saturday-to-Friday report with a daily breakdown.

    Args:
        repository: Ledger store
        config: Ledger configuration (timezone, locale)
        reference_date: Any day of the wanted week, defaults to today
        now: Current instant, defaults to the wall clock

    Returns:
        WeeklyReport with exactly 7 day buckets per workshop
    """
    tz = config.tz
    reference = parse_date(reference_date, tz) if reference_date is not None else local_today(tz, now)
    period = week_range(reference, tz, now)
    days = days_of_week(week_start_of(reference), config.locale)

    aggregation = aggregate_buckets(repository, period.start, period.end, day_bucket)

    workshops: List[WeeklyWorkshopReport] = []
    totals = PeriodTotals()
    for workshop in aggregation.workshops:
        week_sum = ZERO
        buckets = []
        for day in days:
            sums = aggregation.get(workshop.id, day.key)
            week_sum = week_sum + sums
            buckets.append(DayTotals(
                date=day.key,
                label=day.label,
                note=aggregation.note(workshop.id, day.key),
                **_amounts(sums)
            ))
        weekly_totals = PeriodTotals.from_totals(week_sum)
        totals = totals + weekly_totals
        workshops.append(WeeklyWorkshopReport(
            workshop_id=workshop.id,
            workshop_name=workshop.name,
            days=tuple(buckets),
            weekly_totals=weekly_totals
        ))

    meta = WeeklyMeta(
        timezone=config.timezone,
        range=ReportRange(start=period.start.isoformat(), end=period.end.isoformat()),
        days=tuple(BucketLabel(key=d.key, label=d.label) for d in days)
    )
    return WeeklyReport(meta=meta, workshops=tuple(workshops), totals=totals)


def generate_monthly_report(
    repository: LedgerRepository,
    config: LedgerConfig,
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None
) -> MonthlyReport:
    """Build the calendar month report with a Saturday-week breakdown.

    Week buckets cover every Saturday week that touches the month, so a
    month spread over five weeks gets five buckets whether or not each
    week holds data. Only days inside the month are summed.
    """
    tz = config.tz
    today = local_today(tz, now)
    year = today.year if year is None else year
    month = today.month if month is None else month
    period = month_range(year, month, tz, now)
    weeks = weeks_of_month(year, month, config.locale)

    aggregation = aggregate_buckets(repository, period.start, period.end, week_bucket)

    workshops: List[MonthlyWorkshopReport] = []
    totals = PeriodTotals()
    for workshop in aggregation.workshops:
        month_sum = ZERO
        buckets = []
        for week in weeks:
            sums = aggregation.get(workshop.id, week.key)
            month_sum = month_sum + sums
            buckets.append(WeekTotals(week_start=week.key, label=week.label, **_amounts(sums)))
        monthly_totals = PeriodTotals.from_totals(month_sum)
        totals = totals + monthly_totals
        workshops.append(MonthlyWorkshopReport(
            workshop_id=workshop.id,
            workshop_name=workshop.name,
            weeks=tuple(buckets),
            monthly_totals=monthly_totals
        ))

    meta = MonthlyMeta(
        timezone=config.timezone,
        month=f"{year:04d}-{month:02d}",
        range=ReportRange(start=period.start.isoformat(), end=period.end.isoformat()),
        weeks=tuple(BucketLabel(key=w.key, label=w.label) for w in weeks)
    )
    return MonthlyReport(meta=meta, workshops=tuple(workshops), totals=totals)


def generate_yearly_report(
    repository: LedgerRepository,
    config: LedgerConfig,
    year: Optional[int] = None,
    now: Optional[datetime] = None
) -> YearlyReport:
    """Build the calendar year report with 12 month buckets."""
    tz = config.tz
    year = local_today(tz, now).year if year is None else year
    period = year_range(year, tz, now)
    months = months_of_year(year, config.locale)

    aggregation = aggregate_buckets(repository, period.start, period.end, month_bucket)

    workshops: List[YearlyWorkshopReport] = []
    totals = PeriodTotals()
    for workshop in aggregation.workshops:
        year_sum = ZERO
        buckets = []
        for month in months:
            sums = aggregation.get(workshop.id, month.key)
            year_sum = year_sum + sums
            buckets.append(MonthTotals(ym=month.key, label=month.label, **_amounts(sums)))
        yearly_totals = PeriodTotals.from_totals(year_sum)
        totals = totals + yearly_totals
        workshops.append(YearlyWorkshopReport(
            workshop_id=workshop.id,
            workshop_name=workshop.name,
            months=tuple(buckets),
            yearly_totals=yearly_totals
        ))

    meta = YearlyMeta(
        timezone=config.timezone,
        year=year,
        range=ReportRange(start=period.start.isoformat(), end=period.end.isoformat()),
        months=tuple(m.key for m in months)
    )
    return YearlyReport(meta=meta, workshops=tuple(workshops), totals=totals)


def generate_period_report(
    repository: LedgerRepository,
    config: LedgerConfig,
    period: str = "weekly",
    now: Optional[datetime] = None,
    from_date: Optional[DateLike] = None,
    to_date: Optional[DateLike] = None,
    workshop_id: Optional[int] = None,
    workshop_name: Optional[str] = None
) -> SummaryReport:
    """Flat per-workshop summary of the current period or an explicit range.

    For a calendar period, entries are summed only up to the end of today
    so a period in progress is not summed beyond the present.

    Raises:
        ValidationError: On an unknown period or malformed dates
        NotFoundError: If a workshop filter matches nothing
    """
    tz = config.tz
    resolved = resolve_period_range(period, tz, now, from_date, to_date)
    aggregation = aggregate_range(
        repository, resolved.start, resolved.active_end, workshop_id, workshop_name
    )

    meta = SummaryMeta(
        period=resolved.period,
        timezone=config.timezone,
        start=resolved.start.isoformat(),
        end=resolved.end.isoformat(),
        active_end=resolved.active_end.isoformat(),
        generated_at=local_now(tz, now).isoformat()
    )
    return _summary(meta, aggregation)


def get_outstanding_debts(
    repository: LedgerRepository,
    config: LedgerConfig,
    from_date: Optional[DateLike] = None,
    to_date: Optional[DateLike] = None,
    workshop_id: Optional[int] = None,
    workshop_name: Optional[str] = None,
    now: Optional[datetime] = None
) -> SummaryReport:
    """Outstanding debt per workshop over [from, to].

    A missing from date means the start of the ledger; a missing to date
    means the end of today.

    Raises:
        ValidationError: If from is after to or a date is malformed
    """
    tz = config.tz
    first = parse_date(from_date, tz) if from_date is not None else None
    last = parse_date(to_date, tz) if to_date is not None else local_today(tz, now)
    if first is not None and first > last:
        raise ValidationError(f"from date {first} is after to date {last}")

    start = start_of_day(first, tz) if first is not None else None
    end = end_of_day(last, tz)
    aggregation = aggregate_range(repository, start, end, workshop_id, workshop_name)

    meta = SummaryMeta(
        period="debts",
        timezone=config.timezone,
        start=start.isoformat() if start is not None else None,
        end=end.isoformat(),
        active_end=end.isoformat(),
        generated_at=local_now(tz, now).isoformat()
    )
    return _summary(meta, aggregation)


def report_to_dict(report: Any) -> Dict[str, Any]:
    """Convert a report into a JSON-ready dict with camelCase keys."""
    if not is_dataclass(report):
        raise TypeError(f"Expected a report dataclass, got {type(report).__name__}")
    return _camelize(asdict(report))


def _amounts(sums: Totals) -> Dict[str, Any]:
    return {
        "orders_count": sums.orders_count,
        "total_amount": sums.total_debt,
        "paid_amount": sums.total_paid,
        "debt_amount": sums.outstanding,
    }


def _summary(meta: SummaryMeta, aggregation) -> SummaryReport:
    rows = tuple(
        WorkshopSummary(
            workshop_id=row.workshop.id,
            workshop_name=row.workshop.name,
            **_amounts(row.totals)
        )
        for row in aggregation.workshops
    )
    totals = PeriodTotals()
    for row in aggregation.workshops:
        totals = totals + PeriodTotals.from_totals(row.totals)
    return SummaryReport(
        meta=meta,
        workshops=rows,
        totals=totals,
        workshops_count=len(rows)
    )


_SNAKE = re.compile(r"_([a-z])")


def _camel(name: str) -> str:
    return _SNAKE.sub(lambda m: m.group(1).upper(), name)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_camelize(v) for v in value]
    return value
