"""
Unit tests for structured, summary and outstanding-debt reports.
"""

import os
import tempfile
from datetime import datetime

import pytest

from workshop_ledger.config.loader import LedgerConfig
from workshop_ledger.core import ledger
from workshop_ledger.core.errors import NotFoundError, ValidationError
from workshop_ledger.core.reports import (
    PeriodTotals,
    generate_monthly_report,
    generate_period_report,
    generate_weekly_report,
    generate_yearly_report,
    get_outstanding_debts,
    report_to_dict,
)
from workshop_ledger.storage.repository import LedgerRepository, initialize_schema

# Friday after the sample week, in local wall time
NOW = datetime(2024, 5, 10, 12, 0)


@pytest.fixture
def repository():
    """Repository backed by a fresh temporary database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = os.path.join(temp_dir, "test.db")
        initialize_schema(db_path)
        yield LedgerRepository(db_path)


@pytest.fixture
def config():
    return LedgerConfig(locale="en")


@pytest.fixture
def sample_week(repository, config):
    """Alpha incurs 100 on Saturday and pays 30, then pays 80 on Sunday."""
    alpha = ledger.create_workshop(repository, "Alpha")
    beta = ledger.create_workshop(repository, "Beta")
    ledger.record_daily_entry(
        repository, config, alpha.id, day="2024-05-04",
        orders_count=4, day_debt=100.0, day_paid=30.0, note="tiles"
    )
    ledger.record_daily_entry(
        repository, config, alpha.id, day="2024-05-05", day_paid=80.0
    )
    return alpha, beta


class TestWeeklyReport:
    """Saturday-to-Friday structured report."""

    def test_daily_breakdown_and_clamped_totals(self, repository, config, sample_week):
        alpha, _ = sample_week

        report = generate_weekly_report(repository, config, reference_date="2024-05-06", now=NOW)
        row = next(w for w in report.workshops if w.workshop_id == alpha.id)

        assert [d.date for d in row.days] == [
            "2024-05-04", "2024-05-05", "2024-05-06", "2024-05-07",
            "2024-05-08", "2024-05-09", "2024-05-10",
        ]
        saturday, sunday = row.days[0], row.days[1]
        assert (saturday.total_amount, saturday.paid_amount, saturday.debt_amount) == (100.0, 30.0, 70.0)
        assert saturday.orders_count == 4
        assert saturday.note == "tiles"
        assert (sunday.total_amount, sunday.paid_amount, sunday.debt_amount) == (0.0, 80.0, 0.0)
        assert row.weekly_totals == PeriodTotals(
            orders_count=4, total_amount=100.0, paid_amount=110.0, debt_amount=0.0
        )

    def test_workshops_without_entries_have_zero_days(self, repository, config, sample_week):
        _, beta = sample_week

        report = generate_weekly_report(repository, config, reference_date="2024-05-04", now=NOW)
        row = next(w for w in report.workshops if w.workshop_id == beta.id)

        assert len(row.days) == 7
        assert all(d.total_amount == 0.0 and d.paid_amount == 0.0 for d in row.days)
        assert row.weekly_totals == PeriodTotals()

    def test_meta(self, repository, config, sample_week):
        report = generate_weekly_report(repository, config, reference_date="2024-05-04", now=NOW)

        assert report.meta.type == "weekly-structured"
        assert report.meta.timezone == "Africa/Algiers"
        assert report.meta.range.start.startswith("2024-05-04T00:00:00")
        assert report.meta.days[0].label == "Saturday (2024-05-04)"

    def test_entries_outside_week_are_ignored(self, repository, config, sample_week):
        alpha, _ = sample_week
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-05-11", day_debt=500.0)

        report = generate_weekly_report(repository, config, reference_date="2024-05-04", now=NOW)
        assert report.totals.total_amount == 100.0

    def test_empty_store(self, repository, config):
        report = generate_weekly_report(repository, config, now=NOW)

        assert report.workshops == ()
        assert report.totals == PeriodTotals()
        assert len(report.meta.days) == 7


class TestMonthlyReport:
    """Calendar month report with Saturday weeks."""

    def test_five_week_month(self, repository, config):
        alpha = ledger.create_workshop(repository, "Alpha")
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-06-03", day_debt=40.0)
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-06-30", day_debt=10.0)

        report = generate_monthly_report(repository, config, year=2024, month=6, now=NOW)
        weeks = report.workshops[0].weeks

        assert report.meta.month == "2024-06"
        assert [w.week_start for w in weeks] == [
            "2024-06-01", "2024-06-08", "2024-06-15", "2024-06-22", "2024-06-29"
        ]
        assert weeks[0].total_amount == 40.0
        assert weeks[4].total_amount == 10.0
        assert weeks[4].label == "fifth week"
        assert report.workshops[0].monthly_totals.debt_amount == 50.0

    def test_first_week_starts_in_previous_month(self, repository, config):
        """Only days inside the month count toward a week that started earlier."""
        alpha = ledger.create_workshop(repository, "Alpha")
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-02-28", day_debt=99.0)
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-03-01", day_debt=5.0)

        report = generate_monthly_report(repository, config, year=2024, month=3, now=NOW)
        weeks = report.workshops[0].weeks

        assert len(weeks) == 6
        assert weeks[0].week_start == "2024-02-24"
        assert weeks[0].total_amount == 5.0
        assert report.totals.total_amount == 5.0

    def test_invalid_month(self, repository, config):
        with pytest.raises(ValidationError):
            generate_monthly_report(repository, config, year=2024, month=0, now=NOW)


class TestYearlyReport:
    """Calendar year report."""

    def test_twelve_months(self, repository, config, sample_week):
        alpha, _ = sample_week

        report = generate_yearly_report(repository, config, year=2024, now=NOW)
        row = next(w for w in report.workshops if w.workshop_id == alpha.id)

        assert report.meta.months[0] == "2024-01"
        assert len(row.months) == 12
        may = row.months[4]
        assert may.ym == "2024-05"
        assert (may.total_amount, may.paid_amount, may.debt_amount) == (100.0, 110.0, 0.0)

    def test_grand_totals_sum_clamped_workshop_totals(self, repository, config, sample_week):
        """Alpha's overpayment does not reduce Beta's outstanding debt in the total."""
        _, beta = sample_week
        ledger.record_daily_entry(repository, config, beta.id, day="2024-05-06", day_debt=20.0)

        report = generate_yearly_report(repository, config, year=2024, now=NOW)

        assert report.totals.total_amount == 120.0
        assert report.totals.paid_amount == 110.0
        assert report.totals.debt_amount == 20.0


class TestPeriodReport:
    """Flat summary over a period or custom range."""

    def test_weekly_summary_stops_at_today(self, repository, config, sample_week):
        alpha, _ = sample_week
        ledger.record_daily_entry(repository, config, alpha.id, day="2024-05-08", day_debt=50.0)

        report = generate_period_report(
            repository, config, period="weekly", now=datetime(2024, 5, 6, 9, 0)
        )

        assert report.meta.period == "weekly"
        assert report.meta.active_end.startswith("2024-05-06T23:59:59")
        assert report.totals.total_amount == 100.0
        assert report.workshops_count == 2

    def test_custom_range(self, repository, config, sample_week):
        report = generate_period_report(
            repository, config, now=NOW, from_date="2024-05-05", to_date="2024-05-05"
        )

        assert report.meta.period == "custom"
        assert report.totals.paid_amount == 80.0
        assert report.totals.total_amount == 0.0

    def test_workshop_filter(self, repository, config, sample_week):
        report = generate_period_report(
            repository, config, period="monthly", now=NOW, workshop_name="Beta"
        )

        assert [w.workshop_name for w in report.workshops] == ["Beta"]

    def test_unknown_workshop_filter(self, repository, config, sample_week):
        with pytest.raises(NotFoundError):
            generate_period_report(repository, config, now=NOW, workshop_id=999)

    def test_unknown_period(self, repository, config):
        with pytest.raises(ValidationError):
            generate_period_report(repository, config, period="fortnightly", now=NOW)


class TestOutstandingDebts:
    """Outstanding debt per workshop."""

    def test_defaults_to_everything_up_to_today(self, repository, config, sample_week):
        _, beta = sample_week
        ledger.record_daily_entry(repository, config, beta.id, day="2024-01-15", day_debt=60.0)
        ledger.record_payment(repository, config, beta.id, 15.0, day="2024-02-01")
        ledger.record_daily_entry(repository, config, beta.id, day="2024-06-01", day_debt=1000.0)

        report = get_outstanding_debts(repository, config, now=NOW)
        by_name = {w.workshop_name: w for w in report.workshops}

        assert report.meta.period == "debts"
        assert report.meta.start is None
        assert by_name["Alpha"].debt_amount == 0.0
        assert by_name["Beta"].debt_amount == 45.0
        assert report.totals.debt_amount == 45.0
        assert report.totals.total_amount == 160.0
        assert report.totals.paid_amount == 125.0

    def test_overpayment_does_not_offset_other_workshops(self, repository, config):
        """Alpha paid 100 with no debt, Beta owes 100: the total still owes 100."""
        alpha = ledger.create_workshop(repository, "Alpha")
        beta = ledger.create_workshop(repository, "Beta")
        ledger.record_payment(repository, config, alpha.id, 100.0, day="2024-05-04")
        ledger.record_daily_entry(repository, config, beta.id, day="2024-05-04", day_debt=100.0)

        report = get_outstanding_debts(repository, config, now=NOW)
        by_name = {w.workshop_name: w.debt_amount for w in report.workshops}

        assert by_name == {"Alpha": 0.0, "Beta": 100.0}
        assert report.totals.debt_amount == 100.0

    def test_debts_total_matches_yearly_total(self, repository, config, sample_week):
        _, beta = sample_week
        ledger.record_daily_entry(repository, config, beta.id, day="2024-05-06", day_debt=20.0)

        debts = get_outstanding_debts(
            repository, config, from_date="2024-01-01", to_date="2024-12-31", now=NOW
        )
        yearly = generate_yearly_report(repository, config, year=2024, now=NOW)

        assert debts.totals.debt_amount == 20.0
        assert debts.totals == yearly.totals

    def test_reversed_range(self, repository, config):
        with pytest.raises(ValidationError):
            get_outstanding_debts(repository, config, from_date="2024-05-10", to_date="2024-05-01")


class TestReportToDict:
    """JSON shape of reports."""

    def test_camel_case_keys(self, repository, config, sample_week):
        report = generate_weekly_report(repository, config, reference_date="2024-05-04", now=NOW)

        data = report_to_dict(report)

        assert data["meta"]["type"] == "weekly-structured"
        assert set(data["workshops"][0]) == {"workshopId", "workshopName", "days", "weeklyTotals"}
        assert data["workshops"][0]["weeklyTotals"]["paidAmount"] == 110.0
        assert isinstance(data["workshops"][0]["days"], list)

    def test_rejects_non_reports(self):
        with pytest.raises(TypeError):
            report_to_dict({"not": "a report"})
