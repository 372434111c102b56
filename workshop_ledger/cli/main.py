"""
CLI interface for the workshop ledger.

Provides command-line access to ledger writes, reports and the scheduler.
"""

import json
import sys
from dataclasses import replace
from typing import Optional

import typer
import yaml
from apscheduler.schedulers.blocking import BlockingScheduler
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from workshop_ledger.config.loader import LedgerConfig, load_ledger_config
from workshop_ledger.config.logging import configure_logging
from workshop_ledger.core import ledger
from workshop_ledger.core.cache import (
    LAST_RUN_KEY,
    MONTHLY_KEY,
    WEEKLY_KEY,
    YEARLY_KEY,
    get_report_cache,
)
from workshop_ledger.core.errors import LedgerError, StoreUnavailableError
from workshop_ledger.core.refresh import create_report_scheduler, refresh_structured_reports
from workshop_ledger.core.reports import (
    generate_monthly_report,
    generate_period_report,
    generate_weekly_report,
    generate_yearly_report,
    get_outstanding_debts,
    report_to_dict,
)
from workshop_ledger.demo.seed_demo_data import seed_default_workshops
from workshop_ledger.storage.repository import get_repository, initialize_schema

app = typer.Typer()
workshop_app = typer.Typer(help="Manage workshops.")
daily_app = typer.Typer(help="Record and inspect daily ledger entries.")
bot_app = typer.Typer(help="Ledger writes addressed by workshop name.")
report_app = typer.Typer(help="Generate reports.")
app.add_typer(workshop_app, name="workshop")
app.add_typer(daily_app, name="daily")
app.add_typer(bot_app, name="bot")
app.add_typer(report_app, name="report")

console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _config(ctx: typer.Context) -> LedgerConfig:
    return ctx.obj


def _repository(ctx: typer.Context):
    return get_repository(_config(ctx).db_path)


def _fail(error: Exception) -> None:
    """Print the error and exit with the failing code."""
    if isinstance(error, StoreUnavailableError):
        console.print(f"[red]Store error:[/] {escape(str(error))}")
        console.print("Run `workshop-ledger init` if the database has not been initialized.")
    else:
        console.print(f"[red]Error:[/] {escape(str(error))}")
    sys.exit(EXIT_CODE_FAIL)


def _echo_json(report) -> None:
    typer.echo(json.dumps(report_to_dict(report), ensure_ascii=False, indent=2))


def _format_amount(amount: float) -> str:
    return f"{amount:,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db",
        help="Override the ledger database path"
    )
):
    """Workshop Ledger CLI."""
    try:
        config = load_ledger_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    if db_path:
        config = replace(config, db_path=db_path)

    configure_logging(config.log_level, config.log_format, stream=sys.stderr)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print("Workshop Ledger - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the ledger database."""
    try:
        initialize_schema(_config(ctx).db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show database, timezone and roster size."""
    config = _config(ctx)
    try:
        count = _repository(ctx).count_workshops()
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Database: {escape(config.db_path)}")
    console.print(f"Timezone: {config.timezone}")
    console.print(f"Report schedule: {config.report_schedule}")
    console.print(f"Workshops: {count}")


@app.command()
def seed(ctx: typer.Context):
    """Insert the default workshops into an empty database."""
    try:
        created = seed_default_workshops(_repository(ctx))
    except LedgerError as e:
        _fail(e)
    if created:
        console.print(f"[green]✓[/] Seeded {len(created)} workshops")
    else:
        console.print("Workshops already exist, skipping seeding")


@workshop_app.command("add")
def workshop_add(ctx: typer.Context, name: str = typer.Argument(..., help="Workshop name")):
    """Create a workshop."""
    try:
        workshop = ledger.create_workshop(_repository(ctx), name)
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Created workshop {workshop.id}: {escape(workshop.name)}")


@workshop_app.command("list")
def workshop_list(
    ctx: typer.Context,
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by partial name")
):
    """List workshops."""
    try:
        workshops = ledger.list_workshops(_repository(ctx), query)
    except LedgerError as e:
        _fail(e)

    table = Table(title="Workshops")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    for workshop in workshops:
        table.add_row(str(workshop.id), escape(workshop.name))
    console.print(table)


@workshop_app.command("rename")
def workshop_rename(
    ctx: typer.Context,
    workshop_id: int = typer.Argument(..., help="Workshop ID"),
    name: str = typer.Argument(..., help="New name")
):
    """Rename a workshop."""
    try:
        workshop = ledger.rename_workshop(_repository(ctx), workshop_id, name)
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] Renamed workshop {workshop.id} to {escape(workshop.name)}")


@daily_app.command("record")
def daily_record(
    ctx: typer.Context,
    workshop_id: int = typer.Argument(..., help="Workshop ID"),
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Day (YYYY-MM-DD), default today"),
    orders: int = typer.Option(0, "--orders", "-o", help="Orders count"),
    debt: float = typer.Option(0.0, "--debt", help="Debt incurred that day"),
    paid: float = typer.Option(0.0, "--paid", help="Amount paid that day"),
    note: Optional[str] = typer.Option(None, "--note", "-n", help="Free-text note")
):
    """Create or replace a workshop's entry for one day."""
    try:
        entry = ledger.record_daily_entry(
            _repository(ctx), _config(ctx), workshop_id,
            day=day, orders_count=orders, day_debt=debt, day_paid=paid, note=note
        )
    except LedgerError as e:
        _fail(e)
    console.print(
        f"[green]✓[/] {entry.day_key}: orders {entry.orders_count}, "
        f"debt {_format_amount(entry.day_debt)}, paid {_format_amount(entry.day_paid)}"
    )


@daily_app.command("update")
def daily_update(
    ctx: typer.Context,
    workshop_id: int = typer.Argument(..., help="Workshop ID"),
    day_key: str = typer.Argument(..., help="Day (YYYY-MM-DD)"),
    orders: Optional[int] = typer.Option(None, "--orders", "-o"),
    debt: Optional[float] = typer.Option(None, "--debt"),
    paid: Optional[float] = typer.Option(None, "--paid"),
    note: Optional[str] = typer.Option(None, "--note", "-n")
):
    """Change some fields of an existing daily entry."""
    changes = {
        name: value
        for name, value in (
            ("orders_count", orders),
            ("day_debt", debt),
            ("day_paid", paid),
            ("note", note),
        )
        if value is not None
    }
    try:
        entry = ledger.update_daily_entry(_repository(ctx), workshop_id, day_key, **changes)
    except LedgerError as e:
        _fail(e)
    console.print(
        f"[green]✓[/] {entry.day_key}: orders {entry.orders_count}, "
        f"debt {_format_amount(entry.day_debt)}, paid {_format_amount(entry.day_paid)}"
    )


@daily_app.command("list")
def daily_list(
    ctx: typer.Context,
    workshop_id: int = typer.Argument(..., help="Workshop ID"),
    from_date: Optional[str] = typer.Option(None, "--from", help="First day (YYYY-MM-DD)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD)")
):
    """List a workshop's daily entries."""
    try:
        entries = ledger.list_daily_entries(
            _repository(ctx), _config(ctx), workshop_id, from_date, to_date
        )
    except LedgerError as e:
        _fail(e)

    table = Table(title=f"Daily entries for workshop {workshop_id}")
    table.add_column("Day")
    table.add_column("Orders", justify="right")
    table.add_column("Debt", justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Note")
    for entry in entries:
        table.add_row(
            entry.day_key,
            str(entry.orders_count),
            _format_amount(entry.day_debt),
            _format_amount(entry.day_paid),
            escape(entry.note or "")
        )
    console.print(table)


@app.command()
def pay(
    ctx: typer.Context,
    workshop_id: int = typer.Argument(..., help="Workshop ID"),
    amount: float = typer.Argument(..., help="Amount paid"),
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Day (YYYY-MM-DD), default today"),
    note: Optional[str] = typer.Option(None, "--note", "-n")
):
    """Record a payment for a workshop."""
    try:
        entry = ledger.record_payment(
            _repository(ctx), _config(ctx), workshop_id, amount, day=day, note=note
        )
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] {entry.day_key}: paid {_format_amount(entry.day_paid)}")


@bot_app.command("daily")
def bot_daily(
    ctx: typer.Context,
    workshop_name: str = typer.Argument(..., help="Workshop name"),
    day: Optional[str] = typer.Option(None, "--day", "-d"),
    orders: int = typer.Option(0, "--orders", "-o"),
    debt: float = typer.Option(0.0, "--debt"),
    paid: float = typer.Option(0.0, "--paid"),
    note: Optional[str] = typer.Option(None, "--note", "-n"),
    auto_create: bool = typer.Option(
        False,
        "--auto-create",
        help="Create the workshop if the name is unknown"
    )
):
    """Record a daily entry by workshop name."""
    try:
        entry = ledger.record_daily_entry_by_name(
            _repository(ctx), _config(ctx), workshop_name,
            day=day, orders_count=orders, day_debt=debt, day_paid=paid,
            note=note, allow_auto_create=auto_create
        )
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] {escape(workshop_name)} {entry.day_key}: debt {_format_amount(entry.day_debt)}")


@bot_app.command("pay")
def bot_pay(
    ctx: typer.Context,
    workshop_name: str = typer.Argument(..., help="Workshop name"),
    amount: float = typer.Argument(..., help="Amount paid"),
    day: Optional[str] = typer.Option(None, "--day", "-d"),
    note: Optional[str] = typer.Option(None, "--note", "-n"),
    auto_create: bool = typer.Option(False, "--auto-create")
):
    """Record a payment by workshop name."""
    try:
        entry = ledger.record_payment_by_name(
            _repository(ctx), _config(ctx), workshop_name, amount,
            day=day, note=note, allow_auto_create=auto_create
        )
    except LedgerError as e:
        _fail(e)
    console.print(f"[green]✓[/] {escape(workshop_name)} {entry.day_key}: paid {_format_amount(entry.day_paid)}")


@report_app.command("weekly")
def report_weekly(
    ctx: typer.Context,
    date: Optional[str] = typer.Option(None, "--date", "-d", help="Any day of the week (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON")
):
    """Saturday-to-Friday report with a daily breakdown."""
    try:
        report = generate_weekly_report(_repository(ctx), _config(ctx), reference_date=date)
    except LedgerError as e:
        _fail(e)
    if as_json:
        _echo_json(report)
        return

    table = Table(title=f"Weekly report {report.meta.days[0].key} → {report.meta.days[-1].key}")
    table.add_column("Workshop")
    for day in report.meta.days:
        table.add_column(day.key[5:], justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Debt", justify="right")
    for workshop in report.workshops:
        table.add_row(
            escape(workshop.workshop_name),
            *[_format_amount(d.total_amount) for d in workshop.days],
            _format_amount(workshop.weekly_totals.paid_amount),
            _format_amount(workshop.weekly_totals.debt_amount)
        )
    console.print(table)
    _display_totals(report.totals)


@report_app.command("monthly")
def report_monthly(
    ctx: typer.Context,
    year: Optional[int] = typer.Option(None, "--year", "-y"),
    month: Optional[int] = typer.Option(None, "--month", "-m"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON")
):
    """Calendar month report with a weekly breakdown."""
    try:
        report = generate_monthly_report(_repository(ctx), _config(ctx), year=year, month=month)
    except LedgerError as e:
        _fail(e)
    if as_json:
        _echo_json(report)
        return

    table = Table(title=f"Monthly report {report.meta.month}")
    table.add_column("Workshop")
    for week in report.meta.weeks:
        table.add_column(week.key[5:], justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Debt", justify="right")
    for workshop in report.workshops:
        table.add_row(
            escape(workshop.workshop_name),
            *[_format_amount(w.total_amount) for w in workshop.weeks],
            _format_amount(workshop.monthly_totals.paid_amount),
            _format_amount(workshop.monthly_totals.debt_amount)
        )
    console.print(table)
    _display_totals(report.totals)


@report_app.command("yearly")
def report_yearly(
    ctx: typer.Context,
    year: Optional[int] = typer.Option(None, "--year", "-y"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON")
):
    """Calendar year report with a monthly breakdown."""
    try:
        report = generate_yearly_report(_repository(ctx), _config(ctx), year=year)
    except LedgerError as e:
        _fail(e)
    if as_json:
        _echo_json(report)
        return

    table = Table(title=f"Yearly report {report.meta.year}")
    table.add_column("Workshop")
    for key in report.meta.months:
        table.add_column(key[5:], justify="right")
    table.add_column("Debt", justify="right")
    for workshop in report.workshops:
        table.add_row(
            escape(workshop.workshop_name),
            *[_format_amount(m.total_amount) for m in workshop.months],
            _format_amount(workshop.yearly_totals.debt_amount)
        )
    console.print(table)
    _display_totals(report.totals)


@report_app.command("summary")
def report_summary(
    ctx: typer.Context,
    period: str = typer.Option("weekly", "--period", "-p", help="weekly, monthly or yearly"),
    from_date: Optional[str] = typer.Option(None, "--from", help="Custom range start (YYYY-MM-DD)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Custom range end (YYYY-MM-DD)"),
    workshop_id: Optional[int] = typer.Option(None, "--workshop-id"),
    workshop_name: Optional[str] = typer.Option(None, "--workshop-name"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON")
):
    """Flat per-workshop summary of the current period or a custom range."""
    try:
        report = generate_period_report(
            _repository(ctx), _config(ctx),
            period=period, from_date=from_date, to_date=to_date,
            workshop_id=workshop_id, workshop_name=workshop_name
        )
    except LedgerError as e:
        _fail(e)
    if as_json:
        _echo_json(report)
        return
    _display_summary(f"Summary ({report.meta.period})", report)


@app.command()
def debts(
    ctx: typer.Context,
    from_date: Optional[str] = typer.Option(None, "--from", help="First day (YYYY-MM-DD)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD), default today"),
    workshop_id: Optional[int] = typer.Option(None, "--workshop-id"),
    workshop_name: Optional[str] = typer.Option(None, "--workshop-name"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON")
):
    """Outstanding debt per workshop."""
    try:
        report = get_outstanding_debts(
            _repository(ctx), _config(ctx),
            from_date=from_date, to_date=to_date,
            workshop_id=workshop_id, workshop_name=workshop_name
        )
    except LedgerError as e:
        _fail(e)
    if as_json:
        _echo_json(report)
        return
    _display_summary("Outstanding debts", report)


@app.command()
def refresh(ctx: typer.Context):
    """Build the structured reports once and print what was published.

    The cache lives in this process only. Use `schedule` to keep a
    refreshed cache running; this command checks that the reports build.
    """
    cache = get_report_cache()
    if refresh_structured_reports(_repository(ctx), _config(ctx), cache):
        published = cache.snapshot()
        console.print(f"[green]✓[/] Structured reports refreshed at {published[LAST_RUN_KEY]}")
        for label, key in (("Weekly", WEEKLY_KEY), ("Monthly", MONTHLY_KEY), ("Yearly", YEARLY_KEY)):
            report = cache.get(key)
            console.print(
                f"{label}: {len(report.workshops)} workshops, "
                f"outstanding {_format_amount(report.totals.debt_amount)}"
            )
        sys.exit(EXIT_CODE_PASS)
    console.print("[red]Report refresh failed[/], see the log for details")
    sys.exit(EXIT_CODE_FAIL)


@app.command()
def schedule(ctx: typer.Context):
    """Run the report refresh on the configured schedule until interrupted."""
    config = _config(ctx)
    repository = _repository(ctx)
    cache = get_report_cache()
    try:
        scheduler = create_report_scheduler(
            repository, config, cache, scheduler_cls=BlockingScheduler
        )
    except LedgerError as e:
        _fail(e)

    refresh_structured_reports(repository, config, cache)
    console.print(f"Refreshing reports on schedule '{config.report_schedule}' ({config.timezone})")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        console.print("Scheduler stopped")


def _display_totals(totals) -> None:
    console.print(
        f"\n[bold]Totals:[/bold] orders {totals.orders_count}, "
        f"debt incurred {_format_amount(totals.total_amount)}, "
        f"paid {_format_amount(totals.paid_amount)}, "
        f"outstanding {_format_amount(totals.debt_amount)}"
    )


def _display_summary(title: str, report) -> None:
    table = Table(title=title)
    table.add_column("Workshop")
    table.add_column("Orders", justify="right")
    table.add_column("Debt incurred", justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Outstanding", justify="right")
    for row in report.workshops:
        table.add_row(
            escape(row.workshop_name),
            str(row.orders_count),
            _format_amount(row.total_amount),
            _format_amount(row.paid_amount),
            _format_amount(row.debt_amount)
        )
    console.print(table)
    _display_totals(report.totals)


if __name__ == "__main__":
    app()
