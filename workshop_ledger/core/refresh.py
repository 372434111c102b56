"""
Scheduled refresh of the structured reports.

Rebuilds the weekly, monthly and yearly reports on a cron-like schedule
and publishes them to the report cache. A failed run is logged and the
previous reports stay published until the next run succeeds.
"""

import re
from datetime import datetime
from typing import Optional, Type
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from workshop_ledger.config.loader import LedgerConfig
from workshop_ledger.config.logging import get_logger
from workshop_ledger.storage.repository import LedgerRepository
from .cache import LAST_RUN_KEY, MONTHLY_KEY, WEEKLY_KEY, YEARLY_KEY, ReportCache, get_report_cache
from .calendar import local_now
from .errors import LedgerError, ValidationError
from .reports import generate_monthly_report, generate_weekly_report, generate_yearly_report

logger = get_logger(__name__)

REFRESH_JOB_ID = "structured-reports"

# "09:00" or "09:00 daily"
_DAILY_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?:\s+daily)?$", re.IGNORECASE)


def parse_report_schedule(expression: str, tz: ZoneInfo) -> CronTrigger:
    """Turn a schedule expression into a cron trigger in tz.

    Accepts 'HH:MM', 'HH:MM daily' or a standard 5-field crontab
    expression such as '0 9 * * *'.

    Raises:
        ValidationError: If the expression cannot be parsed
    """
    text = (expression or "").strip()
    match = _DAILY_TIME.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValidationError(f"Invalid time in report schedule: {expression!r}")
        return CronTrigger(hour=hour, minute=minute, timezone=tz)

    try:
        return CronTrigger.from_crontab(text, timezone=tz)
    except ValueError as e:
        raise ValidationError(f"Invalid report schedule {expression!r}: {e}") from e


def refresh_structured_reports(
    repository: LedgerRepository,
    config: LedgerConfig,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> bool:
    """Rebuild all structured reports and publish them together.

    Args:
        repository: Ledger store
        config: Ledger configuration
        cache: Target cache, defaults to the process-wide cache
        now: Current instant, defaults to the wall clock

    Returns:
        True if new reports were published, False if the run failed
    """
    cache = cache if cache is not None else get_report_cache()
    try:
        weekly = generate_weekly_report(repository, config, now=now)
        monthly = generate_monthly_report(repository, config, now=now)
        yearly = generate_yearly_report(repository, config, now=now)
    except LedgerError as e:
        logger.exception("report_refresh_failed", error=str(e))
        return False

    cache.publish({
        WEEKLY_KEY: weekly,
        MONTHLY_KEY: monthly,
        YEARLY_KEY: yearly,
        LAST_RUN_KEY: local_now(config.tz, now).isoformat(),
    })
    logger.info(
        "reports_refreshed",
        workshops=len(weekly.workshops),
        week_start=weekly.meta.range.start,
        month=monthly.meta.month,
        year=yearly.meta.year
    )
    return True


def create_report_scheduler(
    repository: LedgerRepository,
    config: LedgerConfig,
    cache: Optional[ReportCache] = None,
    scheduler_cls: Type[BaseScheduler] = BackgroundScheduler
) -> BaseScheduler:
    """Create a scheduler running the refresh on the configured schedule.

    The scheduler is returned unstarted. Overlapping or missed runs are
    collapsed into one, so at most one refresh runs at a time.

    Raises:
        ValidationError: If the configured schedule is invalid
    """
    trigger = parse_report_schedule(config.report_schedule, config.tz)
    scheduler = scheduler_cls(timezone=config.tz)
    scheduler.add_job(
        refresh_structured_reports,
        trigger=trigger,
        args=(repository, config, cache),
        id=REFRESH_JOB_ID,
        name="Refresh structured reports",
        coalesce=True,
        max_instances=1,
        replace_existing=True
    )
    logger.info("report_scheduler_created", schedule=config.report_schedule, timezone=config.timezone)
    return scheduler
