"""
Ledger write operations.

Validates workshop and daily-entry writes before they reach the store.
Amounts and counts are checked to be non-negative here so the report
side can sum without re-checking.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from workshop_ledger.config.loader import LedgerConfig
from workshop_ledger.config.logging import get_logger
from workshop_ledger.storage.models import DailyLedgerEntry, Workshop
from workshop_ledger.storage.repository import LedgerRepository
from .calendar import DateLike, end_of_day, local_today, parse_date, start_of_day
from .errors import NotFoundError, ValidationError

logger = get_logger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
NOTE_MAX_LENGTH = 500
# Largest value an SQLite INTEGER column holds
MAX_ORDERS_COUNT = 2 ** 63 - 1


def validate_workshop_name(name: Any) -> str:
    """Return the trimmed name or raise ValidationError."""
    if not isinstance(name, str):
        raise ValidationError("Workshop name must be a string")
    trimmed = name.strip()
    if not NAME_MIN_LENGTH <= len(trimmed) <= NAME_MAX_LENGTH:
        raise ValidationError(
            f"Workshop name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters"
        )
    return trimmed


def validate_amount(value: Any, field_name: str) -> float:
    """Return value as a finite non-negative float or raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number")
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError(f"{field_name} is too large")
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{field_name} must be finite")
    if value < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return value


def validate_orders_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("orders_count must be an integer")
    if value < 0:
        raise ValidationError("orders_count must be >= 0")
    if value > MAX_ORDERS_COUNT:
        raise ValidationError(f"orders_count must be <= {MAX_ORDERS_COUNT}")
    return value


def validate_note(note: Any) -> Optional[str]:
    """Trim the note; empty notes are stored as None."""
    if note is None:
        return None
    if not isinstance(note, str):
        raise ValidationError("note must be a string")
    trimmed = note.strip()
    if len(trimmed) > NOTE_MAX_LENGTH:
        raise ValidationError(f"note must be at most {NOTE_MAX_LENGTH} characters")
    return trimmed or None


def create_workshop(repository: LedgerRepository, name: str) -> Workshop:
    """Create a workshop with a unique name.

    Raises:
        ValidationError: If the name is invalid or already taken
    """
    name = validate_workshop_name(name)
    if repository.find_workshop_by_name(name) is not None:
        raise ValidationError(f"Workshop already exists: {name}")
    workshop = repository.create_workshop(name)
    logger.info("workshop_created", workshop_id=workshop.id, name=workshop.name)
    return workshop


def rename_workshop(repository: LedgerRepository, workshop_id: int, name: str) -> Workshop:
    name = validate_workshop_name(name)
    workshop = repository.rename_workshop(workshop_id, name)
    if workshop is None:
        raise NotFoundError(f"Workshop not found: {workshop_id}")
    return workshop


def get_workshop(repository: LedgerRepository, workshop_id: int) -> Workshop:
    workshop = repository.get_workshop(workshop_id)
    if workshop is None:
        raise NotFoundError(f"Workshop not found: {workshop_id}")
    return workshop


def list_workshops(repository: LedgerRepository, query: Optional[str] = None) -> List[Workshop]:
    return repository.list_workshops(name_filter=query.strip() if query else None)


def record_daily_entry(
    repository: LedgerRepository,
    config: LedgerConfig,
    workshop_id: int,
    day: Optional[DateLike] = None,
    orders_count: int = 0,
    day_debt: float = 0.0,
    day_paid: float = 0.0,
    note: Optional[str] = None,
    now: Optional[datetime] = None
) -> DailyLedgerEntry:
    """Create or fully replace a workshop's entry for one day.

    Args:
        repository: Ledger store
        config: Ledger configuration (timezone)
        workshop_id: Target workshop
        day: Calendar day of the entry, defaults to today in the configured timezone
        orders_count: Orders handled that day
        day_debt: Debt incurred that day
        day_paid: Amount paid that day
        note: Optional free text
        now: Current instant, defaults to the wall clock

    Returns:
        The stored entry

    Raises:
        ValidationError: If any value is invalid
        NotFoundError: If the workshop does not exist
    """
    values = {
        "orders_count": validate_orders_count(orders_count),
        "day_debt": validate_amount(day_debt, "day_debt"),
        "day_paid": validate_amount(day_paid, "day_paid"),
        "note": validate_note(note),
    }
    tz = config.tz
    calendar_day = parse_date(day, tz) if day is not None else local_today(tz, now)
    get_workshop(repository, workshop_id)

    entry = repository.upsert_entry(
        workshop_id,
        start_of_day(calendar_day, tz),
        calendar_day.isoformat(),
        **values
    )
    logger.info(
        "daily_entry_recorded",
        workshop_id=workshop_id,
        day_key=entry.day_key,
        day_debt=entry.day_debt,
        day_paid=entry.day_paid
    )
    return entry


def update_daily_entry(
    repository: LedgerRepository,
    workshop_id: int,
    day_key: DateLike,
    **changes: Any
) -> DailyLedgerEntry:
    """Partially update an existing daily entry.

    Only orders_count, day_debt, day_paid and note may change.

    Raises:
        ValidationError: On invalid values or unknown fields
        NotFoundError: If the workshop or the entry does not exist
    """
    validated: Dict[str, Any] = {}
    for name, value in changes.items():
        if name == "orders_count":
            validated[name] = validate_orders_count(value)
        elif name in ("day_debt", "day_paid"):
            validated[name] = validate_amount(value, name)
        elif name == "note":
            validated[name] = validate_note(value)
        else:
            raise ValidationError(f"Unknown entry field: {name}")

    key = parse_date(day_key).isoformat()
    get_workshop(repository, workshop_id)
    entry = repository.update_entry(workshop_id, key, validated)
    if entry is None:
        raise NotFoundError(f"No daily entry for workshop {workshop_id} on {key}")
    return entry


def record_payment(
    repository: LedgerRepository,
    config: LedgerConfig,
    workshop_id: int,
    amount: float,
    day: Optional[DateLike] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None
) -> DailyLedgerEntry:
    """Add a payment to the workshop's entry for the day, default today.

    The increment happens inside the store, so concurrent payments to the
    same day add up instead of overwriting each other. A payment larger
    than the outstanding debt is accepted; the excess is not carried as
    credit.

    Raises:
        ValidationError: If the amount is not a positive number
        NotFoundError: If the workshop does not exist
    """
    amount = validate_amount(amount, "amount")
    if amount == 0:
        raise ValidationError("amount must be > 0")
    note = validate_note(note)
    tz = config.tz
    calendar_day = parse_date(day, tz) if day is not None else local_today(tz, now)
    get_workshop(repository, workshop_id)

    entry = repository.increment_paid(
        workshop_id,
        start_of_day(calendar_day, tz),
        calendar_day.isoformat(),
        amount,
        note=note
    )
    logger.info(
        "payment_recorded",
        workshop_id=workshop_id,
        day_key=entry.day_key,
        amount=amount,
        day_paid=entry.day_paid
    )
    return entry


def resolve_workshop_by_name(
    repository: LedgerRepository,
    config: LedgerConfig,
    name: str,
    allow_auto_create: Optional[bool] = None
) -> Workshop:
    """Find a workshop by name, creating it when auto-create is enabled.

    Args:
        allow_auto_create: Per-call override; when None or False the
            configured allow_auto_create_workshops decides

    Raises:
        NotFoundError: If the workshop is unknown and auto-create is off
    """
    name = validate_workshop_name(name)
    workshop = repository.find_workshop_by_name(name)
    if workshop is not None:
        return workshop

    if not (allow_auto_create or config.allow_auto_create_workshops):
        raise NotFoundError(f"Workshop not found: {name}")

    try:
        workshop = repository.create_workshop(name)
    except ValidationError:
        # Created concurrently by another writer
        workshop = repository.find_workshop_by_name(name)
        if workshop is None:
            raise
    logger.info("workshop_auto_created", workshop_id=workshop.id, name=workshop.name)
    return workshop


def record_daily_entry_by_name(
    repository: LedgerRepository,
    config: LedgerConfig,
    workshop_name: str,
    day: Optional[DateLike] = None,
    orders_count: int = 0,
    day_debt: float = 0.0,
    day_paid: float = 0.0,
    note: Optional[str] = None,
    allow_auto_create: Optional[bool] = None,
    now: Optional[datetime] = None
) -> DailyLedgerEntry:
    """Bot entry point: record_daily_entry addressed by workshop name."""
    # Reject bad values before a workshop can be auto-created
    validate_orders_count(orders_count)
    validate_amount(day_debt, "day_debt")
    validate_amount(day_paid, "day_paid")
    validate_note(note)
    workshop = resolve_workshop_by_name(repository, config, workshop_name, allow_auto_create)
    return record_daily_entry(
        repository, config, workshop.id,
        day=day,
        orders_count=orders_count,
        day_debt=day_debt,
        day_paid=day_paid,
        note=note,
        now=now
    )


def record_payment_by_name(
    repository: LedgerRepository,
    config: LedgerConfig,
    workshop_name: str,
    amount: float,
    day: Optional[DateLike] = None,
    note: Optional[str] = None,
    allow_auto_create: Optional[bool] = None,
    now: Optional[datetime] = None
) -> DailyLedgerEntry:
    """Bot entry point: record_payment addressed by workshop name."""
    if validate_amount(amount, "amount") == 0:
        raise ValidationError("amount must be > 0")
    validate_note(note)
    workshop = resolve_workshop_by_name(repository, config, workshop_name, allow_auto_create)
    return record_payment(
        repository, config, workshop.id, amount,
        day=day,
        note=note,
        now=now
    )


def list_daily_entries(
    repository: LedgerRepository,
    config: LedgerConfig,
    workshop_id: int,
    from_date: Optional[DateLike] = None,
    to_date: Optional[DateLike] = None
) -> List[DailyLedgerEntry]:
    """List a workshop's entries, optionally bounded by day (inclusive)."""
    tz = config.tz
    first = parse_date(from_date, tz) if from_date is not None else None
    last = parse_date(to_date, tz) if to_date is not None else None
    if first is not None and last is not None and first > last:
        raise ValidationError(f"from date {first} is after to date {last}")

    get_workshop(repository, workshop_id)
    return repository.list_entries(
        workshop_id,
        start=start_of_day(first, tz) if first is not None else None,
        end=end_of_day(last, tz) if last is not None else None
    )
