"""
Aggregation of ledger entries into per-workshop totals.

Aggregation always starts from the workshop roster and overlays the
sums found in the ledger, so workshops without entries in range still
appear with zero values.

Outstanding debt is clamped at zero per workshop and per bucket, from that
scope's own debt and paid sums. Across workshops the clamped values are
added up, so one workshop's overpayment never offsets another's debt.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from workshop_ledger.storage.models import DailyLedgerEntry, Workshop
from workshop_ledger.storage.repository import LedgerRepository
from .calendar import month_key, week_start_key
from .errors import NotFoundError


BucketKey = Callable[[DailyLedgerEntry], str]


@dataclass(frozen=True)
class Totals:
    """Summed counts and amounts over some scope."""
    orders_count: int = 0
    total_debt: float = 0.0
    total_paid: float = 0.0

    @property
    def outstanding(self) -> float:
        """Debt left after payments, floored at zero."""
        return max(0.0, self.total_debt - self.total_paid)

    def __add__(self, other: "Totals") -> "Totals":
        return Totals(
            orders_count=self.orders_count + other.orders_count,
            total_debt=self.total_debt + other.total_debt,
            total_paid=self.total_paid + other.total_paid
        )

    @classmethod
    def from_entry(cls, entry: DailyLedgerEntry) -> "Totals":
        return cls(
            orders_count=entry.orders_count,
            total_debt=entry.day_debt,
            total_paid=entry.day_paid
        )


ZERO = Totals()


@dataclass(frozen=True)
class WorkshopTotals:
    workshop: Workshop
    totals: Totals


@dataclass(frozen=True)
class RangeAggregation:
    """Flat aggregation result.

    `totals` holds the raw grand sums. The grand outstanding figure is
    `outstanding`, the sum of the per-workshop clamped values.
    """
    workshops: List[WorkshopTotals]
    totals: Totals

    @property
    def outstanding(self) -> float:
        return sum((row.totals.outstanding for row in self.workshops), 0.0)


@dataclass(frozen=True)
class BucketedAggregation:
    """Sparse per-(workshop, bucket) sums plus the roster they overlay."""
    workshops: List[Workshop]
    buckets: Dict[Tuple[int, str], Totals] = field(default_factory=dict)
    notes: Dict[Tuple[int, str], str] = field(default_factory=dict)

    def get(self, workshop_id: int, key: str) -> Totals:
        return self.buckets.get((workshop_id, key), ZERO)

    def note(self, workshop_id: int, key: str) -> str:
        return self.notes.get((workshop_id, key), "")


def day_bucket(entry: DailyLedgerEntry) -> str:
    return entry.day_key


def week_bucket(entry: DailyLedgerEntry) -> str:
    return week_start_key(entry.day_key)


def month_bucket(entry: DailyLedgerEntry) -> str:
    return month_key(entry.day_key)


def load_roster(
    repository: LedgerRepository,
    workshop_id: Optional[int] = None,
    workshop_name: Optional[str] = None
) -> List[Workshop]:
    """Resolve the target workshops.

    With no filter this is every known workshop. A filter naming a
    workshop that does not exist is an error, not an empty report.

    Raises:
        NotFoundError: If the filtered workshop does not exist
    """
    if workshop_id is None and workshop_name is None:
        return repository.list_workshops()

    if workshop_id is not None:
        workshop = repository.get_workshop(workshop_id)
    else:
        workshop = repository.find_workshop_by_name(workshop_name)

    if workshop is None or (workshop_name is not None and workshop.name != workshop_name):
        target = workshop_id if workshop_id is not None else workshop_name
        raise NotFoundError(f"Workshop not found: {target}")
    return [workshop]


def aggregate_range(
    repository: LedgerRepository,
    start: Optional[datetime],
    end: Optional[datetime],
    workshop_id: Optional[int] = None,
    workshop_name: Optional[str] = None
) -> RangeAggregation:
    """Sum ledger entries within [start, end] per workshop.

    Args:
        repository: Ledger store
        start: Range start, None for unbounded
        end: Range end, None for unbounded
        workshop_id: Optional filter by workshop id
        workshop_name: Optional filter by exact workshop name

    Returns:
        RangeAggregation with one row per roster workshop
    """
    roster = load_roster(repository, workshop_id, workshop_name)
    if not roster:
        return RangeAggregation(workshops=[], totals=ZERO)

    entries = repository.find_entries_in_range(
        start, end, workshop_ids=_filter_ids(roster, workshop_id, workshop_name)
    )

    sums: Dict[int, Totals] = {}
    for entry in entries:
        sums[entry.workshop_id] = sums.get(entry.workshop_id, ZERO) + Totals.from_entry(entry)

    rows = [WorkshopTotals(workshop=w, totals=sums.get(w.id, ZERO)) for w in roster]
    grand = ZERO
    for row in rows:
        grand = grand + row.totals
    return RangeAggregation(workshops=rows, totals=grand)


def aggregate_buckets(
    repository: LedgerRepository,
    start: datetime,
    end: datetime,
    bucket_key: BucketKey,
    workshop_id: Optional[int] = None,
    workshop_name: Optional[str] = None
) -> BucketedAggregation:
    """Group entries within [start, end] by (workshop, bucket_key(entry)).

    Entries of workshops outside the roster are ignored.
    """
    roster = load_roster(repository, workshop_id, workshop_name)
    if not roster:
        return BucketedAggregation(workshops=[])

    known = {w.id for w in roster}
    entries = repository.find_entries_in_range(
        start, end, workshop_ids=_filter_ids(roster, workshop_id, workshop_name)
    )

    buckets: Dict[Tuple[int, str], Totals] = {}
    notes: Dict[Tuple[int, str], str] = {}
    for entry in entries:
        if entry.workshop_id not in known:
            continue
        key = (entry.workshop_id, bucket_key(entry))
        buckets[key] = buckets.get(key, ZERO) + Totals.from_entry(entry)
        if entry.note:
            notes[key] = entry.note

    return BucketedAggregation(workshops=roster, buckets=buckets, notes=notes)


def _filter_ids(
    roster: List[Workshop],
    workshop_id: Optional[int],
    workshop_name: Optional[str]
) -> Optional[List[int]]:
    if workshop_id is None and workshop_name is None:
        return None
    return [w.id for w in roster]
