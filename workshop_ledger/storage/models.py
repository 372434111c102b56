"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Workshop:
    """A workshop that accrues debt and receives payments."""
    id: int
    name: str


@dataclass(frozen=True)
class DailyLedgerEntry:
    """One workshop's financial activity for one calendar day.

    There is exactly one entry per (workshop_id, day_key). The day key is
    the canonical YYYY-MM-DD in the configured timezone; `day` is the
    timezone-aware midnight instant of that day.

    `day_debt` is the debt incurred that day and is never decremented by
    payments. `day_paid` is what was paid that day and may settle debt
    incurred on earlier days.
    """
    workshop_id: int
    day: datetime
    day_key: str
    orders_count: int = 0
    day_debt: float = 0.0
    day_paid: float = 0.0
    note: Optional[str] = None
