"""
Repository pattern for data access.

Handles database operations for workshops and their daily ledger entries.
Every write is a single statement so concurrent writers to the same
(workshop, day) never lose updates.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

from workshop_ledger.core.errors import StoreUnavailableError, ValidationError
from .db import get_connection
from .models import DailyLedgerEntry, Workshop


DEFAULT_DB_PATH = "workshop_ledger.db"

_ENTRY_COLUMNS = """
    workshop_id, day_ts, day_key, orders_count, day_debt, day_paid, note
"""

# Columns a partial update may touch
UPDATABLE_ENTRY_FIELDS = ("orders_count", "day_debt", "day_paid", "note")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_ts(moment: datetime) -> int:
    return int(moment.timestamp())


def _row_to_entry(row: Sequence[Any]) -> DailyLedgerEntry:
    return DailyLedgerEntry(
        workshop_id=row[0],
        day=datetime.fromtimestamp(row[1], tz=timezone.utc),
        day_key=row[2],
        orders_count=row[3],
        day_debt=float(row[4]),
        day_paid=float(row[5]),
        note=row[6]
    )


class LedgerRepository:
    """Repository for workshops and daily ledger entries.

    Each call opens its own connection, so a repository instance can be
    shared between the scheduler thread and request handlers.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and map driver errors."""
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open ledger store {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailableError(f"Ledger store query failed: {e}") from e
        finally:
            conn.close()

    # Workshops

    def create_workshop(self, name: str) -> Workshop:
        """Insert a new workshop.

        Raises:
            ValidationError: If a workshop with this name already exists
        """
        now = _utcnow()
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO workshop (name, created_at, updated_at) VALUES (?, ?, ?)",
                    (name, now, now)
                )
            except sqlite3.IntegrityError:
                raise ValidationError(f"Workshop already exists: {name}")
            return Workshop(id=cursor.lastrowid, name=name)

    def get_workshop(self, workshop_id: int) -> Optional[Workshop]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name FROM workshop WHERE id = ?", (workshop_id,)
            ).fetchone()
        return Workshop(id=row[0], name=row[1]) if row else None

    def find_workshop_by_name(self, name: str) -> Optional[Workshop]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name FROM workshop WHERE name = ?", (name,)
            ).fetchone()
        return Workshop(id=row[0], name=row[1]) if row else None

    def rename_workshop(self, workshop_id: int, name: str) -> Optional[Workshop]:
        """Rename a workshop, returning None if it does not exist.

        Raises:
            ValidationError: If another workshop already has this name
        """
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    "UPDATE workshop SET name = ?, updated_at = ? WHERE id = ?",
                    (name, _utcnow(), workshop_id)
                )
            except sqlite3.IntegrityError:
                raise ValidationError(f"Workshop already exists: {name}")
            if cursor.rowcount == 0:
                return None
        return Workshop(id=workshop_id, name=name)

    def list_workshops(self, name_filter: Optional[str] = None) -> List[Workshop]:
        """List workshops ordered by name.

        Args:
            name_filter: Optional case-insensitive substring of the name

        Returns:
            List of workshops
        """
        query = "SELECT id, name FROM workshop"
        params: List[Any] = []
        if name_filter:
            query += " WHERE instr(lower(name), lower(?)) > 0"
            params.append(name_filter)
        query += " ORDER BY name, id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Workshop(id=row[0], name=row[1]) for row in rows]

    def count_workshops(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM workshop").fetchone()[0]

    # Daily entries

    def find_entries_in_range(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        workshop_ids: Optional[Sequence[int]] = None
    ) -> List[DailyLedgerEntry]:
        """Fetch entries whose day falls within [start, end] inclusive.

        Args:
            start: Range start, or None for no lower bound
            end: Range end, or None for no upper bound
            workshop_ids: Optional restriction to these workshops

        Returns:
            Entries ordered by day then workshop
        """
        if workshop_ids is not None and len(workshop_ids) == 0:
            return []

        query = f"SELECT {_ENTRY_COLUMNS} FROM workshop_daily"
        conditions = []
        params: List[Any] = []

        if start is not None:
            conditions.append("day_ts >= ?")
            params.append(_to_ts(start))
        if end is not None:
            conditions.append("day_ts <= ?")
            params.append(_to_ts(end))
        if workshop_ids is not None:
            placeholders = ", ".join("?" for _ in workshop_ids)
            conditions.append(f"workshop_id IN ({placeholders})")
            params.extend(workshop_ids)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY day_ts, workshop_id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_entry(row) for row in rows]

    def get_entry(self, workshop_id: int, day_key: str) -> Optional[DailyLedgerEntry]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM workshop_daily WHERE workshop_id = ? AND day_key = ?",
                (workshop_id, day_key)
            ).fetchone()
        return _row_to_entry(row) if row else None

    def list_entries(
        self,
        workshop_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[DailyLedgerEntry]:
        """List one workshop's entries, optionally bounded by day."""
        return self.find_entries_in_range(start, end, workshop_ids=[workshop_id])

    def upsert_entry(
        self,
        workshop_id: int,
        day: datetime,
        day_key: str,
        orders_count: int,
        day_debt: float,
        day_paid: float,
        note: Optional[str] = None
    ) -> DailyLedgerEntry:
        """Insert or fully replace the entry for (workshop_id, day_key).

        Returns:
            The stored entry
        """
        now = _utcnow()
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO workshop_daily
                (workshop_id, day_ts, day_key, orders_count, day_debt, day_paid,
                 note, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (workshop_id, day_key) DO UPDATE SET
                    day_ts = excluded.day_ts,
                    orders_count = excluded.orders_count,
                    day_debt = excluded.day_debt,
                    day_paid = excluded.day_paid,
                    note = excluded.note,
                    updated_at = excluded.updated_at
            """, (
                workshop_id, _to_ts(day), day_key, orders_count,
                day_debt, day_paid, note, now, now
            ))
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM workshop_daily WHERE workshop_id = ? AND day_key = ?",
                (workshop_id, day_key)
            ).fetchone()
        return _row_to_entry(row)

    def increment_paid(
        self,
        workshop_id: int,
        day: datetime,
        day_key: str,
        amount: float,
        note: Optional[str] = None
    ) -> DailyLedgerEntry:
        """Atomically add amount to day_paid, creating a zero-debt entry if absent.

        A note, when given, replaces the stored note; otherwise the existing
        note is kept.

        Returns:
            The stored entry after the increment
        """
        now = _utcnow()
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO workshop_daily
                (workshop_id, day_ts, day_key, orders_count, day_debt, day_paid,
                 note, created_at, updated_at)
                VALUES (?, ?, ?, 0, 0, ?, ?, ?, ?)
                ON CONFLICT (workshop_id, day_key) DO UPDATE SET
                    day_paid = workshop_daily.day_paid + excluded.day_paid,
                    note = COALESCE(excluded.note, workshop_daily.note),
                    updated_at = excluded.updated_at
            """, (workshop_id, _to_ts(day), day_key, amount, note, now, now))
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM workshop_daily WHERE workshop_id = ? AND day_key = ?",
                (workshop_id, day_key)
            ).fetchone()
        return _row_to_entry(row)

    def update_entry(
        self,
        workshop_id: int,
        day_key: str,
        changes: Dict[str, Any]
    ) -> Optional[DailyLedgerEntry]:
        """Apply a partial update to an existing entry.

        Args:
            workshop_id: Workshop owning the entry
            day_key: Day of the entry
            changes: Subset of UPDATABLE_ENTRY_FIELDS to set

        Returns:
            The updated entry, or None if it does not exist
        """
        unknown = set(changes) - set(UPDATABLE_ENTRY_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown entry fields: {sorted(unknown)}")

        with self._connect() as conn:
            if changes:
                assignments = ", ".join(f"{name} = ?" for name in changes)
                params = list(changes.values()) + [_utcnow(), workshop_id, day_key]
                conn.execute(
                    f"UPDATE workshop_daily SET {assignments}, updated_at = ? "
                    "WHERE workshop_id = ? AND day_key = ?",
                    params
                )
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM workshop_daily WHERE workshop_id = ? AND day_key = ?",
                (workshop_id, day_key)
            ).fetchone()
        return _row_to_entry(row) if row else None


# Global repository instance
_default_repository: Optional[LedgerRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> LedgerRepository:
    """Get a repository instance.

    Returns the process-wide LedgerRepository, recreating it when a
    different database path is requested.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of LedgerRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = LedgerRepository(db_path)
    return _default_repository


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the workshop and workshop_daily tables if they don't exist.

    The unique (workshop_id, day_key) index is what makes upserts merge
    into a single entry per workshop and day.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS workshop (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS workshop_daily (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workshop_id INTEGER NOT NULL REFERENCES workshop (id),
                day_ts INTEGER NOT NULL,
                day_key TEXT NOT NULL,
                orders_count INTEGER NOT NULL DEFAULT 0 CHECK (orders_count >= 0),
                day_debt REAL NOT NULL DEFAULT 0 CHECK (day_debt >= 0),
                day_paid REAL NOT NULL DEFAULT 0 CHECK (day_paid >= 0),
                note TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (workshop_id, day_key)
            );

            CREATE INDEX IF NOT EXISTS idx_workshop_daily_day ON workshop_daily (day_ts);
            CREATE INDEX IF NOT EXISTS idx_workshop_daily_workshop ON workshop_daily (workshop_id);
        """)
        conn.commit()
    finally:
        conn.close()
