"""
Database connection management.

Provides SQLite connection for ledger persistence.
"""

import sqlite3
from pathlib import Path

# Seconds to wait on a locked database before failing
BUSY_TIMEOUT = 10.0


def get_connection(db_path: str = "workshop_ledger.db") -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
