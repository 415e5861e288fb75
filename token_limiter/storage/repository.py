"""
Repository pattern for data access.

SQLite-backed ledger persistence. Each identity's ledger is stored as rows
in ``usage_event`` and ``fired_threshold`` and replaced wholesale on store.
"""

import asyncio
from datetime import datetime
from typing import Optional

from .base import StorageAdapter
from .db import DEFAULT_DB_PATH, get_connection
from .models import Ledger, UsageEvent


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the ledger tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_event (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                identity TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                tokens INTEGER NOT NULL,
                cost REAL NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS usage_event_identity
            ON usage_event (identity)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS fired_threshold (
                identity TEXT NOT NULL,
                percent REAL NOT NULL,
                PRIMARY KEY (identity, percent)
            )
        """)
        conn.commit()
    finally:
        conn.close()


def load_ledger(identity: str, db_path: str = DEFAULT_DB_PATH) -> Optional[Ledger]:
    """Read the ledger for an identity.

    Events are returned in insertion order. An identity without any rows
    has no ledger.

    Args:
        identity: Identity the ledger belongs to
        db_path: Path to SQLite database file

    Returns:
        The stored Ledger, or None if nothing is stored
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT timestamp, tokens, cost FROM usage_event "
            "WHERE identity = ? ORDER BY id",
            (identity,)
        )
        events = [
            UsageEvent(
                tokens=row[1],
                cost=row[2],
                timestamp=datetime.fromisoformat(row[0])
            )
            for row in cursor.fetchall()
        ]
        cursor = conn.execute(
            "SELECT percent FROM fired_threshold WHERE identity = ?",
            (identity,)
        )
        fired = frozenset(row[0] for row in cursor.fetchall())
    finally:
        conn.close()

    if not events and not fired:
        return None
    return Ledger(events=tuple(events), fired_thresholds=fired)


def replace_ledger(identity: str, ledger: Ledger, db_path: str = DEFAULT_DB_PATH) -> None:
    """Replace all stored rows for an identity atomically.

    Either the whole ledger is written or the previous state is left
    untouched.

    Args:
        identity: Identity the ledger belongs to
        ledger: Ledger to persist
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        conn.execute("DELETE FROM usage_event WHERE identity = ?", (identity,))
        conn.execute("DELETE FROM fired_threshold WHERE identity = ?", (identity,))
        conn.executemany(
            "INSERT INTO usage_event (identity, timestamp, tokens, cost) "
            "VALUES (?, ?, ?, ?)",
            [
                (identity, event.timestamp.isoformat(), event.tokens, event.cost)
                for event in ledger.events
            ]
        )
        conn.executemany(
            "INSERT INTO fired_threshold (identity, percent) VALUES (?, ?)",
            [(identity, percent) for percent in sorted(ledger.fired_thresholds)]
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def delete_ledger(identity: str, db_path: str = DEFAULT_DB_PATH) -> None:
    """Delete every row stored for an identity."""
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        conn.execute("DELETE FROM usage_event WHERE identity = ?", (identity,))
        conn.execute("DELETE FROM fired_threshold WHERE identity = ?", (identity,))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class SQLiteStorage(StorageAdapter):
    """Storage adapter persisting ledgers in a SQLite database file.

    Blocking database calls run in a worker thread so the event loop is
    not stalled. The schema must exist, see ``initialize_schema``.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the adapter with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    async def load(self, identity: str) -> Optional[Ledger]:
        return await asyncio.to_thread(load_ledger, identity, self.db_path)

    async def store(self, identity: str, ledger: Ledger) -> None:
        await asyncio.to_thread(replace_ledger, identity, ledger, self.db_path)

    async def delete(self, identity: str) -> None:
        await asyncio.to_thread(delete_ledger, identity, self.db_path)
