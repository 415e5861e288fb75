"""
SQLite connection handling for the ledger store.
"""

import os
import sqlite3

DEFAULT_DB_PATH = os.environ.get("TOKEN_LIMITER_DB", "token_limiter.db")

# Seconds a writer waits on a locked database before failing.
BUSY_TIMEOUT = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a ledger database connection.

    The connection runs in autocommit mode, so the repository's explicit
    ``BEGIN TRANSACTION`` is the only transaction boundary.
    """
    return sqlite3.connect(db_path, timeout=BUSY_TIMEOUT, isolation_level=None)
