from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from .errors import StorageFailure
from .logging import get_logger

logger = get_logger(__name__)


# -----------------------
# DB helpers
# -----------------------
def db(path: str) -> sqlite3.Connection:
    # Autocommit mode: transactions are opened explicitly by transaction()
    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(path: str, immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """
    Open a connection and run the block inside one transaction.

    Plain ``BEGIN`` gives a consistent snapshot for reads; ``immediate`` takes
    the write lock up front so a read-compute-write batch cannot interleave
    with another writer. Any sqlite error rolls back and is re-raised as
    ``StorageFailure``; other exceptions roll back and propagate unchanged.
    """
    try:
        conn = db(path)
    except sqlite3.Error as e:
        raise StorageFailure(f"Could not open database: {e}") from e

    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        _rollback(conn)
        logger.error("Transaction rolled back: %s", e, exc_info=True)
        raise StorageFailure(str(e)) from e
    except BaseException:
        _rollback(conn)
        raise
    finally:
        conn.close()


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


def init_db(path: str) -> None:
    with transaction(path) as conn:
        for statement in SCHEMA:
            conn.execute(statement)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id INTEGER NOT NULL REFERENCES events(id),
        name TEXT NOT NULL,
        weight REAL NOT NULL CHECK (weight >= 0),
        is_active INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS criteria (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        category_id INTEGER NOT NULL REFERENCES categories(id),
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS candidates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id INTEGER NOT NULL REFERENCES events(id),
        first_name TEXT NOT NULL,
        middle_name TEXT NOT NULL DEFAULT '',
        last_name TEXT NOT NULL,
        gender INTEGER NOT NULL,
        candidate_number INTEGER NOT NULL,
        college TEXT NOT NULL DEFAULT '',
        final_score REAL,
        UNIQUE(event_id, candidate_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS judges (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id INTEGER NOT NULL REFERENCES events(id),
        name TEXT NOT NULL,
        last_submit_at TEXT,
        UNIQUE(event_id, name)
    )
    """,
    # one row per judge mark; criteria subdivide a category into several rows
    """
    CREATE TABLE IF NOT EXISTS scores (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        candidate_id INTEGER NOT NULL REFERENCES candidates(id),
        category_id INTEGER NOT NULL REFERENCES categories(id),
        criterion_id INTEGER REFERENCES criteria(id),
        judge_id INTEGER NOT NULL REFERENCES judges(id),
        score INTEGER NOT NULL CHECK (score >= 0),
        max INTEGER NOT NULL CHECK (max > 0),
        time_of_scoring TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        candidate_id INTEGER NOT NULL REFERENCES candidates(id),
        judge_id INTEGER NOT NULL REFERENCES judges(id),
        note TEXT NOT NULL,
        last_change TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_scores_candidate_category ON scores(candidate_id, category_id)",
)
