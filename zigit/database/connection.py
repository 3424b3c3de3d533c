"""
Database connection management for zigit.

Provides the Database context manager and explicit transactions.
Uses SQLite with WAL mode for better concurrent access. Connections run
in autocommit mode: every mutation either commits on its own or inside an
explicit ``transaction()`` block.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator

from .. import paths
from .schema import ensure_schema

BUSY_TIMEOUT_SECONDS = 30


def get_db_path(config: Optional[dict] = None) -> Path:
    """
    Get the database file path.

    See zigit.paths.db_path for the lookup order.
    """
    return paths.db_path(config)


def get_connection(
    db_path: Optional[Path] = None,
    config: Optional[dict] = None,
) -> sqlite3.Connection:
    """
    Get a database connection.

    Creates the database and applies schema if it doesn't exist.
    Uses WAL mode for better concurrent access.

    Args:
        db_path: Optional explicit path to database
        config: Optional configuration dictionary

    Returns:
        SQLite connection
    """
    if db_path is None:
        db_path = get_db_path(config)

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_SECONDS,
                           isolation_level=None, check_same_thread=False)

    # Configure connection
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    # Use WAL mode for better concurrent access
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")

    # Ensure schema is current
    try:
        ensure_schema(conn)
    except Exception:
        conn.close()
        raise

    return conn


class Database:
    """
    Database context manager for zigit.

    Provides a clean interface for database operations with
    automatic connection management.

    Usage:
        with Database(config=config) as db:
            db.execute("SELECT * FROM packages")
            for row in db.fetchall():
                print(row['name'])
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        config: Optional[dict] = None,
    ):
        self.db_path = db_path
        self.config = config
        self._conn: Optional[sqlite3.Connection] = None
        self._cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> 'Database':
        self._conn = get_connection(
            db_path=self.db_path,
            config=self.config,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._cursor:
            self._cursor.close()
        if self._conn:
            if self._conn.in_transaction:
                self._conn.rollback()
            self._conn.close()
        self._conn = None
        self._cursor = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Get the underlying connection."""
        if self._conn is None:
            raise RuntimeError("Database not connected. Use 'with Database() as db:'")
        return self._conn

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL statement."""
        self._cursor = self.conn.execute(sql, params)
        return self._cursor

    def fetchone(self) -> Optional[sqlite3.Row]:
        """Fetch one row from last query."""
        if self._cursor is None:
            return None
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        """Fetch all rows from last query."""
        if self._cursor is None:
            return []
        return self._cursor.fetchall()

    @property
    def rowcount(self) -> int:
        """Get number of rows affected by last statement."""
        if self._cursor is None:
            return 0
        return self._cursor.rowcount


@contextmanager
def transaction(db: Database) -> Generator[None, None, None]:
    """
    Context manager for explicit write transactions.

    Takes the database write lock up front (BEGIN IMMEDIATE) so that the
    reads done inside the block cannot be invalidated by another writer.

    Usage:
        with Database() as db:
            with transaction(db):
                db.execute("SELECT ...")
                db.execute("UPDATE ...")
                # Commits on success, rolls back on exception
    """
    db.execute("BEGIN IMMEDIATE")
    try:
        yield
    except BaseException:
        db.conn.rollback()
        raise
    db.execute("COMMIT")
