"""
Database schema for zigit.

This module defines the SQLite schema and handles migrations.
The database is the ground truth of what is installed, so schema changes
are applied as incremental migrations and never by dropping tables.
"""

import sqlite3
from typing import List, Tuple
import logging

from ..exit_codes import StateCorruption

logger = logging.getLogger(__name__)

# Current schema version - increment when schema changes
# v1: Initial packages table
# v2: Clone URL, timestamps, unique effective-name index
CURRENT_VERSION = 2

SCHEMA_INFO = """
CREATE TABLE IF NOT EXISTS _schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
)
"""

MIGRATION_V1 = [
    """
    CREATE TABLE IF NOT EXISTS packages (
        name TEXT PRIMARY KEY,
        repository_url TEXT NOT NULL,
        git_ref_type TEXT NULL,
        git_ref TEXT NULL,
        commit_hash TEXT NOT NULL,
        alias TEXT NULL
    )
    """,
]

MIGRATION_V2 = [
    "ALTER TABLE packages ADD COLUMN clone_url TEXT NULL",
    "ALTER TABLE packages ADD COLUMN installed_at TIMESTAMP NULL",
    "ALTER TABLE packages ADD COLUMN updated_at TIMESTAMP NULL",
    # The effective name (alias, else name) is the lookup key and link name
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_packages_effective_name ON packages(COALESCE(alias, name))",
    "CREATE INDEX IF NOT EXISTS idx_packages_repository ON packages(repository_url)",
]


def get_migrations() -> List[Tuple[int, str, List[str]]]:
    """
    Get list of migrations.

    Returns:
        List of (version, description, statements) tuples
    """
    return [
        (1, "Initial packages table", MIGRATION_V1),
        (2, "Clone URL, timestamps and unique effective name", MIGRATION_V2),
    ]


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from database."""
    try:
        cursor = conn.execute(
            "SELECT MAX(version) FROM _schema_info"
        )
        result = cursor.fetchone()
        return result[0] if result[0] is not None else 0
    except sqlite3.OperationalError:
        # Databases created before versioning hold the v1 table only
        if _table_exists(conn, 'packages'):
            return 1
        return 0


def apply_migrations(conn: sqlite3.Connection, current: int) -> None:
    """Apply every migration newer than current, each in its own transaction."""
    conn.execute(SCHEMA_INFO)
    if current >= 1:
        conn.execute(
            "INSERT OR IGNORE INTO _schema_info (version, description) VALUES (1, ?)",
            ("Initial packages table",)
        )

    for version, description, statements in get_migrations():
        if version <= current:
            continue
        logger.debug(f"Applying schema migration v{version}: {description}")
        conn.execute("BEGIN IMMEDIATE")
        if get_schema_version(conn) >= version:
            # Another process migrated while we waited for the write lock
            conn.execute("COMMIT")
            continue
        try:
            for sql in statements:
                conn.execute(sql)
            conn.execute(
                "INSERT OR REPLACE INTO _schema_info (version, description) VALUES (?, ?)",
                (version, description)
            )
            conn.execute("COMMIT")
        except sqlite3.IntegrityError as e:
            conn.execute("ROLLBACK")
            raise StateCorruption(
                f"Cannot migrate package database to v{version}: {e}. "
                "Two packages share the same name; uninstall one of them with an older zigit first."
            ) from e
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure database has current schema, migrating if necessary."""
    current = get_schema_version(conn)

    if current < CURRENT_VERSION:
        apply_migrations(conn, current)
