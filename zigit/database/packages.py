"""
Package database operations for zigit.

Provides CRUD operations for installed packages, mapping between
domain objects and database records.
"""

from datetime import datetime
from typing import Dict, Any, Optional, Generator, List

from ..domain.locator import RepositoryLocator
from ..domain.package import InstalledPackage
from ..domain.target import GitTarget
from .connection import Database

COLUMNS = (
    'name', 'repository_url', 'git_ref_type', 'git_ref', 'commit_hash',
    'alias', 'clone_url', 'installed_at', 'updated_at',
)


def package_to_record(pkg: InstalledPackage) -> Dict[str, Any]:
    """Convert InstalledPackage domain object to database record."""
    git_ref_type, git_ref = pkg.target.to_record()
    return {
        'name': pkg.name,
        'repository_url': pkg.locator.path,
        'git_ref_type': git_ref_type,
        'git_ref': git_ref,
        'commit_hash': pkg.commit,
        'alias': pkg.alias,
        'clone_url': pkg.clone_url,
        'installed_at': pkg.installed_at,
        'updated_at': pkg.updated_at,
    }


def record_to_domain(record: Dict[str, Any]) -> InstalledPackage:
    """
    Convert a database record to an InstalledPackage domain object.

    Args:
        record: Database row as dictionary

    Returns:
        InstalledPackage domain object

    Raises:
        ValueError: If repository_url is not a host/owner/repo locator
    """
    parts = [p for p in (record['repository_url'] or '').split('/') if p]
    if len(parts) < 3:
        raise ValueError(f"Malformed repository_url {record['repository_url']!r} for {record['name']}")
    locator = RepositoryLocator(host=parts[0], owner='/'.join(parts[1:-1]), repo=parts[-1])
    target = GitTarget.from_record(record.get('git_ref_type'), record.get('git_ref'), record['commit_hash'])

    return InstalledPackage(
        name=record['name'],
        locator=locator,
        target=target,
        alias=record.get('alias'),
        clone_url=record.get('clone_url'),
        installed_at=record.get('installed_at'),
        updated_at=record.get('updated_at'),
    )


def now() -> str:
    return datetime.now().isoformat(timespec='seconds')


def insert_package(db: Database, record: Dict[str, Any]) -> None:
    """Insert a new package record."""
    columns = [c for c in COLUMNS if c in record]
    placeholders = ', '.join(['?' for _ in columns])
    column_names = ', '.join(columns)

    sql = f"INSERT INTO packages ({column_names}) VALUES ({placeholders})"
    db.execute(sql, tuple(record[c] for c in columns))


def update_package(db: Database, name: str, record: Dict[str, Any]) -> bool:
    """Update an existing package record by primary key."""
    columns = [c for c in COLUMNS if c in record and c not in ('name', 'installed_at')]
    set_clause = ', '.join([f"{c} = ?" for c in columns])
    sql = f"UPDATE packages SET {set_clause} WHERE name = ?"
    db.execute(sql, tuple(record[c] for c in columns) + (name,))
    return db.rowcount > 0


def get_package(db: Database, effective_name: str) -> Optional[Dict[str, Any]]:
    """Get package by effective name (alias, else name)."""
    db.execute("SELECT * FROM packages WHERE COALESCE(alias, name) = ?", (effective_name,))
    row = db.fetchone()
    return dict(row) if row else None


def get_package_by_key(db: Database, name: str) -> Optional[Dict[str, Any]]:
    """Get package by primary key."""
    db.execute("SELECT * FROM packages WHERE name = ?", (name,))
    row = db.fetchone()
    return dict(row) if row else None


def get_all_packages(db: Database) -> Generator[Dict[str, Any], None, None]:
    """Get all packages ordered by name."""
    db.execute("SELECT * FROM packages ORDER BY name")
    for row in db.fetchall():
        yield dict(row)


def get_packages_by_repository(db: Database, repository_url: str) -> List[Dict[str, Any]]:
    """Get every package built from the given locator."""
    db.execute("SELECT * FROM packages WHERE repository_url = ? ORDER BY name", (repository_url,))
    return [dict(row) for row in db.fetchall()]


def delete_package(db: Database, name: str) -> bool:
    """Delete a package by primary key."""
    db.execute("DELETE FROM packages WHERE name = ?", (name,))
    return db.rowcount > 0


def get_package_count(db: Database) -> int:
    """Get total number of installed packages."""
    db.execute("SELECT COUNT(*) FROM packages")
    row = db.fetchone()
    return row[0] if row else 0
