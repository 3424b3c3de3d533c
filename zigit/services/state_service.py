"""
State store service for zigit.

The durable record of installed packages. Enforces that effective names
(alias, else name) and primary keys are unique, atomically with the write.
"""

import logging
import sqlite3
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from ..database import (
    Database,
    transaction,
    delete_package,
    get_all_packages,
    get_package,
    get_package_by_key,
    get_packages_by_repository,
    insert_package,
    package_to_record,
    record_to_domain,
    update_package,
)
from ..database.packages import now
from ..domain.locator import RepositoryLocator
from ..domain.package import InstalledPackage
from ..exit_codes import NameConflict, StateCorruption

logger = logging.getLogger(__name__)


class StateStore:
    """
    Service over the packages table.

    Every call opens its own connection and commits before returning, so
    the file always holds either the previous or the new state.

    Example:
        store = StateStore(paths.db_path(config))
        pkg = store.get("zls")
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _db(self) -> Database:
        return Database(db_path=self.db_path)

    def _to_domain(self, record: dict) -> InstalledPackage:
        try:
            return record_to_domain(record)
        except ValueError as e:
            raise StateCorruption(str(e)) from e

    def get(self, name_or_alias: str) -> Optional[InstalledPackage]:
        """Look up a package by its effective name."""
        with self._db() as db:
            record = get_package(db, name_or_alias)
        return self._to_domain(record) if record else None

    def list(self) -> List[InstalledPackage]:
        """All installed packages ordered by name."""
        with self._db() as db:
            records = list(get_all_packages(db))
        return [self._to_domain(r) for r in records]

    def references(self, locator: RepositoryLocator,
                   exclude: Optional[str] = None) -> List[InstalledPackage]:
        """Packages built from locator, except the one whose key is exclude."""
        with self._db() as db:
            records = get_packages_by_repository(db, locator.path)
        return [self._to_domain(r) for r in records if r['name'] != exclude]

    def check_available(self, effective_name: str, key: Optional[str] = None) -> None:
        """
        Raise NameConflict if effective_name is claimed by another package.

        Args:
            effective_name: Name to claim
            key: Primary key of the package claiming it (None for a new one)
        """
        with self._db() as db:
            self._check_available(db, effective_name, key, create=key is None)

    def _check_available(self, db: Database, effective_name: str,
                         key: Optional[str], create: bool) -> None:
        holder = get_package(db, effective_name)
        if holder is not None and (create or holder['name'] != key):
            raise NameConflict(effective_name)
        if create:
            new_key = key or effective_name
            if get_package_by_key(db, new_key) is not None:
                raise NameConflict(
                    new_key,
                    f"A package was originally installed as '{new_key}'; use --alias to pick another name",
                )

    def upsert(self, pkg: InstalledPackage, create: bool = False) -> InstalledPackage:
        """
        Insert or update a package record.

        Args:
            pkg: Package to store (keyed by ``pkg.name``)
            create: Fail instead of updating when the key already exists

        Returns:
            The stored package, with timestamps filled in

        Raises:
            NameConflict: If the effective name or key is taken; nothing is written
        """
        timestamp = now()
        with self._db() as db:
            try:
                with transaction(db):
                    existing = get_package_by_key(db, pkg.name)
                    if existing is not None and create:
                        self._check_available(db, pkg.name, None, create=True)
                    self._check_available(db, pkg.effective_name, pkg.name, create=False)

                    if existing is None:
                        pkg = replace(pkg, installed_at=pkg.installed_at or timestamp, updated_at=timestamp)
                        insert_package(db, package_to_record(pkg))
                    else:
                        pkg = replace(pkg, installed_at=existing.get('installed_at') or timestamp,
                                      updated_at=timestamp)
                        update_package(db, pkg.name, package_to_record(pkg))
            except sqlite3.IntegrityError as e:
                raise NameConflict(pkg.effective_name) from e
        logger.debug(f"Stored {pkg}")
        return pkg

    def delete(self, name_or_alias: str) -> bool:
        """Delete the package whose effective name matches."""
        with self._db() as db:
            with transaction(db):
                record = get_package(db, name_or_alias)
                if record is None:
                    return False
                return delete_package(db, record['name'])
