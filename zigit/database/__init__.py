"""
Database module for zigit.

Provides SQLite-based persistence of installed packages. Unlike the clone
cache, the database is the ground truth: it is migrated, never rebuilt.

Key components:
- connection: Database connection management
- schema: Table definitions and schema versioning
- packages: Package CRUD operations
"""

from .connection import (
    get_connection,
    get_db_path,
    Database,
    transaction,
)
from .schema import CURRENT_VERSION, ensure_schema, get_schema_version
from .packages import (
    insert_package,
    update_package,
    get_package,
    get_package_by_key,
    get_all_packages,
    get_packages_by_repository,
    delete_package,
    get_package_count,
    package_to_record,
    record_to_domain,
)

__all__ = [
    # Connection
    'get_connection',
    'get_db_path',
    'Database',
    'transaction',
    # Schema
    'CURRENT_VERSION',
    'ensure_schema',
    'get_schema_version',
    # Packages
    'insert_package',
    'update_package',
    'get_package',
    'get_package_by_key',
    'get_all_packages',
    'get_packages_by_repository',
    'delete_package',
    'get_package_count',
    'package_to_record',
    'record_to_domain',
]
