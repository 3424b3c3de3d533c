"""
Domain layer for zigit.

Contains pure domain objects with no I/O or side effects:
- RepositoryLocator: normalized host/owner/repo identity
- GitTarget / TargetRequest: tracked git reference and the flags requesting it
- InstalledPackage: one installed package record
- OperationResult: outcome of a lifecycle operation

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .locator import RepositoryLocator, parse_source, normalize, is_url_like
from .target import RefKind, GitTarget, TargetRequest
from .package import InstalledPackage, PackageStatus, PackageInfo, validate_package_name
from .operation import OperationStatus, OperationStage, OperationResult

__all__ = [
    'RepositoryLocator',
    'parse_source',
    'normalize',
    'is_url_like',
    'RefKind',
    'GitTarget',
    'TargetRequest',
    'InstalledPackage',
    'PackageStatus',
    'PackageInfo',
    'validate_package_name',
    'OperationStatus',
    'OperationStage',
    'OperationResult',
]
