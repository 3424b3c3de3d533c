"""
Operation result domain objects for zigit.

Provides standardized result types for the write operations (install,
update, uninstall, rename) of the lifecycle manager.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from .package import InstalledPackage


class OperationStatus(Enum):
    """Status of a lifecycle operation."""
    SUCCESS = "success"
    UNCHANGED = "unchanged"


class OperationStage(Enum):
    """Steps of a lifecycle operation, in execution order."""
    VALIDATE = "validate"
    LOOKUP = "lookup"
    RESOLVE = "resolve"
    CHECKOUT = "checkout"
    BUILD = "build"
    LINK = "link"
    RECORD = "record"
    PURGE = "purge"


@dataclass
class OperationResult:
    """
    Outcome of one lifecycle operation on one package.

    ``previous_commit`` is set by update, ``previous_name`` by rename.
    """
    operation: str  # install, update, uninstall, rename
    name: str
    status: OperationStatus = OperationStatus.SUCCESS
    package: Optional[InstalledPackage] = None
    link_path: Optional[str] = None
    artifact: Optional[str] = None
    previous_commit: Optional[str] = None
    previous_name: Optional[str] = None
    rebuilt: bool = False
    message: Optional[str] = None

    @property
    def changed(self) -> bool:
        if self.previous_commit is None or self.package is None:
            return self.status == OperationStatus.SUCCESS
        return self.previous_commit != self.package.commit

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'operation': self.operation,
            'name': self.name,
            'status': self.status.value,
        }
        if self.package:
            result['repository'] = self.package.locator.path
            result['ref_type'] = self.package.target.kind.value
            if self.package.target.value:
                result['ref'] = self.package.target.value
            result['commit'] = self.package.commit
        if self.previous_commit:
            result['previous_commit'] = self.previous_commit
        if self.previous_name:
            result['previous_name'] = self.previous_name
        if self.link_path:
            result['link'] = self.link_path
        if self.operation in ('install', 'update'):
            result['rebuilt'] = self.rebuilt
        if self.message:
            result['message'] = self.message
        return result

    def to_jsonl(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
