"""
Installed package domain objects for zigit.

InstalledPackage is the in-memory form of one row of the ``packages``
table. PackageStatus and PackageInfo are the read models returned by the
list and info operations.
"""

import json
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any

from ..exit_codes import InvalidRequestError
from .locator import RepositoryLocator
from .target import GitTarget, RefKind

_FORBIDDEN_NAME_CHARS = set('/\\:*?"<>|\0')


def validate_package_name(name: str) -> str:
    """
    Check that a package name can be used as a file name in the bin directory.

    Raises:
        InvalidRequestError: If the name is empty or not a plain file name
    """
    if name is None or not name.strip():
        raise InvalidRequestError("Package name must not be empty")
    name = name.strip()
    if name in ('.', '..') or name.startswith('-'):
        raise InvalidRequestError(f"Invalid package name '{name}'")
    if _FORBIDDEN_NAME_CHARS & set(name):
        raise InvalidRequestError(f"Invalid package name '{name}': must be a plain file name")
    return name


@dataclass(frozen=True)
class InstalledPackage:
    """
    Immutable record of an installed package.

    ``name`` is the primary key: the alias given at install time, otherwise
    the repository base name. It never changes. ``alias`` is the current
    user facing name when it differs from ``name`` or was given explicitly.

    Example:
        pkg = InstalledPackage(name="zls", locator=loc, target=target)
        pkg.with_alias("zls-dev").effective_name  # "zls-dev"
    """
    name: str
    locator: RepositoryLocator
    target: GitTarget
    alias: Optional[str] = None
    clone_url: Optional[str] = None

    # Timestamps, ISO format
    installed_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def effective_name(self) -> str:
        """Name used for lookups and for the link in the bin directory."""
        return self.alias or self.name

    @property
    def commit(self) -> str:
        return self.target.resolved_commit

    @property
    def fetch_url(self) -> str:
        return self.clone_url or self.locator.default_clone_url()

    def with_target(self, target: GitTarget) -> 'InstalledPackage':
        return replace(self, target=target)

    def with_alias(self, alias: str) -> 'InstalledPackage':
        return replace(self, alias=alias)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.effective_name,
            'key': self.name,
            'alias': self.alias,
            'repository': self.locator.path,
            'ref_type': self.target.kind.value,
            'ref': self.target.value or None,
            'commit': self.commit,
            'clone_url': self.clone_url,
            'installed_at': self.installed_at,
            'updated_at': self.updated_at,
        }
        return {k: v for k, v in result.items() if v is not None}

    def to_jsonl(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        return f"{self.effective_name} ({self.locator.path} @ {self.target.describe()})"


@dataclass(frozen=True)
class PackageStatus:
    """One row of ``zigit list``."""
    package: InstalledPackage
    linked: bool = True
    latest_commit: Optional[str] = None
    outdated: Optional[bool] = None  # None when not checked
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.package.to_dict()
        result['linked'] = self.linked
        if self.outdated is not None:
            result['outdated'] = self.outdated
        if self.latest_commit:
            result['latest_commit'] = self.latest_commit
        if self.error:
            result['error'] = self.error
        return result


@dataclass(frozen=True)
class PackageInfo:
    """Details reported by ``zigit info``."""
    name: str
    repository: str
    commit: str
    installed: bool
    ref_type: Optional[str] = None
    ref: Optional[str] = None
    current_branch: Optional[str] = None
    current_tag: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    outdated: Optional[bool] = None
    latest_commit: Optional[str] = None
    link_path: Optional[str] = None

    @classmethod
    def for_package(cls, package: InstalledPackage, **kwargs) -> 'PackageInfo':
        target = package.target
        return cls(
            name=package.effective_name,
            repository=package.locator.path,
            commit=package.commit,
            installed=True,
            ref_type=target.kind.value,
            ref=target.value or None,
            **kwargs,
        )

    @property
    def tracks_commit(self) -> bool:
        return self.ref_type == RefKind.COMMIT.value

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.name,
            'repository': self.repository,
            'installed': self.installed,
            'ref_type': self.ref_type,
            'ref': self.ref,
            'commit': self.commit,
            'current_branch': self.current_branch,
            'current_tag': self.current_tag,
            'description': self.description,
            'author': self.author,
            'outdated': self.outdated,
            'latest_commit': self.latest_commit,
            'link_path': self.link_path,
        }
        return {k: v for k, v in result.items() if v is not None}

    def to_jsonl(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
