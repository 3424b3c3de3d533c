"""
Git target domain objects for zigit.

A GitTarget is what a package tracks: the kind of reference (default
branch, tag, branch or pinned commit), its name and the commit it resolved
to. A TargetRequest models the --tag/--branch/--commit flags before
resolution.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..exit_codes import InvalidRequestError

FULL_HASH_RE = re.compile(r'^[0-9a-f]{40}$')
ABBREV_HASH_RE = re.compile(r'^[0-9a-fA-F]{4,40}$')


class RefKind(Enum):
    """Kind of git reference a package tracks."""
    DEFAULT_BRANCH = "default"
    TAG = "tag"
    BRANCH = "branch"
    COMMIT = "commit"


@dataclass(frozen=True)
class GitTarget:
    """
    A (possibly resolved) git reference.

    ``value`` is the tag or branch name, the default branch name for
    DEFAULT_BRANCH targets and the commit hash for COMMIT targets.
    """
    kind: RefKind
    value: str = ""
    resolved_commit: str = ""

    @property
    def is_resolved(self) -> bool:
        return bool(FULL_HASH_RE.match(self.resolved_commit))

    @property
    def short_commit(self) -> str:
        return self.resolved_commit[:8]

    def describe(self) -> str:
        """Short human readable form, e.g. ``tag v1.2.0``."""
        if self.kind == RefKind.DEFAULT_BRANCH:
            return f"default ({self.value})" if self.value else "default"
        if self.kind == RefKind.COMMIT:
            return f"commit {self.value[:8]}"
        return f"{self.kind.value} {self.value}"

    def to_record(self) -> Tuple[Optional[str], Optional[str]]:
        """Return the (git_ref_type, git_ref) column values."""
        if self.kind == RefKind.DEFAULT_BRANCH:
            return None, self.value or None
        return self.kind.value, self.value

    @classmethod
    def from_record(cls, git_ref_type: Optional[str], git_ref: Optional[str],
                    commit_hash: str) -> 'GitTarget':
        """Rebuild a target from the stored columns."""
        if git_ref_type is None:
            # Rows written before the default branch name was stored held
            # a pinned commit here.
            if git_ref and FULL_HASH_RE.match(git_ref):
                return cls(RefKind.COMMIT, git_ref, commit_hash)
            return cls(RefKind.DEFAULT_BRANCH, git_ref or "", commit_hash)
        try:
            kind = RefKind(git_ref_type)
        except ValueError:
            raise ValueError(f"Unknown git_ref_type {git_ref_type!r}")
        return cls(kind, git_ref or "", commit_hash)


def _clean(value: Optional[str], flag: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise InvalidRequestError(f"--{flag} must not be empty")
    if value.startswith('-'):
        raise InvalidRequestError(f"--{flag} must not start with '-'")
    return value


@dataclass(frozen=True)
class TargetRequest:
    """
    The reference flags of an install or update request.

    Valid combinations: nothing, --tag, --branch, --commit, or --branch
    together with --commit (pin a commit on a branch).
    """
    tag: Optional[str] = None
    branch: Optional[str] = None
    commit: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'tag', _clean(self.tag, 'tag'))
        object.__setattr__(self, 'branch', _clean(self.branch, 'branch'))
        object.__setattr__(self, 'commit', _clean(self.commit, 'commit'))

        if self.tag and (self.branch or self.commit):
            raise InvalidRequestError("--tag cannot be combined with --branch or --commit")
        if self.commit and not ABBREV_HASH_RE.match(self.commit):
            raise InvalidRequestError(f"--commit expects a commit hash, got '{self.commit}'")

    @property
    def is_empty(self) -> bool:
        return not (self.tag or self.branch or self.commit)

    @classmethod
    def for_target(cls, target: GitTarget) -> 'TargetRequest':
        """The request that re-resolves a stored target."""
        if target.kind == RefKind.TAG:
            return cls(tag=target.value)
        if target.kind == RefKind.BRANCH:
            return cls(branch=target.value)
        if target.kind == RefKind.COMMIT:
            return cls(commit=target.value or target.resolved_commit)
        return cls()
