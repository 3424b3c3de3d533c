"""
Reference resolution service for zigit.

Turns a repository locator plus the --tag/--branch/--commit flags into a
GitTarget whose ``resolved_commit`` is a full commit hash.
"""

import logging
from pathlib import Path
from typing import Optional

from ..domain.locator import RepositoryLocator
from ..domain.target import GitTarget, RefKind, TargetRequest
from ..exit_codes import RefNotFound
from ..infra.git_client import GitClient
from .cache_service import CacheStore

logger = logging.getLogger(__name__)


def request_for_update(target: GitTarget) -> TargetRequest:
    """
    The request that re-resolves a stored target to its latest commit.

    Tags resolve to whatever the tag points at now, branches and the
    default branch to their tip, pinned commits to themselves.
    """
    return TargetRequest.for_target(target)


class ReferenceResolver:
    """
    Service resolving user requests against the clone cache.

    Example:
        resolver = ReferenceResolver(git, cache)
        target = resolver.resolve(locator, TargetRequest(tag="v1.2.0"))
    """

    def __init__(self, git: GitClient, cache: CacheStore):
        self.git = git
        self.cache = cache

    def resolve(
        self,
        locator: RepositoryLocator,
        request: TargetRequest,
        clone_url: Optional[str] = None,
    ) -> GitTarget:
        """
        Resolve request against the remote.

        Ensures the cache entry exists and fetches it first.

        Args:
            locator: Repository to resolve in
            request: Requested tag/branch/commit
            clone_url: URL to clone from when the entry is absent

        Returns:
            Fully resolved GitTarget

        Raises:
            RefNotFound: If the tag/branch/commit is absent or unreachable
            NetworkFailure: If clone or fetch fail
        """
        path = self.cache.ensure(locator, clone_url or locator.default_clone_url())
        self.cache.fetch(path)
        return self.resolve_fetched(path, locator, request)

    def refresh(
        self,
        locator: RepositoryLocator,
        target: GitTarget,
        clone_url: Optional[str] = None,
    ) -> GitTarget:
        """Re-resolve a stored target; COMMIT targets stay on their commit."""
        if target.kind == RefKind.COMMIT:
            path = self.cache.ensure(locator, clone_url or locator.default_clone_url())
            self.cache.fetch(path)
            commit = self._commit(path, locator, target.value or target.resolved_commit)
            return GitTarget(RefKind.COMMIT, commit, commit)
        return self.resolve(locator, request_for_update(target), clone_url)

    def resolve_fetched(self, path: Path, locator: RepositoryLocator,
                        request: TargetRequest) -> GitTarget:
        """Resolve request in an already fetched clone."""
        if request.tag:
            tip = self.git.rev_parse(path, f'refs/tags/{request.tag}')
            if tip is None:
                raise RefNotFound(f"Tag '{request.tag}' not found in {locator}")
            return GitTarget(RefKind.TAG, request.tag, tip)

        if request.branch:
            kind, name = RefKind.BRANCH, request.branch
            tip = self.git.rev_parse(path, f'refs/remotes/origin/{name}')
            if tip is None:
                raise RefNotFound(f"Branch '{name}' not found in {locator}")
        else:
            kind, name = RefKind.DEFAULT_BRANCH, self._default_branch(path, locator)
            tip = self.git.rev_parse(path, f'refs/remotes/origin/{name}')
            if tip is None:
                raise RefNotFound(f"Default branch '{name}' not found in {locator}")

        if not request.commit:
            return GitTarget(kind, name, tip)

        commit = self._commit(path, locator, request.commit)
        if not self.git.is_ancestor(path, commit, tip):
            raise RefNotFound(f"Commit {request.commit} is not on branch '{name}' of {locator}")
        return GitTarget(kind, name, commit)

    def latest_commit(self, path: Path, target: GitTarget) -> Optional[str]:
        """
        Remote tip of the ref target tracks, read from a fetched clone.

        Pinned commits are their own tip.
        """
        if target.kind == RefKind.COMMIT:
            return target.resolved_commit
        if target.kind == RefKind.TAG:
            return self.git.rev_parse(path, f'refs/tags/{target.value}')
        if target.kind == RefKind.BRANCH:
            return self.git.rev_parse(path, f'refs/remotes/origin/{target.value}')
        name = self.git.default_branch(path) or target.value
        if not name:
            return None
        return self.git.rev_parse(path, f'refs/remotes/origin/{name}')

    def _default_branch(self, path: Path, locator: RepositoryLocator) -> str:
        name = self.git.default_branch(path)
        if not name:
            raise RefNotFound(f"Could not determine the default branch of {locator}")
        return name

    def _commit(self, path: Path, locator: RepositoryLocator, commit: str) -> str:
        full = self.git.rev_parse(path, commit)
        if full is None:
            raise RefNotFound(f"Commit '{commit}' not found in {locator}")
        return full
