"""
Clone cache service for zigit.

Keeps one persistent clone per repository locator under the cache root,
laid out as ``<cache_root>/<host>/<owner>/<repo>``. Only this service
creates, switches or removes cache entries.
"""

import logging
import os
import shutil
import stat
import sys
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from ..domain.locator import RepositoryLocator
from ..exit_codes import CheckoutFailed, NetworkFailure, StateCorruption
from ..infra.git_client import GitClient, GitCommandError

logger = logging.getLogger(__name__)


def _make_writable(func, path, exc):
    """shutil.rmtree error handler: git object files are read-only on Windows."""
    os.chmod(path, stat.S_IWRITE)
    func(path)


def remove_tree(path: Path) -> None:
    if not path.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_make_writable)
    else:
        shutil.rmtree(path, onerror=_make_writable)


class CacheStore:
    """
    Service for the on-disk clone cache.

    Example:
        cache = CacheStore(paths.cache_dir(config), GitClient())
        path = cache.ensure(locator, clone_url)
        cache.fetch(path)
        cache.checkout(path, target.resolved_commit)
    """

    def __init__(
        self,
        root: Path,
        git: Optional[GitClient] = None,
        fetch_retries: int = 1,
        retry_backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.root = Path(root)
        self.git = git or GitClient()
        self.fetch_retries = max(0, int(fetch_retries))
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    def path_for(self, locator: RepositoryLocator) -> Path:
        return self.root.joinpath(*locator.parts)

    def exists(self, locator: RepositoryLocator) -> bool:
        return self.git.is_git_repo(self.path_for(locator))

    def ensure(self, locator: RepositoryLocator, clone_url: str) -> Path:
        """
        Return the cache entry for locator, cloning it if absent.

        The clone is made in a temporary sibling directory and renamed into
        place, so an interrupted clone never leaves a half-populated entry.

        Raises:
            NetworkFailure: If the clone fails
        """
        path = self.path_for(locator)
        if self.git.is_git_repo(path):
            return path

        if path.exists():
            logger.warning(f"Replacing invalid cache entry {path}")
            remove_tree(path)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix=f".{locator.repo}-", dir=path.parent))
        logger.info(f"Cloning {clone_url}")
        try:
            self.git.clone(clone_url, tmp)
            os.replace(tmp, path)
        except GitCommandError as e:
            raise NetworkFailure(f"Could not clone {clone_url}: {e}") from e
        finally:
            remove_tree(tmp)
        return path

    def require(self, locator: RepositoryLocator) -> Path:
        """
        Return the existing cache entry for locator.

        Raises:
            StateCorruption: If the entry is missing
        """
        path = self.path_for(locator)
        if not self.git.is_git_repo(path):
            raise StateCorruption(f"Cache entry for {locator} is missing ({path})")
        return path

    def fetch(self, path: Path) -> None:
        """
        Update remote-tracking refs and tags without touching the working tree.

        A failed fetch is retried ``fetch_retries`` times with a linear
        backoff before NetworkFailure is raised.
        """
        attempts = self.fetch_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self.git.fetch(path)
                return
            except GitCommandError as e:
                if attempt == attempts:
                    raise NetworkFailure(f"Could not fetch {path}: {e}") from e
                delay = self.retry_backoff * attempt
                logger.warning(f"Fetch failed ({e}), retrying in {delay:.0f}s")
                self._sleep(delay)

    def checkout(self, path: Path, commit: str) -> None:
        """
        Move the working tree to commit (detached), discarding local edits.

        The commit object is verified before anything changes. If the switch
        fails half way the previous HEAD is restored.

        Raises:
            CheckoutFailed: If the commit is unknown or the switch fails
        """
        if not commit or self.git.rev_parse(path, commit) is None:
            raise CheckoutFailed(f"Commit {commit or '<none>'} is not present in {path}")

        previous = self.git.head(path)
        try:
            self.git.checkout_detached(path, commit)
            self.git.clean(path)
        except GitCommandError as e:
            if previous:
                try:
                    self.git.checkout_detached(path, previous)
                except GitCommandError as restore_error:
                    logger.error(f"Could not restore {path} to {previous[:8]}: {restore_error}")
            raise CheckoutFailed(f"Checkout of {commit[:8]} failed: {e}") from e
        logger.debug(f"Checked out {commit[:8]} in {path}")

    def head(self, path: Path) -> Optional[str]:
        return self.git.head(path)

    def purge(self, locator: RepositoryLocator) -> bool:
        """Remove the cache entry and any parent directories left empty."""
        path = self.path_for(locator)
        if not path.exists():
            return False
        remove_tree(path)
        logger.info(f"Removed cache entry {path}")

        root = self.root.resolve()
        parent = path.parent
        while parent.resolve() != root and root in parent.resolve().parents:
            if any(parent.iterdir()):
                break
            parent.rmdir()
            parent = parent.parent
        return True
