"""
Inter-process locks for zigit.

Operations are serialized per package name and per cache entry with
exclusive lock files under ``<data_dir>/locks``. Locks are always taken in
the same order (name locks sorted, then the cache entry lock).
"""

import contextlib
import os
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional
import logging

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

if os.name == 'nt':
    import msvcrt
else:
    msvcrt = None

from ..domain.locator import RepositoryLocator

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def _lock_file(fh) -> None:
    if fcntl is not None:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
    elif msvcrt is not None:
        fh.seek(0)
        # LK_LOCK retries for 10 seconds before raising
        while True:
            try:
                msvcrt.locking(fh.fileno(), msvcrt.LK_LOCK, 1)
                return
            except OSError:
                logger.debug(f"Waiting for lock {fh.name}")


def _unlock_file(fh) -> None:
    if fcntl is not None:
        fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    elif msvcrt is not None:
        fh.seek(0)
        msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)


@contextlib.contextmanager
def file_lock(lock_path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on lock_path for the duration of the block."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as fh:
        _lock_file(fh)
        logger.debug(f"Acquired lock {lock_path.name}")
        try:
            yield lock_path
        finally:
            _unlock_file(fh)


def _safe(part: str) -> str:
    return _UNSAFE_CHARS.sub('_', part)


class PackageLocks:
    """
    Lock files scoped to package names and cache entries.

    Example:
        locks = PackageLocks(paths.locks_dir(config))
        with locks.hold(names=["zls"], locator=loc):
            ...
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def name_lock_path(self, name: str) -> Path:
        return self.root / f"name-{_safe(name)}.lock"

    def locator_lock_path(self, locator: RepositoryLocator) -> Path:
        return self.root / f"repo-{'__'.join(_safe(p) for p in locator.parts)}.lock"

    @contextlib.contextmanager
    def hold(self, names: Iterable[str] = (),
             locator: Optional[RepositoryLocator] = None) -> Iterator[None]:
        """Acquire the name locks (sorted) and then the cache entry lock."""
        with contextlib.ExitStack() as stack:
            for name in sorted(set(names)):
                stack.enter_context(file_lock(self.name_lock_path(name)))
            if locator is not None:
                stack.enter_context(file_lock(self.locator_lock_path(locator)))
            yield

    def locator(self, locator: RepositoryLocator):
        return file_lock(self.locator_lock_path(locator))
