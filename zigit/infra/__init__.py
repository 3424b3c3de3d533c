"""
Infrastructure layer for zigit.

Contains abstractions for external systems:
- GitClient: Git command execution
- PackageLocks: inter-process lock files

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitCommandError
from .locks import PackageLocks, file_lock

__all__ = [
    'GitClient',
    'GitCommandError',
    'PackageLocks',
    'file_lock',
]
