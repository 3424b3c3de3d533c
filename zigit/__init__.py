"""
zigit - Install, update and remove executables built from git repositories.

zigit keeps one clone per repository in a local cache, builds the requested
tag, branch or commit (``zig build`` by default), links the executable into
a bin directory and records every installed package in SQLite.

Quick Start:
    from zigit import LifecycleManager, load_config

    manager = LifecycleManager.from_config(load_config())
    manager.install("https://github.com/zigtools/zls", tag="0.13.0")

    for status in manager.list_packages(outdated=True):
        print(status.package.effective_name, status.outdated)

    manager.update("zls")
    manager.uninstall("zls")
"""

__version__ = "0.1.0"

from .config import load_config
from .services.lifecycle_service import LifecycleManager
from .domain import (
    RepositoryLocator,
    RefKind,
    GitTarget,
    TargetRequest,
    InstalledPackage,
    normalize,
    parse_source,
)

__all__ = [
    'LifecycleManager',
    'load_config',
    'RepositoryLocator',
    'RefKind',
    'GitTarget',
    'TargetRequest',
    'InstalledPackage',
    'normalize',
    'parse_source',
    '__version__',
]
