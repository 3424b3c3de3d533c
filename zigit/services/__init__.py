"""
Service layer for zigit.

Contains business logic that orchestrates domain objects and infrastructure:
- ReferenceResolver: tag/branch/commit resolution
- CacheStore: the per-repository clone cache
- BuildOrchestrator: running builds and locating artifacts
- LinkManager: bin directory entries
- StateStore: installed package records
- LifecycleManager: install, update, uninstall, rename, list, info

Services are the primary API for commands to use.
They handle coordination between infrastructure and domain layers.
"""

from .resolver_service import ReferenceResolver, request_for_update
from .cache_service import CacheStore
from .build_service import BuildOrchestrator
from .link_service import LinkManager
from .state_service import StateStore
from .lifecycle_service import LifecycleManager

__all__ = [
    'ReferenceResolver',
    'request_for_update',
    'CacheStore',
    'BuildOrchestrator',
    'LinkManager',
    'StateStore',
    'LifecycleManager',
]
