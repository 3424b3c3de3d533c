"""
Package lifecycle service for zigit.

Composes reference resolution, the clone cache, builds, links and the
state store into install, update, uninstall, rename, list and info.

Every operation follows the same order: resolve, checkout, build, publish
the link, and only then write the record. A failure at any step leaves the
record (and the published binary) as they were before the operation.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .. import paths
from ..domain.locator import RepositoryLocator, is_url_like, parse_source
from ..domain.operation import OperationResult, OperationStage, OperationStatus
from ..domain.package import InstalledPackage, PackageInfo, PackageStatus, validate_package_name
from ..domain.target import RefKind, TargetRequest
from ..exit_codes import CommandError, FilesystemError, NetworkFailure, NotInstalled, StateCorruption
from ..infra.git_client import GitClient, GitCommandError
from ..infra.locks import PackageLocks
from .build_service import BuildOrchestrator
from .cache_service import CacheStore, remove_tree
from .link_service import LinkManager
from .resolver_service import ReferenceResolver
from .state_service import StateStore

logger = logging.getLogger(__name__)

README_FILENAMES = ['README.md', 'README.rst', 'README.txt', 'README', 'readme.md']
MAX_DESCRIPTION_LENGTH = 300


@contextmanager
def operation_step(name: Optional[str], stage: OperationStage) -> Iterator[None]:
    """Annotate errors raised in the block with package and stage."""
    try:
        yield
    except CommandError as e:
        e.annotate(name, stage.value)
        raise
    except OSError as e:
        raise FilesystemError.from_os_error(e).annotate(name, stage.value) from e


def read_description(path: Path) -> Optional[str]:
    """First prose paragraph of the repository README, if any."""
    for filename in README_FILENAMES:
        readme = Path(path) / filename
        if not readme.is_file():
            continue
        try:
            content = readme.read_text(encoding='utf-8', errors='replace')[:10240]
        except OSError as e:
            logger.debug(f"Could not read {readme}: {e}")
            continue

        for paragraph in re.split(r'\n\s*\n', content):
            lines = [line.strip() for line in paragraph.strip().splitlines()]
            # Skip headings, badges and HTML blocks
            lines = [line for line in lines if line and not line.startswith(('#', '![', '[![', '<', '=', '-' * 3))]
            if lines:
                text = ' '.join(lines)
                if len(text) > MAX_DESCRIPTION_LENGTH:
                    text = text[:MAX_DESCRIPTION_LENGTH - 3].rstrip() + '...'
                return text
        return None
    return None


class LifecycleManager:
    """
    Service implementing the package lifecycle.

    Example:
        manager = LifecycleManager.from_config(load_config())
        result = manager.install("https://github.com/zigtools/zls", tag="0.13.0")
        for status in manager.list_packages(outdated=True):
            print(status.package.effective_name, status.outdated)
    """

    def __init__(
        self,
        state: StateStore,
        cache: CacheStore,
        resolver: ReferenceResolver,
        builder: BuildOrchestrator,
        links: LinkManager,
        locks: PackageLocks,
        default_host: str = "github.com",
        max_workers: int = 5,
    ):
        self.state = state
        self.cache = cache
        self.resolver = resolver
        self.builder = builder
        self.links = links
        self.locks = locks
        self.default_host = default_host
        self.max_workers = max(1, max_workers)

    @property
    def git(self) -> GitClient:
        return self.cache.git

    @classmethod
    def from_config(cls, config: dict) -> 'LifecycleManager':
        """Build every collaborator from a loaded configuration."""
        git_settings = config.get('git', {})
        general = config.get('general', {})

        git = GitClient(timeout=git_settings.get('timeout_seconds', 300))
        cache = CacheStore(
            paths.cache_dir(config),
            git,
            fetch_retries=git_settings.get('fetch_retries', 1),
            retry_backoff=git_settings.get('retry_backoff_seconds', 2.0),
        )
        return cls(
            state=StateStore(paths.db_path(config)),
            cache=cache,
            resolver=ReferenceResolver(git, cache),
            builder=BuildOrchestrator.from_config(config),
            links=LinkManager(
                paths.bin_dir(config),
                paths.packages_dir(config),
                mode=config.get('link', {}).get('mode', 'symlink'),
            ),
            locks=PackageLocks(paths.locks_dir(config)),
            default_host=general.get('default_host', 'github.com'),
            max_workers=general.get('max_concurrent_operations', 5),
        )

    def _require(self, name: str) -> InstalledPackage:
        with operation_step(name, OperationStage.LOOKUP):
            pkg = self.state.get(name)
            if pkg is None:
                raise NotInstalled(name)
        return pkg

    def install(
        self,
        source: str,
        alias: Optional[str] = None,
        tag: Optional[str] = None,
        branch: Optional[str] = None,
        commit: Optional[str] = None,
    ) -> OperationResult:
        """
        Install a package from a repository.

        Args:
            source: Repository URL, locator or local path
            alias: Name to install under instead of the repository name
            tag: Tag to install
            branch: Branch to track
            commit: Commit to install (combinable with branch)

        Returns:
            OperationResult with the stored package

        Raises:
            CommandError: Any lifecycle error, annotated with name and stage
        """
        with operation_step(alias or source, OperationStage.VALIDATE):
            request = TargetRequest(tag=tag, branch=branch, commit=commit)
            locator, clone_url = parse_source(source, self.default_host)
            name = validate_package_name(alias if alias is not None else locator.repo)

        with self.locks.hold(names=[name]):
            with operation_step(name, OperationStage.LOOKUP):
                self.state.check_available(name)
                self.links.check_free(name, name)

            with self.locks.locator(locator):
                with operation_step(name, OperationStage.RESOLVE):
                    target = self.resolver.resolve(locator, request, clone_url)
                path = self.cache.path_for(locator)
                with operation_step(name, OperationStage.CHECKOUT):
                    self.cache.checkout(path, target.resolved_commit)
                with operation_step(name, OperationStage.BUILD):
                    artifact = self.builder.build(path, preferred_name=locator.repo)
                with operation_step(name, OperationStage.LINK):
                    try:
                        link = self.links.publish(artifact, key=name, name=name)
                    except OSError:
                        self._discard_link(name, name)
                        raise

            pkg = InstalledPackage(
                name=name,
                locator=locator,
                target=target,
                alias=alias,
                clone_url=clone_url,
            )
            with operation_step(name, OperationStage.RECORD):
                try:
                    pkg = self.state.upsert(pkg, create=True)
                except Exception:
                    self._discard_link(name, name)
                    raise

        logger.info(f"Installed {pkg}")
        return OperationResult(
            operation='install',
            name=name,
            package=pkg,
            link_path=str(link),
            artifact=str(artifact),
            rebuilt=True,
        )

    def update(
        self,
        name: str,
        tag: Optional[str] = None,
        branch: Optional[str] = None,
        commit: Optional[str] = None,
        force: bool = False,
        rebuild: bool = False,
    ) -> OperationResult:
        """
        Move an installed package to the latest commit of its ref, or to a new ref.

        Args:
            name: Effective name of the package
            tag/branch/commit: Switch to this ref instead of refreshing the current one
            force: Clean build (removes build output and caches first)
            rebuild: Rebuild even when the commit did not change

        Returns:
            OperationResult; status UNCHANGED when nothing had to be done
        """
        with operation_step(name, OperationStage.VALIDATE):
            request = TargetRequest(tag=tag, branch=branch, commit=commit)

        pkg = self._require(name)
        effective = pkg.effective_name
        with self.locks.hold(names=[effective], locator=pkg.locator):
            # Re-read under the lock: another process may have changed it
            pkg = self._require(effective)
            previous = pkg.commit

            with operation_step(effective, OperationStage.RESOLVE):
                try:
                    self.cache.require(pkg.locator)
                except StateCorruption as e:
                    logger.warning(f"{e.message}; cloning it again")
                if request.is_empty:
                    target = self.resolver.refresh(pkg.locator, pkg.target, pkg.fetch_url)
                else:
                    target = self.resolver.resolve(pkg.locator, request, pkg.fetch_url)

            path = self.cache.path_for(pkg.locator)
            with operation_step(effective, OperationStage.CHECKOUT):
                self.cache.checkout(path, target.resolved_commit)

            published = self.links.is_published(pkg.name, effective)
            needs_build = force or rebuild or target.resolved_commit != previous or not published
            link = self.links.link_path(effective)
            artifact = None
            if needs_build:
                with operation_step(effective, OperationStage.BUILD):
                    artifact = self.builder.build(path, clean=force, preferred_name=pkg.locator.repo)
                with operation_step(effective, OperationStage.LINK):
                    link = self.links.publish(artifact, key=pkg.name, name=effective)
            elif target == pkg.target:
                logger.info(f"{effective} is already up to date ({target.describe()} @ {previous[:8]})")
                return OperationResult(
                    operation='update',
                    name=effective,
                    status=OperationStatus.UNCHANGED,
                    package=pkg,
                    link_path=str(link),
                    previous_commit=previous,
                    message="Already up to date",
                )

            # The commit is written last, after the link is published
            with operation_step(effective, OperationStage.RECORD):
                stored = self.state.upsert(pkg.with_target(target))

        logger.info(f"Updated {effective}: {previous[:8]} -> {stored.commit[:8]}")
        return OperationResult(
            operation='update',
            name=effective,
            package=stored,
            link_path=str(link),
            artifact=str(artifact) if artifact else None,
            previous_commit=previous,
            rebuilt=needs_build,
        )

    def uninstall(self, name: str) -> OperationResult:
        """Remove a package's link, its cache entry (when unshared) and its record."""
        pkg = self._require(name)
        effective = pkg.effective_name
        with self.locks.hold(names=[effective], locator=pkg.locator):
            pkg = self._require(effective)

            with operation_step(effective, OperationStage.LINK):
                self.links.unpublish(pkg.name, effective)

            with operation_step(effective, OperationStage.PURGE):
                others = self.state.references(pkg.locator, exclude=pkg.name)
                if others:
                    shared = ', '.join(o.effective_name for o in others)
                    logger.info(f"Keeping cache entry for {pkg.locator}: also used by {shared}")
                else:
                    self.cache.purge(pkg.locator)

            with operation_step(effective, OperationStage.RECORD):
                self.state.delete(effective)

        logger.info(f"Uninstalled {effective}")
        return OperationResult(operation='uninstall', name=effective, package=pkg)

    def rename(self, old: str, new: str) -> OperationResult:
        """
        Give an installed package a new effective name.

        The primary key is kept; only the alias and the bin entry change.
        """
        with operation_step(new, OperationStage.VALIDATE):
            new = validate_package_name(new)

        pkg = self._require(old)
        current = pkg.effective_name
        if new == current:
            return OperationResult(operation='rename', name=new, status=OperationStatus.UNCHANGED,
                                   package=pkg, previous_name=current, message="Name unchanged")

        with self.locks.hold(names=[current, new]):
            pkg = self._require(current)
            with operation_step(new, OperationStage.LOOKUP):
                self.state.check_available(new, key=pkg.name)
                self.links.check_free(pkg.name, new)

            with operation_step(current, OperationStage.LINK):
                link = self.links.rename(pkg.name, current, new)

            with operation_step(current, OperationStage.RECORD):
                try:
                    stored = self.state.upsert(pkg.with_alias(new))
                except CommandError:
                    self._restore_link(pkg.name, new, current)
                    raise

        logger.info(f"Renamed {current} to {new}")
        return OperationResult(operation='rename', name=new, package=stored,
                               link_path=str(link), previous_name=current)

    def list_packages(self, outdated: bool = False) -> List[PackageStatus]:
        """
        List installed packages.

        With outdated=True every distinct repository is fetched once, in
        parallel, and the tracked ref's remote tip is compared with the
        stored commit. Neither the working trees nor the records change.
        """
        packages = self.state.list()
        if not outdated or not packages:
            return [self._status(p) for p in packages]

        groups: Dict[RepositoryLocator, List[InstalledPackage]] = {}
        for pkg in packages:
            groups.setdefault(pkg.locator, []).append(pkg)

        remote: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        workers = min(self.max_workers, len(groups))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._check_remote, locator, members): locator
                for locator, members in groups.items()
            }
            for future in as_completed(futures):
                remote.update(future.result())

        return [self._status(p, *remote.get(p.name, (None, None)), checked=True) for p in packages]

    def _status(self, pkg: InstalledPackage, latest: Optional[str] = None,
                error: Optional[str] = None, checked: bool = False) -> PackageStatus:
        outdated = None
        if checked and latest:
            outdated = latest != pkg.commit
        return PackageStatus(
            package=pkg,
            linked=self.links.is_published(pkg.name, pkg.effective_name),
            latest_commit=latest,
            outdated=outdated,
            error=error,
        )

    def _check_remote(self, locator: RepositoryLocator,
                      packages: List[InstalledPackage]) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
        """Fetch one cache entry and read the remote tip of every package's ref."""
        results: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        with self.locks.locator(locator):
            try:
                path = self.cache.require(locator)
                self.cache.fetch(path)
            except CommandError as e:
                logger.warning(f"Could not check {locator}: {e.message}")
                return {p.name: (None, e.message) for p in packages}

            for pkg in packages:
                latest = self.resolver.latest_commit(path, pkg.target)
                if latest is None:
                    results[pkg.name] = (None, f"{pkg.target.describe()} no longer exists on the remote")
                else:
                    results[pkg.name] = (latest, None)
        return results

    def info(self, name_or_url: str) -> PackageInfo:
        """
        Describe an installed package, or a repository that is not installed.

        Raises:
            NotInstalled: If the argument is neither an installed name nor a URL
            NetworkFailure: If a repository has to be cloned and cannot be
        """
        pkg = self.state.get(name_or_url)
        if pkg is not None:
            return self._installed_info(pkg)
        if not is_url_like(name_or_url):
            raise NotInstalled(name_or_url)
        return self._repository_info(name_or_url)

    def _installed_info(self, pkg: InstalledPackage) -> PackageInfo:
        path = self.cache.path_for(pkg.locator)
        details: dict = {}
        if self.cache.exists(pkg.locator):
            details['description'] = read_description(path)
            details['author'] = self.git.last_author(path, pkg.commit)
            details['current_tag'] = self.git.exact_tag(path, pkg.commit)
        if pkg.target.kind in (RefKind.BRANCH, RefKind.DEFAULT_BRANCH):
            details['current_branch'] = pkg.target.value or None

        latest, _ = self._check_remote(pkg.locator, [pkg])[pkg.name]
        if latest:
            details['latest_commit'] = latest
            details['outdated'] = latest != pkg.commit
        if self.links.is_published(pkg.name, pkg.effective_name):
            details['link_path'] = str(self.links.link_path(pkg.effective_name))
        return PackageInfo.for_package(pkg, **details)

    def _repository_info(self, source: str) -> PackageInfo:
        locator, clone_url = parse_source(source, self.default_host)
        installed = self.state.references(locator)

        if self.cache.exists(locator):
            with self.locks.locator(locator):
                return self._describe_clone(self.cache.path_for(locator), locator, bool(installed))

        try:
            tmp = self.git.clone_to_temp(clone_url)
        except GitCommandError as e:
            raise NetworkFailure(f"Could not clone {clone_url}: {e}") from e
        try:
            return self._describe_clone(tmp, locator, bool(installed))
        finally:
            remove_tree(tmp)

    def _describe_clone(self, path: Path, locator: RepositoryLocator, installed: bool) -> PackageInfo:
        commit = self.git.head(path) or ""
        branch = self.git.current_branch(path)
        tag = self.git.exact_tag(path)
        ref_type = 'tag' if tag else ('branch' if branch else None)
        return PackageInfo(
            name=locator.repo,
            repository=locator.path,
            commit=commit,
            installed=installed,
            ref_type=ref_type,
            ref=tag or branch,
            current_branch=branch,
            current_tag=tag,
            description=read_description(path),
            author=self.git.last_author(path),
        )

    def _discard_link(self, key: str, name: str) -> None:
        try:
            self.links.unpublish(key, name)
        except OSError as e:
            logger.error(f"Could not remove {self.links.link_path(name)}: {e}")

    def _restore_link(self, key: str, current: str, previous: str) -> None:
        try:
            self.links.rename(key, current, previous)
        except (OSError, CommandError) as e:
            logger.error(f"Could not rename {self.links.link_path(current)} back to {previous}: {e}")
