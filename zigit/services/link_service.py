"""
Link service for zigit.

Exposes built artifacts under user-facing names in the bin directory.

Every package gets a staging directory ``<packages_dir>/<key>/`` holding a
copy of its artifact and a small manifest; the bin entry is a symlink to
that copy (or a copy of it). Packages sharing one clone therefore never
see each other's rebuilds.
"""

import filecmp
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from ..exit_codes import NameConflict

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = 'link.json'
LINK_MODES = ('symlink', 'copy')


def _replace_atomically(tmp: Path, dest: Path) -> None:
    try:
        os.replace(tmp, dest)
    except OSError:
        if tmp.exists() or tmp.is_symlink():
            tmp.unlink()
        raise


class LinkManager:
    """
    Service for publishing artifacts in the bin directory.

    Example:
        links = LinkManager(paths.bin_dir(config), paths.packages_dir(config))
        link = links.publish(artifact, key="zls", name="zls")
    """

    def __init__(self, bin_dir: Path, packages_dir: Path, mode: str = 'symlink'):
        if mode not in LINK_MODES:
            raise ValueError(f"Unknown link mode {mode!r}")
        self.bin_dir = Path(bin_dir)
        self.packages_dir = Path(packages_dir).resolve()
        self.mode = mode

    def link_path(self, name: str) -> Path:
        if os.name == 'nt' and not Path(name).suffix:
            name = f"{name}.exe"
        return self.bin_dir / name

    def stage_dir(self, key: str) -> Path:
        return self.packages_dir / key

    def _read_manifest(self, key: str) -> dict:
        manifest = self.stage_dir(key) / MANIFEST_FILENAME
        if not manifest.exists():
            return {}
        try:
            return json.loads(manifest.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable link manifest {manifest}: {e}")
            return {}

    def _write_manifest(self, key: str, **fields) -> None:
        manifest = self.stage_dir(key) / MANIFEST_FILENAME
        tmp = manifest.with_suffix('.tmp')
        tmp.write_text(json.dumps(fields, indent=2), encoding='utf-8')
        os.replace(tmp, manifest)

    def staged_artifact(self, key: str) -> Optional[Path]:
        artifact = self._read_manifest(key).get('artifact')
        if artifact and (self.stage_dir(key) / artifact).is_file():
            return self.stage_dir(key) / artifact
        return None

    def owner_of(self, name: str) -> Optional[str]:
        """Key of the package that manages the bin entry for name, if any."""
        link = self.link_path(name)
        if link.is_symlink():
            target = Path(os.readlink(link))
            if not target.is_absolute():
                target = link.parent / target
            if target.parent.parent == self.packages_dir:
                return target.parent.name
            return None
        if not self.packages_dir.is_dir():
            return None
        for manifest in self.packages_dir.glob(f'*/{MANIFEST_FILENAME}'):
            key = manifest.parent.name
            if self._read_manifest(key).get('link') == str(link):
                return key
        return None

    def is_published(self, key: str, name: str) -> bool:
        """True if the bin entry for name exists and belongs to key."""
        link = self.link_path(name)
        return link.exists() and self.owner_of(name) == key and self.staged_artifact(key) is not None

    def check_free(self, key: str, name: str) -> None:
        """Raise NameConflict unless the bin entry for name is absent or belongs to key."""
        link = self.link_path(name)
        if not (link.exists() or link.is_symlink()):
            return
        owner = self.owner_of(name)
        if owner is None:
            raise NameConflict(name, f"{link} already exists and is not managed by zigit")
        if owner != key and self.stage_dir(owner).exists():
            raise NameConflict(name, f"{link} belongs to package '{owner}'")

    def _fresh_path(self, stage_dir: Path, filename: str, busy: set) -> Path:
        """First of tool, tool.1, tool.2, ... that is not live."""
        candidate = Path(filename)
        generation = 0
        while stage_dir / candidate.name in busy:
            generation += 1
            candidate = Path(f"{Path(filename).stem}.{generation}{Path(filename).suffix}")
        return stage_dir / candidate.name

    def _live_target(self, link: Path) -> Optional[Path]:
        if not link.is_symlink():
            return None
        target = Path(os.readlink(link))
        return target if target.is_absolute() else link.parent / target

    def stage(self, artifact: Path, key: str, link: Optional[Path] = None) -> Path:
        """
        Copy artifact into the package's staging directory.

        The live staged copy (and whatever link points at) is never
        overwritten: a changed artifact gets a fresh file name, and the
        caller removes the old copy once the new one is published.
        """
        stage_dir = self.stage_dir(key)
        stage_dir.mkdir(parents=True, exist_ok=True)

        previous = self.staged_artifact(key)
        if previous is not None and filecmp.cmp(artifact, previous, shallow=False):
            return previous

        busy = {p for p in (previous, self._live_target(link) if link else None) if p is not None}
        staged = self._fresh_path(stage_dir, Path(artifact).name, busy)
        tmp = stage_dir / f".{staged.name}.tmp"
        shutil.copy2(artifact, tmp)
        _replace_atomically(tmp, staged)
        return staged

    def _place(self, staged: Path, link: Path) -> str:
        """Point link at staged. Returns the mode actually used."""
        tmp = link.with_name(f".{link.name}.zigit-tmp")
        if tmp.exists() or tmp.is_symlink():
            tmp.unlink()

        if self.mode == 'symlink':
            if link.is_symlink() and Path(os.readlink(link)) == staged:
                return 'symlink'
            try:
                tmp.symlink_to(staged)
                _replace_atomically(tmp, link)
                return 'symlink'
            except OSError as e:
                logger.debug(f"Symlink not possible ({e}), copying instead")

        if link.is_file() and not link.is_symlink() and filecmp.cmp(staged, link, shallow=False):
            return 'copy'
        shutil.copy2(staged, tmp)
        _replace_atomically(tmp, link)
        return 'copy'

    def publish(self, artifact: Path, key: str, name: str) -> Path:
        """
        Expose artifact as name in the bin directory.

        Either the new artifact is published and recorded in the manifest,
        or the bin entry and staged copy are left as they were.

        Args:
            artifact: Freshly built executable
            key: Primary key of the package (staging directory name)
            name: Effective name (bin entry name)

        Returns:
            Path of the bin entry

        Raises:
            NameConflict: If the bin entry exists and is not this package's
            OSError: If the staging directory or bin entry cannot be written
        """
        self.check_free(key, name)
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        link = self.link_path(name)
        existed = link.exists() or link.is_symlink()
        previous = self.staged_artifact(key)

        staged = self.stage(artifact, key, link)
        try:
            mode = self._place(staged, link)
            self._write_manifest(key, name=name, link=str(link), artifact=staged.name, mode=mode)
        except OSError:
            self._roll_back(staged, previous, link, existed)
            raise

        if previous is not None and previous != staged:
            previous.unlink()
        logger.debug(f"Published {link} -> {staged}")
        return link

    def _roll_back(self, staged: Path, previous: Optional[Path], link: Path, existed: bool) -> None:
        """Undo a half-finished publish."""
        if previous is not None:
            try:
                self._place(previous, link)
            except OSError as e:
                logger.error(f"Could not restore {link} to {previous}: {e}")
        elif not existed and (link.exists() or link.is_symlink()):
            link.unlink()
        if staged != previous and staged.exists():
            staged.unlink()

    def unpublish(self, key: str, name: str) -> bool:
        """Remove the bin entry and staging directory of a package."""
        removed = False
        link = self.link_path(name)
        if (link.exists() or link.is_symlink()) and self.owner_of(name) == key:
            link.unlink()
            removed = True
        elif link.exists() or link.is_symlink():
            logger.warning(f"Leaving {link} in place: not managed by package '{key}'")

        stage_dir = self.stage_dir(key)
        if stage_dir.exists():
            shutil.rmtree(stage_dir)
            removed = True
        return removed

    def rename(self, key: str, old_name: str, new_name: str) -> Path:
        """
        Move the bin entry of a package to a new name.

        Raises:
            NameConflict: If the new bin entry is taken
        """
        self.check_free(key, new_name)
        old_link = self.link_path(old_name)
        new_link = self.link_path(new_name)
        staged = self.staged_artifact(key)

        if staged is not None:
            mode = self._place(staged, new_link)
            if (old_link.exists() or old_link.is_symlink()) and self.owner_of(old_name) == key:
                old_link.unlink()
            self._write_manifest(key, name=new_name, link=str(new_link), artifact=staged.name, mode=mode)
        else:
            logger.warning(f"No staged artifact for '{key}'; run 'zigit update {new_name} --rebuild'")
        return new_link
