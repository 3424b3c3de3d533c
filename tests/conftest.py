"""
Shared fixtures for zigit tests.

Real git tests work against a local origin repository whose build script
(a small Python program standing in for ``zig build``) writes
``zig-out/bin/tool``, a shell script echoing the VERSION file.
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from zigit.config import get_default_config
from zigit.services.lifecycle_service import LifecycleManager

requires_git = pytest.mark.skipif(
    shutil.which('git') is None or os.name == 'nt',
    reason="requires git and POSIX executables",
)

BUILD_SCRIPT = """\
import pathlib

out = pathlib.Path("zig-out/bin")
out.mkdir(parents=True, exist_ok=True)
version = pathlib.Path("VERSION").read_text().strip()
tool = out / "tool"
tool.write_text("#!/bin/sh\\necho " + version + "\\n")
tool.chmod(0o755)
"""

README = """\
# tool

A tiny tool used in zigit tests.

## Usage

Run it.
"""


def git(cwd, *args) -> str:
    result = subprocess.run(
        ['git', *args], cwd=str(cwd), check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


class OriginRepo:
    """A non-bare repository acting as the remote."""

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def create(cls, path: Path) -> 'OriginRepo':
        path.mkdir(parents=True)
        git(path, 'init', '--quiet')
        git(path, 'symbolic-ref', 'HEAD', 'refs/heads/main')
        git(path, 'config', 'user.name', 'Test Author')
        git(path, 'config', 'user.email', 'author@example.com')
        git(path, 'config', 'commit.gpgsign', 'false')
        git(path, 'config', 'tag.gpgsign', 'false')
        (path / '.gitignore').write_text("zig-out/\n.zig-cache/\n")
        (path / 'build.py').write_text(BUILD_SCRIPT)
        (path / 'README.md').write_text(README)
        repo = cls(path)
        repo.commit("1.0.0")
        return repo

    @property
    def url(self) -> str:
        return str(self.path)

    def commit(self, version: str) -> str:
        (self.path / 'VERSION').write_text(version + "\n")
        git(self.path, 'add', '-A')
        git(self.path, 'commit', '--quiet', '-m', f"Release {version}")
        return self.head()

    def head(self) -> str:
        return git(self.path, 'rev-parse', 'HEAD')

    def tag(self, name: str) -> None:
        git(self.path, 'tag', name)

    def checkout(self, branch: str, create: bool = False) -> None:
        if create:
            git(self.path, 'checkout', '--quiet', '-b', branch)
        else:
            git(self.path, 'checkout', '--quiet', branch)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the user's configuration and database."""
    for key in list(os.environ):
        if key.startswith('ZIGIT_'):
            monkeypatch.delenv(key)
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path / 'xdg-config'))


@pytest.fixture
def config(tmp_path):
    cfg = get_default_config()
    cfg['paths'] = {
        'data_dir': str(tmp_path / 'data'),
        'cache_dir': str(tmp_path / 'cache'),
        'bin_dir': str(tmp_path / 'bin'),
        'database': str(tmp_path / 'data' / 'zigit.db'),
    }
    cfg['build']['command'] = [sys.executable, 'build.py']
    cfg['git']['retry_backoff_seconds'] = 0
    return cfg


@pytest.fixture
def manager(config):
    return LifecycleManager.from_config(config)


@pytest.fixture
def origin(tmp_path):
    return OriginRepo.create(tmp_path / 'remotes' / 'org' / 'tool')


def tool_output(link: Path) -> str:
    """Version the installed tool script would print."""
    return Path(link).read_text().split('echo ', 1)[1].strip()
