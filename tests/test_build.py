"""
Tests for the build orchestrator.
"""

import os
import sys

import pytest

from zigit.exit_codes import BuildFailed
from zigit.services.build_service import BuildOrchestrator, is_executable

from conftest import BUILD_SCRIPT

pytestmark = pytest.mark.skipif(os.name == 'nt', reason="POSIX executables")


def write_executable(path, content="#!/bin/sh\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return path


@pytest.fixture
def worktree(tmp_path):
    tree = tmp_path / "tool"
    tree.mkdir()
    (tree / "build.py").write_text(BUILD_SCRIPT)
    (tree / "VERSION").write_text("1.0.0\n")
    return tree


class TestBuild:
    """Tests for BuildOrchestrator.build."""

    def test_successful_build(self, worktree):
        """Test that the produced executable is returned."""
        builder = BuildOrchestrator(command=[sys.executable, "build.py"])
        artifact = builder.build(worktree, preferred_name="tool")

        assert artifact == worktree / "zig-out" / "bin" / "tool"
        assert "echo 1.0.0" in artifact.read_text()

    def test_non_zero_exit(self, worktree):
        """Test that a failing build reports its exit code and output."""
        builder = BuildOrchestrator(
            command=[sys.executable, "-c", "import sys; print('error: bad'); sys.exit(3)"]
        )

        with pytest.raises(BuildFailed) as exc_info:
            builder.build(worktree)

        assert exc_info.value.build_exit_code == 3
        assert "error: bad" in exc_info.value.output

    def test_missing_tool(self, worktree):
        """Test a build command that does not exist."""
        builder = BuildOrchestrator(command=["zigit-no-such-compiler", "build"])

        with pytest.raises(BuildFailed) as exc_info:
            builder.build(worktree)
        assert exc_info.value.build_exit_code == 127

    def test_timeout(self, worktree):
        """Test that a hung build is stopped."""
        builder = BuildOrchestrator(command=[sys.executable, "-c", "import time; time.sleep(30)"], timeout=1)

        with pytest.raises(BuildFailed) as exc_info:
            builder.build(worktree)
        assert "timed out" in exc_info.value.message

    def test_clean_build_removes_output(self, worktree):
        """Test that clean=True starts from an empty output directory."""
        stale = write_executable(worktree / "zig-out" / "bin" / "stale")
        cache = worktree / ".zig-cache"
        cache.mkdir()
        builder = BuildOrchestrator(command=[sys.executable, "build.py"])

        builder.build(worktree, clean=True)

        assert not stale.exists()
        assert not cache.exists()

    def test_incremental_build_keeps_output(self, worktree):
        """Test that a normal build leaves earlier output alone."""
        other = write_executable(worktree / "zig-out" / "bin" / "helper")
        builder = BuildOrchestrator(command=[sys.executable, "build.py"])

        artifact = builder.build(worktree, preferred_name="tool")

        assert other.exists()
        assert artifact.name == "tool"

    def test_env_passed_to_build(self, worktree):
        """Test extra environment variables."""
        script = "import os, sys; sys.exit(0 if os.environ.get('ZIG_GLOBAL_CACHE_DIR') == 'x' else 5)"
        write_executable(worktree / "zig-out" / "bin" / "tool")
        builder = BuildOrchestrator(command=[sys.executable, "-c", script], env={'ZIG_GLOBAL_CACHE_DIR': 'x'})

        assert builder.build(worktree).name == "tool"

    def test_from_config(self):
        """Test construction from the build section."""
        builder = BuildOrchestrator.from_config({'build': {
            'command': ['zig', 'build'],
            'artifact_dir': 'out',
            'timeout_seconds': 60,
        }})

        assert builder.command == ['zig', 'build']
        assert builder.artifact_dir == 'out'
        assert builder.timeout == 60


class TestFindArtifact:
    """Tests for picking the artifact."""

    def test_no_output_directory(self, worktree):
        """Test a build that wrote nothing."""
        with pytest.raises(BuildFailed):
            BuildOrchestrator().find_artifact(worktree)

    def test_no_executable(self, worktree):
        """Test an output directory with only data files."""
        out = worktree / "zig-out" / "bin"
        out.mkdir(parents=True)
        (out / "README").write_text("not executable")

        with pytest.raises(BuildFailed):
            BuildOrchestrator().find_artifact(worktree)

    def test_single_executable(self, worktree):
        """Test that a lone executable is picked whatever its name."""
        exe = write_executable(worktree / "zig-out" / "bin" / "zls")
        assert BuildOrchestrator().find_artifact(worktree, preferred_name="other") == exe

    def test_preferred_name(self, worktree):
        """Test that the repository name disambiguates."""
        write_executable(worktree / "zig-out" / "bin" / "helper")
        exe = write_executable(worktree / "zig-out" / "bin" / "tool")

        assert BuildOrchestrator().find_artifact(worktree, preferred_name="tool") == exe

    def test_ambiguous(self, worktree):
        """Test several executables and no matching name."""
        write_executable(worktree / "zig-out" / "bin" / "a")
        write_executable(worktree / "zig-out" / "bin" / "b")

        with pytest.raises(BuildFailed) as exc_info:
            BuildOrchestrator().find_artifact(worktree, preferred_name="tool")
        assert "Several executables" in exc_info.value.message

    def test_sidecar_files_ignored(self, worktree):
        """Test that debug sidecars are not candidates."""
        exe = write_executable(worktree / "zig-out" / "bin" / "tool")
        write_executable(worktree / "zig-out" / "bin" / "tool.debug")

        assert is_executable(exe)
        assert BuildOrchestrator().find_artifact(worktree) == exe
