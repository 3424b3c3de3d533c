"""
Build service for zigit.

Runs the configured build command (``zig build`` by default) in a cache
entry's working tree and locates the executable it produced.
"""

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional

from ..exit_codes import BuildFailed

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ["zig", "build", "-Doptimize=ReleaseSafe"]
DEFAULT_ARTIFACT_DIR = "zig-out/bin"
DEFAULT_CLEAN_DIRS = ["zig-out", ".zig-cache", "zig-cache"]

# Files next to executables that are never the artifact
_SIDECAR_SUFFIXES = {'.pdb', '.ilk', '.lib', '.exp', '.a', '.o', '.obj', '.debug', '.map'}


def is_executable(path: Path) -> bool:
    if not path.is_file() or path.suffix.lower() in _SIDECAR_SUFFIXES:
        return False
    if os.name == 'nt':
        return path.suffix.lower() in ('.exe', '.bat', '.cmd')
    return os.access(path, os.X_OK)


class BuildOrchestrator:
    """
    Service running builds in cache working trees.

    Example:
        builder = BuildOrchestrator.from_config(config)
        artifact = builder.build(path, clean=True, preferred_name="zls")
    """

    def __init__(
        self,
        command: Optional[List[str]] = None,
        artifact_dir: str = DEFAULT_ARTIFACT_DIR,
        clean_dirs: Optional[List[str]] = None,
        timeout: Optional[int] = 1800,
        env: Optional[Dict[str, str]] = None,
    ):
        self.command = list(command or DEFAULT_COMMAND)
        self.artifact_dir = artifact_dir
        self.clean_dirs = list(DEFAULT_CLEAN_DIRS if clean_dirs is None else clean_dirs)
        self.timeout = timeout or None
        self.env = {str(k): str(v) for k, v in (env or {}).items()}

    @classmethod
    def from_config(cls, config: dict) -> 'BuildOrchestrator':
        build = config.get('build', {})
        return cls(
            command=build.get('command'),
            artifact_dir=build.get('artifact_dir', DEFAULT_ARTIFACT_DIR),
            clean_dirs=build.get('clean_dirs'),
            timeout=build.get('timeout_seconds'),
            env=build.get('env'),
        )

    def clean(self, path: Path) -> None:
        """Remove the build output and compiler caches."""
        for name in self.clean_dirs:
            target = Path(path) / name
            if target.is_dir():
                logger.debug(f"Removing {target}")
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()

    def build(self, path: Path, clean: bool = False, preferred_name: Optional[str] = None) -> Path:
        """
        Build the working tree at path.

        Args:
            path: Working tree to build in
            clean: Remove previous build output and caches first
            preferred_name: Executable stem to pick when several are produced

        Returns:
            Path of the produced executable

        Raises:
            BuildFailed: On non-zero exit, missing tool, timeout or no artifact
        """
        path = Path(path)
        if clean:
            self.clean(path)

        logger.info(f"Building {path.name}: {' '.join(self.command)}")
        start = time.monotonic()
        try:
            result = subprocess.run(
                self.command,
                cwd=str(path),
                env={**os.environ, **self.env},
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors='replace',
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise BuildFailed(f"Build tool not found: {self.command[0]}", exit_code=127)
        except subprocess.TimeoutExpired as e:
            output = e.output.decode(errors='replace') if isinstance(e.output, bytes) else (e.output or "")
            raise BuildFailed(f"Build timed out after {self.timeout}s", exit_code=-1, output=output)

        output = result.stdout or ""
        if output:
            logger.debug(output.rstrip())
        if result.returncode != 0:
            raise BuildFailed(
                f"Build failed with exit code {result.returncode}",
                exit_code=result.returncode,
                output=output,
            )

        artifact = self.find_artifact(path, preferred_name)
        logger.info(f"Built {artifact.name} in {time.monotonic() - start:.1f}s")
        return artifact

    def find_artifact(self, path: Path, preferred_name: Optional[str] = None) -> Path:
        """Pick the executable in the artifact directory."""
        out_dir = Path(path) / self.artifact_dir
        if not out_dir.is_dir():
            raise BuildFailed(f"Build produced no {self.artifact_dir} directory", exit_code=0)

        candidates = sorted(p for p in out_dir.iterdir() if is_executable(p))
        if preferred_name:
            for candidate in candidates:
                if candidate.stem == preferred_name or candidate.name == preferred_name:
                    return candidate
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            raise BuildFailed(f"No executable found in {self.artifact_dir}", exit_code=0)
        names = ', '.join(c.name for c in candidates)
        raise BuildFailed(f"Several executables in {self.artifact_dir} ({names}); cannot pick one", exit_code=0)
