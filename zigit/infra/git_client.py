"""
Git client infrastructure for zigit.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Commands are run without a shell and never prompt for credentials.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, List, Tuple, Union
import logging

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class GitCommandError(Exception):
    """A git command exited non-zero, timed out or could not be started."""

    def __init__(self, args: List[str], returncode: int, stderr: str = ""):
        self.command = ['git', *args]
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = self.stderr.splitlines()[-1] if self.stderr else f"exit code {returncode}"
        super().__init__(f"git {' '.join(args)}: {detail}")


class GitClient:
    """
    Abstraction over git commands.

    ``run`` raises GitCommandError and is used for steps that must succeed;
    ``_run`` returns (stdout, returncode) and is used for lookups that may fail.

    Example:
        client = GitClient()
        head = client.head("/path/to/clone")
    """

    def __init__(self, timeout: int = 300, executable: str = "git"):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 300)
            executable: git binary to invoke
        """
        self.timeout = timeout
        self.executable = executable

    def _env(self) -> dict:
        env = os.environ.copy()
        env['GIT_TERMINAL_PROMPT'] = '0'
        return env

    def _exec(self, cwd: Optional[PathLike], args: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"git {' '.join(args)} (cwd={cwd})")
        try:
            return subprocess.run(
                [self.executable, *args],
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                env=self._env(),
                stdin=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(args, -1, f"timed out after {self.timeout}s")
        except FileNotFoundError:
            raise GitCommandError(args, 127, f"{self.executable} executable not found")

    def run(self, cwd: Optional[PathLike], args: List[str]) -> str:
        """
        Run a git command that must succeed.

        Args:
            cwd: Working directory (None for the current directory)
            args: Arguments after ``git``

        Returns:
            Trimmed stdout

        Raises:
            GitCommandError: On non-zero exit, timeout or missing git
        """
        result = self._exec(cwd, args)
        if result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result.stdout.strip()

    def _run(self, cwd: Optional[PathLike], args: List[str]) -> Tuple[Optional[str], int]:
        """
        Run a git lookup that may fail.

        Returns:
            Tuple of (stdout, returncode); stdout is None on failure
        """
        try:
            result = self._exec(cwd, args)
        except GitCommandError as e:
            logger.debug(str(e))
            return None, e.returncode
        if result.returncode != 0:
            return None, result.returncode
        return result.stdout.strip(), 0

    def is_git_repo(self, path: PathLike) -> bool:
        """Check if path is the top level of a git working tree."""
        if not (Path(path) / ".git").exists():
            return False
        output, code = self._run(path, ['rev-parse', '--show-toplevel'])
        return code == 0 and bool(output)

    def clone(self, url: str, dest: PathLike, depth: Optional[int] = None) -> None:
        """Clone url into dest (which must not exist or be empty)."""
        args = ['clone', '--quiet']
        if depth:
            args += ['--depth', str(depth)]
        args += ['--', url, str(dest)]
        self.run(None, args)

    def clone_to_temp(self, url: str, depth: Optional[int] = 1) -> Path:
        """
        Clone url into a fresh temporary directory.

        The caller owns the returned directory and must remove it.
        """
        tmp = Path(tempfile.mkdtemp(prefix='zigit-'))
        try:
            self.clone(url, tmp, depth=depth)
        except GitCommandError:
            shutil.rmtree(tmp, ignore_errors=True)
            raise
        return tmp

    def fetch(self, path: PathLike, remote: str = "origin") -> None:
        """Fetch branches and tags, replacing moved tags and pruning deleted refs."""
        self.run(path, ['fetch', '--quiet', '--tags', '--prune', '--force', remote])

    def rev_parse(self, path: PathLike, rev: str) -> Optional[str]:
        """Resolve rev to a full commit hash, or None if it does not exist."""
        output, code = self._run(path, ['rev-parse', '--verify', '--quiet', f'{rev}^{{commit}}'])
        if code != 0 or not output:
            return None
        return output

    def head(self, path: PathLike) -> Optional[str]:
        return self.rev_parse(path, 'HEAD')

    def default_branch(self, path: PathLike, remote: str = "origin") -> Optional[str]:
        """
        Get the remote's default branch name.

        Reads ``refs/remotes/<remote>/HEAD``; when it is missing it is
        queried from the remote with ``git remote set-head --auto``.
        """
        ref = f'refs/remotes/{remote}/HEAD'
        output, code = self._run(path, ['symbolic-ref', '--quiet', ref])
        if code != 0 or not output:
            self._run(path, ['remote', 'set-head', remote, '--auto'])
            output, code = self._run(path, ['symbolic-ref', '--quiet', ref])
        if code != 0 or not output:
            return None
        prefix = f'refs/remotes/{remote}/'
        return output[len(prefix):] if output.startswith(prefix) else output

    def is_ancestor(self, path: PathLike, ancestor: str, descendant: str) -> bool:
        _, code = self._run(path, ['merge-base', '--is-ancestor', ancestor, descendant])
        return code == 0

    def checkout_detached(self, path: PathLike, commit: str) -> None:
        """Force the working tree to commit with a detached HEAD."""
        self.run(path, ['checkout', '--quiet', '--force', '--detach', commit])

    def clean(self, path: PathLike) -> None:
        """Remove untracked files and directories; ignored files are kept."""
        self.run(path, ['clean', '-ffd', '--quiet'])

    def current_branch(self, path: PathLike) -> Optional[str]:
        """Get current branch name, or None when HEAD is detached."""
        output, code = self._run(path, ['rev-parse', '--abbrev-ref', 'HEAD'])
        if code == 0 and output and output != 'HEAD':
            return output
        return None

    def exact_tag(self, path: PathLike, rev: str = 'HEAD') -> Optional[str]:
        """Tag pointing exactly at rev, if any."""
        output, code = self._run(path, ['describe', '--tags', '--exact-match', rev])
        return output if code == 0 and output else None

    def last_author(self, path: PathLike, rev: str = 'HEAD') -> Optional[str]:
        output, code = self._run(path, ['log', '-1', '--format=%an', rev])
        return output if code == 0 and output else None

