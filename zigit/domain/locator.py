"""
Repository locator domain object for zigit.

A RepositoryLocator is the normalized ``host/owner/repo`` identity of a
remote repository. It is the key of the clone cache and the value stored
in the ``repository_url`` column, so every spelling of one remote must
normalize to the same locator.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
from urllib.parse import urlsplit

from ..exit_codes import InvalidLocatorError

URL_SCHEMES = ('https', 'http', 'ssh', 'git', 'git+ssh', 'ssh+git', 'file')
SSH_SCHEMES = ('ssh', 'git+ssh', 'ssh+git')

# user@host:owner/repo(.git)
_SCP_RE = re.compile(r'^(?:(?P<user>[^@/\s]+)@)?(?P<host>[A-Za-z0-9][A-Za-z0-9.\-]*):(?P<path>[^\s]+)$')
_HOST_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9.\-]*(?::\d+)?$')


@dataclass(frozen=True)
class RepositoryLocator:
    """
    Immutable ``host/owner/repo`` identity.

    ``owner`` may contain several segments (e.g. GitLab subgroups), the
    repository name is always the last path segment.

    Example:
        loc = RepositoryLocator.parse("git@github.com:ziglang/zls.git")
        loc.path  # "github.com/ziglang/zls"
    """
    host: str
    owner: str
    repo: str

    @property
    def path(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def parts(self) -> Tuple[str, ...]:
        """Path segments, used to lay out the cache directory."""
        return (self.host, *self.owner.split('/'), self.repo)

    def default_clone_url(self) -> str:
        return f"https://{self.path}.git"

    @classmethod
    def parse(cls, source: str, default_host: str = "github.com") -> 'RepositoryLocator':
        return parse_source(source, default_host)[0]

    def __str__(self) -> str:
        return self.path


def normalize(source: str, default_host: str = "github.com") -> str:
    """Return the canonical ``host/owner/repo`` form of a repository reference."""
    return parse_source(source, default_host)[0].path


def is_url_like(text: str) -> bool:
    """True if text names a repository rather than an installed package."""
    return '://' in text or '/' in text or bool(_SCP_RE.match(text))


def parse_source(source: str, default_host: str = "github.com") -> Tuple[RepositoryLocator, str]:
    """
    Parse a user supplied repository reference.

    Accepts URLs (https, http, ssh, git, file), scp-style ``user@host:path``
    locators, ``host/owner/repo``, ``owner/repo`` shorthands and existing
    local directories.

    Args:
        source: Repository reference as typed by the user
        default_host: Host assumed for ``owner/repo`` shorthands

    Returns:
        Tuple of (locator, clone URL). The clone URL never contains a
        password.

    Raises:
        InvalidLocatorError: If the reference cannot be interpreted
    """
    text = (source or '').strip()
    if not text:
        raise InvalidLocatorError(source or '', "empty repository reference")

    scp = None if text.startswith('/') else _SCP_RE.match(text)
    if '://' in text:
        host, path, clone_url = _parse_url(text)
    elif os.path.isdir(text):
        local = Path(text).resolve()
        host, path, clone_url = 'localhost', local.as_posix(), str(local)
    elif scp:
        host, path, clone_url = scp.group('host'), scp.group('path'), text
    else:
        host, path, clone_url = _parse_shorthand(text, default_host)

    segments = _path_segments(text, path)
    host = host.lower()
    locator = RepositoryLocator(host=host, owner='/'.join(segments[:-1]), repo=segments[-1])
    return locator, clone_url


def _parse_url(text: str) -> Tuple[str, str, str]:
    parsed = urlsplit(text)
    scheme = parsed.scheme.lower()
    if scheme not in URL_SCHEMES:
        raise InvalidLocatorError(text, f"unsupported scheme '{parsed.scheme}'")

    if scheme == 'file':
        return parsed.hostname or 'localhost', parsed.path, text

    try:
        port = parsed.port
    except ValueError:
        raise InvalidLocatorError(text, "invalid port")
    host = parsed.hostname
    if not host:
        raise InvalidLocatorError(text, "missing host")

    # Credentials are never kept; ssh keeps the login user
    netloc = host
    if port:
        netloc = f"{netloc}:{port}"
    if scheme in SSH_SCHEMES and parsed.username:
        netloc = f"{parsed.username}@{netloc}"
    clone_url = f"{scheme}://{netloc}{parsed.path}"
    return host, parsed.path, clone_url


def _parse_shorthand(text: str, default_host: str) -> Tuple[str, str, str]:
    parts = [p for p in text.strip('/').split('/') if p]
    if len(parts) >= 3 and '.' in parts[0] and _HOST_RE.match(parts[0]):
        host = parts[0].split(':')[0]
        path = '/'.join(parts[1:])
    elif len(parts) == 2:
        host = default_host
        path = '/'.join(parts)
    else:
        raise InvalidLocatorError(text, "expected a URL, host/owner/repo or owner/repo")
    path = _strip_git_suffix(path)
    return host, path, f"https://{host.lower()}/{path}.git"


def _strip_git_suffix(path: str) -> str:
    path = path.rstrip('/')
    if path.endswith('.git'):
        path = path[:-4]
    return path


def _path_segments(source: str, path: str) -> list:
    segments = [s for s in _strip_git_suffix(path.strip()).split('/') if s]
    if len(segments) < 2:
        raise InvalidLocatorError(source, "expected an owner and a repository name")
    if any(s in ('.', '..') for s in segments):
        raise InvalidLocatorError(source, "relative path segments are not allowed")
    return segments
