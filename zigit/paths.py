"""
Filesystem locations used by zigit.

Follows the XDG base directory convention on Unix and a single
%USERPROFILE%\\.zigit tree on Windows. Every directory can be overridden
from the ``paths`` section of the configuration and is created on first use.
"""

import os
from pathlib import Path
from typing import Optional

APP_NAME = 'zigit'


def _is_windows() -> bool:
    return os.name == 'nt'


def _configured(config: Optional[dict], key: str) -> Optional[Path]:
    value = ((config or {}).get('paths') or {}).get(key)
    if value:
        return Path(value).expanduser()
    return None


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _xdg(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value) / APP_NAME
    return fallback / APP_NAME


def config_dir() -> Path:
    """Directory holding the user configuration file (not created)."""
    if _is_windows():
        return Path.home() / f'.{APP_NAME}'
    return _xdg('XDG_CONFIG_HOME', Path.home() / '.config')


def data_dir(config: Optional[dict] = None) -> Path:
    """
    Base directory for zigit data (database, staged artifacts, locks).

    On Windows: %USERPROFILE%\\.zigit
    On Unix: $XDG_DATA_HOME/zigit or ~/.local/share/zigit
    """
    path = _configured(config, 'data_dir')
    if path is None:
        if _is_windows():
            path = Path.home() / f'.{APP_NAME}'
        else:
            path = _xdg('XDG_DATA_HOME', Path.home() / '.local' / 'share')
    return _ensure(path)


def cache_dir(config: Optional[dict] = None) -> Path:
    """
    Root of the clone cache.

    On Windows: %USERPROFILE%\\.zigit\\cache
    On Unix: $XDG_CACHE_HOME/zigit or ~/.cache/zigit
    """
    path = _configured(config, 'cache_dir')
    if path is None:
        if _is_windows():
            path = Path.home() / f'.{APP_NAME}' / 'cache'
        else:
            path = _xdg('XDG_CACHE_HOME', Path.home() / '.cache')
    return _ensure(path)


def bin_dir(config: Optional[dict] = None) -> Path:
    """
    Directory where installed executables are linked.

    On Windows: %USERPROFILE%\\.zigit\\bin
    On Unix: ~/.local/bin
    """
    path = _configured(config, 'bin_dir')
    if path is None:
        if _is_windows():
            path = Path.home() / f'.{APP_NAME}' / 'bin'
        else:
            path = Path.home() / '.local' / 'bin'
    return _ensure(path)


def db_path(config: Optional[dict] = None) -> Path:
    """
    Get the database file path.

    Checks in order:
    1. ZIGIT_DB environment variable
    2. config['paths']['database'] if provided
    3. Default: <data_dir>/zigit.db
    """
    if os.environ.get('ZIGIT_DB'):
        path = Path(os.environ['ZIGIT_DB']).expanduser()
    else:
        path = _configured(config, 'database') or data_dir(config) / f'{APP_NAME}.db'
    _ensure(path.parent)
    return path


def packages_dir(config: Optional[dict] = None) -> Path:
    """Directory holding the staged artifact of every installed package."""
    return _ensure(data_dir(config) / 'packages')


def locks_dir(config: Optional[dict] = None) -> Path:
    """Directory holding inter-process lock files."""
    return _ensure(data_dir(config) / 'locks')
