#!/usr/bin/env python3

import os
import json
import shlex
import tomllib
from pathlib import Path
from typing import Optional

import logging
import sys

import yaml

from .exit_codes import ConfigError
from .paths import config_dir

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("zigit")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']
LINK_MODES = ('symlink', 'copy')


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Checks in order:
    1. ZIGIT_CONFIG environment variable
    2. config.{json,toml,yaml,yml} in the zigit config directory
    """
    if 'ZIGIT_CONFIG' in os.environ:
        return Path(os.environ['ZIGIT_CONFIG']).expanduser()

    directory = config_dir()
    for filename in CONFIG_FILENAMES:
        path = directory / filename
        if path.exists():
            return path

    # If no file exists, return default path
    return directory / 'config.json'


def _read_config_file(config_path: Path) -> dict:
    suffix = config_path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(config_path, 'rb') as f:
                file_config = tomllib.load(f)
        elif suffix in ['.yaml', '.yml']:
            with open(config_path, 'r') as f:
                file_config = yaml.safe_load(f)
        else:
            # Default to JSON format
            with open(config_path, 'r') as f:
                file_config = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {config_path}: {e}") from e

    if file_config is None:
        return {}
    if not isinstance(file_config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return file_config


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from defaults, file and environment."""
    if config_path is None:
        config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        config = merge_configs(config, _read_config_file(config_path))
        logger.debug(f"Loaded configuration from {config_path}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    validate_config(config)
    return config


def get_default_config() -> dict:
    """Get default configuration."""
    return {
        "general": {
            "default_host": "github.com",  # Host assumed for owner/repo shorthands
            "max_concurrent_operations": 5,
        },
        "paths": {
            "data_dir": "",
            "cache_dir": "",
            "bin_dir": "",
            "database": "",
        },
        "git": {
            "timeout_seconds": 300,
            "fetch_retries": 1,
            "retry_backoff_seconds": 2.0,
        },
        "build": {
            "command": ["zig", "build", "-Doptimize=ReleaseSafe"],
            "artifact_dir": "zig-out/bin",
            "clean_dirs": ["zig-out", ".zig-cache", "zig-cache"],
            "timeout_seconds": 1800,
            "env": {},
        },
        "link": {
            "mode": "symlink",  # symlink (copy fallback) or copy
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s",
        },
    }


def validate_config(config: dict) -> None:
    """Reject values the services cannot work with."""
    mode = config.get('link', {}).get('mode')
    if mode not in LINK_MODES:
        raise ConfigError(f"link.mode must be one of {', '.join(LINK_MODES)}, got {mode!r}")

    command = config.get('build', {}).get('command')
    if isinstance(command, str):
        config['build']['command'] = shlex.split(command)
    elif not isinstance(command, list) or not command:
        raise ConfigError("build.command must be a non-empty list or string")

    workers = config.get('general', {}).get('max_concurrent_operations')
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError("general.max_concurrent_operations must be a positive integer")


def configure_logging(config: dict, verbose: bool = False, quiet: bool = False) -> None:
    """Apply the logging section (and -v/-q flags) to the zigit logger."""
    settings = config.get('logging', {})
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.getLevelName(str(settings.get('level', 'INFO')).upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)
    fmt = settings.get('format')
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: ZIGIT_SECTION_SUBSECTION_KEY
    For example: ZIGIT_LINK_MODE=copy or ZIGIT_PATHS_BIN_DIR=/opt/bin
    """
    env_prefix = "ZIGIT_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = _coerce_env_value(value, current_level[matched_key])
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config


def _coerce_env_value(value: str, current):
    """Convert an environment string to the type of the value it replaces."""
    if isinstance(current, list):
        return shlex.split(value)
    if isinstance(current, bool) or value.lower() in ('true', 'false', 'yes', 'no', 'on', 'off'):
        return value.lower() in ('true', '1', 'yes', 'on')
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            return value
    if value.isdigit():
        return int(value)
    return value
