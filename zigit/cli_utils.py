"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
import click
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import Optional

from .config import load_config, configure_logging
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .render import console_err, render_error
from .services.lifecycle_service import LifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class CliSettings:
    """Global options given before the command name."""
    config_path: Optional[Path] = None
    verbose: bool = False
    quiet: bool = False


def lifecycle_command(func):
    """
    Decorator that provides standard zigit command behavior:
    - Loads the configuration and configures logging from the global flags
    - Injects a LifecycleManager as the first argument
    - Reports CommandErrors on stderr (and as JSON with --json)
    - Exits with the error's exit code

    Example:
        @click.command('info')
        @click.argument('name')
        @lifecycle_command
        def info_cmd(manager, name):
            ...
    """
    @wraps(func)
    @click.pass_context
    def wrapper(ctx, *args, **kwargs):
        settings = ctx.find_object(CliSettings) or CliSettings()
        output_json = kwargs.get('output_json', False)

        try:
            config = load_config(settings.config_path)
            configure_logging(config, verbose=settings.verbose, quiet=settings.quiet)
            manager = LifecycleManager.from_config(config)
            func(manager, *args, **kwargs)
        except KeyboardInterrupt:
            console_err.print("[red]Interrupted by user[/red]")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            render_error(e)
            if output_json:
                print(json.dumps(e.to_dict(), ensure_ascii=False), flush=True)
            sys.exit(e.exit_code)
        except Exception as e:
            logger.debug("Unexpected error", exc_info=True)
            console_err.print(f"Error: {type(e).__name__}: {e}", highlight=False, markup=False)
            if output_json:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__,
                    "exit_code": get_exit_code_for_exception(e),
                }
                print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(get_exit_code_for_exception(e))

        sys.exit(SUCCESS)

    return wrapper


# Options shared by several commands
json_option = click.option('--json', 'output_json', is_flag=True, help='Output as JSON lines')


def ref_options(func):
    """Add the mutually exclusive --tag/--branch/--commit options."""
    func = click.option('--commit', '-c', help='Commit hash (may be combined with --branch)')(func)
    func = click.option('--branch', '-b', help='Branch to track')(func)
    func = click.option('--tag', '-t', help='Tag to install')(func)
    return func


def emit_json(obj) -> None:
    """Print one JSON line on stdout."""
    print(json.dumps(obj, ensure_ascii=False), flush=True)
