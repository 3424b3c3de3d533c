"""
Handles the 'list' command.

Default output is a table; --json streams one JSON object per package.
With --outdated only packages behind their ref (or that could not be
checked) are shown.
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command
from ..exit_codes import PartialSuccessError
from ..render import render_packages_table


@click.command('list')
@click.option('--outdated', '-o', is_flag=True, help='Show only packages behind their ref (fetches each repository)')
@json_option
@lifecycle_command
def list_cmd(manager, outdated, output_json):
    """List installed packages."""
    statuses = manager.list_packages(outdated=outdated)
    shown = [s for s in statuses if s.outdated or s.error] if outdated else statuses

    if output_json:
        for status in shown:
            emit_json(status.to_dict())
    elif outdated and statuses:
        render_packages_table(shown, checked=True, empty_message="All packages are up to date.")
    else:
        render_packages_table(shown, checked=outdated)

    failed = [s for s in statuses if s.error]
    if failed:
        raise PartialSuccessError(
            f"Could not check {len(failed)} of {len(statuses)} packages",
            succeeded=len(statuses) - len(failed),
            failed=len(failed),
        )
