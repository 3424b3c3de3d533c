"""
Handles the 'uninstall' command.
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command
from ..render import render_operation


@click.command('uninstall')
@click.argument('name')
@json_option
@lifecycle_command
def uninstall_cmd(manager, name, output_json):
    """Remove an installed package, its executable and (when unshared) its clone."""
    result = manager.uninstall(name)
    if output_json:
        emit_json(result.to_dict())
    else:
        render_operation(result)
