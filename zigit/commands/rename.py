"""
Handles the 'rename' command.
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command
from ..render import render_operation


@click.command('rename')
@click.argument('name')
@click.argument('new_name')
@json_option
@lifecycle_command
def rename_cmd(manager, name, new_name, output_json):
    """Give the installed package NAME the new name NEW_NAME.

    The executable in the bin directory is renamed accordingly.
    """
    result = manager.rename(name, new_name)
    if output_json:
        emit_json(result.to_dict())
    else:
        render_operation(result)
