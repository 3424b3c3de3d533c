"""
Handles the 'info' command.

Shows details of an installed package, or of a repository that is not
installed yet (read from the clone cache or a temporary shallow clone).
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command
from ..render import render_package_info


@click.command('info')
@click.argument('name_or_url')
@json_option
@lifecycle_command
def info_cmd(manager, name_or_url, output_json):
    """Show information about an installed package or a repository URL."""
    info = manager.info(name_or_url)
    if output_json:
        emit_json(info.to_dict())
    else:
        render_package_info(info)
