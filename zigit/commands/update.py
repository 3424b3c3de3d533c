"""
Handles the 'update' command.

Without ref options the package moves to the latest commit of the ref it
tracks; with --tag/--branch/--commit it switches to the new ref.
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command, ref_options
from ..render import render_operation


@click.command('update')
@click.argument('name')
@click.option('--force', '-f', is_flag=True, help='Clean build: remove build output and caches first')
@click.option('--rebuild', '-r', is_flag=True, help='Rebuild even if the commit did not change')
@ref_options
@json_option
@lifecycle_command
def update_cmd(manager, name, force, rebuild, tag, branch, commit, output_json):
    """Update an installed package.

    \b
    Examples:
        zigit update zls
        zigit update zls --tag 0.14.0
        zigit update tool --branch main --force
    """
    result = manager.update(name, tag=tag, branch=branch, commit=commit, force=force, rebuild=rebuild)
    if output_json:
        emit_json(result.to_dict())
    else:
        render_operation(result)
