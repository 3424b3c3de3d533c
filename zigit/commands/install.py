"""
Handles the 'install' command.

Installs an executable built from a git repository and links it into the
bin directory.
"""

import click

from ..cli_utils import emit_json, json_option, lifecycle_command, ref_options
from ..render import render_operation


@click.command('install')
@click.argument('repository')
@click.option('--alias', '-a', help='Install under this name instead of the repository name')
@ref_options
@json_option
@lifecycle_command
def install_cmd(manager, repository, alias, tag, branch, commit, output_json):
    """Install a package from REPOSITORY.

    REPOSITORY may be a URL (https, ssh, git, file), an scp-style
    user@host:owner/repo locator, host/owner/repo, owner/repo or a local
    directory.

    \b
    Examples:
        zigit install https://github.com/zigtools/zls --tag 0.13.0
        zigit install ziglang/zig-spec --branch main --alias spec
        zigit install git@example.com:org/tool.git --commit 3f2a9c1
    """
    result = manager.install(repository, alias=alias, tag=tag, branch=branch, commit=commit)
    if output_json:
        emit_json(result.to_dict())
    else:
        render_operation(result)
