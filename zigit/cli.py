#!/usr/bin/env python3

import click
from pathlib import Path

from zigit.cli_utils import CliSettings
from zigit.commands.install import install_cmd
from zigit.commands.uninstall import uninstall_cmd
from zigit.commands.list import list_cmd
from zigit.commands.update import update_cmd
from zigit.commands.info import info_cmd
from zigit.commands.rename import rename_cmd


@click.group()
@click.version_option(package_name='zigit')
@click.option('-v', '--verbose', is_flag=True, help='Show debug output')
@click.option('-q', '--quiet', is_flag=True, help='Only show warnings and errors')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Configuration file (default: $ZIGIT_CONFIG or ~/.config/zigit/config.*)')
@click.pass_context
def cli(ctx, verbose, quiet, config_path):
    """zigit - Install executables built from git repositories.

    Clones repositories into a shared cache, builds them (zig build by
    default), links the result into your bin directory and remembers what
    was installed from where.
    """
    ctx.obj = CliSettings(config_path=config_path, verbose=verbose, quiet=quiet)


cli.add_command(install_cmd)
cli.add_command(uninstall_cmd)
cli.add_command(list_cmd)
cli.add_command(update_cmd)
cli.add_command(info_cmd)
cli.add_command(rename_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
