"""
Rendering functions for zigit output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from rich.markup import escape
from typing import List

from .domain.operation import OperationResult, OperationStatus
from .domain.package import PackageInfo, PackageStatus
from .exit_codes import BuildFailed, CommandError

console = Console()
console_err = Console(stderr=True)

BUILD_OUTPUT_TAIL = 20


def render_packages_table(statuses: List[PackageStatus], checked: bool = False,
                          empty_message: str = "No packages installed.") -> None:
    """
    Render installed packages as a pretty table.

    Args:
        statuses: Package statuses from LifecycleManager.list_packages
        checked: Whether the remote was checked (adds the Latest column)
        empty_message: Printed instead of an empty table
    """
    if not statuses:
        console.print(f"[yellow]{empty_message}[/yellow]")
        return

    table = Table(
        title="Installed Packages",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    table.add_column("Name", style="cyan")
    table.add_column("Repository", style="dim")
    table.add_column("Ref", style="blue")
    table.add_column("Commit", style="green")
    table.add_column("Linked", justify="center")
    if checked:
        table.add_column("Latest", style="yellow")

    for status in statuses:
        pkg = status.package
        target = pkg.target
        ref = f"{target.kind.value}: {target.value}" if target.value else target.kind.value
        linked = "[green]✓[/green]" if status.linked else "[red]✗[/red]"
        row = [escape(pkg.effective_name), escape(pkg.locator.path), escape(ref), target.short_commit, linked]

        if checked:
            if status.error:
                row.append(f"[red]error: {escape(status.error)}[/red]")
            elif status.outdated:
                row.append(f"[yellow]{status.latest_commit[:8]} (outdated)[/yellow]")
            else:
                row.append("[green]up to date[/green]")
        table.add_row(*row)

    console.print(table)


def render_package_info(info: PackageInfo) -> None:
    """Render the details of one package as a two-column table."""
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")

    table.add_row("Package", escape(info.name))
    table.add_row("Repository", escape(info.repository))
    if info.ref_type:
        ref = f"{info.ref_type} ({info.ref})" if info.ref else info.ref_type
        table.add_row("Git Reference", escape(ref))
    table.add_row("Commit", info.commit or "unknown")
    if info.current_tag and info.ref_type != 'tag':
        table.add_row("Tag", escape(info.current_tag))
    if info.description:
        table.add_row("Description", escape(info.description))
    if info.author:
        table.add_row("Author", escape(info.author))

    if not info.installed:
        status = "[dim]Not Installed[/dim]"
    elif info.outdated:
        status = f"[yellow]Installed (Outdated, latest {info.latest_commit[:8]})[/yellow]"
    else:
        status = "[green]Installed[/green]"
    table.add_row("Status", status)
    if info.link_path:
        table.add_row("Executable", escape(info.link_path))

    console.print(table)


def render_operation(result: OperationResult) -> None:
    """Print a one-line summary of a lifecycle operation."""
    name = f"[bold]{escape(result.name)}[/bold]"
    if result.status == OperationStatus.UNCHANGED:
        console.print(f"[dim]•[/dim] {name}: {escape(result.message or 'nothing to do')}")
        return

    pkg = result.package
    if result.operation == 'install' and pkg:
        console.print(
            f"[bold green]✓[/bold green] Installed {name} "
            f"({escape(pkg.target.describe())} @ {pkg.target.short_commit}) -> {escape(result.link_path or '')}"
        )
    elif result.operation == 'update' and pkg:
        previous = (result.previous_commit or '')[:8]
        if result.changed:
            change = f"{previous} -> {pkg.target.short_commit}"
        else:
            change = f"{pkg.target.short_commit} (rebuilt)" if result.rebuilt else pkg.target.short_commit
        console.print(f"[bold green]✓[/bold green] Updated {name} ({escape(pkg.target.describe())}): {change}")
    elif result.operation == 'uninstall':
        console.print(f"[bold green]✓[/bold green] Uninstalled {name}")
    elif result.operation == 'rename':
        console.print(f"[bold green]✓[/bold green] Renamed {escape(result.previous_name or '')} to {name}")


def render_error(error: CommandError) -> None:
    """Print an error (and the tail of a failed build's output) on stderr."""
    console_err.print(f"[red]Error:[/red] {escape(error.describe())}", highlight=False)
    if isinstance(error, BuildFailed) and error.output:
        lines = error.output.rstrip().splitlines()[-BUILD_OUTPUT_TAIL:]
        console_err.print("\n".join(lines), style="dim", highlight=False, markup=False)
