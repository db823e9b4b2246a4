"""
Vacuum command for CLI.
"""

import sys

import click
from rich.console import Console

from . import build_options, run_sink_operation

console = Console()


@click.command("vacuum")
@click.pass_context
def vacuum_command(ctx: click.Context):
    """
    Compact the log database.

    Rebuilds the file to reclaim free pages. Needs about as much free
    disk space as the database itself.
    """
    try:
        options = build_options(ctx)

        async def run_vacuum(sink):
            before = await sink.get_database_size()
            await sink.vacuum()
            return before, await sink.get_database_size()

        before, after = run_sink_operation(options, run_vacuum)
        console.print(f"[green]Vacuum completed:[/green] {before} -> {after} bytes")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
