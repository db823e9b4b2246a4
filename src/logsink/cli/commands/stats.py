"""
Stats command for CLI.
"""

import sys

import click
from rich.console import Console
from rich.table import Table

from . import build_options, run_sink_operation

console = Console()


def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


@click.command("stats")
@click.option("--format", "-f", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def stats_command(ctx: click.Context, format: str):
    """
    Display log database statistics.

    Shows the number of stored log entries and the database size.
    """
    try:
        options = build_options(ctx)

        async def collect(sink):
            return {
                "database": options.database_path,
                "table": options.table_name,
                "log_count": await sink.get_log_count(),
                "size_bytes": await sink.get_database_size(),
            }

        data = run_sink_operation(options, collect)

        if format == "json":
            console.print_json(data=data)
            return

        table = Table(title="Log Database", show_header=True, header_style="bold magenta")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="yellow")
        table.add_row("Database", data["database"])
        table.add_row("Table", data["table"])
        table.add_row("Log entries", str(data["log_count"]))
        table.add_row("Size", _format_bytes(data["size_bytes"]))

        console.print(table)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
