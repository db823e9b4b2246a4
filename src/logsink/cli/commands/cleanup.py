"""
Cleanup command for CLI.
"""

import sys
from datetime import timedelta

import click
from rich.console import Console
from rich.panel import Panel

from . import build_options, run_sink_operation

console = Console()


@click.command("cleanup")
@click.option("--retention-days", type=float, help="Delete entries older than this many days")
@click.option("--retention-count", type=int, help="Keep only this many of the newest entries")
@click.option("--max-size", type=int, help="Shrink the database below this many bytes")
@click.pass_context
def cleanup_command(ctx: click.Context, retention_days: float, retention_count: int, max_size: int):
    """
    Run one retention pass now.

    Policies are applied in order: age, then count, then size.
    """
    if retention_days is None and retention_count is None and max_size is None:
        raise click.UsageError(
            "Give at least one of --retention-days, --retention-count or --max-size"
        )

    try:
        options = build_options(
            ctx,
            retention_period=timedelta(days=retention_days) if retention_days is not None else None,
            retention_count=retention_count,
            max_database_size=max_size,
        )

        async def run_cleanup(sink):
            deleted = await sink.cleanup()
            return deleted, await sink.get_log_count()

        deleted, remaining = run_sink_operation(options, run_cleanup)

        console.print(
            Panel(
                f"Deleted [yellow]{deleted}[/yellow] entries\n"
                f"Remaining: [green]{remaining}[/green]",
                title="Retention Cleanup",
            )
        )

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
