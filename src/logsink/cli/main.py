"""
CLI entry point.
"""

import logging

import click

from .. import __version__
from .commands.cleanup import cleanup_command
from .commands.stats import stats_command
from .commands.vacuum import vacuum_command


def setup_logging(level: str = "WARNING") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--database", "-d", default="logs.db", show_default=True, help="Path to the SQLite log database")
@click.option("--table", "-t", default="Logs", show_default=True, help="Log table name")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, database: str, table: str, log_level: str):
    """
    logsink CLI

    Inspect and maintain SQLite log databases written by logsink.
    """
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["database"] = database
    ctx.obj["table"] = table


# Register commands
cli.add_command(stats_command)
cli.add_command(cleanup_command)
cli.add_command(vacuum_command)


def main():
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
