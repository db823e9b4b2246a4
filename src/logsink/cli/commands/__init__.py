"""
CLI commands and the helpers they share.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import click

from ...config import SinkOptions
from ...sink import SQLiteSink

T = TypeVar("T")


def build_options(ctx: click.Context, **overrides: Any) -> SinkOptions:
    """
    Sink options for the database and table selected on the command group.

    Operator commands only work on existing databases: a missing file is an
    error and the schema is never created.
    """
    database = ctx.obj["database"]
    if not Path(database).expanduser().exists():
        raise click.ClickException(f"Database not found: {database}")

    return SinkOptions(
        database_path=database,
        table_name=ctx.obj["table"],
        auto_create_schema=False,
        **overrides,
    )


def run_sink_operation(options: SinkOptions, operation: Callable[[SQLiteSink], Awaitable[T]]) -> T:
    """Open a sink without background retention, run one operation and close it."""

    async def _run() -> T:
        sink = SQLiteSink(options)
        try:
            return await operation(sink)
        finally:
            await sink.aclose()

    return asyncio.run(_run())
