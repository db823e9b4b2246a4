"""
SQLite log sink.

SQLiteSink ties together the schema manager, the batch writer and the
retention manager, and implements the two callbacks the batching
primitive drives (emit_batch / on_empty_batch). create_sink() hands a
new sink to a PeriodicBatchingSink, which owns it from then on.
"""

import logging
from typing import Iterable, Optional

from .config import SinkOptions
from .events import LogEvent
from .fast_path.batching import PeriodicBatchingSink
from .fast_path.writer import LogEventBatchWriter, WriteResult
from .storage.database import DatabaseManager
from .storage.retention import INITIAL_DELAY_SECONDS, RetentionManager

logger = logging.getLogger(__name__)


class SQLiteSink:
    """
    Writes batches of log events to SQLite and enforces retention.

    The options are copied and validated at construction; later changes
    to the caller's options object have no effect. All coroutines must
    run on the same event loop (the one start() was awaited on).
    """

    def __init__(
        self,
        options: SinkOptions,
        retention_initial_delay: float = INITIAL_DELAY_SECONDS,
    ):
        self.options = options.clone()
        self.options.validate()

        self.database = DatabaseManager(self.options)
        self.batch_writer = LogEventBatchWriter(self.options, self.database)

        self.retention_manager: Optional[RetentionManager] = None
        if self.options.has_retention_policy():
            self.retention_manager = RetentionManager(
                self.options, self.database, initial_delay=retention_initial_delay
            )

        self._disposed = False
        logger.debug(f"SQLite sink initialized: {self.options.database_path}")

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def start(self) -> None:
        """Start background retention, if any policy is configured."""
        if self.retention_manager is not None and not self._disposed:
            self.retention_manager.start()

    # --- Batching callbacks ---------------------------------------------------

    async def emit_batch(self, events: Iterable[LogEvent]) -> Optional[WriteResult]:
        """Write one batch. Batches arriving after shutdown are dropped."""
        if self._disposed:
            return None
        return await self.batch_writer.write_batch(events)

    async def on_empty_batch(self) -> None:
        pass

    # --- Operator operations --------------------------------------------------

    async def get_log_count(self) -> int:
        await self.database.ensure_schema()
        return await self.database.get_log_count()

    async def get_database_size(self) -> int:
        return await self.database.get_database_size()

    async def cleanup(self) -> int:
        """Run one retention pass now; returns rows deleted (0 without policies)."""
        if self.retention_manager is None:
            return 0
        return await self.retention_manager.cleanup_now()

    async def vacuum(self) -> None:
        await self.database.vacuum()

    # --- Lifecycle ------------------------------------------------------------

    async def aclose(self) -> None:
        """Stop retention, then release store handles. Idempotent."""
        if self._disposed:
            return
        self._disposed = True

        if self.retention_manager is not None:
            await self.retention_manager.stop()
        await self.database.close()

        logger.debug(f"SQLite sink disposed: {self.options.database_path}")

    async def __aenter__(self) -> "SQLiteSink":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_sink(
    options: SinkOptions,
    retention_initial_delay: float = INITIAL_DELAY_SECONDS,
) -> PeriodicBatchingSink:
    """
    Build a sink and wrap it in a PeriodicBatchingSink.

    The wrapper is configured with the options' batch size, batch period
    and queue limit, and takes ownership of the sink: closing the
    wrapper stops batch delivery first and then closes the sink.
    """
    sink = SQLiteSink(options, retention_initial_delay=retention_initial_delay)
    return PeriodicBatchingSink(
        sink,
        batch_size_limit=sink.options.batch_size_limit,
        period=sink.options.batch_period.total_seconds(),
        queue_limit=sink.options.queue_limit,
    )
