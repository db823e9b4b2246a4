"""
Background retention for the log table.

Three independent policies bound the store's growth:
- age:   delete rows older than retention_period
- count: keep only the newest retention_count rows
- size:  when the file exceeds max_database_size, delete the oldest rows
         down to an estimated 80% of the limit, then VACUUM if many rows went
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from ..config import SinkOptions
from ..fast_path.formatting import format_timestamp
from ..exceptions import report_error
from .database import Columns, DatabaseManager, quote_identifier

logger = logging.getLogger(__name__)

# Warm-up before the first pass, keeps cleanup I/O away from application startup.
INITIAL_DELAY_SECONDS = 60.0
SIZE_TARGET_RATIO = 0.8
VACUUM_THRESHOLD_ROWS = 1000


class RetentionManager:
    """
    Runs cleanup passes on a schedule.

    Idle -> start() -> (warm-up) -> pass -> wait interval -> pass -> ...
    stop() cancels the loop and waits for it to exit. Without any
    configured policy the loop never starts and cleanup_now() does nothing.
    """

    def __init__(
        self,
        options: SinkOptions,
        database: DatabaseManager,
        initial_delay: float = INITIAL_DELAY_SECONDS,
    ):
        self.options = options
        self.database = database
        self.initial_delay = initial_delay

        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def has_retention_policy(self) -> bool:
        return self.options.has_retention_policy()

    def start(self) -> None:
        """Start the cleanup loop on the running event loop."""
        if self._stopped or self._task is not None or not self.has_retention_policy():
            return
        self._task = asyncio.create_task(self._run_cleanup_loop(), name="logsink-retention")

    async def _run_cleanup_loop(self) -> None:
        interval = self.options.cleanup_interval.total_seconds()

        try:
            await asyncio.sleep(self.initial_delay)
        except asyncio.CancelledError:
            return

        while True:
            try:
                await self.perform_cleanup()
            except asyncio.CancelledError:
                return

            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                return

    async def cleanup_now(self) -> int:
        """Run one cleanup pass immediately; returns the number of rows deleted."""
        if not self.has_retention_policy():
            return 0
        return await self.perform_cleanup()

    async def perform_cleanup(self) -> int:
        """
        Apply age, count and size policies, in that order.

        A failing policy is reported through on_error and skips the
        policies after it; the error never leaves this method.
        """
        deleted = 0
        try:
            await self.database.ensure_schema()

            if self.options.retention_period is not None:
                deleted += await self._cleanup_by_period()

            if self.options.retention_count is not None:
                deleted += await self._cleanup_by_count()

            if self.options.max_database_size is not None:
                deleted += await self._cleanup_by_size()

            if deleted > 0:
                logger.info(f"SQLite retention cleanup completed: {deleted} entries deleted")

        except Exception as e:
            logger.error(f"SQLite retention cleanup failed: {e}")
            report_error(self.options.on_error, e)

        return deleted

    async def _cleanup_by_period(self) -> int:
        """Delete rows whose timestamp is strictly before now - retention_period."""
        if self.options.store_timestamp_in_utc:
            now = datetime.now(timezone.utc)
        else:
            now = datetime.now().astimezone()
        cutoff = format_timestamp(now - self.options.retention_period, self.options.store_timestamp_in_utc)

        conn = await self.database.open_connection()
        try:
            cursor = await conn.execute(
                f"DELETE FROM {self.database.table} WHERE {quote_identifier(Columns.TIMESTAMP)} < ?",
                (cutoff,),
            )
            return max(cursor.rowcount, 0)
        finally:
            await conn.close()

    async def _cleanup_by_count(self) -> int:
        """Delete the oldest rows above retention_count."""
        conn = await self.database.open_connection()
        try:
            async with conn.execute(f"SELECT COUNT(*) FROM {self.database.table}") as cursor:
                current_count = (await cursor.fetchone())[0]

            if current_count <= self.options.retention_count:
                return 0

            return await self._delete_oldest(conn, current_count - self.options.retention_count)
        finally:
            await conn.close()

    async def _cleanup_by_size(self) -> int:
        """
        Delete the oldest rows until the store is estimated at 80% of its limit.

        The estimate assumes rows are of similar size (size / count); very
        uneven rows make it under- or over-delete.
        """
        max_size = self.options.max_database_size
        current_size = await self.database.get_database_size()
        if current_size <= max_size:
            return 0

        current_count = await self.database.get_log_count()
        if current_count == 0:
            return 0

        avg_size_per_row = current_size / current_count
        target_count = int(max_size * SIZE_TARGET_RATIO / avg_size_per_row)
        delete_count = current_count - target_count
        if delete_count <= 0:
            return 0

        conn = await self.database.open_connection()
        try:
            deleted = await self._delete_oldest(conn, delete_count)
        finally:
            await conn.close()

        if deleted > VACUUM_THRESHOLD_ROWS:
            try:
                await self.database.vacuum()
            except Exception as e:
                logger.warning(f"SQLite VACUUM failed: {e}")
                report_error(self.options.on_error, e)

        return deleted

    async def _delete_oldest(self, conn, limit: int) -> int:
        id_column = quote_identifier(Columns.ID)
        cursor = await conn.execute(
            f"""
            DELETE FROM {self.database.table}
            WHERE {id_column} IN (
                SELECT {id_column}
                FROM {self.database.table}
                ORDER BY {quote_identifier(Columns.TIMESTAMP)} ASC
                LIMIT ?
            )
            """,
            (limit,),
        )
        return max(cursor.rowcount, 0)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True

        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
