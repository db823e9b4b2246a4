"""
Periodic batching front-end for a batched sink.

Producers on any thread call emit(), which only enqueues. A background
thread runs an asyncio loop that hands batches to the wrapped sink when
either batch_size_limit events are queued or period seconds have passed,
whichever comes first. When the queue is full new events are dropped.
"""

import asyncio
import logging
import queue
import threading
from typing import Any, Awaitable, List, Optional

from ..exceptions import LogSinkError

logger = logging.getLogger(__name__)


class PeriodicBatchingSink:
    """
    Owns a batched sink and drives it from a dedicated event loop thread.

    The wrapped sink must provide ``start()``, ``emit_batch(events)``,
    ``on_empty_batch()`` and ``aclose()`` coroutines. It is closed on the
    loop thread after the last batch has been delivered.
    """

    # Log aggregate drop counts instead of one warning per dropped event
    DROP_LOG_INTERVAL = 100

    def __init__(
        self,
        sink: Any,
        batch_size_limit: int,
        period: float,
        queue_limit: Optional[int] = None,
    ):
        self.sink = sink
        self.batch_size_limit = batch_size_limit
        self.period = period
        self.queue_limit = queue_limit

        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_limit or 0)
        self._drop_lock = threading.Lock()
        self._dropped_count = 0
        self._last_logged_drop_count = 0
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._started = threading.Event()
        self._startup_error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run_loop, name="logsink-batching", daemon=True
        )
        self._thread.start()
        self._started.wait()

        if self._startup_error is not None:
            self._closed = True
            self._thread.join()
            raise self._startup_error

    # --- Producer side --------------------------------------------------------

    def emit(self, event: Any) -> bool:
        """
        Queue an event without blocking.

        Returns False when the event was dropped, either because the queue
        is full or because the sink has been closed.
        """
        if self._closed:
            return False

        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self._record_drop()
            return False

        if self._queue.qsize() >= self.batch_size_limit:
            try:
                self._loop.call_soon_threadsafe(self._wake.set)
            except RuntimeError:
                # Loop already closed by a concurrent close()
                return False
        return True

    def _record_drop(self) -> None:
        with self._drop_lock:
            self._dropped_count += 1
            if self._dropped_count - self._last_logged_drop_count >= self.DROP_LOG_INTERVAL:
                logger.warning(
                    f"Log queue full (limit {self.queue_limit}): "
                    f"{self._dropped_count} events dropped so far"
                )
                self._last_logged_drop_count = self._dropped_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def thread_id(self) -> Optional[int]:
        """Ident of the thread that delivers batches (comparable to LogRecord.thread)."""
        return self._thread.ident

    # --- Loop thread ----------------------------------------------------------

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run())
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    async def _run(self) -> None:
        self._wake = asyncio.Event()
        self._stop_requested = asyncio.Event()
        self._drain_lock = asyncio.Lock()

        try:
            await self.sink.start()
        except Exception as e:
            self._startup_error = e
            self._started.set()
            await self.sink.aclose()
            return

        self._started.set()
        logger.info(
            f"Batching started (batch_size_limit={self.batch_size_limit}, "
            f"period={self.period}s, queue_limit={self.queue_limit})"
        )

        try:
            while not self._stop_requested.is_set():
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self.period)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()
                await self._drain()
        finally:
            # Deliver what is left, then release the sink.
            await self._drain()
            await self.sink.aclose()
            logger.info(f"Batching stopped (dropped={self._dropped_count})")

    def _request_stop(self) -> None:
        self._stop_requested.set()
        self._wake.set()

    def _take_batch(self) -> List[Any]:
        batch: List[Any] = []
        while len(batch) < self.batch_size_limit:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return batch

    async def _drain(self) -> None:
        """Deliver queued events in batches of at most batch_size_limit."""
        async with self._drain_lock:
            delivered = False
            while True:
                batch = self._take_batch()
                if not batch:
                    break
                delivered = True
                await self._emit(batch)
                if len(batch) < self.batch_size_limit:
                    break

            if not delivered:
                await self.sink.on_empty_batch()

    async def _emit(self, batch: List[Any]) -> None:
        try:
            await self.sink.emit_batch(batch)
        except Exception as e:
            # Only reachable when the sink raises (throw_on_error); the batch is lost.
            logger.error(f"Failed to emit batch of {len(batch)} events: {e}")

    # --- Control --------------------------------------------------------------

    def _submit(self, coro: Awaitable[Any]) -> "asyncio.Future[Any]":
        if self._closed:
            coro.close()
            raise LogSinkError("Sink is closed")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Deliver everything queued so far and wait for it to be written."""
        if self._closed:
            return
        self._submit(self._drain()).result(timeout)

    async def flush_async(self) -> None:
        if self._closed:
            return
        await asyncio.wrap_future(self._submit(self._drain()))

    def get_log_count(self, timeout: Optional[float] = None) -> int:
        return self._submit(self.sink.get_log_count()).result(timeout)

    async def get_log_count_async(self) -> int:
        return await asyncio.wrap_future(self._submit(self.sink.get_log_count()))

    def get_database_size(self, timeout: Optional[float] = None) -> int:
        return self._submit(self.sink.get_database_size()).result(timeout)

    async def get_database_size_async(self) -> int:
        return await asyncio.wrap_future(self._submit(self.sink.get_database_size()))

    def cleanup(self, timeout: Optional[float] = None) -> int:
        return self._submit(self.sink.cleanup()).result(timeout)

    async def cleanup_async(self) -> int:
        return await asyncio.wrap_future(self._submit(self.sink.cleanup()))

    def vacuum(self, timeout: Optional[float] = None) -> None:
        self._submit(self.sink.vacuum()).result(timeout)

    async def vacuum_async(self) -> None:
        await asyncio.wrap_future(self._submit(self.sink.vacuum()))

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting events, deliver the queue, close the sink and join
        the loop thread. Repeated calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True

        try:
            self._loop.call_soon_threadsafe(self._request_stop)
        except RuntimeError:
            return

        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    async def aclose(self) -> None:
        await asyncio.to_thread(self.close)

    def __enter__(self) -> "PeriodicBatchingSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
