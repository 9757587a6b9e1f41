"""Asyncio batching shipper."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from .buffer import RecordBuffer, is_empty_record
from .config import ShipperConfig
from .metrics import FLUSH_BATCH_SIZE, RECORDS_DROPPED, RECORDS_ENQUEUED, SENDS, outcome_label
from .transport import AsyncHttpTransport, AsyncTransport, resolve_index


class AsyncLogShipper:
    """Asyncio counterpart of :class:`logship.shipper.LogShipper`.

    Must be constructed inside a running event loop; the dispatcher and the
    optional flush timer are started as tasks on that loop and stop once
    ``shutdown_event`` is set.
    """

    def __init__(
        self,
        config: ShipperConfig,
        shutdown_event: asyncio.Event,
        *,
        transport: Optional[AsyncTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._loop = asyncio.get_running_loop()
        self._config = config
        self._shutdown = shutdown_event
        self._logger = logger or logging.getLogger("logship.shipper")
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else AsyncHttpTransport(config, logger=logger)
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=config.intake_capacity)
        self._buffer = RecordBuffer(config.retention_limit)
        self._lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._closed = False
        self._drained = asyncio.Event()

        self._tasks: List[asyncio.Task] = [
            self._loop.create_task(self._dispatch_loop(), name="logship-dispatcher")
        ]
        if config.flush_interval > 0:
            self._tasks.append(self._loop.create_task(self._timer_loop(), name="logship-flush-timer"))
        self._alive = len(self._tasks)

    def enqueue(self, record: Any) -> None:
        """Queue a record without awaiting; call from the loop's thread."""
        if is_empty_record(record):
            return
        if self._closed or self._shutdown.is_set():
            RECORDS_DROPPED.labels(reason="closed").inc()
            self._logger.warning("Shipper is shutting down; dropping record")
            return
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            RECORDS_DROPPED.labels(reason="overflow").inc()
            self._logger.warning("Intake queue full (capacity=%d); dropping record", self._config.intake_capacity)
            return
        RECORDS_ENQUEUED.inc()

    def enqueue_threadsafe(self, record: Any) -> None:
        """Schedule :meth:`enqueue` on the shipper's loop from another thread."""
        try:
            self._loop.call_soon_threadsafe(self.enqueue, record)
        except RuntimeError:
            RECORDS_DROPPED.labels(reason="closed").inc()
            self._logger.warning("Event loop is closed; dropping record")

    async def send_sync(self, record: Any) -> bool:
        if is_empty_record(record):
            return False
        return await self._deliver(record, trigger="sync")

    async def flush(self) -> bool:
        return await self._flush("manual")

    async def wait_closed(self) -> None:
        """Wait for the background tasks to finish after cancellation."""
        await asyncio.gather(*self._tasks)

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    @property
    def queued_count(self) -> int:
        return self._queue.qsize()

    @property
    def config(self) -> ShipperConfig:
        return self._config

    async def _dispatch_loop(self) -> None:
        stop = asyncio.ensure_future(self._shutdown.wait())
        getter: Optional[asyncio.Future] = None
        try:
            while True:
                getter = asyncio.ensure_future(self._queue.get())
                done, _ = await asyncio.wait({getter, stop}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    await self._dispatch(getter.result())
                    continue
                getter.cancel()
                break

            self._closed = True
            while not self._queue.empty():
                await self._dispatch(self._queue.get_nowait())
            self._drained.set()
            await self._flush("shutdown")
        except Exception:
            self._logger.exception("Dispatcher stopped unexpectedly")
        finally:
            self._drained.set()
            stop.cancel()
            if getter is not None and not getter.done():
                getter.cancel()
            await self._worker_done()

    async def _timer_loop(self) -> None:
        try:
            while True:
                try:
                    await asyncio.wait_for(self._shutdown.wait(), timeout=self._config.flush_interval)
                    break
                except asyncio.TimeoutError:
                    await self._flush("interval")
            await self._drained.wait()
            await self._flush("shutdown")
        except Exception:
            self._logger.exception("Flush timer stopped unexpectedly")
        finally:
            await self._worker_done()

    async def _dispatch(self, record: Any) -> None:
        if not self._config.batching:
            await self._deliver(record, trigger="immediate")
            return
        async with self._lock:
            size = self._buffer.append(record)
        if size >= self._config.full_size:
            await self._flush("size")

    async def _worker_done(self) -> None:
        self._alive -= 1
        if self._alive == 0 and self._owns_transport:
            await self._transport.aclose()

    async def _flush(self, trigger: str) -> bool:
        async with self._flush_lock:
            async with self._lock:
                if not len(self._buffer):
                    return False
                batch = self._buffer.detach()

            FLUSH_BATCH_SIZE.observe(len(batch))
            if await self._deliver(batch, trigger=trigger):
                self._logger.debug("Flushed %d records trigger=%s", len(batch), trigger)
                return True

            async with self._lock:
                dropped = self._buffer.restore(batch)
            if dropped:
                RECORDS_DROPPED.labels(reason="retention").inc(dropped)
                self._logger.error(
                    "Flush failed; dropped %d oldest records over retention limit %d",
                    dropped,
                    self._buffer.retention_limit,
                )
            else:
                self._logger.warning("Flush of %d records failed; retained for next attempt", len(batch))
            return False

    async def _deliver(self, payload: Any, *, trigger: str) -> bool:
        destination = resolve_index(self._config.index_name, self._config.daily_index)
        try:
            ok = bool(await self._transport.send(payload, destination))
        except Exception:
            self._logger.exception("Transport raised while sending to index=%s", destination)
            ok = False
        SENDS.labels(trigger=trigger, outcome=outcome_label(ok)).inc()
        return ok


__all__ = ["AsyncLogShipper"]
