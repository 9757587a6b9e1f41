"""Thread-based batching shipper."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, List, Optional

from .buffer import RecordBuffer, is_empty_record
from .config import ShipperConfig
from .metrics import FLUSH_BATCH_SIZE, RECORDS_DROPPED, RECORDS_ENQUEUED, SENDS, outcome_label
from .transport import HttpTransport, Transport, resolve_index


class LogShipper:
    """Buffers records and ships them in batches from background threads.

    A dispatcher thread moves records from the bounded intake queue into the
    buffer and flushes once ``full_size`` records are pending. When
    ``flush_interval`` is set, a timer thread flushes on that cadence as
    well. Setting ``shutdown_event`` is the only way to stop both threads.
    The dispatcher first drains the intake queue into the buffer; the final
    flush happens after that, so the timer's terminal flush finds either the
    whole remainder or nothing.
    """

    def __init__(
        self,
        config: ShipperConfig,
        shutdown_event: threading.Event,
        *,
        transport: Optional[Transport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._shutdown = shutdown_event
        self._logger = logger or logging.getLogger("logship.shipper")
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HttpTransport(config, logger=logger)
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=config.intake_capacity)
        self._buffer = RecordBuffer(config.retention_limit)
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._closed = False
        self._drained = threading.Event()

        self._workers: List[threading.Thread] = [
            threading.Thread(target=self._dispatch_loop, name="logship-dispatcher", daemon=True)
        ]
        if config.flush_interval > 0:
            self._workers.append(
                threading.Thread(target=self._timer_loop, name="logship-flush-timer", daemon=True)
            )
        self._alive = len(self._workers)
        for worker in self._workers:
            worker.start()

    def enqueue(self, record: Any) -> None:
        """Queue a record for batched delivery without blocking.

        Empty records are ignored. A full queue drops the record and logs a
        warning; nothing is raised to the caller.
        """
        if is_empty_record(record):
            return
        with self._state_lock:
            if self._closed or self._shutdown.is_set():
                reason = "closed"
            else:
                try:
                    self._queue.put_nowait(record)
                    reason = None
                except queue.Full:
                    reason = "overflow"
        if reason is None:
            RECORDS_ENQUEUED.inc()
            return
        RECORDS_DROPPED.labels(reason=reason).inc()
        if reason == "overflow":
            self._logger.warning("Intake queue full (capacity=%d); dropping record", self._config.intake_capacity)
        else:
            self._logger.warning("Shipper is shutting down; dropping record")

    def send_sync(self, record: Any) -> bool:
        """Send one record right away, bypassing the buffer."""
        if is_empty_record(record):
            return False
        return self._deliver(record, trigger="sync")

    def flush(self) -> bool:
        return self._flush("manual")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background threads to exit after cancellation."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self._workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)
        return not any(worker.is_alive() for worker in self._workers)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def queued_count(self) -> int:
        return self._queue.qsize()

    @property
    def config(self) -> ShipperConfig:
        return self._config

    def _dispatch_loop(self) -> None:
        try:
            while not self._shutdown.is_set():
                try:
                    record = self._queue.get(timeout=self._config.poll_interval)
                except queue.Empty:
                    continue
                self._dispatch(record)

            # enqueue puts under the same lock, so nothing lands after the drain
            with self._state_lock:
                self._closed = True
            while True:
                try:
                    record = self._queue.get_nowait()
                except queue.Empty:
                    break
                self._dispatch(record)
            self._drained.set()
            self._flush("shutdown")
        except Exception:
            self._logger.exception("Dispatcher stopped unexpectedly")
        finally:
            self._drained.set()
            self._worker_done()

    def _timer_loop(self) -> None:
        try:
            while not self._shutdown.wait(self._config.flush_interval):
                self._flush("interval")
            # the terminal flush must see everything the dispatcher drained
            self._drained.wait()
            self._flush("shutdown")
        except Exception:
            self._logger.exception("Flush timer stopped unexpectedly")
        finally:
            self._worker_done()

    def _dispatch(self, record: Any) -> None:
        if not self._config.batching:
            self._deliver(record, trigger="immediate")
            return
        with self._lock:
            size = self._buffer.append(record)
        if size >= self._config.full_size:
            self._flush("size")

    def _worker_done(self) -> None:
        with self._state_lock:
            self._alive -= 1
            last = self._alive == 0
        if last and self._owns_transport:
            self._transport.close()
            self._logger.debug("Shipper stopped; transport closed")

    def _flush(self, trigger: str) -> bool:
        with self._flush_lock:
            with self._lock:
                if not len(self._buffer):
                    return False
                batch = self._buffer.detach()

            FLUSH_BATCH_SIZE.observe(len(batch))
            if self._deliver(batch, trigger=trigger):
                self._logger.debug("Flushed %d records trigger=%s", len(batch), trigger)
                return True

            with self._lock:
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

    def _deliver(self, payload: Any, *, trigger: str) -> bool:
        destination = resolve_index(self._config.index_name, self._config.daily_index)
        try:
            ok = bool(self._transport.send(payload, destination))
        except Exception:
            self._logger.exception("Transport raised while sending to index=%s", destination)
            ok = False
        SENDS.labels(trigger=trigger, outcome=outcome_label(ok)).inc()
        return ok


__all__ = ["LogShipper"]
