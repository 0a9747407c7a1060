"""Background drain for asynchronous write failures.

Batched writes report failures from the client's worker thread. This module
moves them onto a bounded queue read by one dedicated thread, so failures are
logged instead of lost and never block later writes.
"""

from __future__ import annotations

import queue
import threading
from typing import Any

from core.constants import DEFAULT_WRITE_ERROR_QUEUE_SIZE, WRITE_ERROR_THREAD_NAME
from core.types import WriteFailure


class WriteErrorDrain:
    """Dedicated thread logging write failures from a bounded queue."""

    def __init__(self, logger: Any, max_pending: int = DEFAULT_WRITE_ERROR_QUEUE_SIZE) -> None:
        self._logger = logger
        self._queue: queue.Queue[WriteFailure | None] = queue.Queue(maxsize=max_pending)
        self._thread = threading.Thread(
            target=self._run,
            name=WRITE_ERROR_THREAD_NAME,
            daemon=True,
        )
        self._lock = threading.Lock()
        self._failure_count = 0
        self._closed = False

    @property
    def failure_count(self) -> int:
        """Number of failures observed since start."""
        with self._lock:
            return self._failure_count

    @property
    def running(self) -> bool:
        """Whether the drain thread is alive."""
        return self._thread.is_alive()

    def start(self) -> None:
        """Start the drain thread."""
        self._thread.start()

    def report(self, failure: WriteFailure) -> None:
        """Queue a failure without blocking the caller.

        When the queue is full the failure is logged from the caller's thread.
        """
        with self._lock:
            self._failure_count += 1
        try:
            self._queue.put_nowait(failure)
        except queue.Full:
            self._log_failure(failure, queue_full=True)

    def on_error(self, conf: tuple[str, str, Any], data: Any, exception: BaseException) -> None:
        """Error callback with the signature used by the batching write API."""
        bucket, org, _ = conf
        payload_size = len(data) if data is not None else 0
        self.report(
            WriteFailure(bucket=bucket, org=org, payload_size=payload_size, error=str(exception))
        )

    def close(self, timeout: float | None = None) -> None:
        """Drain remaining failures, stop the thread and join it."""
        if self._closed:
            return
        self._closed = True
        if not self._thread.is_alive():
            return
        self._queue.put(None)
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            failure = self._queue.get()
            try:
                if failure is None:
                    return
                self._log_failure(failure, queue_full=False)
            finally:
                self._queue.task_done()

    def _log_failure(self, failure: WriteFailure, queue_full: bool) -> None:
        self._logger.error(
            "point_write_failed",
            bucket=failure.bucket,
            org=failure.org,
            payload_size=failure.payload_size,
            error=failure.error,
            queue_full=queue_full,
        )
