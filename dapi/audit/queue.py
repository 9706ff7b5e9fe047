"""
Audit Queue

Request threads enqueue entries without blocking; a single background
worker writes them to the store. When the queue is full the entry is
dropped and a WARNING is trailed.
"""
from typing import Optional
import queue
import threading

import structlog

from dapi.audit.store import AuditEntry, AuditLogStore
from dapi.trail import ERROR, WARNING, Trail

logger = structlog.get_logger()

_STOP = object()


class AuditQueue:
    """Bounded queue feeding an ``AuditLogStore`` from a worker thread."""

    def __init__(self, store: AuditLogStore, maxsize: int = 1000, trail: Optional[Trail] = None):
        self.store = store
        self.trail = trail or Trail()
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._worker: Optional[threading.Thread] = None
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the worker thread (no-op if already running)."""
        if self.running:
            return
        self._worker = threading.Thread(target=self._run, name="dapi-audit", daemon=True)
        self._worker.start()
        logger.info("audit_worker_started", maxsize=self._queue.maxsize)

    def enqueue(self, entry: AuditEntry) -> bool:
        """
        Queue ``entry`` for persistence.

        Returns:
            False when the queue was full and the entry was dropped
        """
        try:
            self._queue.put_nowait(entry)
            return True
        except queue.Full:
            self.dropped += 1
            self.trail(WARNING, "Audit queue full, dropping %s entry for %s", entry.action, entry.table_name)
            return False

    def join(self) -> None:
        """Block until every queued entry has been processed."""
        self._queue.join()

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Flush pending entries and stop the worker."""
        if not self.running:
            return
        self._queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None
        logger.info("audit_worker_stopped", dropped=self.dropped)

    def _run(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                if entry is _STOP:
                    return
                self.store.append(entry)
            except Exception as e:
                # Audit failures never reach the request path
                self.trail(ERROR, "Unable to save audit log for %s: %s", entry.table_name, str(e))
                logger.error("audit_write_error", table_name=entry.table_name, error=str(e))
            finally:
                self._queue.task_done()
