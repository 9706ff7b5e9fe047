"""
Tests for the audit log store and its background queue
"""
import threading

import pytest

from dapi.audit import AuditEntry, AuditLogStore, AuditQueue
from dapi.models import AuditAction


def entry(n=0, table_name="Book"):
    return AuditEntry(
        username="reader",
        action=AuditAction.READ.value,
        table_name=table_name,
        table_id=n,
        activity={"params": {"id": str(n)}, "rows_count": 1, "_IP": "10.0.0.1:5000"},
    )


@pytest.fixture
def store(store_session_factory):
    return AuditLogStore(store_session_factory)


class RecordingStore:
    """Fails on the first append, records the rest."""

    def __init__(self):
        self.entries = []
        self.calls = 0

    def append(self, entry):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("audit database is locked")
        self.entries.append(entry)


class TestAuditLogStore:
    """Persistence of entries"""

    def test_append_and_list(self, store):
        audit_id = store.append(entry(3))

        assert audit_id is not None
        [saved] = store.list()
        assert saved.username == "reader"
        assert saved.action == "read"
        assert saved.table_id == 3
        assert saved.activity == {"params": {"id": "3"}, "rows_count": 1, "_IP": "10.0.0.1:5000"}
        assert saved.created_at is not None

    def test_list_by_table(self, store):
        store.append(entry(1, "Book"))
        store.append(entry(2, "Author"))

        assert [e.table_name for e in store.list(table_name="Author")] == ["Author"]
        assert store.count() == 2

    def test_concurrent_appends(self, store):
        def worker(offset):
            for i in range(20):
                store.append(entry(offset + i))

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.count() == 100
        assert len({e.table_id for e in store.list(limit=200)}) == 100


class TestAuditQueue:
    """Non-blocking enqueue and background persistence"""

    def test_worker_persists_entries(self, store, trail):
        audit_queue = AuditQueue(store, maxsize=50, trail=trail)
        audit_queue.start()
        try:
            for i in range(10):
                assert audit_queue.enqueue(entry(i)) is True
            audit_queue.join()
        finally:
            audit_queue.close()

        assert store.count() == 10
        assert audit_queue.running is False

    def test_full_queue_drops_with_warning(self, store, trail, trail_logger):
        audit_queue = AuditQueue(store, maxsize=1, trail=trail)

        assert audit_queue.enqueue(entry(1)) is True
        assert audit_queue.enqueue(entry(2)) is False
        assert audit_queue.dropped == 1
        assert trail_logger.messages("WARNING") == ["Audit queue full, dropping read entry for Book"]

    def test_close_flushes_pending_entries(self, store, trail):
        audit_queue = AuditQueue(store, maxsize=10, trail=trail)
        for i in range(5):
            audit_queue.enqueue(entry(i))
        audit_queue.start()
        audit_queue.close()

        assert store.count() == 5

    def test_store_failure_is_swallowed(self, trail, trail_logger):
        recording = RecordingStore()
        audit_queue = AuditQueue(recording, trail=trail)
        audit_queue.start()
        try:
            audit_queue.enqueue(entry(1))
            audit_queue.enqueue(entry(2))
            audit_queue.join()
        finally:
            audit_queue.close()

        assert [e.table_id for e in recording.entries] == [2]
        assert trail_logger.messages("ERROR") == ["Unable to save audit log for Book: audit database is locked"]

    def test_concurrent_enqueue(self, store, trail):
        audit_queue = AuditQueue(store, maxsize=1000, trail=trail)
        audit_queue.start()

        def producer(offset):
            for i in range(25):
                audit_queue.enqueue(entry(offset + i))

        threads = [threading.Thread(target=producer, args=(n * 100,)) for n in range(8)]
        try:
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            audit_queue.join()
        finally:
            audit_queue.close()

        assert store.count() == 200
