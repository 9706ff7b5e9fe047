"""
Audit Log Store
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import threading

from sqlalchemy.orm import sessionmaker
import structlog

from dapi.database import session_scope
from dapi.models import AuditLog

logger = structlog.get_logger()


@dataclass
class AuditEntry:
    """One auditable API operation, before it is persisted."""
    username: str
    action: str
    table_name: str
    table_id: int = 0
    activity: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)


class AuditLogStore:
    """
    Append-only persistence for ``AuditEntry`` records.

    Appends are serialized with a lock and each runs in its own
    transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> int:
        """Persist ``entry`` and return the new row id."""
        with self._lock:
            with session_scope(self.session_factory) as db:
                audit = AuditLog(
                    username=entry.username or "",
                    action=entry.action,
                    table_name=entry.table_name,
                    table_id=entry.table_id or 0,
                    activity=json.dumps(entry.activity, default=str),
                    created_at=entry.created_at,
                )
                db.add(audit)
                db.flush()
                audit_id = audit.id

        logger.debug(
            "audit_event",
            action=entry.action,
            username=entry.username,
            table_name=entry.table_name,
            table_id=entry.table_id,
        )
        return audit_id

    def list(self, table_name: Optional[str] = None, limit: int = 100) -> List[AuditEntry]:
        """Most recent entries first, optionally for one table."""
        with session_scope(self.session_factory) as db:
            query = db.query(AuditLog)
            if table_name:
                query = query.filter(AuditLog.table_name == table_name)
            rows = query.order_by(AuditLog.id.desc()).limit(limit).all()
            return [
                AuditEntry(
                    username=row.username,
                    action=row.action,
                    table_name=row.table_name,
                    table_id=row.table_id,
                    activity=json.loads(row.activity) if row.activity else {},
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def count(self) -> int:
        with session_scope(self.session_factory) as db:
            return db.query(AuditLog).count()
