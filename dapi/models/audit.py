"""
Audit Log Model
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
import enum

from dapi.database import Base


class AuditAction(str, enum.Enum):
    """Types of auditable API actions"""
    READ = "read"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class AuditLog(Base):
    """Append-only record of an API operation."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Actor
    username = Column(String(100), nullable=False, default="", index=True)

    # Action
    action = Column(String(20), nullable=False, index=True)
    table_name = Column(String(255), nullable=False, index=True)
    table_id = Column(Integer, nullable=False, default=0)

    # JSON document: {"params": ..., "rows_count": ..., "_IP": ...}
    activity = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
