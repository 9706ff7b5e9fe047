"""
Audit Package - asynchronous, append-only audit logging
"""
from dapi.audit.store import AuditEntry, AuditLogStore
from dapi.audit.queue import AuditQueue

__all__ = ["AuditEntry", "AuditLogStore", "AuditQueue"]
