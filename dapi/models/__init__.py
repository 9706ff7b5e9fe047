"""
Models Package - Export all SQLAlchemy models
"""
from dapi.models.user import User, Role, ModelPermission, ModelAccess, FULL_ACCESS, NO_ACCESS
from dapi.models.audit import AuditLog, AuditAction

__all__ = [
    # Users & access
    "User",
    "Role",
    "ModelPermission",
    "ModelAccess",
    "FULL_ACCESS",
    "NO_ACCESS",

    # Audit
    "AuditLog",
    "AuditAction",
]
