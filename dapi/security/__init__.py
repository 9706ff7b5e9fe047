"""
Security Package
"""
from dapi.security.gate import GateDecision, PermissionGate, READ, WRITE

__all__ = ["GateDecision", "PermissionGate", "READ", "WRITE"]
