"""
API error taxonomy
"""
from typing import Any, List, Optional


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response envelope."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_envelope(self) -> dict:
        return {"status": "error", "err_msg": self.message}


class PermissionDenied(ApiError):
    """The permission gate refused the operation."""

    status_code = 401

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class BadRequest(ApiError):
    """A query parameter could not be parsed or validated."""

    status_code = 400

    def __init__(self, message: str, param: Optional[str] = None):
        super().__init__(message)
        self.param = param

    def to_envelope(self) -> dict:
        envelope = super().to_envelope()
        if self.param is not None:
            envelope["param"] = self.param
        return envelope


class InvalidPath(BadRequest):
    """The request path does not match ``/{model}`` or ``/{model}/{id}``."""

    status_code = 404


class ExecutionFailure(ApiError):
    """SQL could not be built or executed."""

    status_code = 500

    def __init__(self, message: str, sql: Optional[str] = None, args: Optional[List[Any]] = None):
        super().__init__(message)
        self.sql = sql
        self.sql_args = list(args) if args is not None else []


class ConfigurationError(Exception):
    """Deployment misconfiguration (e.g. an unsupported database engine)."""
    pass
