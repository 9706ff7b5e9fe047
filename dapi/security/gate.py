"""
Permission Gate
Decides whether a request may run an operation on a model and whether
the outcome is audited.
"""
from dataclasses import dataclass
from typing import Any, Optional

from dapi.registry import ModelRegistration

READ = "read"
WRITE = "write"

OPERATIONS = (READ, WRITE)


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the gate for one request."""
    allowed: bool
    should_log: bool


class PermissionGate:
    """
    Resolve access from the model's hooks and the user's role access.

    Order of evaluation:

    1. A disable hook returning True denies outright; returning False
       allows, unless a public hook says otherwise.
    2. A public hook's result becomes the decision.
    3. If still denied and a user is present, the user's role access for
       the model decides.
    """

    def __init__(self, log_read: bool = True, log_write: bool = True):
        self.log_read = log_read
        self.log_write = log_write

    def resolve(self, registration: ModelRegistration, operation: str,
                request: Any, user: Optional[Any] = None) -> GateDecision:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")

        should_log = self._should_log(registration, operation, request)

        allowed = False
        disabled = registration.disabled_hook(operation)
        if disabled is not None:
            if disabled(request):
                return GateDecision(allowed=False, should_log=should_log)
            allowed = True

        public = registration.public_hook(operation)
        if public is not None:
            allowed = bool(public(request))

        if not allowed and user is not None:
            access = user.get_access(registration.name)
            allowed = access.read if operation == READ else access.write

        return GateDecision(allowed=bool(allowed), should_log=should_log)

    def _should_log(self, registration: ModelRegistration, operation: str, request: Any) -> bool:
        hook = registration.log_hook(operation)
        if hook is not None:
            return bool(hook(request))
        return self.log_read if operation == READ else self.log_write
