"""
Per-request context passed through the read pipeline and to response hooks
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class RequestContext:
    model: str
    params: Dict[str, str] = field(default_factory=dict)
    user: Optional[Any] = None
    ip_address: Optional[str] = None
    record_id: Optional[str] = None
    request: Optional[Any] = None

    @property
    def username(self) -> str:
        if self.user is None:
            return ""
        return getattr(self.user, "username", "") or ""

    @property
    def is_single(self) -> bool:
        return self.record_id is not None
