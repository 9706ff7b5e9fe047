"""
Trail - leveled logging sink used by the query pipeline
"""
from typing import Any, Optional
import enum
import structlog


class TrailLevel(enum.IntEnum):
    """Reporting levels, ordered by severity."""
    DEBUG = 0
    WORKING = 1
    INFO = 2
    OK = 3
    WARNING = 4
    ERROR = 5
    CRITICAL = 6
    ALERT = 7
    EMERGENCY = 8


DEBUG = TrailLevel.DEBUG
WORKING = TrailLevel.WORKING
INFO = TrailLevel.INFO
OK = TrailLevel.OK
WARNING = TrailLevel.WARNING
ERROR = TrailLevel.ERROR
CRITICAL = TrailLevel.CRITICAL
ALERT = TrailLevel.ALERT
EMERGENCY = TrailLevel.EMERGENCY


# structlog method used for each reporting level
_LOG_METHODS = {
    TrailLevel.DEBUG: "debug",
    TrailLevel.WORKING: "debug",
    TrailLevel.INFO: "info",
    TrailLevel.OK: "info",
    TrailLevel.WARNING: "warning",
    TrailLevel.ERROR: "error",
    TrailLevel.CRITICAL: "critical",
    TrailLevel.ALERT: "critical",
    TrailLevel.EMERGENCY: "critical",
}


class Trail:
    """
    Callable logging sink with a reporting threshold.

    Messages below ``reporting_level`` are dropped. Extra positional
    arguments are %-formatted into the message.

    Usage::

        trail = Trail(reporting_level=INFO)
        trail(ERROR, "SQL: %s ARGS: %r", sql, args)
    """

    def __init__(self, reporting_level: int = DEBUG, logger: Optional[Any] = None):
        self.reporting_level = int(reporting_level)
        self.logger = logger if logger is not None else structlog.get_logger("dapi.trail")

    def enabled(self, level: int) -> bool:
        """Return True when messages at ``level`` would be emitted."""
        return int(level) >= self.reporting_level

    def __call__(self, level: int, msg: Any, *args: Any) -> None:
        if not self.enabled(level):
            return

        message = str(msg)
        if args:
            try:
                message = message % args
            except (TypeError, ValueError):
                message = " ".join([message] + [repr(a) for a in args])

        level = TrailLevel(int(level))
        log_method = getattr(self.logger, _LOG_METHODS[level])
        log_method(message, trail_level=level.name)
