"""
Error taxonomy and lightweight error aggregation.
"""
import logging
import time
from collections import Counter, deque
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class UssdError(Exception):
    """Base class for errors raised inside the USSD core."""


class ServiceUnavailable(UssdError):
    """An external service timed out, refused, or answered with an error."""

    def __init__(self, service: str, operation: str, reason: str = ""):
        self.service = service
        self.operation = operation
        self.reason = reason
        super().__init__(f"{service}.{operation} unavailable: {reason}".rstrip(": "))


class SessionConflict(UssdError):
    """A session record changed underneath a read-modify-write."""

    def __init__(self, session_id: str, expected_version: Optional[int] = None,
                 actual_version: Optional[int] = None):
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"session {session_id[:8]} version conflict "
            f"(expected={expected_version}, actual={actual_version})"
        )


class StateInconsistency(UssdError):
    """The session points somewhere its scratch data or login cannot support."""


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorAggregator:
    """Keeps a rolling window of recent errors for the /metrics endpoint."""

    def __init__(self, max_samples: int = 500):
        self._recent: deque = deque(maxlen=max_samples)
        self._totals: Counter = Counter()

    def record(self, error_type: str, severity: ErrorSeverity) -> None:
        self._recent.append((time.time(), error_type, severity.value))
        self._totals[error_type] += 1

    def get_error_summary(self, window_seconds: int = 3600) -> Dict[str, Any]:
        cutoff = time.time() - window_seconds
        recent = [e for e in self._recent if e[0] >= cutoff]
        by_severity = Counter(sev for _, _, sev in recent)
        return {
            "total_errors": sum(self._totals.values()),
            "recent_errors": len(recent),
            "by_severity": dict(by_severity),
            "top_error_types": self._totals.most_common(5),
        }

    def reset(self) -> None:
        self._recent.clear()
        self._totals.clear()


error_aggregator = ErrorAggregator()


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None,
              severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> None:
    """Log an error with context and record it in the aggregator."""
    error_type = type(error).__name__
    error_aggregator.record(error_type, severity)

    level = logging.ERROR if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL) else logging.WARNING
    logger.log(
        level,
        "[%s] %s: %s context=%s",
        severity.value, error_type, error, context or {},
        exc_info=severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL),
    )
