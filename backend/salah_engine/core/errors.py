"""Error Hierarchy — typed, categorized exceptions for all Salah Engine failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - InvalidCoordinateError is the only error a schedule caller must handle
    - Remote errors are absorbed by the schedule service (local fallback), never surfaced
    - PolarConditionApproximated is informational: logged, never raised
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with SalahError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    EXTERNAL_API = "external_api"
    TIMEOUT = "timeout"
    ASTRONOMICAL = "astronomical"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cache_key: str | None = None
    method_id: str | None = None
    attempt: int | None = None
    debug_info: dict[str, Any] | None = None


class SalahError(Exception):
    """Base exception for all Salah Engine errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Contract Violations (400-level) ────────────────────────────

class InvalidCoordinateError(SalahError):
    """Latitude/longitude is NaN, infinite, non-numeric, or out of range."""
    def __init__(self, field: str, value: object, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid {field}: {value!r}",
            "INVALID_COORDINATE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field
        self.value = value


class UnknownMethodError(SalahError):
    """Calculation method id not present in the registry."""
    def __init__(self, method_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown calculation method '{method_id}'",
            "UNKNOWN_METHOD", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.method_id = method_id


class InvalidTimezoneError(SalahError):
    """Timezone name not present in the IANA database."""
    def __init__(self, timezone_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown timezone '{timezone_name}'",
            "INVALID_TIMEZONE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.timezone_name = timezone_name


# ─── Remote Provider Errors (absorbed by fallback) ──────────────

class RemoteUnavailableError(SalahError):
    """Remote time source timed out, refused, or answered with a server error."""
    def __init__(
        self, message: str, reason: str, context: ErrorContext | None = None,
    ):
        category = (
            ErrorCategory.TIMEOUT if reason == "timeout" else ErrorCategory.EXTERNAL_API
        )
        super().__init__(
            f"Remote prayer time source unavailable ({reason}): {message}",
            "REMOTE_UNAVAILABLE", category,
            ErrorSeverity.WARNING, context, 503,
        )
        self.reason = reason


class RemoteMalformedResponseError(SalahError):
    """Remote payload missing a canonical prayer or carrying an unparseable time."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed remote response: {message}",
            "REMOTE_MALFORMED_RESPONSE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )


# ─── Informational ──────────────────────────────────────────────

class PolarConditionApproximated(SalahError):
    """High-latitude fallback had to use a floor/approximation. Logged, not raised."""
    def __init__(
        self, prayers: list[str], latitude: float, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Approximated {', '.join(prayers)} at latitude {latitude:.4f}",
            "POLAR_CONDITION_APPROXIMATED", ErrorCategory.ASTRONOMICAL,
            ErrorSeverity.INFO, context, 200,
        )
        self.prayers = prayers
        self.latitude = latitude
