"""Exception types for range construction and counting.

Configuration errors (unknown boundary types, unsupported dialects,
malformed ranges) are raised when things are built, never while counting.
Transient errors are the ones a retry might fix; RangeCounter recovers
from them locally and hands the range back uncounted.
"""

from typing import Any


class RangeConfigurationException(Exception):
    """Base class for configuration errors.

    Raised while building splitters, ranges, or counters. These indicate
    a caller bug or unsupported setup and are never retried.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the problem.
            context: Optional dict of additional context.
        """
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class BoundaryConfigurationException(RangeConfigurationException):
    """Raised when a boundary-type descriptor has no matching splitter.

    Attributes:
        boundary_type: The descriptor (or its textual name) that failed.
    """

    def __init__(self, boundary_type: Any, reason: str) -> None:
        self.boundary_type = boundary_type
        super().__init__(
            f"Unsupported boundary type {boundary_type!r}: {reason}",
            {"boundary_type": boundary_type},
        )


class DialectConfigurationException(RangeConfigurationException):
    """Raised when no dialect adapter exists for a database dialect.

    Attributes:
        dialect_name: The SQLAlchemy dialect name that was requested.
    """

    def __init__(self, dialect_name: str, supported: list[str]) -> None:
        self.dialect_name = dialect_name
        self.supported = supported
        super().__init__(
            f"No dialect adapter for '{dialect_name}'",
            {"supported": ", ".join(supported)},
        )


class RangeConstructionException(RangeConfigurationException):
    """Raised when a Range cannot be built.

    Covers missing required builder fields and violated invariants
    (start not below end, count present without Counted state, ...).

    Attributes:
        missing_fields: Required builder fields that were never set.
    """

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.missing_fields = missing_fields or []
        context = dict(context or {})
        if self.missing_fields:
            context["missing_fields"] = ", ".join(self.missing_fields)
        super().__init__(message, context)


# =============================================================================
# Transient Exceptions
# =============================================================================


class TransientException(Exception):
    """Base class for counting failures that might resolve on retry.

    RangeCounter never raises these to its caller: it logs them and
    returns the input range unchanged. Re-attempting is the job of the
    splitting algorithm that consumes the range.
    """

    pass


class StatementTimeoutException(TransientException):
    """Raised when the counting statement exceeds its time budget.

    Attributes:
        column_name: Column of the range being counted.
        timeout_seconds: The configured timeout in seconds.
        message: Human-readable error message.
    """

    def __init__(self, column_name: str, timeout_seconds: float) -> None:
        self.column_name = column_name
        self.timeout_seconds = timeout_seconds
        self.message = (
            f"Count over '{column_name}' timed out after {timeout_seconds}s"
        )
        super().__init__(self.message)


class EmptyCountResultException(TransientException):
    """Raised when a COUNT query yields no row or a NULL value.

    An aggregate COUNT always returns exactly one non-null row, so this
    points at a driver or environment anomaly rather than a true zero.

    Attributes:
        column_name: Column of the range being counted.
        reason: "no row" or "null value".
    """

    def __init__(self, column_name: str, reason: str) -> None:
        self.column_name = column_name
        self.reason = reason
        self.message = f"Count over '{column_name}' returned {reason}"
        super().__init__(self.message)


class MalformedCountResultException(Exception):
    """Raised when the count column holds something that is not a number.

    Not transient: a query template that selects the wrong column will
    keep doing so.
    """

    def __init__(self, column_name: str, value: Any) -> None:
        self.column_name = column_name
        self.value = value
        self.message = (
            f"Count over '{column_name}' returned non-numeric value {value!r}"
        )
        super().__init__(self.message)
