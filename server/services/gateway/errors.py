"""Gateway exception hierarchy.

Every error raised while dispatching an operation derives from GatewayError
and is converted into an error envelope at the dispatcher boundary.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .adapter import RemoteError


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Error payload: {"error": message, "details": {...}}."""
        return {
            "error": str(self),
            "details": {"type": type(self).__name__, **self.details()},
        }


# =============================================================================
# Request validation (never retried, never counted in metrics)
# =============================================================================

class RequestValidationError(GatewayError):
    """The request was rejected before any remote call."""


class UnknownOperation(RequestValidationError):
    """Operation name is not in the known operation set."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Unknown operation: {operation}")

    def details(self) -> Dict[str, Any]:
        return {"operation": self.operation}


class MissingParameter(RequestValidationError):
    """A required parameter is absent."""

    def __init__(self, operation: str, field: str):
        self.operation = operation
        self.field = field
        super().__init__(f"Missing required parameter '{field}' for {operation}")

    def details(self) -> Dict[str, Any]:
        return {"operation": self.operation, "field": self.field}


class InvalidParameter(RequestValidationError):
    """A parameter is present but has the wrong shape."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid parameter '{field}': {message}")

    def details(self) -> Dict[str, Any]:
        return {"field": self.field}


class InvalidFilter(RequestValidationError):
    """A filter condition is malformed."""

    def __init__(self, message: str, index: Optional[int] = None,
                 column: Optional[str] = None):
        self.index = index
        self.column = column
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.index is not None:
            data["index"] = self.index
        if self.column is not None:
            data["column"] = self.column
        return data


class UnsupportedFilterOperator(InvalidFilter):
    """Filter operator is not in the supported set."""

    def __init__(self, operator: Any, index: Optional[int] = None,
                 column: Optional[str] = None):
        self.operator = operator
        super().__init__(f"Unsupported filter operator: {operator!r}", index, column)

    def details(self) -> Dict[str, Any]:
        return {**super().details(), "operator": self.operator}


class InvalidFilterValue(InvalidFilter):
    """Filter value's shape does not match its operator."""

    def __init__(self, operator: str, expected: str, index: Optional[int] = None,
                 column: Optional[str] = None):
        self.operator = operator
        self.expected = expected
        super().__init__(
            f"Invalid value for operator '{operator}': expected {expected}", index, column
        )

    def details(self) -> Dict[str, Any]:
        return {**super().details(), "operator": self.operator, "expected": self.expected}


# =============================================================================
# Remote failures
# =============================================================================

class RemoteCallFailed(GatewayError):
    """The remote data adapter reported an error."""

    def __init__(self, remote_error: "RemoteError"):
        self.remote_error = remote_error
        super().__init__(remote_error.message)

    def details(self) -> Dict[str, Any]:
        return self.remote_error.to_dict()


class RetriesExhausted(GatewayError):
    """Every attempt failed; carries the error from the final attempt."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Retries exhausted after {attempts} attempts: {last_error}")

    def details(self) -> Dict[str, Any]:
        last = (self.last_error.to_dict() if isinstance(self.last_error, GatewayError)
                else {"error": str(self.last_error),
                      "details": {"type": type(self.last_error).__name__}})
        return {"attempts": self.attempts, "last_error": last}


class DeadlineExceeded(GatewayError):
    """The call's deadline elapsed during an attempt or a backoff wait."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"Deadline exceeded after {attempts} attempts"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"attempts": self.attempts}
        if self.last_error is not None:
            data["last_error"] = str(self.last_error)
        return data


class AdapterConfigError(GatewayError):
    """The remote adapter cannot be constructed (raised at startup)."""
