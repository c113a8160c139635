"""Ordering error taxonomy."""

from typing import Any, Optional


# Messages shown when the server gives none
NETWORK_ERROR_MESSAGE = "Network error: Could not connect to server"
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred"

STATUS_MESSAGES = {
    401: "Authentication required",
    403: "You do not have permission to access this resource",
    404: "Resource not found",
    500: "Server error: Please try again later",
    502: "Server error: Please try again later",
    503: "Server error: Please try again later",
}


def flatten_field_errors(errors: Any) -> dict[str, Any]:
    """
    Reduce a Laravel-style ``errors`` object to one message per field.

    ``{"table_id": ["required", "integer"]}`` becomes
    ``{"table_id": "required"}``; nested objects are flattened recursively.
    """
    if not isinstance(errors, dict):
        return {}

    flattened: dict[str, Any] = {}
    for field, value in errors.items():
        if isinstance(value, list):
            if value:
                flattened[field] = str(value[0])
        elif isinstance(value, str):
            flattened[field] = value
        elif isinstance(value, dict):
            flattened[field] = flatten_field_errors(value)
    return flattened


class OrderingError(Exception):
    """Base exception for cart and order errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# =============================================================================
# VALIDATION (raised before any network call)
# =============================================================================

class OrderValidationError(OrderingError):
    """Request rejected locally, nothing was sent."""


class EmptyCartError(OrderValidationError):
    """Submission attempted with no cart lines."""

    def __init__(self, message: str = "Your cart is empty") -> None:
        super().__init__(message)


class MissingTargetError(OrderValidationError):
    """Restaurant or table is missing from the session."""

    def __init__(
        self,
        message: str = "Missing restaurant or table information",
    ) -> None:
        super().__init__(message)


class InvalidCartItemError(OrderValidationError):
    """Menu item cannot become a cart line (e.g. non-positive price)."""


class NoValidItemsError(OrderValidationError):
    """Staff order form has no line with a meal, a quantity and a price."""

    def __init__(self, message: str = "Please add at least one valid order item") -> None:
        super().__init__(message)


class IllegalTransitionError(OrderValidationError):
    """Target status is not a legal move from the current status."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from {current} to {target}")


class DeletionNotAllowedError(OrderValidationError):
    """Order has progressed past the point where it may be deleted."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Orders in status '{status}' cannot be deleted")


# =============================================================================
# TRANSPORT / SERVER
# =============================================================================

class NetworkError(OrderingError):
    """No response was received from the Order Service."""

    def __init__(self, message: str = NETWORK_ERROR_MESSAGE) -> None:
        super().__init__(message)


class ServerRejectedError(OrderingError):
    """The Order Service answered with a structured rejection."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        field_errors: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.field_errors = field_errors or {}

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        status_code: Optional[int] = None,
    ) -> "ServerRejectedError":
        """Build from an error body, falling back to a status-based message."""
        message = None
        errors = None
        if isinstance(payload, dict):
            message = payload.get("message")
            errors = payload.get("errors")
        if not message:
            message = STATUS_MESSAGES.get(status_code, UNKNOWN_ERROR_MESSAGE)
        return cls(message, status_code, flatten_field_errors(errors))


# =============================================================================
# CONTRACT DEFECTS
# =============================================================================

class UnknownStatusError(OrderingError):
    """A status value outside the known enum was received."""

    def __init__(self, status: Any) -> None:
        self.status = status
        super().__init__(f"Unknown order status: {status!r}")
