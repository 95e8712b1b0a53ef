"""Error taxonomy for order thread operations.

Services raise these; app.main renders them as ``{"detail", "code", ...}``
with the matching HTTP status.
"""

from typing import Any


class OrderThreadError(Exception):
    """Base exception for order thread errors."""

    status_code = 500
    code = "order_error"

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(OrderThreadError):
    """Malformed id, empty body, or unknown status/admin."""

    status_code = 400
    code = "validation_error"


class Forbidden(OrderThreadError):
    """Actor is neither owner nor admin, or lacks admin for admin-only operations."""

    status_code = 403
    code = "forbidden"


class NotFound(OrderThreadError):
    """Order (or referenced row) does not exist."""

    status_code = 404
    code = "not_found"


class OrderClosed(OrderThreadError):
    """Order status no longer allows posting."""

    status_code = 409
    code = "order_closed"

    def __init__(self, status: str) -> None:
        super().__init__(
            f"Order is {status}; updates are closed.",
            status=status,
            reason="closed",
        )
        self.status = status


class RateLimited(OrderThreadError):
    """Author already posted to this order within the current second."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Please wait a moment and try again.") -> None:
        super().__init__(message)


class StorageError(OrderThreadError):
    """Database write failed for a reason other than the rate limit."""

    status_code = 500
    code = "storage_error"


class NotificationError(OrderThreadError):
    """Email delivery failed. Logged by the dispatcher, never surfaced."""

    code = "notification_error"
