"""
Error taxonomy shared by the store, pipeline and HTTP layers.

AppError subclasses carry the HTTP status and the stable machine-readable
code rendered in the `{success: false, error: {...}}` envelope. Store and
notification errors never reach the client directly: the pipeline maps
them or the exception handlers collapse them into SERVER_ERROR.
"""

from typing import Any


class AppError(Exception):
    """Operational error with a client-facing code and message."""

    status_code: int = 500
    code: str = "SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class DuplicateEmailError(AppError):
    status_code = 400
    code = "DUPLICATE_EMAIL"

    def __init__(self, email: str | None = None):
        super().__init__("Email already registered")
        self.email = email


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class RateLimitedError(AppError):
    status_code = 429
    code = "RATE_LIMITED"


class RequestTimeoutError(AppError):
    status_code = 408
    code = "REQUEST_TIMEOUT"

    def __init__(self, timeout_seconds: float):
        super().__init__(
            "Request timeout - please try again",
            details=f"Request took longer than {int(timeout_seconds * 1000)}ms to process",
        )
        self.timeout_seconds = timeout_seconds


class NotificationDeliveryError(AppError):
    status_code = 500
    code = "EMAIL_SEND_FAILED"


class ServerError(AppError):
    status_code = 500
    code = "SERVER_ERROR"


# Store layer


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class DuplicateKeyError(DatabaseError):
    """Unique constraint rejected the write."""

    def __init__(self, field: str, operation: str = "insert"):
        super().__init__(f"{field} already exists", operation=operation, recoverable=False)
        self.field = field


class RecordNotFoundError(DatabaseError):
    def __init__(self, message: str, operation: str = "lookup"):
        super().__init__(message, operation=operation, recoverable=False)


class StoreUnavailableError(DatabaseError):
    """Connectivity or timeout failure talking to the store."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message, operation=operation, recoverable=True)


# Notification layer (logged, never surfaced on the intake path)


class NotificationError(Exception):
    """Delivery attempt failed; `errors` holds the per-channel reasons."""

    def __init__(self, message: str, channel: str | None = None, errors: tuple[str, ...] = ()):
        super().__init__(message)
        self.channel = channel
        self.errors = tuple(errors)


class NotificationUnavailable(NotificationError):
    """No channel in the chain has credentials configured; retrying won't help."""


class NotificationTimeout(NotificationError):
    """Delivery attempt exceeded its time budget."""
