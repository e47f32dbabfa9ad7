"""
Application error taxonomy.

Every domain failure is raised as an AppError subclass carrying the HTTP
status code the route layer should answer with. Handlers in app.main turn
these into JSON responses.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400
    code: str = "APP_ERROR"

    def __init__(self, message: str, *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    """Malformed input. Never retried automatically."""

    status_code = 422
    code = "VALIDATION_ERROR"


class RateLimited(AppError):
    """A quota was exhausted; carries the seconds until the window resets."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: float):
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(AppError):
    """State-machine violation or lost compare-and-swap."""

    status_code = 409
    code = "CONFLICT"


class InvalidStatus(AppError):
    status_code = 400
    code = "INVALID_STATUS"


class PolicyViolation(AppError):
    """The caller is not allowed to perform this action on this record."""

    status_code = 403
    code = "POLICY_VIOLATION"


class AuthenticationRequired(AppError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class InvalidCode(AppError):
    """One-time code verification failed."""

    status_code = 400
    code = "INVALID_CODE"

    def __init__(self, message: str, reason: str):
        super().__init__(message, details={"reason": reason})
        self.reason = reason


class TransientStoreError(AppError):
    """The backing store is unavailable. Callers may retry with backoff."""

    status_code = 503
    code = "STORE_UNAVAILABLE"


class NotificationDeliveryError(Exception):
    """
    Outbound delivery failed.

    Only ever logged by the notification dispatcher, never propagated to
    the action that triggered the notification.
    """
