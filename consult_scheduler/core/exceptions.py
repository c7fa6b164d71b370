"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class SlotConflictException(ConflictException):
    """The requested slot was taken by another booking."""

    def __init__(
        self,
        taken_slots: set[str] | None = None,
        draft: dict[str, Any] | None = None,
        message: str = "Slot no longer available",
    ):
        """Carry the refreshed taken slots so the caller can re-render availability."""
        self.taken_slots = set(taken_slots or ())
        self.draft = draft
        details: dict[str, Any] = {"taken_slots": sorted(self.taken_slots)}
        if draft is not None:
            details["draft"] = draft
        super().__init__(message, details=details)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error", field: str | None = None):
        """Initialize with 422 status code."""
        self.field = field
        super().__init__(
            message,
            status_code=422,
            details={"field": field} if field else None,
        )


class InvalidTransitionException(ValidationException):
    """Status transition not allowed from the current state."""

    def __init__(self, current_status: str, action: str):
        """Initialize with the offending state and action."""
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} an appointment that is {current_status}")


class TransientStoreException(AppException):
    """Backend or network failure unrelated to business rules."""

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
