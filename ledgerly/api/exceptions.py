"""Custom exception classes for Ledgerly.

This module defines custom exception classes for consistent error handling
across the API and the batch jobs. All exceptions inherit from LedgerlyException
which provides a base error code and message structure.
"""

from typing import List, Optional


class LedgerlyException(Exception):
    """Base exception class for Ledgerly errors.

    All custom exceptions should inherit from this class.
    Provides error code and message structure.
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)


class UserNotFoundError(LedgerlyException):
    """Exception raised when a user is not found."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User not found: {user_id}",
            error_code="USER_NOT_FOUND"
        )
        self.user_id = user_id


class InvalidInputError(LedgerlyException):
    """Exception raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        error_code = f"INVALID_INPUT_{field.upper()}" if field else "INVALID_INPUT"
        super().__init__(message=message, error_code=error_code)
        self.field = field


class UnauthorizedError(LedgerlyException):
    """Exception raised when authentication fails."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, error_code="UNAUTHORIZED")


class ForbiddenError(LedgerlyException):
    """Exception raised when user lacks required permissions."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message=message, error_code="FORBIDDEN")


class RateLimitError(LedgerlyException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        super().__init__(message=message, error_code="RATE_LIMIT_EXCEEDED")
        self.retry_after = retry_after


class ConflictError(LedgerlyException):
    """Exception raised when a resource already exists."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="CONFLICT")


class HealthCalculationError(LedgerlyException):
    """Exception raised when a health snapshot could not be computed for a user."""

    def __init__(self, user_id: str, failed_modes: List[str], reason: str):
        super().__init__(
            message=f"Health calculation failed for user {user_id} ({', '.join(failed_modes)}): {reason}",
            error_code="HEALTH_CALCULATION_FAILED"
        )
        self.user_id = user_id
        self.failed_modes = failed_modes


class WebhookSignatureError(LedgerlyException):
    """Exception raised when a billing webhook signature cannot be verified."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message=message, error_code="INVALID_SIGNATURE")


class UpstreamServiceError(LedgerlyException):
    """Exception raised when a third-party service (price quotes) fails."""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"{service} request failed: {message}",
            error_code="UPSTREAM_SERVICE_ERROR"
        )
        self.service = service
