"""Error handlers for the Ledgerly API.

Every error leaves the API in one envelope:
``{"error": {"code", "message", "request_id", "details?"}}``.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ledgerly.api.exceptions import (
    ConflictError,
    ForbiddenError,
    HealthCalculationError,
    InvalidInputError,
    LedgerlyException,
    RateLimitError,
    UnauthorizedError,
    UpstreamServiceError,
    UserNotFoundError,
    WebhookSignatureError,
)
from ledgerly.database.store import StoreError
from ledgerly.utils.logging import get_logger

logger = get_logger("api")

STATUS_MAP = {
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    RateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    ConflictError: status.HTTP_409_CONFLICT,
    HealthCalculationError: status.HTTP_502_BAD_GATEWAY,
    WebhookSignatureError: status.HTTP_400_BAD_REQUEST,
    UpstreamServiceError: status.HTTP_502_BAD_GATEWAY,
}


def get_request_id(request: Request) -> str:
    """Request ID set by the middleware, else the X-Request-ID header."""
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return request.headers.get("X-Request-ID", "unknown")


def create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    details: dict = None,
    headers: dict = None,
) -> JSONResponse:
    """Create standardized error response.

    Args:
        status_code: HTTP status code
        error_code: Machine-readable error code
        message: Human-readable error message
        request_id: Request ID for tracing
        details: Additional error details
        headers: Extra response headers

    Returns:
        JSONResponse with error structure
    """
    error_response = {
        "error": {
            "code": error_code,
            "message": message,
            "request_id": request_id,
        }
    }

    if details:
        error_response["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=error_response, headers=headers)


async def ledgerly_exception_handler(request: Request, exc: LedgerlyException) -> JSONResponse:
    """Map Ledgerly exceptions to their HTTP status."""
    status_code = STATUS_MAP.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    request_id = get_request_id(request)

    details = None
    headers = None
    if isinstance(exc, HealthCalculationError):
        details = {"user_id": exc.user_id, "failed_modes": exc.failed_modes}
    elif isinstance(exc, InvalidInputError) and exc.field:
        details = {"field": exc.field}
    elif isinstance(exc, RateLimitError) and exc.retry_after:
        details = {"retry_after": exc.retry_after}
        headers = {"Retry-After": str(exc.retry_after)}

    if status_code >= 500:
        logger.error(f"[{request_id}] {exc.error_code}: {exc.message}")

    return create_error_response(
        status_code=status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        details=details,
        headers=headers,
    )


async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Storage failures surface as an upstream error."""
    request_id = get_request_id(request)
    logger.error(f"[{request_id}] Store error on {exc.table}: {exc.message}")
    return create_error_response(
        status_code=status.HTTP_502_BAD_GATEWAY,
        error_code="STORE_ERROR",
        message=f"Data store error on {exc.table}",
        request_id=request_id,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    request_id = get_request_id(request)

    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error_code="VALIDATION_ERROR",
        message="Input validation failed",
        request_id=request_id,
        details={"validation_errors": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True)

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        request_id=request_id,
    )
