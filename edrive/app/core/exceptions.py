"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Every dispatch failure the client must tell apart (validation, unknown id,
illegal state change, lost accept race, backend unavailable) has its own class.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for malformed input that pydantic cannot catch (e.g. cross-field rules)."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidTransitionError(AppException):
    """Raised when a ride status change is not allowed by the state machine."""

    def __init__(self, current: str, attempted: str):
        super().__init__(
            message=f"Cannot move ride from '{current}' to '{attempted}'",
            error_code="ERR_TRANSITION_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current, "attempted_status": attempted}
        )


class AlreadyAcceptedError(AppException):
    """Raised to the loser of an accept race."""

    def __init__(self, request_id: str, current: str):
        super().__init__(
            message="This ride was already taken",
            error_code="ERR_ALREADY_ACCEPTED",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "current_status": current}
        )


class RequestNotPendingError(AppException):
    """Raised when an offer targets a request that no longer takes bids."""

    def __init__(self, request_id: str, current: str):
        super().__init__(
            message="Ride request is no longer accepting offers",
            error_code="ERR_NOT_PENDING",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "current_status": current}
        )


class ActiveRideExistsError(AppException):
    """Raised when a passenger already has an open ride request."""

    def __init__(self, request_id: str):
        super().__init__(
            message="You already have an active ride request",
            error_code="ERR_ACTIVE_RIDE",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id}
        )


class TripNotActiveError(AppException):
    """Raised when a trip-scoped action needs an accepted or ongoing trip."""

    def __init__(self, request_id: str, current: str):
        super().__init__(
            message="Trip is not active",
            error_code="ERR_TRIP_INACTIVE",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "current_status": current}
        )


class DuplicateReviewError(AppException):
    """Raised when a participant rates the same trip twice."""

    def __init__(self, trip_id: str):
        super().__init__(
            message="You have already rated this trip",
            error_code="ERR_REVIEW_DUPLICATE",
            status_code=status.HTTP_409_CONFLICT,
            details={"trip_id": trip_id}
        )


class TransportError(AppException):
    """Raised when the backing store stays unreachable after bounded retries."""

    def __init__(self, message: str = "Backend temporarily unavailable, please retry"):
        super().__init__(
            message=message,
            error_code="ERR_TRANSPORT_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class TokenRevokedError(AppException):
    """Raised when token has been revoked."""

    def __init__(self):
        super().__init__(
            message="Token has been revoked",
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. raised ValueErrors) from pydantic errors."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
