"""
Custom exceptions and error handlers for consistent error responses.

Every rejection the tracking pipeline can produce has its own exception
class so callers (HTTP handlers, the webhook batch processor) can tell
client-caused failures from infrastructure failures.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("convoy.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class InvalidIdFormatError(AppException):
    """Raised when a ride or user identifier is not a 24-char hex string."""

    def __init__(self, field: str, value: Any = None):
        super().__init__(
            message=f"Invalid {field} format",
            error_code="ERR_TRACK_ID",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field, "value": value if isinstance(value, (str, int)) else None}
        )


class InvalidCoordinatesError(AppException):
    """Raised when latitude/longitude are missing, non-numeric or out of range."""

    def __init__(self, message: str = "latitude and longitude must be valid numbers"):
        super().__init__(
            message=message,
            error_code="ERR_TRACK_COORDS",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class InvalidTimestampError(AppException):
    """Raised when a supplied sample timestamp cannot be parsed."""

    def __init__(self, value: Any = None):
        super().__init__(
            message="timestamp must be an ISO-8601 string or epoch milliseconds",
            error_code="ERR_TRACK_TIMESTAMP",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"value": value if isinstance(value, (str, int, float)) else None}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, message: str = None):
        if message is None:
            message = f"{resource} not found"
            if resource_id:
                message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class RideNotFoundError(ResourceNotFoundError):
    """Raised when the referenced ride does not exist."""

    def __init__(self, ride_id: Any = None):
        super().__init__(resource="Ride", resource_id=ride_id)


class TrackingNotFoundError(ResourceNotFoundError):
    """Raised when no tracking record exists for a (ride, user) pair."""

    def __init__(self, ride_id: Any = None, user_id: Any = None):
        super().__init__(
            resource="RideTracking",
            resource_id=ride_id,
            message="No tracking data found for this ride"
        )
        self.details["user_id"] = user_id


class RideStateError(AppException):
    """Raised when a ride is in the wrong status for the requested operation."""

    def __init__(self, ride_status: str, message: str):
        super().__init__(
            message=message,
            error_code="ERR_RIDE_STATE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"status": ride_status}
        )


class RideNotActiveError(RideStateError):
    """Raised when a tracking operation targets a ride that is not active."""

    def __init__(self, ride_status: str, message: str = None):
        super().__init__(
            ride_status,
            message or f"Ride status is '{ride_status}'. Only active rides can be tracked."
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


class UnauthorizedRideAccessError(InsufficientPermissionsError):
    """Raised when the acting user is neither the ride owner nor an approved participant."""

    def __init__(self, message: str = "Access denied: not owner or approved participant"):
        super().__init__(message=message)


class InvalidTransitionError(AppException):
    """Raised for an illegal tracking or ride status transition."""

    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot transition from '{current}' to '{target}'",
            error_code="ERR_TRACK_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"current": current, "target": target}
        )


class TrackingNotActiveError(AppException):
    """Raised when a sample is appended to a paused or finished tracking record."""

    def __init__(self, tracking_status: str):
        super().__init__(
            message=f"Tracking is '{tracking_status}'. Samples are only accepted while active.",
            error_code="ERR_TRACK_INACTIVE",
            status_code=status.HTTP_409_CONFLICT,
            details={"tracking_status": tracking_status}
        )


class StoreUnavailableError(AppException):
    """Raised when the tracking store cannot be reached."""

    def __init__(self, message: str = "Tracking store is unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_STORE_UNAVAILABLE",
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


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if not exc.is_client_error:
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
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
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s: %s", request.url.path, type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
