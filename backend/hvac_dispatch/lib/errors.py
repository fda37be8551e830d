"""
Domain exceptions.

Each exception carries the HTTP status the API layer answers with, so
services can raise them directly and the error handler middleware only
has to render them.
"""
from typing import Optional, Dict, Any

from fastapi import status


class AppException(Exception):
    """Base application exception."""
    
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""
    
    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "resource_id": resource_id},
        )


class BadRequestException(AppException):
    """Bad request exception."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class ConflictException(AppException):
    """Resource conflict exception."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details or {},
        )


class InvalidTransitionException(ConflictException):
    """Requested booking status is not reachable from the current one."""
    
    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot move booking from '{current_status}' to '{requested_status}'",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class AlreadyCompletedException(ConflictException):
    """Booking has already been completed."""
    
    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Booking with id '{booking_id}' is already completed",
            details={"booking_id": booking_id},
        )


class ValidationException(AppException):
    """Validation error exception."""
    
    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors or {}},
        )


class DataSourceException(AppException):
    """The persistence layer failed to read or write."""
    
    def __init__(self, operation: str):
        super().__init__(
            message=f"Failed to {operation}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation},
        )
