"""Custom exceptions for the application."""
from typing import Optional


class ChroniclesException(Exception):
    """Base exception for all coffee-date-chronicles errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(ChroniclesException):
    """Raised when input fails validation. Tagged with the offending field."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, status_code=400)


class NotFoundException(ChroniclesException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} with ID {identifier} not found"
        super().__init__(message, status_code=404)


class ConflictException(ChroniclesException):
    """Raised when a conditional write loses against a concurrent writer."""

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} with ID {identifier} was modified concurrently, retry the request"
        super().__init__(message, status_code=409)


class AuthenticationException(ChroniclesException):
    """Raised when a protected operation is attempted without a valid session."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)


class DataAccessException(ChroniclesException):
    """Raised when the record store fails. Wraps the underlying cause."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(f"Database error: {message}", status_code=500)


class StorageException(ChroniclesException):
    """Raised when blob storage operations fail."""

    def __init__(self, message: str):
        super().__init__(f"Storage error: {message}", status_code=500)


class ImageProcessingException(ChroniclesException):
    """Raised when image processing fails."""

    def __init__(self, message: str):
        super().__init__(f"Image processing error: {message}", status_code=500)


class ExternalServiceException(ChroniclesException):
    """Raised when a third-party API call fails."""

    QUOTA_STATUSES = {"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT", "RESOURCE_EXHAUSTED"}

    def __init__(self, service: str, message: str, status: Optional[str] = None):
        self.service = service
        self.status = status
        status_code = 429 if status in self.QUOTA_STATUSES else 502
        super().__init__(message, status_code=status_code)
