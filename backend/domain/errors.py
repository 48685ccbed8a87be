"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. Inside the submission workflow they are caught and turned into a
SubmissionResult, so the workflow's caller never sees them raised.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400). Raised before any storage write."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        self.field = field
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InvalidPhoneError(ValidationError):
    """Phone number is neither a valid Algerian nor Mauritanian mobile number."""
    def __init__(self, raw: str | None = None, field: str = "customer_phone"):
        super().__init__(
            "Invalid Algerian or Mauritanian phone number",
            field=field,
            details={"input": raw} if raw else None,
        )


class RateLimitError(DomainError):
    """Too many recent orders from one phone (429)."""
    def __init__(self, message: str = "Rate limit exceeded", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_429_TOO_MANY_REQUESTS, details=details)


class StorageError(DomainError):
    """A write or read against the order store failed (503)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class CompensationError(DomainError):
    """Best-effort rollback of a partially written order failed (500)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


class DispatchError(DomainError):
    """WhatsApp delivery failed: provider rejection, timeout or transport error (502)."""
    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        self.error_code = error_code
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)
