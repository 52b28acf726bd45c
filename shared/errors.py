"""
Shared error handling for the Edge Flags services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class FlagsServiceException(Exception):
    """Base exception for flags services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(FlagsServiceException):
    """Malformed or missing evaluation parameters."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(FlagsServiceException):
    """Flag absent for the requested environment."""

    status_code = 404

    def __init__(self, message: str = "Flag not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class StoreUnavailableError(FlagsServiceException):
    """Transient flag store failure (timeout, connectivity)."""

    status_code = 503

    def __init__(self, message: str = "Flag store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_UNAVAILABLE", message, details)


class FlagDecodeError(FlagsServiceException):
    """Stored flag document could not be decoded."""

    status_code = 500

    def __init__(self, message: str = "Stored flag is malformed", details: Optional[Dict[str, Any]] = None):
        super().__init__("FLAG_DECODE_ERROR", message, details)
