"""
Shared error handling for the Props entitlement services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class EntitlementsError(Exception):
    """Base exception for entitlement services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(EntitlementsError):
    """Bad request parameters."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class DependencyStartError(EntitlementsError):
    """A backing store could not be connected at startup."""

    status_code = 503

    def __init__(self, dependency: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{dependency.upper()}_START_FAILED", message, details)


class ExternalServiceError(EntitlementsError):
    """Billing provider and other remote collaborators."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class DocumentStoreError(EntitlementsError):
    """Document store read failures."""

    status_code = 503

    def __init__(self, message: str = "Document store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("DOCUMENT_STORE_ERROR", message, details)
