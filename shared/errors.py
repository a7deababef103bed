"""
Shared error handling for the Exile AI Bridge.

Only admission problems (bad input, rate limits), relay failures and internal
faults are raised as exceptions. Upstream failures inside the price-check
pipeline are absorbed into result variants and never reach this module.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    trace_id: Optional[str] = None
    code: str
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    retryAfter: Optional[int] = None


class BridgeException(Exception):
    """Base exception for bridge services."""

    status_code = 400
    title = "Bad request"

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            error=self.title,
            message=self.message,
            details=self.details
        )

    def headers(self) -> Dict[str, str]:
        """Extra HTTP headers to send with the error response."""
        return {}


class ValidationError(BridgeException):
    """Validation-related errors."""

    title = "Invalid request"

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RateLimitError(BridgeException):
    """Rate limiting errors."""

    status_code = 429
    title = "Too Many Requests"

    def __init__(self, retry_after: int, message: str = "API rate limit exceeded. Please try again later.",
                 details: Optional[Dict[str, Any]] = None):
        self.retry_after = retry_after
        super().__init__("RATE_LIMIT_ERROR", message, details)

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.retryAfter = self.retry_after
        return response

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ExternalServiceError(BridgeException):
    """External service errors."""

    status_code = 502
    title = "Upstream unavailable"

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class ServiceError(BridgeException):
    """Internal faults; the only class that maps to a 500."""

    status_code = 500
    title = "Internal server error"

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ERROR", message, details)
