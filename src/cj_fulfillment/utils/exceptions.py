"""
Custom exceptions for CJ Fulfillment.

Defines application-specific exception classes for configuration problems,
supplier authentication failures, supplier API errors and data validation
issues. Public operations convert these into structured results; they are
raised only inside the core.
"""

from typing import Optional, Dict, Any


class FulfillmentError(Exception):
    """Base exception for all CJ Fulfillment errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(FulfillmentError):
    """Raised when configuration is invalid or missing."""
    pass


class AuthenticationError(FulfillmentError):
    """Raised when the supplier rejects a login."""
    pass


class APIError(FulfillmentError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_data: Optional[Dict[str, Any]] = None):
        """
        Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: API response data
        """
        details = {}
        if status_code:
            details["status_code"] = status_code
        if response_data:
            details["response_data"] = response_data

        super().__init__(message, details)
        self.status_code = status_code
        self.response_data = response_data


class SupplierAPIError(APIError):
    """Raised when CJ Dropshipping API calls fail."""

    def __init__(self, message: str, endpoint: Optional[str] = None,
                 status_code: Optional[int] = None,
                 response_data: Optional[Dict[str, Any]] = None):
        """
        Initialize supplier API error.

        Args:
            message: Error message
            endpoint: API endpoint that failed
            status_code: HTTP status code
            response_data: API response data
        """
        super().__init__(message, status_code, response_data)
        self.endpoint = endpoint

        if endpoint:
            self.details["endpoint"] = endpoint


class ValidationError(FulfillmentError):
    """Raised when caller-supplied data fails validation."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None):
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            value: Invalid value
        """
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details)
        self.field = field
        self.value = value


class SchedulingError(FulfillmentError):
    """Raised when the periodic job scheduler cannot start or register jobs."""
    pass


class DatabaseError(FulfillmentError):
    """Raised when reading or writing order records fails."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 record_id: Optional[str] = None):
        """
        Initialize database error.

        Args:
            message: Error message
            operation: Repository operation that failed
            record_id: Identifier of the affected record
        """
        details = {}
        if operation:
            details["operation"] = operation
        if record_id:
            details["record_id"] = record_id

        super().__init__(message, details)
        self.operation = operation
        self.record_id = record_id


def handle_api_error(response, endpoint: Optional[str] = None) -> None:
    """
    Raise a SupplierAPIError for a non-success HTTP response.

    The supplier reports a human-readable reason in the ``message`` field of
    its JSON body; that text is preferred over the bare status code.

    Args:
        response: httpx.Response with a non-2xx status
        endpoint: API endpoint that was called

    Raises:
        SupplierAPIError: Always
    """
    status_code = response.status_code
    response_data = None
    message = None

    try:
        response_data = response.json()
    except ValueError:
        response_data = None

    if isinstance(response_data, dict):
        message = response_data.get("message")

    if not message:
        reason = getattr(response, "reason_phrase", "") or "Request failed"
        message = f"HTTP {status_code}: {reason}"

    raise SupplierAPIError(
        message,
        endpoint=endpoint,
        status_code=status_code,
        response_data=response_data if isinstance(response_data, dict) else None,
    )
