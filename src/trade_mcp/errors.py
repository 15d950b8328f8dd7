"""Custom exceptions and error handling for the trade quoting service."""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError


class TradeMCPError(Exception):
    """Base exception for trade service errors."""

    http_status = 500

    def __init__(
        self,
        message: str,
        error_type: str = "TradeMCPError",
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            error_type: Type/category of error
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary format for API responses."""
        result = {
            "success": False,
            "error": self.message,
            "error_type": self.error_type,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidRequestError(TradeMCPError):
    """Error raised when caller input fails validation."""

    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        constraint: Optional[str] = None
    ):
        """
        Initialize validation error.

        Args:
            message: Human-readable error message
            field: Name of the field that failed validation
            value: The invalid value
            constraint: Description of the constraint that was violated
        """
        details = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if constraint is not None:
            details["constraint"] = constraint

        super().__init__(
            message=message,
            error_type="InvalidRequest",
            details=details
        )


class UnsupportedChainError(TradeMCPError):
    """Error raised when a chain is unknown or lacks a required feature."""

    http_status = 400

    def __init__(self, chain_id: int, feature: Optional[str] = None):
        if feature:
            message = f"{feature.capitalize()} not supported on chain {chain_id}"
        else:
            message = f"Chain {chain_id} is not supported"
        details: dict[str, Any] = {"chain_id": chain_id}
        if feature:
            details["feature"] = feature
        super().__init__(
            message=message,
            error_type="UnsupportedChain",
            details=details
        )


class UpstreamTimeoutError(TradeMCPError):
    """Error raised when the aggregator does not answer before the deadline."""

    http_status = 408

    def __init__(self, timeout: float, endpoint: Optional[str] = None):
        details: dict[str, Any] = {"timeout_seconds": timeout}
        if endpoint is not None:
            details["endpoint"] = endpoint
        super().__init__(
            message="Request timeout - please try again",
            error_type="UpstreamTimeout",
            details=details
        )


class UpstreamError(TradeMCPError):
    """Error raised when the aggregator request fails or is rejected."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None
    ):
        """
        Initialize upstream error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code returned by the aggregator, if any
            body: Raw response body, surfaced verbatim for diagnostics
        """
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if body is not None:
            details["details"] = body

        super().__init__(
            message=message,
            error_type="UpstreamError",
            details=details
        )
        self.status_code = status_code
        self.body = body

    @property
    def http_status(self) -> int:  # type: ignore[override]
        if self.status_code is not None and 400 <= self.status_code <= 599:
            return self.status_code
        return 502


class InternalError(TradeMCPError):
    """Error raised for unexpected failures such as unparseable responses."""

    http_status = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message, error_type="InternalError")


class TradeNotFoundError(TradeMCPError):
    """Error raised when a trade record is not found."""

    http_status = 404

    def __init__(self, trade_id: str):
        """
        Initialize trade not found error.

        Args:
            trade_id: The trade ID that was not found
        """
        super().__init__(
            message="Trade not found",
            error_type="TradeNotFound",
            details={"trade_id": trade_id}
        )


def format_error_response(error: Exception) -> dict[str, Any]:
    """
    Format any exception into a standardized error response.

    Args:
        error: The exception to format

    Returns:
        Dictionary with standardized error format
    """
    if isinstance(error, TradeMCPError):
        return error.to_dict()

    # Handle Pydantic validation errors
    if isinstance(error, PydanticValidationError):
        errors = error.errors(include_url=False, include_context=False)
        if errors:
            first_error = errors[0]
            field = ".".join(str(loc) for loc in first_error.get("loc", []))
            message = first_error.get("msg", str(error))

            return {
                "success": False,
                "error": f"Validation error for field '{field}': {message}",
                "error_type": "InvalidRequest",
                "details": {
                    "field": field,
                    "validation_errors": [
                        {key: value for key, value in item.items() if key != "input"}
                        for item in errors
                    ],
                },
            }

    # Anything else is unexpected; keep internals out of the response.
    return InternalError().to_dict()


def error_status(error: Exception) -> int:
    """Return the HTTP status code matching ``format_error_response``."""
    if isinstance(error, TradeMCPError):
        return error.http_status
    if isinstance(error, PydanticValidationError):
        return 400
    return 500
