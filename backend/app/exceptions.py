"""Domain errors raised by the checkout and payment services.

Every error carries the HTTP status it maps to, so the API layer converts
them with a single exception handler.
"""

from typing import Any, Optional


class StorefrontError(Exception):
    """Base class for errors reported to API clients."""

    status_code: int = 500
    error: str = "InternalError"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Render the JSON error envelope."""
        return {"success": False, "message": self.message, "error": self.error, **self.details}


class InvalidInput(StorefrontError):
    """Missing or malformed request fields."""

    status_code = 400
    error = "InvalidInput"


class ProductUnavailable(StorefrontError):
    """Product does not exist or is not active."""

    status_code = 400
    error = "ProductUnavailable"


class InsufficientStock(StorefrontError):
    """Requested quantity exceeds available stock."""

    status_code = 400
    error = "InsufficientStock"

    def __init__(self, product_id: str, name: str, available: int) -> None:
        super().__init__(
            f"Insufficient stock for {name}. Available: {available}",
            details={"productId": product_id, "available": available},
        )
        self.product_id = product_id
        self.available = available


class TotalMismatch(StorefrontError):
    """Client-submitted total disagrees with the server-computed total."""

    status_code = 400
    error = "TotalMismatch"


class InvalidSignature(StorefrontError):
    """Payment signature did not match."""

    status_code = 400
    error = "InvalidSignature"


class OrderNotFound(StorefrontError):
    status_code = 404
    error = "OrderNotFound"


class Forbidden(StorefrontError):
    status_code = 403
    error = "Forbidden"


class IllegalTransition(StorefrontError):
    """Requested status change is not permitted from the current state."""

    status_code = 409
    error = "IllegalTransition"


class UpstreamGatewayError(StorefrontError):
    """The payment gateway call failed.

    ``cause`` keeps the underlying error string for logs; clients only see it
    in development mode.
    """

    status_code = 502
    error = "UpstreamGatewayError"

    def __init__(self, message: str, cause: str = "") -> None:
        super().__init__(message)
        self.cause = cause


class InternalError(StorefrontError):
    status_code = 500
    error = "InternalError"
