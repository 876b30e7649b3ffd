"""Domain exceptions for Trendify.

Services raise these; main.py maps each class to an HTTP status code.
"""
from typing import Optional


class TrendifyError(Exception):
    """Base exception for all Trendify business-rule errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(TrendifyError):
    """Request is well-formed but violates a business rule."""

    status_code = 400


class AuthenticationError(TrendifyError):
    status_code = 401


class PermissionDeniedError(TrendifyError):
    status_code = 403


class NotFoundError(TrendifyError):
    """Raised when an entity doesn't exist (or isn't visible to the caller)."""

    status_code = 404

    def __init__(self, entity: str, identifier=None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")


class ConflictError(TrendifyError):
    """Raised when the entity is in a state that forbids the operation."""

    status_code = 409


class InsufficientStockError(ValidationError):
    """Raised when a product or variant cannot cover the requested quantity."""

    def __init__(self, product_name: str, available: Optional[int] = None):
        self.product_name = product_name
        self.available = available
        msg = f"Insufficient stock for {product_name}"
        if available is not None:
            msg = f"{msg}. Available: {available}"
        super().__init__(msg)


class CouponError(ValidationError):
    """Raised when a coupon fails one of its validity rules."""


class PaymentGatewayError(TrendifyError):
    """Raised when Paystack is unreachable or rejects a request."""

    status_code = 502


class RateLimitExceededError(TrendifyError):
    """Raised by per-endpoint limits; carries the Retry-After value."""

    status_code = 429

    def __init__(self, message: str, limit: int, retry_after: int):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(message)
