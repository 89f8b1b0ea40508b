"""
Domain-specific exceptions for the funding app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses.
"""


class FundingServiceError(Exception):
    """Base exception for all funding service errors."""
    pass


class PaymentMethodNotFoundError(FundingServiceError):
    """Raised when a payment method does not exist or belongs to another user."""
    pass
