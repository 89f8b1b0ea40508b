"""
Domain-specific exceptions for the checkout app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses. Allocation
problems are not exceptions: the engine reports them as values.
"""


class CheckoutServiceError(Exception):
    """Base exception for all checkout service errors."""
    pass


class CheckoutAttemptNotFoundError(CheckoutServiceError):
    """Raised when a checkout attempt does not exist or belongs to another user."""
    pass


class InvalidStateTransitionError(CheckoutServiceError):
    """Raised when an attempt cannot move from its current status."""
    pass


class SubmissionInProgressError(CheckoutServiceError):
    """Raised when an attempt is submitted while a submission is in flight."""
    pass


class UnknownPaymentSourceError(CheckoutServiceError):
    """Raised when a payment source id is not one the shopper can use."""
    pass


class InvalidChargeRequestError(CheckoutServiceError):
    """Raised when a charge request fails verification before charging."""

    def __init__(self, code, message=None):
        self.code = code
        super().__init__(message or code)
