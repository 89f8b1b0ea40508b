"""
Checkout app services layer.

The allocation engine is pure and may be called on every edit; the
checkout flow persists attempts and talks to the payment processor and
card issuer through the collaborator interfaces.
"""

from .exceptions import (
    CheckoutServiceError,
    CheckoutAttemptNotFoundError,
    InvalidStateTransitionError,
    SubmissionInProgressError,
    UnknownPaymentSourceError,
    InvalidChargeRequestError,
)

from .allocation import (
    PaymentSource,
    ResolvedSource,
    AllocationValidation,
    AllocationSummary,
    round_currency,
    resolve_source_amount,
    participates,
    compute_allocated_amount,
    compute_remaining_amount,
    compute_service_fee,
    validate_allocation,
    distribute_fee,
    summarize_allocation,
    select_source,
    deselect_source,
    change_amount_type,
    split_evenly,
)

from .charge_request import (
    ChargeSource,
    ChargeRequest,
    build_charge_request,
    verify_charge_request,
)

from .collaborators import (
    ChargeOutcome,
    PaymentProcessor,
    CardIssuer,
    DemoPaymentProcessor,
    DemoCardIssuer,
    get_payment_processor,
    get_card_issuer,
)

from .session import SessionContext

from .checkout_flow import (
    build_checkout_sources,
    get_default_service_fee_percent,
    get_minimum_service_fee,
    list_attempts,
    get_attempt_for_user,
    open_attempt,
    validate_attempt,
    submit_attempt,
    reopen_attempt,
)


__all__ = [
    # Exceptions
    'CheckoutServiceError',
    'CheckoutAttemptNotFoundError',
    'InvalidStateTransitionError',
    'SubmissionInProgressError',
    'UnknownPaymentSourceError',
    'InvalidChargeRequestError',

    # Allocation engine
    'PaymentSource',
    'ResolvedSource',
    'AllocationValidation',
    'AllocationSummary',
    'round_currency',
    'resolve_source_amount',
    'participates',
    'compute_allocated_amount',
    'compute_remaining_amount',
    'compute_service_fee',
    'validate_allocation',
    'distribute_fee',
    'summarize_allocation',
    'select_source',
    'deselect_source',
    'change_amount_type',
    'split_evenly',

    # Charge requests
    'ChargeSource',
    'ChargeRequest',
    'build_charge_request',
    'verify_charge_request',

    # Collaborators
    'ChargeOutcome',
    'PaymentProcessor',
    'CardIssuer',
    'DemoPaymentProcessor',
    'DemoCardIssuer',
    'get_payment_processor',
    'get_card_issuer',

    # Session
    'SessionContext',

    # Checkout flow
    'build_checkout_sources',
    'get_default_service_fee_percent',
    'get_minimum_service_fee',
    'list_attempts',
    'get_attempt_for_user',
    'open_attempt',
    'validate_attempt',
    'submit_attempt',
    'reopen_attempt',
]
