"""
Funding app services layer.

Saved payment methods are the instruments a shopper allocates checkout
amounts to. State-changing operations run inside transactions.
"""

from .exceptions import (
    FundingServiceError,
    PaymentMethodNotFoundError,
)

from .payment_methods import (
    get_payment_method_label,
    list_payment_methods,
    get_payment_method,
    create_payment_method,
    set_default_payment_method,
    delete_payment_method,
)


__all__ = [
    # Exceptions
    'FundingServiceError',
    'PaymentMethodNotFoundError',

    # Payment methods
    'get_payment_method_label',
    'list_payment_methods',
    'get_payment_method',
    'create_payment_method',
    'set_default_payment_method',
    'delete_payment_method',
]
