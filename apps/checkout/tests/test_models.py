import pytest

from apps.checkout.models import CheckoutAttempt, CheckoutStatus


@pytest.mark.parametrize('current,target,allowed', [
    (CheckoutStatus.COLLECTING, CheckoutStatus.COLLECTING, True),
    (CheckoutStatus.COLLECTING, CheckoutStatus.VALID, True),
    (CheckoutStatus.COLLECTING, CheckoutStatus.SUBMITTING, False),
    (CheckoutStatus.VALID, CheckoutStatus.SUBMITTING, True),
    (CheckoutStatus.VALID, CheckoutStatus.COLLECTING, True),
    (CheckoutStatus.SUBMITTING, CheckoutStatus.SUCCEEDED, True),
    (CheckoutStatus.SUBMITTING, CheckoutStatus.FAILED, True),
    (CheckoutStatus.SUBMITTING, CheckoutStatus.VALID, False),
    (CheckoutStatus.FAILED, CheckoutStatus.COLLECTING, True),
    (CheckoutStatus.FAILED, CheckoutStatus.VALID, False),
    (CheckoutStatus.SUCCEEDED, CheckoutStatus.COLLECTING, False),
    (CheckoutStatus.SUCCEEDED, CheckoutStatus.FAILED, False),
])
def test_can_transition_to(current, target, allowed):
    attempt = CheckoutAttempt(status=current)

    assert attempt.can_transition_to(target) is allowed
