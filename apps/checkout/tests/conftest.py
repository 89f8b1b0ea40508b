import pytest
from decimal import Decimal
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.checkout.services import SessionContext, open_attempt
from apps.funding.models import PaymentMethod, PaymentMethodKind


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        email='shopper@example.com',
        password='TestPass123!',
        full_name='Test Shopper',
    )


@pytest.fixture
def other_user(db):
    """Create and return another test user."""
    return User.objects.create_user(
        email='othershopper@example.com',
        password='OtherPass123!',
        full_name='Other Shopper',
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """Return an authenticated API client using JWT."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def other_client(other_user):
    """API client authenticated as other_user."""
    client = APIClient()
    refresh = RefreshToken.for_user(other_user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def session(user):
    return SessionContext(user=user)


@pytest.fixture
def other_session(other_user):
    return SessionContext(user=other_user)


@pytest.fixture
def card(user):
    """Default VISA card of the test user."""
    return PaymentMethod.objects.create(
        user=user,
        kind=PaymentMethodKind.CARD,
        brand='visa',
        last_four='4242',
        is_default=True,
    )


@pytest.fixture
def bank_account(user):
    return PaymentMethod.objects.create(
        user=user,
        kind=PaymentMethodKind.BANK_ACCOUNT,
        last_four='6789',
    )


@pytest.fixture
def unsupported_method(user):
    """A saved method the demo processor cannot charge."""
    return PaymentMethod.objects.create(
        user=user,
        kind=PaymentMethodKind.OTHER,
        name='Store credit',
    )


@pytest.fixture
def other_users_card(other_user):
    return PaymentMethod.objects.create(
        user=other_user,
        kind=PaymentMethodKind.CARD,
        brand='mastercard',
        last_four='5555',
        is_default=True,
    )


@pytest.fixture
def attempt(session, card, bank_account):
    """A freshly opened 100.00 checkout attempt."""
    attempt, _ = open_attempt(
        session=session,
        cart_total=Decimal('100.00'),
        card_name='Headphones',
    )
    return attempt
