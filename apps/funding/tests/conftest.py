import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
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
def card(user):
    """Default VISA card of the test user."""
    return PaymentMethod.objects.create(
        user=user,
        kind=PaymentMethodKind.CARD,
        brand='visa',
        last_four='4242',
        expiry_month=12,
        expiry_year=2030,
        is_default=True,
    )


@pytest.fixture
def bank_account(user):
    """Non-default bank account of the test user."""
    return PaymentMethod.objects.create(
        user=user,
        kind=PaymentMethodKind.BANK_ACCOUNT,
        bank_name='First Bank',
        account_type='checking',
        last_four='6789',
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
