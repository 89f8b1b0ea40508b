import pytest
from apps.accounts.models import User


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        email='Shopper@Example.COM',
        password='TestPass123!',
        full_name='Test Shopper',
    )
