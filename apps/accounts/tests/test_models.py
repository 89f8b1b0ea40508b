import pytest

from apps.accounts.models import User


@pytest.mark.django_db
class TestUserManager:

    def test_create_user_normalizes_email(self, user):
        assert user.email == 'Shopper@example.com'
        assert user.check_password('TestPass123!')
        assert user.is_staff is False
        assert user.processor_customer_id == ''

    def test_email_required(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='TestPass123!')

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email='admin@example.com', password='AdminPass123!')

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_superuser_must_be_staff(self):
        with pytest.raises(ValueError):
            User.objects.create_superuser(
                email='admin@example.com', password='AdminPass123!', is_staff=False
            )


@pytest.mark.django_db
class TestUser:

    def test_display_name_prefers_full_name(self, user):
        assert user.get_display_name() == 'Test Shopper'

    def test_display_name_falls_back_to_email(self):
        user = User.objects.create_user(email='jane.doe@example.com', password='TestPass123!')

        assert user.get_display_name() == 'jane.doe'
