import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken


@pytest.mark.django_db
class TestCustomUser:

    def test_payment_roles(self, finance_user, l3_user, employee):
        assert finance_user.can_process_payments()
        assert l3_user.can_process_payments()
        assert not employee.can_process_payments()

    def test_channels(self, finance_user):
        assert finance_user.user_channel == f"user-{finance_user.pk}"
        assert finance_user.role_channel == "role-finance"

    def test_full_name_falls_back_to_email(self, create_user, django_user_model):
        user = create_user("nameless@example.com", django_user_model.EMPLOYEE)
        assert user.get_full_name() == "nameless@example.com"

    def test_short_name(self, create_user, django_user_model, finance_user):
        user = create_user("nameless@example.com", django_user_model.EMPLOYEE)
        assert user.get_short_name() == "nameless"
        assert finance_user.get_short_name() == finance_user.first_name

    def test_admin_role_grants_staff(self, create_user, django_user_model):
        admin = create_user("admin@example.com", django_user_model.ADMIN)
        assert admin.is_staff
        assert not admin.can_process_payments()

    def test_admin_header_uses_short_name(self, client, django_user_model):
        admin = django_user_model.objects.create_superuser(
            email="root@example.com", password="pass123", first_name="Rita",
        )
        client.force_login(admin)
        response = client.get("/admin/")
        assert response.status_code == status.HTTP_200_OK
        assert "Rita" in response.content.decode()


@pytest.mark.django_db
class TestAuthApi:

    def test_token_contains_role(self, finance_user):
        response = APIClient().post(reverse("token_obtain_pair"), {
            "email": "finance@example.com",
            "password": "pass123",
        }, format="json")
        assert response.status_code == status.HTTP_200_OK
        assert AccessToken(response.data["access"])["role"] == "finance"

    def test_profile(self, finance_client, finance_user):
        response = finance_client.get(reverse("profile"))
        assert response.status_code == status.HTTP_200_OK
        assert response.data["role"] == "finance"
        assert response.data["channels"] == [f"user-{finance_user.pk}", "role-finance"]
