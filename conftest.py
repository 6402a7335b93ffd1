import pytest
from decimal import Decimal
from django.core.cache import cache
from rest_framework.test import APIClient

from batch_payments.conf import get_collaborator, reset_collaborators
from expense_system.celery import app as celery_app


@pytest.fixture(autouse=True)
def celery_eager():
    """Run queued tasks in-process, raising their errors."""
    # The app reads Django settings with namespace='CELERY', so the prefixed
    # keys take precedence over the lowercase names in lookups.
    previous = (celery_app.conf.task_always_eager, celery_app.conf.task_eager_propagates)
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True
    celery_app.conf.CELERY_TASK_EAGER_PROPAGATES = True
    yield celery_app
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER, celery_app.conf.CELERY_TASK_EAGER_PROPAGATES = previous


@pytest.fixture(autouse=True)
def batch_settings(settings):
    settings.BATCH_PAYMENTS = {}
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.SMS_GATEWAY_URL = ''
    cache.clear()
    reset_collaborators()
    yield settings
    cache.clear()
    reset_collaborators()


@pytest.fixture
def create_user(db, django_user_model):
    def _create(email, role, **fields):
        return django_user_model.objects.create_user(email=email, password="pass123", role=role, **fields)
    return _create


@pytest.fixture
def finance_user(create_user, django_user_model):
    return create_user(
        "finance@example.com",
        django_user_model.FINANCE,
        first_name="Fiona",
        last_name="Nance",
        phone="+919876543210",
    )


@pytest.fixture
def l3_user(create_user, django_user_model):
    return create_user(
        "l3@example.com",
        django_user_model.L3_APPROVER,
        first_name="Leo",
        last_name="Three",
    )


@pytest.fixture
def employee(create_user, django_user_model):
    return create_user(
        "employee@example.com",
        django_user_model.EMPLOYEE,
        first_name="Emma",
        last_name="Ployee",
        phone="+919812345678",
    )


@pytest.fixture
def site(db):
    from expenses.models import Site
    return Site.objects.create(name="Head Office", code="HO")


@pytest.fixture
def make_expense(employee, site):
    from expenses.models import Expense

    def _make(amount, status=Expense.APPROVED, submitted_by=None, site=site, title="Travel"):
        return Expense.objects.create(
            title=title,
            amount=Decimal(amount),
            status=status,
            submitted_by=submitted_by or employee,
            site=site,
        )
    return _make


@pytest.fixture
def approved_expenses(make_expense):
    return [make_expense("500.00"), make_expense("700.00")]


@pytest.fixture
def fake_collaborators(batch_settings):
    """Route the configured senders and publisher to in-memory fakes."""
    batch_settings.BATCH_PAYMENTS = {
        **batch_settings.BATCH_PAYMENTS,
        'EMAIL_SENDER': 'batch_payments.tests.fakes.FakeEmailSender',
        'SMS_SENDER': 'batch_payments.tests.fakes.FakeSmsSender',
        'EVENT_PUBLISHER': 'batch_payments.tests.fakes.FakePublisher',
    }
    reset_collaborators()


@pytest.fixture
def email_sender(fake_collaborators):
    return get_collaborator('EMAIL_SENDER')


@pytest.fixture
def sms_sender(fake_collaborators):
    return get_collaborator('SMS_SENDER')


@pytest.fixture
def publisher(fake_collaborators):
    return get_collaborator('EVENT_PUBLISHER')


@pytest.fixture
def finance_client(finance_user):
    client = APIClient()
    client.force_authenticate(user=finance_user)
    return client
