"""
Settings for the batch payment workflow.

Values come from the ``BATCH_PAYMENTS`` dict in Django settings; any key
missing there falls back to ``DEFAULTS``.
"""
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

DEFAULTS = {
    'OTP_VALIDITY_MINUTES': 5,
    'OTP_MAX_ATTEMPTS': 3,
    'ELIGIBLE_STATUSES': ('approved', 'approved_l3', 'approved_finance'),
    'EMAIL_SENDER': 'batch_payments.notifications.TemplateEmailSender',
    'SMS_SENDER': 'batch_payments.notifications.GatewaySmsSender',
    'EVENT_PUBLISHER': 'batch_payments.realtime.CacheEventPublisher',
    'EVENT_BUFFER_SIZE': 50,
    'EVENT_TTL_SECONDS': 3600,
    'HISTORY_PAGE_SIZE': 50,
    'HISTORY_MAX_PAGE_SIZE': 100,
}


def get_setting(name):
    overrides = getattr(settings, 'BATCH_PAYMENTS', None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]


@lru_cache(maxsize=None)
def _build_collaborator(dotted_path):
    return import_string(dotted_path)()


def get_collaborator(name):
    """
    Return the process-wide instance of the collaborator class configured
    under ``name`` (EMAIL_SENDER, SMS_SENDER or EVENT_PUBLISHER).
    """
    return _build_collaborator(get_setting(name))


def reset_collaborators():
    """Forget the built collaborators, e.g. after the settings changed."""
    _build_collaborator.cache_clear()
