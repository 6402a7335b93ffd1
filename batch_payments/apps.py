from django.apps import AppConfig


class BatchPaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'batch_payments'
    verbose_name = 'Batch Payments'
