import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'expense_system.settings')

app = Celery('expense_system')

# All CELERY_* keys in Django settings configure the app
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
