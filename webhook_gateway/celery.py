"""
Celery configuration for Webhook Gateway Service.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'webhook_gateway.settings')

app = Celery('webhook_gateway')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
