"""
Celery configuration for the storefront.

DJANGO_SETTINGS_MODULE is set before the app is instantiated so Celery reads
the Django settings (CELERY_ prefix), including the beat schedule that drives
unpaid-order settlement, the monthly report and the outbox publisher.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("shoex")

# Reads Django settings prefixed with CELERY_
app.config_from_object("django.conf:settings", namespace="CELERY")

# Discovers tasks.py in every installed app
app.autodiscover_tasks()
