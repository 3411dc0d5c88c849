"""
Celery configuration for the payments service.

Celery runs the background side of payment reconciliation:
- Webhook-driven verification (payments.tasks.verify_payment_task)
- Periodic sweeps of stale and abandoned checkouts and stuck refunds
- Wallet balance drift checks

Redis is both the message broker and result backend. Periodic schedules live
in the database (django-celery-beat) and are installed by data migrations.

Usage:
    from payments.tasks import verify_payment_task

    verify_payment_task.delay(reference)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
