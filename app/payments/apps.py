"""
Payments app configuration.

This app provides the tutoring platform's payment core:
- Payment records and their state machine (django-fsm)
- Paystack gateway adapter
- Parent wallets with an append-only ledger
- Verification, refund and reconciliation services and tasks
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self) -> None:
        # Connect the audit log receivers
        from payments import signals  # noqa: F401
