"""
Webhook handling for payment events from Paystack.

Events are signature-checked and turned into verification tasks; the
gateway's verify endpoint stays the source of truth.

Usage:
    # In urls.py
    from payments.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_event, register_handler
from payments.webhooks.views import paystack_webhook

__all__ = [
    "dispatch_event",
    "register_handler",
    "paystack_webhook",
]
