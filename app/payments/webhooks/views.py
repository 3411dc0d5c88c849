"""
Webhook endpoint view for Paystack.

The view:
1. Verifies the x-paystack-signature header (HMAC-SHA512 of the raw body)
2. Decodes the event
3. Queues verification for charge events
4. Returns immediately

Usage:
    # In urls.py
    from payments.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from kombu.exceptions import OperationalError

from payments.adapters import PaystackAdapter
from payments.webhooks.handlers import dispatch_event

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Paystack webhook events.

    Duplicate deliveries are harmless: verification is idempotent per
    reference, so no event log is kept.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (queued or ignored)
        - 400: Missing/invalid signature or unreadable body
        - 503: Broker unavailable; Paystack retries the delivery
    """
    payload = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not signature:
        logger.warning("Webhook received without signature header")
        return HttpResponse("Missing signature", status=400)

    if not PaystackAdapter().verify_webhook_signature(payload, signature):
        logger.warning("Webhook signature verification failed")
        return HttpResponse("Invalid signature", status=400)

    try:
        event = json.loads(payload)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Invalid payload", status=400)

    event_type = event.get("event") if isinstance(event, dict) else None
    data = event.get("data") if isinstance(event, dict) else None
    if not event_type or not isinstance(data, dict):
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Paystack webhook: {event_type}",
        extra={"event_type": event_type, "reference": data.get("reference")},
    )

    try:
        outcome = dispatch_event(event_type, data)
    except OperationalError:
        logger.error(
            "Failed to queue webhook work",
            extra={"event_type": event_type, "reference": data.get("reference")},
            exc_info=True,
        )
        return HttpResponse("Try again later", status=503)

    return HttpResponse(outcome, status=200)
