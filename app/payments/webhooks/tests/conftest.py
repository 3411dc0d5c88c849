"""
Pytest fixtures for webhook tests.

Provides a request factory, Paystack event payloads and a helper that
signs a body the way Paystack does (HMAC-SHA512 with the secret key).
"""

import hashlib
import hmac
import json

import pytest
from django.conf import settings
from django.test import RequestFactory

WEBHOOK_PATH = "/api/v1/payments/webhooks/paystack/"


def sign(body: bytes, secret: str | None = None) -> str:
    """Compute the x-paystack-signature value for ``body``."""
    key = (secret or settings.PAYSTACK_SECRET_KEY).encode("utf-8")
    return hmac.new(key, body, hashlib.sha512).hexdigest()


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def make_webhook_request(rf):
    """
    Build a POST to the webhook endpoint.

    The body is signed with the configured secret unless ``signature`` is
    given; pass ``signature=""`` to omit the header.
    """

    def _make(payload, signature=None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        headers = {}
        if signature is None:
            signature = sign(body)
        if signature:
            headers["HTTP_X_PAYSTACK_SIGNATURE"] = signature
        return rf.post(
            WEBHOOK_PATH,
            data=body,
            content_type="application/json",
            **headers,
        )

    return _make


@pytest.fixture
def charge_success_event():
    """A charge.success event as Paystack delivers it."""
    return {
        "event": "charge.success",
        "data": {
            "id": 3894102856,
            "status": "success",
            "reference": "CS_1718000000000_a1b2c3d4e",
            "amount": 500000,
            "currency": "NGN",
            "channel": "card",
            "paid_at": "2024-06-10T09:15:02.000Z",
            "authorization": {
                "last4": "4081",
                "card_type": "visa ",
                "bank": "TEST BANK",
            },
            "customer": {"email": "parent@example.com"},
        },
    }
