"""
Pytest fixtures for Paystack adapter tests.

The adapter receives a mocked requests.Session; ``respond`` sets the next
HTTP response it returns.

Sections:
    - Session and Adapter Fixtures
    - Paystack Response Bodies
"""

from unittest.mock import MagicMock

import pytest

from payments.adapters import PaystackAdapter

SECRET_KEY = "sk_test_adapter"
BASE_URL = "https://api.paystack.test"


# =============================================================================
# Session and Adapter Fixtures
# =============================================================================


def make_response(status_code=200, body=None):
    """Mock requests.Response returning ``body`` from json()."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def adapter(session):
    return PaystackAdapter(
        secret_key=SECRET_KEY,
        base_url=BASE_URL,
        timeout=3,
        session=session,
    )


@pytest.fixture
def respond(session):
    """Set the response for the next session.request call."""

    def _respond(status_code=200, body=None):
        session.request.return_value = make_response(status_code, body)
        return session.request.return_value

    return _respond


# =============================================================================
# Paystack Response Bodies
# =============================================================================


@pytest.fixture
def initialize_body():
    return {
        "status": True,
        "message": "Authorization URL created",
        "data": {
            "authorization_url": "https://checkout.paystack.com/0peioxfhpn",
            "access_code": "0peioxfhpn",
            "reference": "CS_1718000000000_a1b2c3d4e",
        },
    }


@pytest.fixture
def verify_body():
    """Successful card charge of ₦5,000.00."""
    return {
        "status": True,
        "message": "Verification successful",
        "data": {
            "id": 3894102856,
            "status": "success",
            "reference": "CS_1718000000000_a1b2c3d4e",
            "amount": 500000,
            "currency": "NGN",
            "channel": "card",
            "gateway_response": "Successful",
            "paid_at": "2024-06-10T09:15:02.000Z",
            "authorization": {
                "last4": "4081",
                "card_type": "visa ",
                "bank": "TEST BANK",
            },
        },
    }


@pytest.fixture
def refund_body():
    return {
        "status": True,
        "message": "Refund has been queued for processing",
        "data": {
            "transaction": {"id": 3894102856, "reference": "CS_1718000000000_a1b2c3d4e"},
            "id": 1234567,
            "amount": 500000,
            "currency": "NGN",
            "status": "pending",
        },
    }
