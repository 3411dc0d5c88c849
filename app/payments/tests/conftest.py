"""
Pytest fixtures for payment tests.

This module provides an in-memory payment gateway, an orchestrator wired to
it, payments in each state, and API clients for the view tests.

Usage:
    def test_verify_completes(orchestrator, fake_gateway, processing_payment):
        fake_gateway.settle(processing_payment)
        payment = orchestrator.verify_payment(processing_payment.reference)
        assert payment.status == PaymentStatus.COMPLETED
"""

from __future__ import annotations

import uuid
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from payments import signals
from payments.adapters import (
    InitializeTransactionResult,
    RefundResult,
    VerificationResult,
)
from payments.services import PaymentOrchestrator
from payments.state_machines import GatewayStatus
from payments.tests.factories import PaymentFactory


# =============================================================================
# Gateway
# =============================================================================


class FakeGateway:
    """
    In-memory PaymentGateway that records every call.

    verify_transaction answers from ``verification`` (reference -> result or
    exception instance) and reports PENDING for unknown references.
    ``on_verify`` runs before the answer is returned, which lets a test
    re-enter the orchestrator while a verification is in flight.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.verification: dict[str, VerificationResult | Exception] = {}
        self.initialize_error: Exception | None = None
        self.refund_error: Exception | None = None
        self.on_verify = None
        self.last_initialize: dict[str, Any] = {}
        self.last_refund: dict[str, Any] = {}

    def initialize_transaction(
        self,
        email,
        amount,
        reference,
        callback_url,
        metadata=None,
        currency=None,
    ) -> InitializeTransactionResult:
        self.calls.append(("initialize", reference))
        self.last_initialize = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
            "currency": currency,
        }
        if self.initialize_error is not None:
            raise self.initialize_error
        return InitializeTransactionResult(
            access_code=f"ac_{reference[-9:]}",
            authorization_url=f"https://checkout.paystack.com/{reference[-9:]}",
        )

    def verify_transaction(self, reference) -> VerificationResult:
        self.calls.append(("verify", reference))
        if self.on_verify is not None:
            self.on_verify(reference)
        answer = self.verification.get(reference)
        if isinstance(answer, Exception):
            raise answer
        return answer or VerificationResult(status=GatewayStatus.PENDING, reference=reference)

    def refund(self, reference, amount=None, reason=None) -> RefundResult:
        self.calls.append(("refund", reference))
        self.last_refund = {"reference": reference, "amount": amount, "reason": reason}
        if self.refund_error is not None:
            raise self.refund_error
        return RefundResult(gateway_refund_reference=f"rf_{reference[-9:]}", status="pending")

    def verify_webhook_signature(self, payload, signature) -> bool:
        return signature == "valid"

    # Helpers

    def settle(self, payment, status=GatewayStatus.SUCCESS, **overrides) -> VerificationResult:
        """Make the gateway report ``payment`` as charged (or ``status``)."""
        fields = {
            "amount": payment.amount,
            "currency": payment.currency,
            "channel": "card",
            "card_type": "visa",
            "card_last4": "4081",
            "bank": "TEST BANK",
            "gateway_transaction_id": "3894102856",
        }
        fields.update(overrides)
        result = VerificationResult(status=status, reference=payment.reference, **fields)
        self.verification[payment.reference] = result
        return result

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(fake_gateway):
    """PaymentOrchestrator wired to the in-memory gateway."""
    return PaymentOrchestrator(gateway=fake_gateway)


@pytest.fixture
def patch_orchestrator(orchestrator):
    """Make views and tasks use the fake-gateway orchestrator."""
    with (
        patch("payments.views.PaymentAPIView.get_orchestrator", return_value=orchestrator),
        patch("payments.tasks.PaymentOrchestrator", return_value=orchestrator),
    ):
        yield orchestrator


@pytest.fixture
def mock_redis():
    """Mock Redis for distributed locking."""
    mock_redis = MagicMock()
    mock_redis.set.return_value = True
    mock_redis.eval.return_value = 1

    with patch("payments.locks.get_redis_connection", return_value=mock_redis):
        yield mock_redis


# =============================================================================
# Payment State Fixtures
# =============================================================================


@pytest.fixture
def pending_payment(db):
    """A subject fee that has not reached the gateway yet."""
    return PaymentFactory()


@pytest.fixture
def processing_payment(db):
    """A subject fee with an open gateway checkout."""
    return PaymentFactory(processing=True)


@pytest.fixture
def processing_topup(db):
    """A wallet top-up with an open gateway checkout."""
    return PaymentFactory(processing=True, topup=True, amount=250000)


@pytest.fixture
def completed_payment(db):
    """A paid subject fee."""
    return PaymentFactory(completed=True)


# =============================================================================
# Signals
# =============================================================================


@pytest.fixture
def payment_events():
    """
    Record payment and wallet signals as (name, kwargs) tuples.

    Pair with django_capture_on_commit_callbacks(execute=True): signals are
    sent from on_commit callbacks.
    """
    events: list[tuple[str, dict]] = []
    connected = []

    for name in (
        "payment_completed",
        "payment_failed",
        "payment_cancelled",
        "payment_refunded",
        "wallet_credited",
        "wallet_debited",
    ):

        def receiver(sender, signal=None, _name=name, **kwargs):
            events.append((_name, kwargs))

        signal = getattr(signals, name)
        signal.connect(receiver, weak=False)
        connected.append((signal, receiver))

    yield events

    for signal, receiver in connected:
        signal.disconnect(receiver)


# =============================================================================
# API Clients
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="parent",
        email="parent@example.com",
        password="testpass123",
    )


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="finance",
        email="finance@example.com",
        password="testpass123",
        is_staff=True,
    )


def _client_for(user, parent_id: uuid.UUID | None = None) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    if parent_id is not None:
        refresh[settings.PAYMENTS_PARENT_ID_CLAIM] = str(parent_id)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def parent_id():
    """The parent the regular user's token acts for."""
    return uuid.uuid4()


@pytest.fixture
def authenticated_client(user, parent_id):
    """API client authenticated with a JWT for a regular user acting for parent_id."""
    return _client_for(user, parent_id)


@pytest.fixture
def staff_client(staff_user):
    """API client authenticated with a JWT for a staff user."""
    return _client_for(staff_user)
