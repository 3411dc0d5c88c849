"""
Tests for PaymentOrchestrator initialize, verify, cancel and read flows.

Tests cover:
1. Checkout parameter validation
2. Initialize: identifiers, items, gateway session, intent reuse
3. Verify: success, decline, mismatch, pending, gateway errors
4. Exactly-once completion and wallet credit under re-entrant verification
5. Cancel and the read/reporting helpers

Refund flows live in test_refunds.py.
"""

from __future__ import annotations

import re
import uuid
from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone
from freezegun import freeze_time

from payments.exceptions import (
    GatewayAuthenticationError,
    GatewayFatalError,
    GatewayRetryableError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import Payment, Wallet, WalletTransaction
from payments.services import InitializePaymentParams, PaymentItemParams
from payments.state_machines import GatewayStatus, PaymentStatus, PaymentType
from payments.tests.factories import PaymentFactory
from payments.wallet.tests.factories import WalletFactory


def make_params(**overrides) -> InitializePaymentParams:
    """Subject fee checkout for two items totalling ₦7,500.00."""
    fields = {
        "parent_id": uuid.UUID("3f1d2b9a-7c44-4a0e-9d55-0a1b2c3d4e5f"),
        "email": "parent@example.com",
        "amount": 750000,
        "payment_type": PaymentType.SUBJECT_FEE,
        "items": [
            PaymentItemParams(description="Mathematics", unit_price=500000),
            PaymentItemParams(description="Past questions", unit_price=125000, quantity=2),
        ],
    }
    fields.update(overrides)
    return InitializePaymentParams(**fields)


# =============================================================================
# Parameter Validation
# =============================================================================


class TestInitializePaymentParams:
    """Tests for checkout parameter validation."""

    @pytest.mark.parametrize("amount", [0, -100, 10.5, True, "5000"])
    def test_amount_must_be_positive_int(self, amount):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(amount=amount)

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_unknown_payment_type(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(payment_type="donation")

        assert exc_info.value.error_code == "INVALID_PAYMENT_TYPE"

    def test_unknown_payment_method(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(payment_method="cheque")

        assert exc_info.value.error_code == "INVALID_PAYMENT_METHOD"

    def test_email_required(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(email="")

        assert exc_info.value.error_code == "EMAIL_REQUIRED"

    def test_items_required_except_topup(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(items=[])

        assert exc_info.value.error_code == "ITEMS_REQUIRED"

    def test_topup_gets_single_item(self):
        params = make_params(payment_type=PaymentType.WALLET_TOPUP, amount=200000, items=[])

        assert len(params.items) == 1
        assert params.items[0].description == "Wallet top-up"
        assert params.items[0].total_price == 200000

    def test_items_must_sum_to_amount(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            make_params(amount=700000)

        assert exc_info.value.error_code == "ITEMS_TOTAL_MISMATCH"
        assert exc_info.value.details == {"amount": 700000, "items_total": 750000}

    def test_item_total_must_match_quantity(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentItemParams(description="Maths", unit_price=1000, quantity=2, total_price=1500)

        assert exc_info.value.error_code == "INVALID_ITEM"

    def test_currency_defaults_and_uppercases(self):
        assert make_params().currency == "NGN"
        assert make_params(currency="ghs").currency == "GHS"

    def test_intent_key_stable_and_sensitive(self):
        assert make_params().intent_key() == make_params().intent_key()
        assert make_params().intent_key() != make_params(
            student_id=uuid.uuid4()
        ).intent_key()
        assert make_params(idempotency_key="checkout-42").intent_key() == "checkout-42"


# =============================================================================
# Initialize
# =============================================================================


@pytest.mark.django_db
class TestInitializePayment:
    """Tests for initialize_payment()."""

    def test_creates_processing_payment_with_checkout(self, orchestrator, fake_gateway):
        checkout = orchestrator.initialize_payment(make_params())

        payment = Payment.objects.get(reference=checkout.reference)
        assert payment.status == PaymentStatus.PROCESSING
        assert payment.amount == 750000
        assert payment.currency == "NGN"
        assert re.match(r"^CS_\d{13}_[0-9a-z]{9}$", payment.reference)
        assert payment.payment_code.startswith("PAY")
        assert payment.invoice_number.startswith("INV")
        assert checkout.authorization_url == payment.authorization_url
        assert checkout.access_code == payment.access_code
        assert fake_gateway.count("initialize") == 1

    def test_persists_items(self, orchestrator):
        checkout = orchestrator.initialize_payment(make_params())

        items = list(checkout.payment.items.order_by("description"))
        assert [(i.description, i.quantity, i.total_price) for i in items] == [
            ("Mathematics", 1, 500000),
            ("Past questions", 2, 250000),
        ]

    def test_sends_callback_and_metadata(self, orchestrator, fake_gateway):
        checkout = orchestrator.initialize_payment(make_params())

        sent = fake_gateway.last_initialize
        assert sent["amount"] == 750000
        assert sent["currency"] == "NGN"
        assert sent["callback_url"] == (
            f"http://localhost:3000/payment/verify?reference={checkout.reference}"
        )
        assert sent["metadata"]["payment_id"] == str(checkout.payment.id)
        assert sent["metadata"]["payment_type"] == PaymentType.SUBJECT_FEE

    @override_settings(PAYMENT_CALLBACK_URL="https://app.example/checkout/done?src=web")
    def test_configured_callback_url(self, orchestrator):
        url = orchestrator.build_callback_url("CS_1_abc")

        assert url == "https://app.example/checkout/done?src=web&reference=CS_1_abc"

    def test_same_intent_reuses_open_checkout(self, orchestrator, fake_gateway):
        first = orchestrator.initialize_payment(make_params())
        second = orchestrator.initialize_payment(make_params())

        assert second.reference == first.reference
        assert second.authorization_url == first.authorization_url
        assert Payment.objects.count() == 1
        assert fake_gateway.count("initialize") == 1

    def test_different_checkout_gets_new_payment(self, orchestrator):
        first = orchestrator.initialize_payment(make_params())
        second = orchestrator.initialize_payment(make_params(student_id=uuid.uuid4()))

        assert second.reference != first.reference
        assert Payment.objects.count() == 2

    def test_gateway_failure_leaves_pending_and_retry_reuses_reference(
        self, orchestrator, fake_gateway
    ):
        fake_gateway.initialize_error = GatewayRetryableError("Paystack service error")

        with pytest.raises(GatewayRetryableError):
            orchestrator.initialize_payment(make_params())

        payment = Payment.objects.get()
        assert payment.status == PaymentStatus.PENDING

        fake_gateway.initialize_error = None
        checkout = orchestrator.initialize_payment(make_params())

        assert checkout.reference == payment.reference
        assert Payment.objects.get().status == PaymentStatus.PROCESSING

    def test_new_payment_after_previous_failed(self, orchestrator, fake_gateway):
        first = orchestrator.initialize_payment(make_params())
        fake_gateway.settle(first.payment, status=GatewayStatus.FAILED)
        orchestrator.verify_payment(first.reference)

        second = orchestrator.initialize_payment(make_params())

        assert second.reference != first.reference
        assert Payment.objects.get(reference=first.reference).status == PaymentStatus.FAILED

    def test_verified_before_initialize_returns(self, orchestrator, fake_gateway):
        """A payment completed while the gateway call was in flight stays completed."""
        original = fake_gateway.initialize_transaction

        def initialize_and_settle(**kwargs):
            session = original(**kwargs)
            payment = Payment.objects.get(reference=kwargs["reference"])
            payment.apply_transition("complete")
            return session

        fake_gateway.initialize_transaction = initialize_and_settle

        checkout = orchestrator.initialize_payment(make_params())

        assert checkout.payment.status == PaymentStatus.COMPLETED
        assert checkout.authorization_url.startswith("https://checkout.paystack.com/")

    def test_topup_currency_must_match_wallet(self, orchestrator, fake_gateway):
        """A top-up the wallet could never accept is refused before checkout."""
        wallet = WalletFactory(currency="NGN")
        params = make_params(
            parent_id=wallet.parent_id,
            amount=5000,
            payment_type=PaymentType.WALLET_TOPUP,
            items=[],
            currency="usd",
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            orchestrator.initialize_payment(params)

        assert exc_info.value.error_code == "WALLET_CURRENCY_MISMATCH"
        assert exc_info.value.details == {"currency": "USD", "wallet_currency": "NGN"}
        assert fake_gateway.calls == []
        assert not Payment.objects.exists()

    def test_topup_matching_wallet_currency(self, orchestrator, fake_gateway):
        wallet = WalletFactory(currency="NGN")
        params = make_params(
            parent_id=wallet.parent_id,
            amount=5000,
            payment_type=PaymentType.WALLET_TOPUP,
            items=[],
            currency="NGN",
        )

        checkout = orchestrator.initialize_payment(params)

        assert checkout.payment.status == PaymentStatus.PROCESSING

    def test_first_topup_sets_no_currency_constraint(self, orchestrator, fake_gateway):
        """Without a wallet yet, any currency is accepted; the credit creates it."""
        checkout = orchestrator.initialize_payment(
            make_params(
                amount=5000,
                payment_type=PaymentType.WALLET_TOPUP,
                items=[],
                currency="GHS",
            )
        )
        fake_gateway.settle(checkout.payment)

        payment = orchestrator.verify_payment(checkout.reference)

        assert payment.status == PaymentStatus.COMPLETED
        assert Wallet.objects.get(parent_id=payment.parent_id).currency == "GHS"


# =============================================================================
# Verify
# =============================================================================


@pytest.mark.django_db
class TestVerifyPayment:
    """Tests for verify_payment()."""

    def test_success_completes_payment(self, orchestrator, fake_gateway, processing_payment):
        fake_gateway.settle(processing_payment)

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.paid_at is not None
        assert payment.channel == "card"
        assert payment.card_last4 == "4081"
        assert payment.bank == "TEST BANK"
        assert payment.gateway_transaction_id == "3894102856"

    def test_success_uses_gateway_paid_at(self, orchestrator, fake_gateway, processing_payment):
        paid_at = timezone.now() - timedelta(minutes=5)
        fake_gateway.settle(processing_payment, paid_at=paid_at)

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.paid_at == paid_at

    def test_pending_payment_can_complete(self, orchestrator, fake_gateway, pending_payment):
        fake_gateway.settle(pending_payment)

        payment = orchestrator.verify_payment(pending_payment.reference)

        assert payment.status == PaymentStatus.COMPLETED

    def test_declined_fails_with_gateway_message(
        self, orchestrator, fake_gateway, processing_payment
    ):
        fake_gateway.settle(
            processing_payment,
            status=GatewayStatus.FAILED,
            gateway_response="Insufficient Funds",
        )

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Insufficient Funds"
        assert payment.failed_at is not None

    def test_amount_mismatch_fails(self, orchestrator, fake_gateway, processing_topup):
        fake_gateway.settle(processing_topup, amount=processing_topup.amount - 100)

        payment = orchestrator.verify_payment(processing_topup.reference)

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason.startswith("Amount mismatch")
        assert not Wallet.objects.filter(parent_id=payment.parent_id).exists()

    def test_currency_mismatch_fails(self, orchestrator, fake_gateway, processing_payment):
        fake_gateway.settle(processing_payment, currency="USD")

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason.startswith("Currency mismatch")

    @pytest.mark.parametrize("status", [GatewayStatus.PENDING, GatewayStatus.ABANDONED])
    def test_unsettled_leaves_payment_open(
        self, orchestrator, fake_gateway, processing_payment, status
    ):
        fake_gateway.settle(processing_payment, status=status)

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.PROCESSING

    def test_retryable_error_changes_nothing(
        self, orchestrator, fake_gateway, processing_payment
    ):
        fake_gateway.verification[processing_payment.reference] = GatewayRetryableError(
            "Paystack service error"
        )

        with pytest.raises(GatewayRetryableError):
            orchestrator.verify_payment(processing_payment.reference)

        processing_payment.refresh_from_db()
        assert processing_payment.status == PaymentStatus.PROCESSING
        assert processing_payment.version == 1

    def test_rejected_merchant_key_leaves_payment_open(
        self, orchestrator, fake_gateway, processing_payment
    ):
        """A credentials problem never fails a charge the parent may have paid."""
        fake_gateway.verification[processing_payment.reference] = GatewayAuthenticationError(
            "Payment gateway authentication failed", status_code=401
        )

        with pytest.raises(GatewayAuthenticationError):
            orchestrator.verify_payment(processing_payment.reference)

        processing_payment.refresh_from_db()
        assert processing_payment.status == PaymentStatus.PROCESSING
        assert processing_payment.failure_reason == ""

    def test_fatal_error_fails_payment(self, orchestrator, fake_gateway, processing_payment):
        fake_gateway.verification[processing_payment.reference] = GatewayFatalError(
            "Transaction reference not found"
        )

        payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Transaction reference not found"

    def test_terminal_payment_skips_gateway(self, orchestrator, fake_gateway, completed_payment):
        fake_gateway.settle(completed_payment, status=GatewayStatus.FAILED)

        payment = orchestrator.verify_payment(completed_payment.reference)

        assert payment.status == PaymentStatus.COMPLETED
        assert fake_gateway.count("verify") == 0

    def test_repeated_verify_calls_gateway_once(
        self, orchestrator, fake_gateway, processing_payment
    ):
        fake_gateway.settle(processing_payment)

        for _ in range(3):
            payment = orchestrator.verify_payment(processing_payment.reference)

        assert payment.status == PaymentStatus.COMPLETED
        assert fake_gateway.count("verify") == 1

    def test_unknown_reference(self, orchestrator):
        with pytest.raises(PaymentNotFoundError) as exc_info:
            orchestrator.verify_payment("CS_0_doesnotexist")

        assert exc_info.value.error_code == "PAYMENT_NOT_FOUND"

    def test_completion_signal_sent_once(
        self,
        orchestrator,
        fake_gateway,
        processing_payment,
        payment_events,
        django_capture_on_commit_callbacks,
    ):
        fake_gateway.settle(processing_payment)

        with django_capture_on_commit_callbacks(execute=True):
            orchestrator.verify_payment(processing_payment.reference)
            orchestrator.verify_payment(processing_payment.reference)

        completed = [kwargs for name, kwargs in payment_events if name == "payment_completed"]
        assert len(completed) == 1
        assert completed[0]["payment"].id == processing_payment.id

    def test_failure_signal_carries_reason(
        self,
        orchestrator,
        fake_gateway,
        processing_payment,
        payment_events,
        django_capture_on_commit_callbacks,
    ):
        fake_gateway.settle(processing_payment, status=GatewayStatus.FAILED)

        with django_capture_on_commit_callbacks(execute=True):
            orchestrator.verify_payment(processing_payment.reference)

        assert [name for name, _ in payment_events] == ["payment_failed"]
        assert payment_events[0][1]["reason"] == "Declined by gateway"


# =============================================================================
# Wallet Top-ups
# =============================================================================


@pytest.mark.django_db
class TestTopupCredit:
    """Tests for crediting the wallet when a top-up completes."""

    def test_topup_credits_wallet(self, orchestrator, fake_gateway, processing_topup):
        fake_gateway.settle(processing_topup)

        orchestrator.verify_payment(processing_topup.reference)

        wallet = Wallet.objects.get(parent_id=processing_topup.parent_id)
        assert wallet.balance == 250000
        entry = wallet.transactions.get()
        assert entry.reference == processing_topup.reference
        assert entry.amount == 250000
        assert entry.balance_after == 250000

    def test_repeated_verify_credits_once(self, orchestrator, fake_gateway, processing_topup):
        fake_gateway.settle(processing_topup)

        orchestrator.verify_payment(processing_topup.reference)
        orchestrator.verify_payment(processing_topup.reference)

        wallet = Wallet.objects.get(parent_id=processing_topup.parent_id)
        assert wallet.balance == 250000
        assert wallet.transactions.count() == 1

    def test_reentrant_verify_completes_and_credits_once(
        self, orchestrator, fake_gateway, processing_topup
    ):
        """
        A second verification that finishes while the first is waiting on
        the gateway wins; the first one's write then matches no row.
        """
        fake_gateway.settle(processing_topup)
        inner_results = []

        def verify_concurrently(reference):
            fake_gateway.on_verify = None
            inner_results.append(orchestrator.verify_payment(reference))

        fake_gateway.on_verify = verify_concurrently

        outer = orchestrator.verify_payment(processing_topup.reference)

        assert inner_results[0].status == PaymentStatus.COMPLETED
        assert outer.status == PaymentStatus.COMPLETED
        assert fake_gateway.count("verify") == 2
        assert Payment.objects.get(pk=processing_topup.pk).version == 2
        wallet = Wallet.objects.get(parent_id=processing_topup.parent_id)
        assert wallet.balance == 250000
        assert WalletTransaction.objects.filter(wallet=wallet).count() == 1

    def test_existing_wallet_is_credited(self, orchestrator, fake_gateway, processing_topup):
        first = PaymentFactory(
            processing=True, topup=True, amount=100000, parent_id=processing_topup.parent_id
        )
        fake_gateway.settle(first)
        fake_gateway.settle(processing_topup)

        orchestrator.verify_payment(first.reference)
        orchestrator.verify_payment(processing_topup.reference)

        wallet = Wallet.objects.get(parent_id=processing_topup.parent_id)
        assert wallet.balance == 350000
        assert wallet.compute_balance() == 350000

    def test_non_topup_leaves_wallet_alone(self, orchestrator, fake_gateway, processing_payment):
        fake_gateway.settle(processing_payment)

        orchestrator.verify_payment(processing_payment.reference)

        assert not Wallet.objects.exists()


# =============================================================================
# Cancel
# =============================================================================


@pytest.mark.django_db
class TestCancelPayment:
    """Tests for cancel_payment()."""

    def test_cancels_open_payment(self, orchestrator, processing_payment):
        payment = orchestrator.cancel_payment(
            payment_id=processing_payment.id, reason="Parent closed checkout"
        )

        assert payment.status == PaymentStatus.CANCELLED
        assert payment.cancelled_at is not None
        assert payment.failure_reason == "Parent closed checkout"

    def test_cancel_by_reference(self, orchestrator, pending_payment):
        payment = orchestrator.cancel_payment(reference=pending_payment.reference)

        assert payment.status == PaymentStatus.CANCELLED

    def test_terminal_payment_unchanged(self, orchestrator, completed_payment):
        payment = orchestrator.cancel_payment(payment_id=completed_payment.id)

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.cancelled_at is None

    def test_identifier_required(self, orchestrator):
        with pytest.raises(PaymentValidationError) as exc_info:
            orchestrator.cancel_payment()

        assert exc_info.value.error_code == "PAYMENT_IDENTIFIER_REQUIRED"

    def test_unknown_payment(self, orchestrator):
        with pytest.raises(PaymentNotFoundError):
            orchestrator.cancel_payment(payment_id=uuid.uuid4())

    def test_cancelled_signal(
        self,
        orchestrator,
        pending_payment,
        payment_events,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            orchestrator.cancel_payment(payment_id=pending_payment.id)
            orchestrator.cancel_payment(payment_id=pending_payment.id)

        assert [name for name, _ in payment_events] == ["payment_cancelled"]


# =============================================================================
# Reads and Reporting
# =============================================================================


@pytest.mark.django_db
class TestReads:
    """Tests for lookups, listings and statistics."""

    def test_get_payment(self, orchestrator, pending_payment):
        assert orchestrator.get_payment(pending_payment.id) == pending_payment

        with pytest.raises(PaymentNotFoundError):
            orchestrator.get_payment(uuid.uuid4())

    def test_list_for_parent_filters(self, orchestrator):
        parent_id = uuid.uuid4()
        completed = PaymentFactory(parent_id=parent_id, completed=True)
        topup = PaymentFactory(parent_id=parent_id, topup=True)
        PaymentFactory()

        assert set(orchestrator.list_for_parent(parent_id)) == {completed, topup}
        assert list(
            orchestrator.list_for_parent(parent_id, status=PaymentStatus.COMPLETED)
        ) == [completed]
        assert list(
            orchestrator.list_for_parent(parent_id, payment_type=PaymentType.WALLET_TOPUP)
        ) == [topup]

    def test_list_payments_total_counts_completed_only(self, orchestrator):
        PaymentFactory(completed=True, amount=100000)
        PaymentFactory(completed=True, amount=250000)
        PaymentFactory(amount=900000)
        PaymentFactory(failed=True, amount=50000)

        payments, total = orchestrator.list_payments()

        assert payments.count() == 4
        assert total == 350000

    def test_list_payments_window(self, orchestrator):
        with freeze_time("2024-01-10 09:00:00"):
            PaymentFactory(completed=True, amount=100000)
        with freeze_time("2024-02-10 09:00:00"):
            recent = PaymentFactory(completed=True, amount=200000)

        with freeze_time("2024-02-20 09:00:00"):
            payments, total = orchestrator.list_payments(
                start=timezone.now() - timedelta(days=15)
            )

        assert list(payments) == [recent]
        assert total == 200000

    def test_statistics(self, orchestrator):
        with freeze_time("2024-01-10 09:00:00"):
            PaymentFactory(completed=True, amount=100000)
            PaymentFactory(completed=True, topup=True, amount=50000)
        with freeze_time("2024-02-10 09:00:00"):
            PaymentFactory(completed=True, amount=300000)
            PaymentFactory(processing=True, amount=70000)
            PaymentFactory(failed=True, amount=20000)

        stats = orchestrator.get_statistics()

        assert stats.total_payments == 5
        assert stats.completed_payments == 3
        assert stats.pending_payments == 1
        assert stats.failed_payments == 1
        assert stats.total_revenue == 450000
        assert stats.revenue_by_type == {"subject-fee": 400000, "wallet-topup": 50000}
        assert stats.revenue_by_month == {"2024-01": 150000, "2024-02": 300000}

    def test_statistics_empty(self, orchestrator):
        stats = orchestrator.get_statistics()

        assert stats.total_payments == 0
        assert stats.total_revenue == 0
        assert stats.revenue_by_month == {}
