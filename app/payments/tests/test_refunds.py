"""
Tests for PaymentOrchestrator.refund_payment().

Tests cover:
1. Full and partial refunds of completed payments
2. Idempotency and conflict handling
3. Gateway failure and retry attempts
4. The wallet top-up refund policy (none / debit_wallet)
"""

import uuid

import pytest
from django.test import override_settings

from core.exceptions import ValidationError
from payments.exceptions import (
    GatewayFatalError,
    GatewayRetryableError,
    PaymentNotFoundError,
    PaymentValidationError,
    RefundConflictError,
)
from payments.models import Payment, PaymentRefund, WalletTransaction
from payments.state_machines import PaymentStatus, RefundState
from payments.tests.factories import PaymentFactory, PaymentRefundFactory
from payments.wallet.exceptions import InsufficientFunds
from payments.wallet.services import WalletService
from payments.wallet.tests.factories import WalletFactory


@pytest.fixture
def completed_topup(db):
    """A ₦2,500.00 top-up already credited to the parent's wallet."""
    payment = PaymentFactory(completed=True, topup=True, amount=250000)
    wallet = WalletService.get_or_create_wallet(payment.parent_id)
    WalletService.credit(wallet, payment.amount, "Wallet top-up", payment.reference)
    return payment


# =============================================================================
# Refund Flow
# =============================================================================


@pytest.mark.django_db
class TestRefundPayment:
    """Tests for the refund happy path and its guards."""

    def test_full_refund(self, orchestrator, fake_gateway, completed_payment):
        payment = orchestrator.refund_payment(completed_payment.id, reason="Class cancelled")

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_at is not None

        refund = PaymentRefund.objects.get(payment=payment)
        assert refund.state == RefundState.COMPLETED
        assert refund.amount == completed_payment.amount
        assert refund.gateway_refund_reference == f"rf_{completed_payment.reference[-9:]}"
        assert refund.metadata == {"gateway_status": "pending"}
        assert fake_gateway.last_refund == {
            "reference": completed_payment.reference,
            "amount": completed_payment.amount,
            "reason": "Class cancelled",
        }

    def test_partial_refund(self, orchestrator, fake_gateway, completed_payment):
        orchestrator.refund_payment(completed_payment.id, amount=100000)

        refund = PaymentRefund.objects.get(payment=completed_payment)
        assert refund.amount == 100000
        assert fake_gateway.last_refund["amount"] == 100000

    def test_repeat_refund_is_idempotent(self, orchestrator, fake_gateway, completed_payment):
        orchestrator.refund_payment(completed_payment.id)
        payment = orchestrator.refund_payment(completed_payment.id)

        assert payment.status == PaymentStatus.REFUNDED
        assert fake_gateway.count("refund") == 1
        assert PaymentRefund.objects.filter(payment=completed_payment).count() == 1

    @pytest.mark.parametrize(
        "fixture_name", ["pending_payment", "processing_payment"]
    )
    def test_open_payment_cannot_be_refunded(
        self, request, orchestrator, fake_gateway, fixture_name
    ):
        payment = request.getfixturevalue(fixture_name)

        with pytest.raises(RefundConflictError):
            orchestrator.refund_payment(payment.id)

        assert fake_gateway.count("refund") == 0
        assert not PaymentRefund.objects.exists()

    def test_refund_in_flight_conflicts(self, orchestrator, fake_gateway):
        refund = PaymentRefundFactory()

        with pytest.raises(RefundConflictError) as exc_info:
            orchestrator.refund_payment(refund.payment.id)

        assert exc_info.value.error_code == "REFUND_CONFLICT"
        assert fake_gateway.count("refund") == 0

    @pytest.mark.parametrize("amount", [0, -1, 500001])
    def test_invalid_amount(self, orchestrator, completed_payment, amount):
        with pytest.raises(PaymentValidationError) as exc_info:
            orchestrator.refund_payment(completed_payment.id, amount=amount)

        assert exc_info.value.error_code == "INVALID_REFUND_AMOUNT"
        assert not PaymentRefund.objects.exists()

    def test_unknown_payment(self, orchestrator):
        with pytest.raises(PaymentNotFoundError):
            orchestrator.refund_payment(uuid.uuid4())

    def test_refund_signal(
        self,
        orchestrator,
        completed_payment,
        payment_events,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            orchestrator.refund_payment(completed_payment.id)

        names = [name for name, _ in payment_events]
        assert names == ["payment_refunded"]
        assert payment_events[0][1]["refund"].state == RefundState.COMPLETED


# =============================================================================
# Gateway Failures
# =============================================================================


@pytest.mark.django_db
class TestRefundGatewayFailure:
    """Tests for refunds the gateway rejects."""

    @pytest.mark.parametrize(
        "error",
        [
            GatewayRetryableError("Paystack service error"),
            GatewayFatalError("Transaction has been fully reversed"),
        ],
    )
    def test_failure_marks_refund_failed(
        self, orchestrator, fake_gateway, completed_payment, error
    ):
        fake_gateway.refund_error = error

        with pytest.raises(type(error)):
            orchestrator.refund_payment(completed_payment.id)

        refund = PaymentRefund.objects.get(payment=completed_payment)
        assert refund.state == RefundState.FAILED
        assert refund.failure_reason == error.message
        assert Payment.objects.get(pk=completed_payment.pk).status == PaymentStatus.COMPLETED

    def test_failed_refund_can_be_retried(self, orchestrator, fake_gateway, completed_payment):
        fake_gateway.refund_error = GatewayRetryableError("Paystack service error")
        with pytest.raises(GatewayRetryableError):
            orchestrator.refund_payment(completed_payment.id)

        fake_gateway.refund_error = None
        payment = orchestrator.refund_payment(completed_payment.id, amount=200000)

        assert payment.status == PaymentStatus.REFUNDED
        refund = PaymentRefund.objects.get(payment=completed_payment)
        assert refund.state == RefundState.COMPLETED
        assert refund.attempts == 2
        assert refund.amount == 200000
        assert fake_gateway.count("refund") == 2


# =============================================================================
# Wallet Top-up Refund Policy
# =============================================================================


@pytest.mark.django_db
class TestTopupRefundPolicy:
    """Tests for PAYMENTS_TOPUP_REFUND_POLICY."""

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="none")
    def test_none_policy_leaves_wallet(self, orchestrator, completed_topup):
        orchestrator.refund_payment(completed_topup.id)

        wallet = WalletService.get_wallet(completed_topup.parent_id)
        assert WalletService.get_balance(wallet).minor == 250000
        assert wallet.transactions.count() == 1

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="debit_wallet")
    def test_debit_policy_debits_wallet(self, orchestrator, completed_topup):
        orchestrator.refund_payment(completed_topup.id)

        wallet = WalletService.get_wallet(completed_topup.parent_id)
        assert wallet.balance == 0
        debit = wallet.transactions.get(reference=f"refund:{completed_topup.reference}:1")
        assert debit.direction == "debit"
        assert debit.amount == 250000

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="debit_wallet")
    def test_debit_reversed_when_gateway_fails(
        self, orchestrator, fake_gateway, completed_topup
    ):
        fake_gateway.refund_error = GatewayFatalError("Refund not allowed")

        with pytest.raises(GatewayFatalError):
            orchestrator.refund_payment(completed_topup.id)

        wallet = WalletService.get_wallet(completed_topup.parent_id)
        assert wallet.balance == 250000
        assert wallet.compute_balance() == 250000
        references = set(wallet.transactions.values_list("reference", flat=True))
        assert references == {
            completed_topup.reference,
            f"refund:{completed_topup.reference}:1",
            f"refund-reversal:{completed_topup.reference}:1",
        }

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="debit_wallet")
    def test_retry_after_reversal_uses_new_references(
        self, orchestrator, fake_gateway, completed_topup
    ):
        fake_gateway.refund_error = GatewayRetryableError("Paystack service error")
        with pytest.raises(GatewayRetryableError):
            orchestrator.refund_payment(completed_topup.id)

        fake_gateway.refund_error = None
        orchestrator.refund_payment(completed_topup.id)

        wallet = WalletService.get_wallet(completed_topup.parent_id)
        assert wallet.balance == 0
        assert wallet.transactions.filter(
            reference=f"refund:{completed_topup.reference}:2"
        ).exists()

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="debit_wallet")
    def test_spent_wallet_blocks_refund(self, orchestrator, fake_gateway, completed_topup):
        wallet = WalletService.get_wallet(completed_topup.parent_id)
        WalletService.debit(wallet, 200000, "Physics tuition", "spend:physics")

        with pytest.raises(InsufficientFunds) as exc_info:
            orchestrator.refund_payment(completed_topup.id)

        assert exc_info.value.required == 250000
        assert exc_info.value.available == 50000
        assert fake_gateway.count("refund") == 0
        refund = PaymentRefund.objects.get(payment=completed_topup)
        assert refund.state == RefundState.FAILED
        assert WalletTransaction.objects.filter(wallet=wallet).count() == 2

    @override_settings(PAYMENTS_TOPUP_REFUND_POLICY="debit_wallet")
    def test_rejected_wallet_debit_releases_refund(self, orchestrator, fake_gateway, db):
        """A debit the wallet refuses fails the attempt instead of holding the claim."""
        topup = PaymentFactory(completed=True, topup=True, currency="USD", amount=5000)
        wallet = WalletFactory(parent_id=topup.parent_id, currency="NGN")
        WalletService.credit(wallet, 5000, "Opening balance", "seed:1")

        with pytest.raises(ValidationError) as exc_info:
            orchestrator.refund_payment(topup.id)

        assert exc_info.value.error_code == "WALLET_CURRENCY_MISMATCH"
        assert fake_gateway.count("refund") == 0
        refund = PaymentRefund.objects.get(payment=topup)
        assert refund.state == RefundState.FAILED
        assert Payment.objects.get(pk=topup.pk).status == PaymentStatus.COMPLETED

        with override_settings(PAYMENTS_TOPUP_REFUND_POLICY="none"):
            payment = orchestrator.refund_payment(topup.id)

        assert payment.status == PaymentStatus.REFUNDED
        refund.refresh_from_db()
        assert refund.attempts == 2
