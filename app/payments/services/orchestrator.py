"""
Payment orchestrator: the only entry point that moves a payment.

Combines the gateway client, the payment record and the wallet ledger so a
payment reaches a terminal state and a wallet top-up is credited exactly
once, however many times verification is retried or raced.

Rules every operation follows:
- Gateway calls run before the state write and outside any DB transaction
  or row lock
- Every transition is a conditional UPDATE (apply_transition); a caller whose
  write matched no row reloads and returns the current record
- Terminal records are returned as-is; nothing reverses a terminal state
- Signals are sent on commit, only by the caller whose write won

Usage:
    from payments.services import (
        InitializePaymentParams,
        PaymentItemParams,
        PaymentOrchestrator,
    )

    orchestrator = PaymentOrchestrator()  # Paystack from settings
    checkout = orchestrator.initialize_payment(
        InitializePaymentParams(
            parent_id=parent_id,
            email="parent@example.com",
            amount=500000,
            payment_type=PaymentType.WALLET_TOPUP,
        )
    )
    redirect(checkout.authorization_url)

    # From the callback page, the webhook or the sweep
    payment = orchestrator.verify_payment(checkout.reference)
"""

from __future__ import annotations

import hashlib
import json
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth

from core.exceptions import BaseApplicationError
from core.services import BaseService
from payments import signals
from payments.adapters import PaystackAdapter
from payments.exceptions import (
    GatewayError,
    GatewayFatalError,
    GatewayRetryableError,
    PaymentNotFoundError,
    PaymentValidationError,
    RefundConflictError,
)
from payments.models import (
    Payment,
    PaymentItem,
    PaymentRefund,
    Wallet,
    WalletTransaction,
)
from payments.references import create_with_unique_identifiers
from payments.state_machines import (
    GatewayStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RefundState,
)
from payments.wallet.services import WalletService

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

    from payments.adapters import PaymentGateway, VerificationResult
    from payments.references import Identifiers


WALLET_TOPUP_DESCRIPTION = "Wallet top-up"

# Values of PAYMENTS_TOPUP_REFUND_POLICY
REFUND_POLICY_NONE = "none"
REFUND_POLICY_DEBIT_WALLET = "debit_wallet"


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class PaymentItemParams:
    """
    One line item of a checkout.

    total_price is computed as quantity * unit_price when omitted.
    """

    description: str
    unit_price: int
    quantity: int = 1
    total_price: int | None = None
    subject_id: uuid.UUID | None = None
    class_id: uuid.UUID | None = None

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            raise PaymentValidationError(
                "Each item needs a description",
                error_code="INVALID_ITEM",
            )
        for name in ("quantity", "unit_price"):
            value = getattr(self, name)
            if not _is_positive_int(value):
                raise PaymentValidationError(
                    f"Item {name} must be a positive integer",
                    error_code="INVALID_ITEM",
                    details={"description": self.description, name: value},
                )
        expected = self.quantity * self.unit_price
        if self.total_price is None:
            self.total_price = expected
        elif self.total_price != expected:
            raise PaymentValidationError(
                "Item total must equal quantity times unit price",
                error_code="INVALID_ITEM",
                details={
                    "description": self.description,
                    "total_price": self.total_price,
                    "expected": expected,
                },
            )


@dataclass
class InitializePaymentParams:
    """
    Parameters for starting a checkout.

    Attributes:
        parent_id: Parent who pays
        email: Payer email sent to the gateway
        amount: Total in minor units, must equal the sum of item totals
        payment_type: One of PaymentType
        items: Line items; a wallet top-up may omit them
        payment_method: One of PaymentMethod (default: card)
        student_id: Student the payment is for, if any
        currency: ISO 4217 code (default: PAYMENTS_DEFAULT_CURRENCY)
        idempotency_key: Client key identifying this checkout action; a
            fingerprint of the request is used when omitted
        metadata: Extra JSON stored on the payment

    Raises:
        PaymentValidationError: On construction, for any invalid field
    """

    parent_id: uuid.UUID
    email: str
    amount: int
    payment_type: str
    items: list[PaymentItemParams] = field(default_factory=list)
    payment_method: str = PaymentMethod.CARD
    student_id: uuid.UUID | None = None
    currency: str | None = None
    idempotency_key: str | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not _is_positive_int(self.amount):
            raise PaymentValidationError(
                "Amount must be a positive integer in minor units",
                error_code="INVALID_AMOUNT",
                details={"amount": self.amount},
            )
        if self.payment_type not in PaymentType.values:
            raise PaymentValidationError(
                f"Unknown payment type: {self.payment_type}",
                error_code="INVALID_PAYMENT_TYPE",
                details={"allowed": PaymentType.values},
            )
        if self.payment_method not in PaymentMethod.values:
            raise PaymentValidationError(
                f"Unknown payment method: {self.payment_method}",
                error_code="INVALID_PAYMENT_METHOD",
                details={"allowed": PaymentMethod.values},
            )
        if not self.email:
            raise PaymentValidationError(
                "Payer email is required",
                error_code="EMAIL_REQUIRED",
            )

        if not self.items:
            if self.payment_type != PaymentType.WALLET_TOPUP:
                raise PaymentValidationError(
                    "At least one item is required",
                    error_code="ITEMS_REQUIRED",
                )
            self.items = [
                PaymentItemParams(
                    description=WALLET_TOPUP_DESCRIPTION,
                    unit_price=self.amount,
                )
            ]

        items_total = sum(item.total_price for item in self.items)
        if items_total != self.amount:
            raise PaymentValidationError(
                "Line items do not add up to the payment amount",
                error_code="ITEMS_TOTAL_MISMATCH",
                details={"amount": self.amount, "items_total": items_total},
            )

        self.currency = (self.currency or settings.PAYMENTS_DEFAULT_CURRENCY).upper()

    def intent_key(self) -> str:
        """Client idempotency key, else a fingerprint of the checkout."""
        if self.idempotency_key:
            return self.idempotency_key
        fingerprint = {
            "parent_id": str(self.parent_id),
            "student_id": str(self.student_id) if self.student_id else None,
            "payment_type": self.payment_type,
            "amount": self.amount,
            "currency": self.currency,
            "items": [
                [
                    item.description,
                    item.quantity,
                    item.unit_price,
                    str(item.subject_id) if item.subject_id else None,
                    str(item.class_id) if item.class_id else None,
                ]
                for item in self.items
            ],
        }
        encoded = json.dumps(fingerprint, sort_keys=True).encode()
        return hashlib.sha256(encoded).hexdigest()


@dataclass
class CheckoutResult:
    """What the caller needs to send the parent to checkout."""

    reference: str
    authorization_url: str
    access_code: str
    payment: Payment


@dataclass
class PaymentStatistics:
    """Aggregate counts and revenue over a time window."""

    total_payments: int
    completed_payments: int
    pending_payments: int
    failed_payments: int
    total_revenue: int
    revenue_by_type: dict[str, int]
    revenue_by_month: dict[str, int]


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Coordinates the gateway, payment records and wallet ledger.

    Instances hold only the injected gateway, so one orchestrator may be
    shared by a worker for its lifetime.

    Args:
        gateway: PaymentGateway implementation (default: PaystackAdapter
            configured from settings)
    """

    def __init__(self, gateway: PaymentGateway | None = None) -> None:
        self.gateway = gateway if gateway is not None else PaystackAdapter()

    # =========================================================================
    # Initialize
    # =========================================================================

    def initialize_payment(self, params: InitializePaymentParams) -> CheckoutResult:
        """
        Create (or reuse) a payment and open a gateway checkout for it.

        A repeated request for the same intent while a payment is open
        reuses that payment: a processing one is returned as-is, a pending
        one is sent to the gateway again with the same reference.

        Raises:
            PaymentValidationError: Invalid parameters (raised by params)
            PaymentValidationError: Top-up in a currency other than the
                parent's existing wallet
            GatewayRetryableError / GatewayFatalError: Gateway call failed;
                the payment stays pending
            ConflictError: Unique identifiers could not be allocated
        """
        logger = self.get_logger()
        if params.payment_type == PaymentType.WALLET_TOPUP:
            self._check_wallet_currency(params)
        intent_key = params.intent_key()

        payment = Payment.objects.open().filter(intent_key=intent_key).first()
        if payment is None:
            payment, created = create_with_unique_identifiers(
                lambda identifiers: self._create_payment(params, intent_key, identifiers),
                intent_key=intent_key,
            )
            if created:
                logger.info(
                    "Payment created",
                    extra={
                        "payment_id": str(payment.id),
                        "reference": payment.reference,
                        "parent_id": str(payment.parent_id),
                        "amount": payment.amount,
                        "payment_type": payment.payment_type,
                    },
                )

        if payment.status == PaymentStatus.PROCESSING and payment.authorization_url:
            logger.info(
                "Reusing open checkout",
                extra={"payment_id": str(payment.id), "reference": payment.reference},
            )
            return self._checkout_result(payment)

        return self._open_checkout(payment)

    @staticmethod
    def _check_wallet_currency(params: InitializePaymentParams) -> None:
        # A wallet holds a single currency
        wallet = Wallet.objects.filter(parent_id=params.parent_id).first()
        if wallet is not None and wallet.currency != params.currency:
            raise PaymentValidationError(
                "Top-up currency must match the wallet currency",
                error_code="WALLET_CURRENCY_MISMATCH",
                details={
                    "currency": params.currency,
                    "wallet_currency": wallet.currency,
                },
            )

    def _create_payment(
        self,
        params: InitializePaymentParams,
        intent_key: str,
        identifiers: Identifiers,
    ) -> Payment:
        payment = Payment.objects.create(
            reference=identifiers.reference,
            payment_code=identifiers.payment_code,
            invoice_number=identifiers.invoice_number,
            intent_key=intent_key,
            parent_id=params.parent_id,
            student_id=params.student_id,
            email=params.email,
            amount=params.amount,
            currency=params.currency,
            payment_type=params.payment_type,
            payment_method=params.payment_method,
            metadata=params.metadata or {},
        )
        PaymentItem.objects.bulk_create(
            [
                PaymentItem(
                    payment=payment,
                    description=item.description,
                    subject_id=item.subject_id,
                    class_id=item.class_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                )
                for item in params.items
            ]
        )
        return payment

    def _open_checkout(self, payment: Payment) -> CheckoutResult:
        try:
            session = self.gateway.initialize_transaction(
                email=payment.email,
                amount=payment.amount,
                reference=payment.reference,
                callback_url=self.build_callback_url(payment.reference),
                metadata=self._gateway_metadata(payment),
                currency=payment.currency,
            )
        except GatewayError as e:
            self.get_logger().warning(
                "Gateway initialize failed, payment stays pending",
                extra={
                    "payment_id": str(payment.id),
                    "reference": payment.reference,
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                },
            )
            raise

        moved = payment.apply_transition(
            "start_processing",
            access_code=session.access_code,
            authorization_url=session.authorization_url,
        )
        if not moved:
            # Verified or cancelled while the gateway call was in flight
            self.get_logger().info(
                "Payment left pending during initialize",
                extra={
                    "payment_id": str(payment.id),
                    "reference": payment.reference,
                    "status": payment.status,
                },
            )
            return CheckoutResult(
                reference=payment.reference,
                authorization_url=payment.authorization_url or session.authorization_url,
                access_code=payment.access_code or session.access_code,
                payment=payment,
            )

        return self._checkout_result(payment)

    @staticmethod
    def _checkout_result(payment: Payment) -> CheckoutResult:
        return CheckoutResult(
            reference=payment.reference,
            authorization_url=payment.authorization_url,
            access_code=payment.access_code,
            payment=payment,
        )

    @staticmethod
    def build_callback_url(reference: str) -> str:
        base = settings.PAYMENT_CALLBACK_URL or (
            f"{settings.FRONTEND_URL.rstrip('/')}/payment/verify"
        )
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode({'reference': reference})}"

    @staticmethod
    def _gateway_metadata(payment: Payment) -> dict[str, Any]:
        return {
            "payment_id": str(payment.id),
            "payment_code": payment.payment_code,
            "payment_type": payment.payment_type,
            "parent_id": str(payment.parent_id),
            "student_id": str(payment.student_id) if payment.student_id else None,
        }

    # =========================================================================
    # Verify
    # =========================================================================

    def verify_payment(self, reference: str) -> Payment:
        """
        Settle a payment from the gateway's view of it. Idempotent.

        Returns:
            The payment in its current state. Terminal payments are returned
            without contacting the gateway.

        Raises:
            PaymentNotFoundError: Unknown reference
            GatewayRetryableError: Gateway gave no answer; nothing changed
        """
        logger = self.get_logger()
        payment = self.get_by_reference(reference)
        log_context = {"payment_id": str(payment.id), "reference": reference}

        if payment.is_terminal:
            logger.debug(
                "Payment already terminal",
                extra={**log_context, "status": payment.status},
            )
            return payment

        try:
            result = self.gateway.verify_transaction(reference)
        except GatewayRetryableError as e:
            logger.warning(
                "Verification deferred, gateway unavailable",
                extra={**log_context, "error_code": e.error_code},
            )
            raise
        except GatewayFatalError as e:
            self._fail(payment, reason=e.message)
            return payment

        if result.status == GatewayStatus.SUCCESS:
            mismatch = self._mismatch_reason(payment, result)
            if mismatch:
                logger.error(
                    "Gateway amount or currency does not match payment",
                    extra={
                        **log_context,
                        "expected_amount": payment.amount,
                        "gateway_amount": result.amount,
                        "expected_currency": payment.currency,
                        "gateway_currency": result.currency,
                    },
                )
                self._fail(payment, reason=mismatch)
            else:
                self._complete(payment, result)
        elif result.status == GatewayStatus.FAILED:
            self._fail(payment, reason=result.gateway_response or "Declined by gateway")
        else:
            logger.info(
                "Payment not settled yet",
                extra={**log_context, "gateway_status": result.status},
            )

        return payment

    @staticmethod
    def _mismatch_reason(payment: Payment, result: VerificationResult) -> str:
        if result.amount != payment.amount:
            return f"Amount mismatch: expected {payment.amount}, gateway reported {result.amount}"
        if result.currency and result.currency.upper() != payment.currency.upper():
            return (
                f"Currency mismatch: expected {payment.currency}, "
                f"gateway reported {result.currency}"
            )
        return ""

    def _complete(self, payment: Payment, result: VerificationResult) -> None:
        with self.atomic():
            won = payment.apply_transition(
                "complete",
                paid_at=result.paid_at,
                **result.metadata_fields(),
            )
            if not won:
                return

            if payment.is_wallet_topup:
                wallet = WalletService.get_or_create_wallet(
                    payment.parent_id, currency=payment.currency
                )
                WalletService.credit(
                    wallet,
                    amount=payment.amount,
                    description=WALLET_TOPUP_DESCRIPTION,
                    reference=payment.reference,
                    currency=payment.currency,
                    metadata={"payment_id": str(payment.id)},
                )

            transaction.on_commit(
                lambda: signals.payment_completed.send(sender=Payment, payment=payment)
            )

        self.get_logger().info(
            "Payment completed",
            extra={
                "payment_id": str(payment.id),
                "reference": payment.reference,
                "amount": payment.amount,
                "channel": payment.channel,
            },
        )

    def _fail(self, payment: Payment, reason: str) -> None:
        with self.atomic():
            if not payment.apply_transition("fail", reason=reason):
                return
            transaction.on_commit(
                lambda: signals.payment_failed.send(
                    sender=Payment, payment=payment, reason=reason
                )
            )

        self.get_logger().warning(
            "Payment failed",
            extra={
                "payment_id": str(payment.id),
                "reference": payment.reference,
                "reason": reason,
            },
        )

    # =========================================================================
    # Refund
    # =========================================================================

    def refund_payment(
        self,
        payment_id: uuid.UUID,
        amount: int | None = None,
        reason: str = "",
    ) -> Payment:
        """
        Refund a completed payment. Idempotent once the refund completed.

        Two phases: the refund is claimed in a short transaction with the
        payment row locked, then the gateway is called with no lock held.

        Raises:
            PaymentNotFoundError: Unknown payment id
            RefundConflictError: Payment not completed, refund in flight, or
                a concurrent request claimed the refund first
            PaymentValidationError: Amount not in 1..payment.amount
            InsufficientFunds: debit_wallet policy and the wallet was spent
            GatewayRetryableError / GatewayFatalError: Gateway refund failed;
                the refund is marked failed and may be retried

        Any error after the claim marks the refund failed (reversing a wallet
        debit of this attempt) before it is raised.
        """
        logger = self.get_logger()
        payment = self.get_payment(payment_id)
        log_context = {"payment_id": str(payment.id), "reference": payment.reference}

        existing = PaymentRefund.objects.filter(payment=payment).first()
        if existing is not None:
            if existing.state == RefundState.COMPLETED:
                logger.info("Refund already completed", extra=log_context)
                return payment
            if existing.state == RefundState.REQUESTED:
                raise RefundConflictError(
                    "A refund is already in progress for this payment",
                    details={"payment_id": str(payment.id)},
                )

        if payment.status != PaymentStatus.COMPLETED:
            raise RefundConflictError(
                f"Cannot refund a payment in {payment.status} state",
                details={"payment_id": str(payment.id), "status": payment.status},
            )

        refund_amount = payment.amount if amount is None else amount
        if not _is_positive_int(refund_amount) or refund_amount > payment.amount:
            raise PaymentValidationError(
                "Refund amount must be positive and at most the payment amount",
                error_code="INVALID_REFUND_AMOUNT",
                details={"amount": refund_amount, "payment_amount": payment.amount},
            )

        refund = self._claim_refund(payment, refund_amount, reason)
        log_context["attempt"] = refund.attempts

        # Any error from here on releases the claim
        debited = False
        try:
            debited = self._apply_refund_wallet_policy(payment, refund)

            logger.info(
                "Requesting gateway refund",
                extra={**log_context, "amount": refund_amount},
            )
            gateway_refund = self.gateway.refund(
                payment.reference,
                amount=refund_amount,
                reason=reason or None,
            )
        except BaseApplicationError as e:
            self._release_refund(payment, refund, reason=e.message, debited=debited)
            logger.error(
                "Refund attempt failed",
                extra={
                    **log_context,
                    "error_code": e.error_code,
                    "is_retryable": isinstance(e, GatewayError) and e.is_retryable,
                },
            )
            raise

        with self.atomic():
            refund.apply_transition(
                "complete",
                gateway_refund_reference=gateway_refund.gateway_refund_reference,
                metadata={"gateway_status": gateway_refund.status},
            )
            if payment.apply_transition("mark_refunded"):
                transaction.on_commit(
                    lambda: signals.payment_refunded.send(
                        sender=Payment, payment=payment, refund=refund
                    )
                )

        logger.info(
            "Payment refunded",
            extra={
                **log_context,
                "amount": refund_amount,
                "gateway_refund_reference": refund.gateway_refund_reference,
            },
        )
        return payment

    def _claim_refund(self, payment: Payment, amount: int, reason: str) -> PaymentRefund:
        with self.atomic():
            locked = Payment.objects.select_for_update().get(pk=payment.pk)
            if locked.status != PaymentStatus.COMPLETED:
                raise RefundConflictError(
                    f"Cannot refund a payment in {locked.status} state",
                    details={"payment_id": str(payment.id), "status": locked.status},
                )

            refund = PaymentRefund.objects.filter(payment=locked).first()
            if refund is None:
                return PaymentRefund.objects.create(
                    payment=locked,
                    amount=amount,
                    reason=reason,
                )

            if not refund.apply_transition("retry", amount=amount, reason=reason):
                raise RefundConflictError(
                    "A refund is already in progress for this payment",
                    details={"payment_id": str(payment.id), "state": refund.state},
                )
            return refund

    def _apply_refund_wallet_policy(self, payment: Payment, refund: PaymentRefund) -> bool:
        """Debit the top-up from the wallet when configured. Returns True if debited."""
        if not payment.is_wallet_topup:
            return False
        if settings.PAYMENTS_TOPUP_REFUND_POLICY != REFUND_POLICY_DEBIT_WALLET:
            return False

        wallet = WalletService.get_wallet(payment.parent_id)
        WalletService.debit(
            wallet,
            amount=refund.amount,
            description=f"Refund of top-up {payment.payment_code}",
            reference=self._refund_debit_reference(payment, refund),
            currency=payment.currency,
            metadata={"payment_id": str(payment.id), "refund_id": str(refund.id)},
        )
        return True

    @staticmethod
    def _refund_debit_reference(payment: Payment, refund: PaymentRefund) -> str:
        return f"refund:{payment.reference}:{refund.attempts}"

    def _reverse_refund_debit(self, payment: Payment, refund: PaymentRefund) -> None:
        wallet = WalletService.get_wallet(payment.parent_id)
        WalletService.credit(
            wallet,
            amount=refund.amount,
            description=f"Reversal of failed refund {payment.payment_code}",
            reference=f"refund-reversal:{payment.reference}:{refund.attempts}",
            currency=payment.currency,
            metadata={"payment_id": str(payment.id), "refund_id": str(refund.id)},
        )

    def _release_refund(
        self,
        payment: Payment,
        refund: PaymentRefund,
        reason: str,
        debited: bool,
    ) -> bool:
        """Mark a claimed refund failed and give back any wallet debit."""
        with self.atomic():
            released = refund.apply_transition("fail", reason=reason)
            if released and debited:
                self._reverse_refund_debit(payment, refund)
        return released

    def release_stale_refund(self, refund: PaymentRefund) -> bool:
        """
        Fail a refund whose attempt never finished, so it can be retried.

        A worker that died between the claim and the gateway answer leaves
        the refund in requested. The wallet debit of that attempt, if one
        was posted, is reversed.

        Returns:
            True if this call released the refund
        """
        payment = refund.payment
        debited = WalletTransaction.objects.filter(
            wallet__parent_id=payment.parent_id,
            reference=self._refund_debit_reference(payment, refund),
        ).exists()

        released = self._release_refund(
            payment,
            refund,
            reason="Refund attempt did not finish",
            debited=debited,
        )
        if released:
            self.get_logger().warning(
                "Released stale refund",
                extra={
                    "payment_id": str(payment.id),
                    "reference": payment.reference,
                    "refund_id": str(refund.id),
                    "attempt": refund.attempts,
                    "wallet_debit_reversed": debited,
                },
            )
        return released

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel_payment(
        self,
        payment_id: uuid.UUID | None = None,
        reference: str | None = None,
        reason: str = "",
    ) -> Payment:
        """
        Cancel an open payment. A payment that left pending/processing is
        returned unchanged.
        """
        if payment_id is not None:
            payment = self.get_payment(payment_id)
        elif reference:
            payment = self.get_by_reference(reference)
        else:
            raise PaymentValidationError(
                "payment_id or reference is required",
                error_code="PAYMENT_IDENTIFIER_REQUIRED",
            )

        with self.atomic():
            if not payment.apply_transition("cancel", reason=reason):
                return payment
            transaction.on_commit(
                lambda: signals.payment_cancelled.send(sender=Payment, payment=payment)
            )

        self.get_logger().info(
            "Payment cancelled",
            extra={
                "payment_id": str(payment.id),
                "reference": payment.reference,
                "reason": reason,
            },
        )
        return payment

    # =========================================================================
    # Reads and Reporting
    # =========================================================================

    @staticmethod
    def get_payment(payment_id: uuid.UUID) -> Payment:
        try:
            return Payment.objects.get(pk=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            ) from None

    @staticmethod
    def get_by_reference(reference: str) -> Payment:
        try:
            return Payment.objects.get(reference=reference)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payment with reference {reference} not found",
                details={"reference": reference},
            ) from None

    @staticmethod
    def list_for_parent(
        parent_id: uuid.UUID,
        status: str | None = None,
        payment_type: str | None = None,
    ) -> QuerySet[Payment]:
        """A parent's payments, newest first."""
        payments = Payment.objects.for_parent(parent_id)
        if status:
            payments = payments.filter(status=status)
        if payment_type:
            payments = payments.filter(payment_type=payment_type)
        return payments.prefetch_related("items").newest()

    @staticmethod
    def list_payments(
        status: str | None = None,
        payment_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[QuerySet[Payment], int]:
        """
        All payments in a window, newest first.

        Returns:
            (payments, total_amount) where total_amount sums the completed
            payments among them
        """
        payments = Payment.objects.created_between(start, end)
        if status:
            payments = payments.filter(status=status)
        if payment_type:
            payments = payments.filter(payment_type=payment_type)
        total_amount = payments.completed().aggregate(total=Sum("amount"))["total"] or 0
        return payments.prefetch_related("items").newest(), total_amount

    @staticmethod
    def get_statistics(
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStatistics:
        payments = Payment.objects.created_between(start, end)
        counts = payments.aggregate(
            total=Count("id"),
            completed=Count("id", filter=Q(status=PaymentStatus.COMPLETED)),
            pending=Count(
                "id",
                filter=Q(status__in=[PaymentStatus.PENDING, PaymentStatus.PROCESSING]),
            ),
            failed=Count("id", filter=Q(status=PaymentStatus.FAILED)),
            revenue=Sum("amount", filter=Q(status=PaymentStatus.COMPLETED)),
        )

        completed = payments.completed()
        by_type = {
            row["payment_type"]: row["revenue"]
            for row in completed.order_by()
            .values("payment_type")
            .annotate(revenue=Sum("amount"))
        }
        by_month = {
            row["month"].strftime("%Y-%m"): row["revenue"]
            for row in completed.order_by()
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(revenue=Sum("amount"))
            .order_by("month")
        }

        return PaymentStatistics(
            total_payments=counts["total"],
            completed_payments=counts["completed"],
            pending_payments=counts["pending"],
            failed_payments=counts["failed"],
            total_revenue=counts["revenue"] or 0,
            revenue_by_type=by_type,
            revenue_by_month=by_month,
        )


__all__ = [
    "CheckoutResult",
    "InitializePaymentParams",
    "PaymentItemParams",
    "PaymentOrchestrator",
    "PaymentStatistics",
]
