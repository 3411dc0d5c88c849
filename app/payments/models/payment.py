"""
Payment and PaymentItem models.

Payment is one attempted charge: created when a parent starts a checkout,
moved through the gateway round-trip, and kept forever once terminal for
audit. PaymentItem holds its line items.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.get(reference=reference)

    # Transitions are persisted with a conditional UPDATE
    if payment.apply_transition("complete", paid_at=timezone.now()):
        ...  # this caller completed it

    Payment.objects.open().stale(before=cutoff)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.exceptions import ValidationError
from core.managers import BaseQuerySet
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.models.transitions import ConditionalTransitionMixin
from payments.state_machines import PaymentMethod, PaymentStatus, PaymentType

if TYPE_CHECKING:
    import uuid
    from datetime import datetime


class PaymentQuerySet(BaseQuerySet):
    """Chainable filters for payment lookups and sweeps."""

    def open(self) -> PaymentQuerySet:
        return self.filter(status__in=PaymentStatus.open_states())

    def completed(self) -> PaymentQuerySet:
        return self.filter(status=PaymentStatus.COMPLETED)

    def for_parent(self, parent_id: uuid.UUID) -> PaymentQuerySet:
        return self.filter(parent_id=parent_id)

    def stale(self, before: datetime) -> PaymentQuerySet:
        """Rows not touched since ``before``."""
        return self.filter(updated_at__lt=before)


class Payment(ConditionalTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    One attempted charge and its state machine.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED -> REFUNDED
        PENDING/PROCESSING -> FAILED
        PENDING/PROCESSING -> CANCELLED

    Fields:
        payment_code: Customer-facing code (PAYyyyymm#####)
        reference: Gateway reference, unique and never changed
        intent_key: Fingerprint of the checkout action; at most one open
            payment may carry a given key
        invoice_number: Invoice identifier (INVyyyymm####)
        parent_id / student_id: Opaque ids of the payer and beneficiary
        email: Payer email sent to the gateway
        amount: Total in minor units, equal to the sum of the items
        currency: ISO 4217 currency code
        payment_type / payment_method: What and how
        access_code / authorization_url: Checkout session from the gateway
        gateway_transaction_id, channel, card_type, card_last4, bank:
            Gateway metadata stored on completion
        status: Current FSM state
        paid_at: Set once, on completion
        failed_at / cancelled_at / refunded_at: Terminal timestamps
        failure_reason: Why the payment failed or was cancelled
        metadata: Flexible JSON storage
        version: Incremented on every transition

    Note:
        Never call save() after a transition; use apply_transition() so the
        write is conditional on the source state.
    """

    # ==========================================================================
    # Identifiers
    # ==========================================================================

    payment_code = models.CharField(
        max_length=20,
        unique=True,
        help_text="Customer-facing payment code",
    )
    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text="Gateway reference (immutable once assigned)",
    )
    intent_key = models.CharField(
        max_length=128,
        db_index=True,
        help_text="Fingerprint of the checkout action for retry reuse",
    )
    invoice_number = models.CharField(
        max_length=20,
        unique=True,
        help_text="Invoice identifier",
    )

    # ==========================================================================
    # Parties
    # ==========================================================================

    parent_id = models.UUIDField(
        db_index=True,
        help_text="Parent who pays",
    )
    student_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Student the payment is for, if any",
    )
    email = models.EmailField(
        help_text="Payer email sent to the gateway",
    )

    # ==========================================================================
    # Amount and Classification
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Total amount in minor units (kobo)",
    )
    currency = models.CharField(
        max_length=3,
        default="NGN",
        help_text="ISO 4217 currency code",
    )
    payment_type = models.CharField(
        max_length=20,
        choices=PaymentType.choices,
        db_index=True,
        help_text="What the payment is for",
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CARD,
        help_text="How the parent pays",
    )

    # ==========================================================================
    # Gateway Data
    # ==========================================================================

    access_code = models.CharField(max_length=100, blank=True, default="")
    authorization_url = models.URLField(max_length=500, blank=True, default="")
    gateway_transaction_id = models.CharField(max_length=100, blank=True, default="")
    channel = models.CharField(max_length=50, blank=True, default="")
    card_type = models.CharField(max_length=50, blank=True, default="")
    card_last4 = models.CharField(max_length=4, blank=True, default="")
    bank = models.CharField(max_length=100, blank=True, default="")

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Current payment state",
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True, default="")

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every transition",
    )

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["parent_id", "status"],
                name="payment_parent_status_idx",
            ),
            models.Index(
                fields=["status", "updated_at"],
                name="payment_status_updated_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["intent_key"],
                condition=Q(status__in=["pending", "processing"]),
                name="payment_unique_open_intent",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.payment_code} ({self.reference}): {self.amount} {self.currency} [{self.status}]"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_reference = instance.__dict__.get("reference")
        return instance

    def save(self, *args, **kwargs):
        """Save, refusing to change a reference that is already stored."""
        loaded = getattr(self, "_loaded_reference", None)
        if not self._state.adding and loaded and loaded != self.reference:
            raise ValidationError(
                "Payment reference cannot be changed",
                error_code="REFERENCE_IMMUTABLE",
                details={"reference": loaded},
            )
        super().save(*args, **kwargs)
        self._loaded_reference = self.reference

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_open(self) -> bool:
        return self.status in PaymentStatus.open_states()

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentStatus.terminal_states()

    @property
    def is_wallet_topup(self) -> bool:
        return self.payment_type == PaymentType.WALLET_TOPUP

    # ==========================================================================
    # State Transitions
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.PROCESSING,
    )
    def start_processing(self, access_code: str, authorization_url: str) -> None:
        """Store the checkout session issued by the gateway."""
        self.access_code = access_code
        self.authorization_url = authorization_url

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
        target=PaymentStatus.COMPLETED,
    )
    def complete(
        self,
        paid_at: datetime | None = None,
        channel: str = "",
        card_type: str = "",
        card_last4: str = "",
        bank: str = "",
        gateway_transaction_id: str = "",
    ) -> None:
        """Gateway confirmed the charge; stamp paid_at and gateway metadata."""
        self.paid_at = paid_at or timezone.now()
        self.channel = channel
        self.card_type = card_type
        self.card_last4 = card_last4
        self.bank = bank
        self.gateway_transaction_id = gateway_transaction_id

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str = "") -> None:
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
        target=PaymentStatus.CANCELLED,
    )
    def cancel(self, reason: str = "") -> None:
        self.cancelled_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.COMPLETED,
        target=PaymentStatus.REFUNDED,
    )
    def mark_refunded(self) -> None:
        self.refunded_at = timezone.now()


class PaymentItem(UUIDPrimaryKeyMixin, models.Model):
    """
    A line item on a payment.

    Constraints:
        - quantity and unit_price positive
        - total_price == quantity * unit_price
    """

    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name="items",
    )
    description = models.CharField(max_length=255)
    subject_id = models.UUIDField(null=True, blank=True)
    class_id = models.UUIDField(null=True, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.PositiveBigIntegerField(help_text="Minor units")
    total_price = models.PositiveBigIntegerField(help_text="Minor units")

    class Meta:
        ordering = ["payment", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0) & Q(unit_price__gt=0),
                name="payment_item_positive",
            ),
            models.CheckConstraint(
                condition=Q(total_price=F("quantity") * F("unit_price")),
                name="payment_item_total_matches",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.description} @ {self.unit_price}"
