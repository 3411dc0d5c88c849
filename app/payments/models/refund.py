"""
PaymentRefund model for tracking money returned to a parent.

A payment has at most one refund record. The record is claimed before the
gateway is called, so a second refund request while the first is in flight
sees REQUESTED and backs off instead of issuing another gateway refund.

Usage:
    from payments.models import PaymentRefund
    from payments.state_machines import RefundState

    refund = PaymentRefund.objects.create(
        payment=payment,
        amount=payment.amount,
        reason="Class cancelled",
    )

    # After the gateway accepts the refund
    refund.apply_transition("complete", gateway_refund_reference="rf_123")

    # After the gateway rejects it; a later request may retry
    refund.apply_transition("fail", reason="Insufficient merchant balance")
    refund.apply_transition("retry", amount=payment.amount, reason="Retry")
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.models.transitions import ConditionalTransitionMixin
from payments.state_machines import RefundState


class PaymentRefund(ConditionalTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Refund of one completed payment.

    State Flow:
        REQUESTED -> COMPLETED
        REQUESTED -> FAILED -> REQUESTED (retry)

    Fields:
        payment: The refunded payment (one refund per payment)
        amount: Refund amount in minor units
        reason: Why the refund was requested
        gateway_refund_reference: Gateway's id for the refund
        state: Current FSM state
        attempts: Number of times the refund was claimed
        failure_reason: Last gateway rejection message
        refunded_at: When the gateway accepted the refund
        metadata: Gateway refund status and other audit data
        version: Incremented on every transition
    """

    fsm_field_name = "state"

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refund",
    )
    amount = models.PositiveBigIntegerField(
        help_text="Refund amount in minor units (kobo)",
    )
    reason = models.TextField(blank=True, default="")
    gateway_refund_reference = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
    )
    state = FSMField(
        default=RefundState.REQUESTED,
        choices=RefundState.choices,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=1)
    failure_reason = models.TextField(blank=True, default="")
    refunded_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_refund_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Refund {self.amount} for payment {self.payment_id} [{self.state}]"

    @property
    def is_final(self) -> bool:
        return self.state == RefundState.COMPLETED

    # ==========================================================================
    # State Transitions
    # ==========================================================================

    @transition(
        field=state,
        source=RefundState.REQUESTED,
        target=RefundState.COMPLETED,
    )
    def complete(self, gateway_refund_reference: str, metadata: dict | None = None) -> None:
        self.gateway_refund_reference = gateway_refund_reference
        self.refunded_at = timezone.now()
        self.failure_reason = ""
        if metadata:
            self.metadata = {**self.metadata, **metadata}

    @transition(
        field=state,
        source=RefundState.REQUESTED,
        target=RefundState.FAILED,
    )
    def fail(self, reason: str = "") -> None:
        self.failure_reason = reason

    @transition(
        field=state,
        source=RefundState.FAILED,
        target=RefundState.REQUESTED,
    )
    def retry(self, amount: int, reason: str = "") -> None:
        """Claim a failed refund again for a new gateway attempt."""
        self.amount = amount
        self.reason = reason
        self.attempts += 1
