"""
DRF serializers for payments app.

This module provides serializers for:
- Checkout requests (initialize) and their response
- Payment, item and refund display
- Refund and cancel requests
- Listing filters, statistics and wallet views
- Manual wallet entries posted by staff

Read and write serializers are separate. Write serializers only check
shapes and types; business rules (item totals, refundable amount) are
enforced by PaymentOrchestrator and surface as ValidationError.
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import (
    Payment,
    PaymentItem,
    PaymentRefund,
    TransactionDirection,
    WalletTransaction,
)
from payments.services import InitializePaymentParams, PaymentItemParams
from payments.state_machines import PaymentMethod, PaymentStatus, PaymentType
from payments.wallet.types import from_minor_units


# =============================================================================
# Payment Display
# =============================================================================


class PaymentItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentItem
        fields = [
            "id",
            "description",
            "subject_id",
            "class_id",
            "quantity",
            "unit_price",
            "total_price",
        ]
        read_only_fields = fields


class PaymentRefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentRefund
        fields = [
            "id",
            "amount",
            "reason",
            "state",
            "attempts",
            "gateway_refund_reference",
            "failure_reason",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment serializer for API responses.

    Amounts are minor units; amount_display is the formatted major amount
    (e.g. "5000.00").
    """

    items = PaymentItemSerializer(many=True, read_only=True)
    refund = serializers.SerializerMethodField()
    amount_display = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_code",
            "reference",
            "invoice_number",
            "parent_id",
            "student_id",
            "email",
            "amount",
            "amount_display",
            "currency",
            "payment_type",
            "payment_method",
            "status",
            "authorization_url",
            "channel",
            "card_type",
            "card_last4",
            "bank",
            "paid_at",
            "failed_at",
            "cancelled_at",
            "refunded_at",
            "failure_reason",
            "items",
            "refund",
            "metadata",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_amount_display(self, obj: Payment) -> str:
        return f"{from_minor_units(obj.amount):.2f}"

    def get_refund(self, obj: Payment) -> dict | None:
        refund = PaymentRefund.objects.filter(payment=obj).first()
        return PaymentRefundSerializer(refund).data if refund else None


# =============================================================================
# Requests
# =============================================================================


class PaymentItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.IntegerField(min_value=1)
    total_price = serializers.IntegerField(min_value=1, required=False)
    subject_id = serializers.UUIDField(required=False, allow_null=True)
    class_id = serializers.UUIDField(required=False, allow_null=True)


class InitializePaymentSerializer(serializers.Serializer):
    """
    Checkout request.

    Usage:
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.to_params()  # may raise PaymentValidationError
    """

    parent_id = serializers.UUIDField()
    student_id = serializers.UUIDField(required=False, allow_null=True)
    email = serializers.EmailField()
    amount = serializers.IntegerField(min_value=1, help_text="Minor units (kobo)")
    payment_type = serializers.ChoiceField(choices=PaymentType.choices)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        default=PaymentMethod.CARD,
    )
    items = PaymentItemInputSerializer(many=True, required=False, default=list)
    idempotency_key = serializers.CharField(
        max_length=128, required=False, allow_blank=True
    )
    metadata = serializers.DictField(required=False)

    def to_params(self) -> InitializePaymentParams:
        data = self.validated_data
        return InitializePaymentParams(
            parent_id=data["parent_id"],
            student_id=data.get("student_id"),
            email=data["email"],
            amount=data["amount"],
            payment_type=data["payment_type"],
            payment_method=data["payment_method"],
            items=[PaymentItemParams(**item) for item in data["items"]],
            idempotency_key=data.get("idempotency_key") or None,
            metadata=data.get("metadata"),
        )


class CheckoutResultSerializer(serializers.Serializer):
    reference = serializers.CharField()
    authorization_url = serializers.URLField()
    access_code = serializers.CharField()
    payment = PaymentSerializer()


class RefundRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(
        min_value=1,
        required=False,
        help_text="Minor units; defaults to the full payment amount",
    )
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CancelRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)
    payment_type = serializers.ChoiceField(choices=PaymentType.choices, required=False)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)


# =============================================================================
# Reporting and Wallet
# =============================================================================


class PaymentListSerializer(serializers.Serializer):
    payments = PaymentSerializer(many=True)
    total_amount = serializers.IntegerField()


class PaymentStatisticsSerializer(serializers.Serializer):
    total_payments = serializers.IntegerField()
    completed_payments = serializers.IntegerField()
    pending_payments = serializers.IntegerField()
    failed_payments = serializers.IntegerField()
    total_revenue = serializers.IntegerField()
    revenue_by_type = serializers.DictField(child=serializers.IntegerField())
    revenue_by_month = serializers.DictField(child=serializers.IntegerField())


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = [
            "id",
            "direction",
            "amount",
            "description",
            "reference",
            "balance_after",
            "created_at",
        ]
        read_only_fields = fields


class WalletSerializer(serializers.Serializer):
    parent_id = serializers.UUIDField()
    balance = serializers.IntegerField()
    currency = serializers.CharField()
    transactions = WalletTransactionSerializer(many=True)


class WalletEntrySerializer(serializers.Serializer):
    direction = serializers.ChoiceField(choices=TransactionDirection.choices)
    amount = serializers.IntegerField(min_value=1, help_text="Minor units")
    description = serializers.CharField(max_length=255)
    reference = serializers.CharField(
        max_length=255,
        help_text="Replaying a reference returns the original entry",
    )


class WalletEntryResultSerializer(serializers.Serializer):
    created = serializers.BooleanField()
    balance = serializers.IntegerField()
    transaction = WalletTransactionSerializer()
