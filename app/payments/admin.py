"""
Payment admin configuration.

Registers payment models and pulls in the wallet admin. Payments and
refunds are read-only here: state only moves through PaymentOrchestrator,
whose conditional updates the admin's plain save() would bypass.
"""

from django.contrib import admin

from payments.models import Payment, PaymentItem, PaymentRefund
from payments.wallet.admin import WalletAdmin, WalletTransactionAdmin
from payments.wallet.types import Money

__all__ = [
    "PaymentAdmin",
    "PaymentRefundAdmin",
    "WalletAdmin",
    "WalletTransactionAdmin",
]


class PaymentItemInline(admin.TabularInline):
    model = PaymentItem
    extra = 0
    can_delete = False
    fields = ["description", "quantity", "unit_price", "total_price", "subject_id", "class_id"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into payment status, gateway data and history.
    """

    list_display = [
        "payment_code",
        "reference",
        "parent_id",
        "amount_display",
        "payment_type",
        "status",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "payment_type", "payment_method", "currency", "created_at"]
    search_fields = [
        "id",
        "reference",
        "payment_code",
        "invoice_number",
        "parent_id",
        "email",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [PaymentItemInline]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payment_code", "reference", "invoice_number", "status"),
            },
        ),
        (
            "Parties",
            {
                "fields": ("parent_id", "student_id", "email"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency", "payment_type", "payment_method"),
            },
        ),
        (
            "Gateway",
            {
                "fields": (
                    "access_code",
                    "authorization_url",
                    "gateway_transaction_id",
                    "channel",
                    "card_type",
                    "card_last4",
                    "bank",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": ("paid_at", "failed_at", "cancelled_at", "refunded_at"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("intent_key", "metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.concrete_fields]

    def amount_display(self, obj: Payment) -> str:
        return str(Money(minor=obj.amount, currency=obj.currency))

    amount_display.short_description = "Amount"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(PaymentRefund)
class PaymentRefundAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "payment",
        "amount",
        "state",
        "attempts",
        "refunded_at",
        "created_at",
    ]
    list_filter = ["state", "created_at"]
    search_fields = ["id", "gateway_refund_reference", "payment__reference", "reason"]
    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.concrete_fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
