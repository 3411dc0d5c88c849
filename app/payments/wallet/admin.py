"""
Django admin configuration for wallet models.

Wallet balances and transactions are read-only here: every change must go
through WalletService so the log and the stored balance stay in step.
"""

from django.contrib import admin

from .models import Wallet, WalletTransaction
from .types import Money


class WalletTransactionInline(admin.TabularInline):
    model = WalletTransaction
    extra = 0
    can_delete = False
    fields = ["created_at", "direction", "amount", "balance_after", "reference", "description"]
    readonly_fields = fields
    ordering = ["-created_at"]

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    """
    Admin configuration for Wallet.

    Shows the stored balance next to the balance recomputed from the log
    so drift is visible at a glance.
    """

    list_display = [
        "id",
        "parent_id",
        "balance_display",
        "currency",
        "version",
        "updated_at",
    ]
    list_filter = ["currency"]
    search_fields = ["id", "parent_id"]
    readonly_fields = [
        "id",
        "parent_id",
        "balance",
        "computed_balance_display",
        "currency",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    inlines = [WalletTransactionInline]

    def balance_display(self, obj: Wallet) -> str:
        return str(Money(minor=obj.balance, currency=obj.currency))

    balance_display.short_description = "Balance"

    def computed_balance_display(self, obj: Wallet) -> str:
        return str(Money(minor=obj.compute_balance(), currency=obj.currency))

    computed_balance_display.short_description = "Balance from log"

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for WalletTransaction.

    Transactions are immutable - they cannot be added, edited or deleted
    through the admin interface. Corrections are new opposite entries.
    """

    list_display = [
        "id",
        "created_at",
        "wallet",
        "direction",
        "amount",
        "balance_after",
        "reference",
    ]
    list_filter = ["direction", "created_at"]
    search_fields = ["id", "reference", "wallet__parent_id", "description"]
    readonly_fields = [
        "id",
        "wallet",
        "created_at",
        "direction",
        "amount",
        "description",
        "reference",
        "balance_after",
        "metadata",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
