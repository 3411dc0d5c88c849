"""
Wallet models: one balance per parent plus an append-only transaction log.

- Wallet: the parent's stored balance, kept in step with the log
- WalletTransaction: an immutable credit or debit, keyed by reference

The stored balance is an optimisation for the hot path; compute_balance()
rebuilds it from the log for audits and the drift sweep. Both must agree.

Usage:
    from payments.wallet.models import Wallet

    wallet = Wallet.objects.get(parent_id=parent_id)
    wallet.balance            # stored, minor units
    wallet.compute_balance()  # Σ credits − Σ debits from the log
"""

from __future__ import annotations

from django.db import models
from django.db.models import Case, Q, Sum, Value, When
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.wallet.exceptions import ImmutableTransactionError


class TransactionDirection(models.TextChoices):
    """Whether a wallet transaction adds to or takes from the balance."""

    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"


class Wallet(UUIDPrimaryKeyMixin, BaseModel):
    """
    A parent's wallet.

    Fields:
        parent_id: Opaque id of the owning parent (one wallet each)
        balance: Stored balance in minor units, never negative
        currency: ISO 4217 currency code
        version: Incremented on every balance change

    Note:
        Never assign balance directly; WalletService.credit/debit update it
        with an F() expression in the same transaction as the log insert.
    """

    parent_id = models.UUIDField(
        unique=True,
        help_text="Parent that owns this wallet",
    )
    balance = models.BigIntegerField(
        default=0,
        help_text="Current balance in minor units (kobo)",
    )
    currency = models.CharField(
        max_length=3,
        default="NGN",
        help_text="ISO 4217 currency code",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every balance change",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="wallet_balance_non_negative",
            )
        ]

    def __str__(self) -> str:
        return f"Wallet {self.parent_id}: {self.balance} {self.currency}"

    def compute_balance(self) -> int:
        """
        Compute the balance from the transaction log.

        Returns:
            Σ credits − Σ debits in minor units
        """
        result = self.transactions.aggregate(
            credits=Coalesce(
                Sum(
                    Case(
                        When(direction=TransactionDirection.CREDIT, then="amount"),
                        default=Value(0),
                        output_field=models.BigIntegerField(),
                    )
                ),
                Value(0),
                output_field=models.BigIntegerField(),
            ),
            debits=Coalesce(
                Sum(
                    Case(
                        When(direction=TransactionDirection.DEBIT, then="amount"),
                        default=Value(0),
                        output_field=models.BigIntegerField(),
                    )
                ),
                Value(0),
                output_field=models.BigIntegerField(),
            ),
        )
        return result["credits"] - result["debits"]


class WalletTransaction(UUIDPrimaryKeyMixin, models.Model):
    """
    One immutable entry in a wallet's ledger.

    Fields:
        wallet: Wallet this entry belongs to
        created_at: Timestamp when the entry was appended
        direction: credit or debit
        amount: Amount in minor units (always positive)
        description: Human-readable description
        reference: Idempotency key, usually the originating payment reference
        balance_after: Wallet balance right after this entry
        metadata: Arbitrary JSON data

    Constraints:
        - amount must be positive
        - (wallet, reference) must be unique, so replays of the same
          credit fail at the database instead of double-crediting

    Corrections are new entries in the opposite direction, never edits.
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Wallet this entry belongs to",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was appended",
    )
    direction = models.CharField(
        max_length=10,
        choices=TransactionDirection.choices,
        help_text="Credit adds to the balance, debit takes from it",
    )
    amount = models.PositiveBigIntegerField(
        help_text="Amount in minor units (always positive)",
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable description of this entry",
    )
    reference = models.CharField(
        max_length=255,
        help_text="Idempotency key (payment reference for top-ups)",
    )
    balance_after = models.BigIntegerField(
        help_text="Wallet balance right after this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["wallet", "reference"],
                name="wallet_transaction_unique_reference",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="wallet_transaction_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_direction_display()} {self.amount} ({self.reference})"

    @property
    def signed_amount(self) -> int:
        if self.direction == TransactionDirection.DEBIT:
            return -self.amount
        return self.amount

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise ImmutableTransactionError(
                "Wallet transactions cannot be modified",
                details={"transaction_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableTransactionError(
            "Wallet transactions cannot be deleted",
            details={"transaction_id": str(self.pk)},
        )
