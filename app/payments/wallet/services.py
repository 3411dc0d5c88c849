"""
Wallet service: the only code path that changes a wallet balance.

Every credit or debit is one database transaction that:
1. Locks the wallet row (select_for_update)
2. Returns the existing entry if the reference is already in the log
3. Validates the amount (and the balance, for debits)
4. Appends the entry under a savepoint; the (wallet, reference) unique
   constraint turns a concurrent duplicate into the "already applied" path
5. Moves the stored balance with an F() expression

Usage:
    from payments.wallet.services import WalletService

    wallet = WalletService.get_or_create_wallet(parent_id)
    result = WalletService.credit(
        wallet,
        amount=500000,
        description="Wallet top-up",
        reference="CS_1718000000000_a1b2c3d4e",
    )
    result.created  # False when this reference was already credited
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService
from payments import signals
from payments.wallet.exceptions import InsufficientFunds, WalletNotFound
from payments.wallet.models import TransactionDirection, Wallet, WalletTransaction
from payments.wallet.types import BalanceReconciliation, Money, WalletEntryResult

if TYPE_CHECKING:
    from typing import Any

    from django.db.models import QuerySet


class WalletService(BaseService):
    """
    Service for wallet balance operations.

    All methods are classmethods; the service holds no state.
    """

    # =========================================================================
    # Wallet Management
    # =========================================================================

    @classmethod
    def get_or_create_wallet(
        cls,
        parent_id: uuid.UUID,
        currency: str | None = None,
    ) -> Wallet:
        """
        Get a parent's wallet, creating an empty one on first use.

        Handles the race where two requests create the same wallet by
        falling back to a read when the unique parent_id insert fails.
        """
        currency = (currency or settings.PAYMENTS_DEFAULT_CURRENCY).upper()
        wallet = Wallet.objects.filter(parent_id=parent_id).first()
        if wallet is not None:
            return wallet

        try:
            with transaction.atomic():
                wallet = Wallet.objects.create(parent_id=parent_id, currency=currency)
        except IntegrityError:
            return Wallet.objects.get(parent_id=parent_id)

        cls.get_logger().info(
            "Wallet created",
            extra={"wallet_id": str(wallet.id), "parent_id": str(parent_id)},
        )
        return wallet

    @classmethod
    def get_wallet(cls, parent_id: uuid.UUID) -> Wallet:
        """
        Get a parent's wallet.

        Raises:
            WalletNotFound: If the parent has no wallet yet
        """
        wallet = Wallet.objects.filter(parent_id=parent_id).first()
        if wallet is None:
            raise WalletNotFound(
                f"No wallet for parent {parent_id}",
                details={"parent_id": str(parent_id)},
            )
        return wallet

    # =========================================================================
    # Balance Mutations
    # =========================================================================

    @classmethod
    def credit(
        cls,
        wallet: Wallet,
        amount: int,
        description: str,
        reference: str,
        currency: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WalletEntryResult:
        """
        Credit a wallet at most once per reference.

        Args:
            wallet: Wallet to credit
            amount: Amount in minor units (must be positive)
            description: Human-readable description
            reference: Idempotency key for this credit
            currency: If given, must match the wallet currency
            metadata: Extra JSON stored on the transaction

        Returns:
            WalletEntryResult; created=False means the reference was already
            credited and the balance did not change
        """
        return cls._append(
            wallet,
            TransactionDirection.CREDIT,
            amount,
            description,
            reference,
            currency,
            metadata,
        )

    @classmethod
    def debit(
        cls,
        wallet: Wallet,
        amount: int,
        description: str,
        reference: str,
        currency: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WalletEntryResult:
        """
        Debit a wallet at most once per reference.

        Same contract as credit(), plus:

        Raises:
            InsufficientFunds: If the balance is lower than amount
        """
        return cls._append(
            wallet,
            TransactionDirection.DEBIT,
            amount,
            description,
            reference,
            currency,
            metadata,
        )

    @classmethod
    def _append(
        cls,
        wallet: Wallet,
        direction: str,
        amount: int,
        description: str,
        reference: str,
        currency: str | None,
        metadata: dict[str, Any] | None,
    ) -> WalletEntryResult:
        logger = cls.get_logger()
        log_context = {
            "wallet_id": str(wallet.id),
            "direction": direction,
            "amount": amount,
            "reference": reference,
        }

        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError(
                "Wallet amount must be a positive integer in minor units",
                error_code="INVALID_WALLET_AMOUNT",
                details={"amount": amount},
            )
        if not reference:
            raise ValidationError(
                "Wallet transactions require a reference",
                error_code="WALLET_REFERENCE_REQUIRED",
            )

        with transaction.atomic():
            # Serialises all mutations of this wallet until commit
            locked = Wallet.objects.select_for_update().get(pk=wallet.pk)

            existing = WalletTransaction.objects.filter(
                wallet=locked, reference=reference
            ).first()
            if existing is not None:
                logger.info("Wallet entry already applied", extra=log_context)
                return WalletEntryResult(transaction=existing, created=False)

            if currency and currency.upper() != locked.currency.upper():
                raise ValidationError(
                    f"Currency {currency} does not match wallet currency "
                    f"{locked.currency}",
                    error_code="WALLET_CURRENCY_MISMATCH",
                    details={"currency": currency, "wallet_currency": locked.currency},
                )

            if direction == TransactionDirection.DEBIT:
                if locked.balance < amount:
                    raise InsufficientFunds(
                        locked.id, required=amount, available=locked.balance
                    )
                delta = -amount
            else:
                delta = amount

            try:
                with transaction.atomic():
                    entry = WalletTransaction.objects.create(
                        wallet=locked,
                        direction=direction,
                        amount=amount,
                        description=description,
                        reference=reference,
                        balance_after=locked.balance + delta,
                        metadata=metadata or {},
                    )
            except IntegrityError:
                # Another writer appended the same reference first
                entry = WalletTransaction.objects.get(wallet=locked, reference=reference)
                logger.info("Wallet entry already applied", extra=log_context)
                return WalletEntryResult(transaction=entry, created=False)

            Wallet.objects.filter(pk=locked.pk).update(
                balance=F("balance") + delta,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )

            sender = (
                signals.wallet_credited
                if direction == TransactionDirection.CREDIT
                else signals.wallet_debited
            )
            transaction.on_commit(
                lambda: sender.send(sender=Wallet, wallet_id=locked.id, transaction=entry)
            )

        wallet.refresh_from_db(fields=["balance", "version", "updated_at"])
        logger.info(
            "Wallet entry recorded",
            extra={**log_context, "balance_after": entry.balance_after},
        )
        return WalletEntryResult(transaction=entry, created=True)

    # =========================================================================
    # Reads and Reconciliation
    # =========================================================================

    @classmethod
    def get_balance(cls, wallet: Wallet) -> Money:
        """Read the stored balance."""
        wallet.refresh_from_db(fields=["balance", "currency"])
        return Money(minor=wallet.balance, currency=wallet.currency)

    @classmethod
    def compute_balance(cls, wallet: Wallet) -> Money:
        """Recompute the balance from the transaction log."""
        return Money(minor=wallet.compute_balance(), currency=wallet.currency)

    @classmethod
    def reconcile(cls, wallet: Wallet) -> BalanceReconciliation:
        """
        Compare the stored balance with the log-derived balance.

        Reads both inside one transaction with the wallet locked so an
        in-flight credit cannot land between the two reads.
        """
        with transaction.atomic():
            locked = Wallet.objects.select_for_update().get(pk=wallet.pk)
            result = BalanceReconciliation(
                wallet_id=str(locked.id),
                stored=locked.balance,
                computed=locked.compute_balance(),
            )

        if not result.is_consistent:
            cls.get_logger().error(
                "Wallet balance drift detected",
                extra={
                    "wallet_id": result.wallet_id,
                    "stored": result.stored,
                    "computed": result.computed,
                    "drift": result.drift,
                },
            )
        return result

    @classmethod
    def get_transactions(cls, wallet: Wallet) -> QuerySet[WalletTransaction]:
        """Wallet transactions in the order they were appended."""
        return wallet.transactions.order_by("created_at", "id")


__all__ = ["WalletService"]
