"""
Wallet - per-parent balance backed by an append-only ledger.

Public API:
    Models (import from payments.wallet.models):
        Wallet - A parent's stored balance
        WalletTransaction - Immutable credit/debit keyed by reference
        TransactionDirection - credit | debit

    Service (import from payments.wallet.services):
        WalletService - credit, debit, balances and reconciliation

    Types:
        Money, WalletEntryResult, BalanceReconciliation
        to_minor_units, from_minor_units

    Exceptions:
        WalletError, WalletNotFound, InsufficientFunds,
        ImmutableTransactionError

Usage:
    from payments.wallet.services import WalletService
    from payments.wallet import InsufficientFunds

    wallet = WalletService.get_or_create_wallet(parent_id)
    WalletService.credit(wallet, 5000, "Wallet top-up", reference)

    try:
        WalletService.debit(wallet, 9000, "Exam fee", "exam:2024:1")
    except InsufficientFunds as e:
        print(e.available)

Note:
    Models and services are not imported here because they need the app
    registry; types and exceptions are safe to import at any time.
"""

from payments.wallet.exceptions import (
    ImmutableTransactionError,
    InsufficientFunds,
    WalletError,
    WalletNotFound,
)
from payments.wallet.types import (
    BalanceReconciliation,
    Money,
    WalletEntryResult,
    from_minor_units,
    to_minor_units,
)

__all__ = [
    "BalanceReconciliation",
    "Money",
    "WalletEntryResult",
    "from_minor_units",
    "to_minor_units",
    "WalletError",
    "WalletNotFound",
    "InsufficientFunds",
    "ImmutableTransactionError",
]
