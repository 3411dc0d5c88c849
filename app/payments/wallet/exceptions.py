"""
Wallet-specific exceptions.

Exception Hierarchy:
    WalletError (base)
    ├── WalletNotFound - No wallet for the given id or parent
    ├── InsufficientFunds - Debit exceeds the current balance
    └── ImmutableTransactionError - Attempt to edit or delete a ledger row

Usage:
    from payments.wallet.exceptions import InsufficientFunds

    if wallet.balance < amount:
        raise InsufficientFunds(wallet.id, required=amount, available=wallet.balance)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class WalletError(BaseApplicationError):
    """Base exception for all wallet operations."""

    default_error_code: str = "WALLET_ERROR"


class WalletNotFound(WalletError, NotFoundError):
    """Raised when a wallet lookup fails."""

    default_error_code: str = "WALLET_NOT_FOUND"


class InsufficientFunds(WalletError, ConflictError):
    """
    Raised when a debit exceeds the wallet balance.

    Stores the wallet ID, required amount, and available balance
    for detailed error reporting.

    Attributes:
        wallet_id: Wallet that lacks funds
        required: Amount the debit needed (minor units)
        available: Balance at the time of the check (minor units)
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        wallet_id: uuid.UUID,
        required: int,
        available: int,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.wallet_id = wallet_id
        self.required = required
        self.available = available

        if message is None:
            message = (
                f"Wallet {wallet_id} has insufficient funds: "
                f"required {required}, available {available}"
            )

        error_details = {
            "wallet_id": str(wallet_id),
            "required": required,
            "available": available,
        }
        if details:
            error_details.update(details)

        super().__init__(message, details=error_details)


class ImmutableTransactionError(WalletError):
    """Raised on save() of an existing WalletTransaction or on delete()."""

    default_error_code: str = "WALLET_TRANSACTION_IMMUTABLE"


__all__ = [
    "WalletError",
    "WalletNotFound",
    "InsufficientFunds",
    "ImmutableTransactionError",
]
