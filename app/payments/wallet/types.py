"""
Data types for wallet operations.

All amounts are integers in the currency's minor unit (kobo for NGN) so no
floating-point value ever reaches the ledger or the gateway.

Types:
    Money: An amount in minor units with its currency
    WalletEntryResult: A wallet transaction plus whether this call created it
    BalanceReconciliation: Stored balance compared with the recomputed one

Helpers:
    to_minor_units: Major units (naira) to minor units (kobo)
    from_minor_units: Minor units back to a Decimal in major units

Usage:
    from payments.wallet.types import Money, to_minor_units

    amount = Money(minor=to_minor_units("50"), currency="NGN")
    print(amount)  # "₦50.00 NGN"
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payments.wallet.models import WalletTransaction

MINOR_UNITS_PER_MAJOR = 100

CURRENCY_SYMBOLS = {
    "NGN": "₦",
    "USD": "$",
    "GHS": "GH₵",
    "ZAR": "R",
    "KES": "KSh",
}


def to_minor_units(value: int | str | Decimal) -> int:
    """
    Convert an amount in major units to integer minor units.

    Raises:
        ValueError: If the value is not a number or has sub-minor precision
            (e.g. "10.005").

    Example:
        to_minor_units(50)        # 5000
        to_minor_units("12.34")   # 1234
    """
    if isinstance(value, float):
        value = str(value)
    try:
        minor = Decimal(value) * MINOR_UNITS_PER_MAJOR
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e
    if not minor.is_finite() or minor != minor.to_integral_value():
        raise ValueError(f"Amount has more precision than the minor unit: {value!r}")
    return int(minor)


def from_minor_units(minor: int) -> Decimal:
    """
    Convert integer minor units to a Decimal in major units.

    ``from_minor_units(to_minor_units(x)) == x`` for every integral x.
    """
    return Decimal(minor) / MINOR_UNITS_PER_MAJOR


@dataclass
class Money:
    """
    Represents a monetary amount in minor units.

    Attributes:
        minor: Amount in the smallest currency unit (kobo for NGN)
        currency: ISO 4217 currency code (default: 'NGN')

    Example:
        balance = Money(minor=250000)
        print(balance)  # "₦2500.00 NGN"
    """

    minor: int
    currency: str = "NGN"

    @property
    def major(self) -> Decimal:
        return from_minor_units(self.minor)

    def __str__(self) -> str:
        symbol = CURRENCY_SYMBOLS.get(self.currency.upper(), "")
        return f"{symbol}{self.major:.2f} {self.currency.upper()}"

    def __repr__(self) -> str:
        return f"Money(minor={self.minor}, currency={self.currency!r})"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(minor=self.minor + other.minor, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(minor=self.minor - other.minor, currency=self.currency)

    def _check_currency(self, other: Money, operation: str) -> None:
        if self.currency.upper() != other.currency.upper():
            raise ValueError(
                f"Cannot {operation} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )


@dataclass
class WalletEntryResult:
    """
    Outcome of a credit or debit.

    Attributes:
        transaction: The wallet transaction carrying the reference
        created: False when the reference was already in the ledger and
            this call changed nothing
    """

    transaction: WalletTransaction
    created: bool


@dataclass
class BalanceReconciliation:
    """
    Stored wallet balance compared with the balance derived from the log.

    Attributes:
        wallet_id: Wallet that was checked
        stored: Balance column on the wallet row
        computed: Σ credits − Σ debits over its transactions
    """

    wallet_id: str
    stored: int
    computed: int

    @property
    def drift(self) -> int:
        return self.stored - self.computed

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


__all__ = [
    "MINOR_UNITS_PER_MAJOR",
    "Money",
    "WalletEntryResult",
    "BalanceReconciliation",
    "to_minor_units",
    "from_minor_units",
]
