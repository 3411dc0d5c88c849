"""
Payment domain models.

- Payment: One attempted charge and its state machine
- PaymentItem: Line items of a payment
- PaymentRefund: Refund of a completed payment
- Wallet / WalletTransaction: Parent wallet and its append-only log
  (defined in payments.wallet, registered under this app)
"""

from payments.models.payment import Payment, PaymentItem, PaymentQuerySet
from payments.models.refund import PaymentRefund
from payments.wallet.models import TransactionDirection, Wallet, WalletTransaction

__all__ = [
    "Payment",
    "PaymentItem",
    "PaymentQuerySet",
    "PaymentRefund",
    "TransactionDirection",
    "Wallet",
    "WalletTransaction",
]
