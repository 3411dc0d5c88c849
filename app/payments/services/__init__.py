"""
Payment services.

- PaymentOrchestrator: initialize, verify, refund and cancel payments, plus
  lookups and reporting

Usage:
    from payments.services import InitializePaymentParams, PaymentOrchestrator

    checkout = PaymentOrchestrator().initialize_payment(
        InitializePaymentParams(
            parent_id=parent_id,
            email="parent@example.com",
            amount=250000,
            payment_type="wallet-topup",
        )
    )
"""

from payments.services.orchestrator import (
    CheckoutResult,
    InitializePaymentParams,
    PaymentItemParams,
    PaymentOrchestrator,
    PaymentStatistics,
)

__all__ = [
    "CheckoutResult",
    "InitializePaymentParams",
    "PaymentItemParams",
    "PaymentOrchestrator",
    "PaymentStatistics",
]
