"""
Payment gateway adapters.

All external payment API calls go through these adapters to ensure
consistent error handling, timeouts and observability. The orchestrator
depends on the PaymentGateway protocol; PaystackAdapter is the production
implementation.

Usage:
    from payments.adapters import PaystackAdapter, PaymentGateway

    gateway: PaymentGateway = PaystackAdapter()
    result = gateway.verify_transaction("CS_1718000000000_a1b2c3d4e")
    if result.is_success:
        ...
"""

from payments.adapters.base import (
    InitializeTransactionResult,
    PaymentGateway,
    RefundResult,
    VerificationResult,
)
from payments.adapters.paystack_adapter import PaystackAdapter

__all__ = [
    "InitializeTransactionResult",
    "PaymentGateway",
    "PaystackAdapter",
    "RefundResult",
    "VerificationResult",
]
