"""
Payment gateway contract.

The orchestrator depends on this Protocol, never on a concrete gateway, so
tests inject fakes and a second processor can be added without touching
payment logic. Gateway responses are decoded into the dataclasses below at
the adapter boundary; nothing downstream ever sees a raw response body.

Every method either returns its result or raises one of:
    GatewayRetryableError - the outcome is unknown, try again later
    GatewayFatalError - the gateway rejected the request

Usage:
    class FakeGateway:
        def initialize_transaction(self, email, amount, reference,
                                   callback_url, metadata=None, currency=None):
            return InitializeTransactionResult(
                access_code="ac_123",
                authorization_url="https://checkout.example/ac_123",
            )
        ...

    orchestrator = PaymentOrchestrator(gateway=FakeGateway())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from payments.state_machines import GatewayStatus


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class InitializeTransactionResult:
    """
    Checkout session issued by the gateway.

    Attributes:
        access_code: Code used by inline checkout widgets
        authorization_url: Hosted checkout page to redirect the parent to
    """

    access_code: str
    authorization_url: str


@dataclass
class VerificationResult:
    """
    Gateway's view of a transaction.

    Attributes:
        status: success, failed, abandoned or pending (still in progress)
        reference: Reference the gateway verified
        amount: Amount charged in minor units
        currency: ISO 4217 code of the charge
        channel: card, bank, ussd, mobile_money, bank_transfer, ...
        card_type: Card brand/type for card payments
        card_last4: Last four digits of the card
        bank: Issuing bank
        gateway_transaction_id: Gateway's own transaction id
        paid_at: When the gateway says the charge settled
        gateway_response: Gateway's human-readable outcome message
    """

    status: GatewayStatus
    reference: str
    amount: int | None = None
    currency: str | None = None
    channel: str = ""
    card_type: str = ""
    card_last4: str = ""
    bank: str = ""
    gateway_transaction_id: str = ""
    paid_at: datetime | None = None
    gateway_response: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == GatewayStatus.SUCCESS

    def metadata_fields(self) -> dict[str, Any]:
        """Gateway metadata to store on a completed payment."""
        return {
            "channel": self.channel,
            "card_type": self.card_type,
            "card_last4": self.card_last4,
            "bank": self.bank,
            "gateway_transaction_id": self.gateway_transaction_id,
        }


@dataclass
class RefundResult:
    """
    Refund accepted by the gateway.

    Attributes:
        gateway_refund_reference: Gateway's id for the refund
        status: Gateway's refund status (pending, processed, ...)
        raw_status: Extra fields kept for the audit trail
    """

    gateway_refund_reference: str
    status: str = ""
    raw_status: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Gateway Protocol
# =============================================================================


@runtime_checkable
class PaymentGateway(Protocol):
    """Operations the payments core requires from a payment processor."""

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any] | None = None,
        currency: str | None = None,
    ) -> InitializeTransactionResult: ...

    def verify_transaction(self, reference: str) -> VerificationResult: ...

    def refund(
        self,
        reference: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundResult: ...

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool: ...


__all__ = [
    "InitializeTransactionResult",
    "VerificationResult",
    "RefundResult",
    "PaymentGateway",
]
