"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    GatewayStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RefundState,
)

__all__ = [
    "GatewayStatus",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "RefundState",
]
