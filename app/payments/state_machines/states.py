"""
State and choice enums for payment models.

These are Django TextChoices for database storage and admin integration.
PaymentStatus backs the django-fsm field on Payment.

State Machines Overview:

Payment States:
    pending → processing → completed → refunded
    pending/processing → completed (verified before initialize returned)
    pending/processing → failed
    pending/processing → cancelled

Refund States:
    requested → completed
    requested → failed → requested (retry)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: COMPLETED (except for refund), FAILED, CANCELLED, REFUNDED

    State Flow:
        PENDING → PROCESSING → COMPLETED

    Failure / Abandonment:
        PENDING/PROCESSING → FAILED
        PENDING/PROCESSING → CANCELLED

    Refund Flow:
        COMPLETED → REFUNDED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"

    @classmethod
    def open_states(cls) -> frozenset[str]:
        """States in which the gateway outcome is still unknown."""
        return frozenset({cls.PENDING, cls.PROCESSING})

    @classmethod
    def terminal_states(cls) -> frozenset[str]:
        """States verify never leaves; refund only leaves COMPLETED."""
        return frozenset({cls.COMPLETED, cls.FAILED, cls.CANCELLED, cls.REFUNDED})


class PaymentType(models.TextChoices):
    """What a payment is for."""

    REGISTRATION = "registration", "Registration"
    SUBJECT_FEE = "subject-fee", "Subject Fee"
    PACKAGE_FEE = "package-fee", "Package Fee"
    MATERIAL_FEE = "material-fee", "Material Fee"
    EXAM_FEE = "exam-fee", "Exam Fee"
    WALLET_TOPUP = "wallet-topup", "Wallet Top-up"


class PaymentMethod(models.TextChoices):
    """How the parent pays at checkout."""

    CARD = "card", "Card"
    BANK_TRANSFER = "bank-transfer", "Bank Transfer"
    USSD = "ussd", "USSD"
    MOBILE_MONEY = "mobile-money", "Mobile Money"
    WALLET = "wallet", "Wallet"


class RefundState(models.TextChoices):
    """
    States for the PaymentRefund sub-record.

    A FAILED refund can be claimed again; a COMPLETED refund is final and
    is what repeated refund calls return.

    State Flow:
        REQUESTED → COMPLETED
        REQUESTED → FAILED → REQUESTED (retry)
    """

    REQUESTED = "requested", "Requested"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class GatewayStatus(models.TextChoices):
    """Outcome of a gateway verification, decoded once at the adapter."""

    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    ABANDONED = "abandoned", "Abandoned"
    PENDING = "pending", "Pending"
