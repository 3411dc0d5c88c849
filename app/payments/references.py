"""
Reference, payment code and invoice number generation.

Random identifiers are not guaranteed unique on their own; the unique
constraints on Payment are the source of truth. create_with_unique_identifiers
inserts under a savepoint and draws fresh identifiers when an insert loses
to an existing row.

Usage:
    from payments.references import create_with_unique_identifiers

    payment, created = create_with_unique_identifiers(
        lambda ids: Payment.objects.create(
            reference=ids.reference,
            payment_code=ids.payment_code,
            invoice_number=ids.invoice_number,
            ...
        ),
        intent_key=intent_key,
    )
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import ConflictError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from payments.models import Payment

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "CS"
REFERENCE_RANDOM_LENGTH = 9
MAX_ATTEMPTS = 5

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class Identifiers:
    """One draw of the three externally visible payment identifiers."""

    reference: str
    payment_code: str
    invoice_number: str

    @classmethod
    def generate(cls, now: datetime | None = None) -> Identifiers:
        now = now or timezone.now()
        return cls(
            reference=generate_reference(),
            payment_code=generate_payment_code(now),
            invoice_number=generate_invoice_number(now),
        )


def generate_reference() -> str:
    """Gateway reference: ``CS_{epoch_ms}_{9 base36 chars}``."""
    epoch_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(REFERENCE_RANDOM_LENGTH))
    return f"{REFERENCE_PREFIX}_{epoch_ms}_{suffix}"


def generate_payment_code(now: datetime | None = None) -> str:
    """Customer-facing code: ``PAY{yyyy}{mm}`` plus five digits."""
    now = now or timezone.now()
    return f"PAY{now.year}{now.month:02d}{10000 + secrets.randbelow(90000)}"


def generate_invoice_number(now: datetime | None = None) -> str:
    """Invoice number: ``INV{yyyy}{mm}`` plus four digits."""
    now = now or timezone.now()
    return f"INV{now.year}{now.month:02d}{1000 + secrets.randbelow(9000)}"


def create_with_unique_identifiers(
    factory: Callable[[Identifiers], Payment],
    intent_key: str | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> tuple[Payment, bool]:
    """
    Insert a payment, regenerating identifiers on collision.

    Args:
        factory: Creates and returns the payment for the given identifiers.
            Called inside a savepoint; it must not catch IntegrityError.
        intent_key: Open-intent key of the payment being created. When an
            insert fails because another request already opened a payment
            for this key, that payment is returned instead.
        max_attempts: Identifier draws before giving up

    Returns:
        (payment, created); created is False when an already-open payment
        with the same intent key was returned

    Raises:
        ConflictError: If every attempt collided
    """
    from payments.models import Payment

    for attempt in range(1, max_attempts + 1):
        identifiers = Identifiers.generate()
        try:
            with transaction.atomic():
                return factory(identifiers), True
        except IntegrityError:
            if intent_key:
                existing = Payment.objects.open().filter(intent_key=intent_key).first()
                if existing is not None:
                    logger.info(
                        "Open payment already exists for intent",
                        extra={
                            "payment_id": str(existing.id),
                            "reference": existing.reference,
                        },
                    )
                    return existing, False
            logger.warning(
                "Payment identifier collision, regenerating",
                extra={"attempt": attempt, "reference": identifiers.reference},
            )

    raise ConflictError(
        "Could not allocate unique payment identifiers",
        error_code="REFERENCE_COLLISION",
        details={"attempts": max_attempts},
    )


__all__ = [
    "Identifiers",
    "generate_reference",
    "generate_payment_code",
    "generate_invoice_number",
    "create_with_unique_identifiers",
]
