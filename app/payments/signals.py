"""
Django signals for payment and wallet events.

These are the notification sink of the payments core: other apps (email,
push, analytics) connect receivers here instead of being called directly.
Every signal is sent from transaction.on_commit, once, by the caller whose
conditional write actually moved the record, so receivers never see an
event for a rolled-back or duplicate transition.

Signals:
    payment_completed(payment)
    payment_failed(payment, reason)
    payment_cancelled(payment)
    payment_refunded(payment, refund)
    wallet_credited(wallet_id, transaction)
    wallet_debited(wallet_id, transaction)

Usage:
    from django.dispatch import receiver
    from payments.signals import payment_completed

    @receiver(payment_completed)
    def send_receipt(sender, payment, **kwargs):
        ...
"""

from __future__ import annotations

import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

payment_completed = Signal()
payment_failed = Signal()
payment_cancelled = Signal()
payment_refunded = Signal()

wallet_credited = Signal()
wallet_debited = Signal()


@receiver(payment_completed)
@receiver(payment_failed)
@receiver(payment_cancelled)
@receiver(payment_refunded)
def log_payment_event(sender, payment, signal, **kwargs):
    """Audit log line for every terminal payment event."""
    event = {
        payment_completed: "payment.completed",
        payment_failed: "payment.failed",
        payment_cancelled: "payment.cancelled",
        payment_refunded: "payment.refunded",
    }[signal]
    logger.info(
        "Payment event %s",
        event,
        extra={
            "event": event,
            "payment_id": str(payment.id),
            "reference": payment.reference,
            "parent_id": str(payment.parent_id),
            "amount": payment.amount,
            "status": payment.status,
        },
    )
