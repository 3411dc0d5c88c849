"""
Celery tasks for payment processing.

This module provides async tasks for:
- Verifying a payment by reference (webhook and sweep entry point)
- Re-verifying payments stuck in processing
- Expiring abandoned checkouts
- Releasing refunds whose attempt never finished
- Reconciling stored wallet balances against their transaction logs

Usage:
    from payments.tasks import verify_payment_task

    # Queue verification after a webhook
    verify_payment_task.delay(reference)

    # Sweeps are scheduled through django-celery-beat
    # (see migration 0002_add_payment_sweep_schedules)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from core.exceptions import BaseApplicationError
from payments.exceptions import (
    GatewayRetryableError,
    LockAcquisitionError,
    PaymentNotFoundError,
)
from payments.locks import DistributedLock
from payments.models import Payment, PaymentRefund, Wallet
from payments.services import PaymentOrchestrator
from payments.state_machines import PaymentStatus, RefundState
from payments.wallet.services import WalletService

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_VERIFY_RETRIES = 5
SWEEP_BATCH_SIZE = 200
WALLET_RECONCILE_LOCK = "sweep:wallet-reconcile"
WALLET_RECONCILE_LOCK_TTL = 15 * 60


# =============================================================================
# Verification
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(GatewayRetryableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_VERIFY_RETRIES},
    acks_late=True,
)
def verify_payment_task(self, reference: str) -> dict:
    """
    Verify a payment with the gateway and settle it.

    Safe to run any number of times for the same reference: a terminal
    payment is returned without a gateway call, and the wallet credit of a
    top-up is keyed by the reference.

    Args:
        reference: Payment reference

    Returns:
        Dict with the payment status after verification

    Raises:
        GatewayRetryableError: Re-raised to trigger Celery retry
    """
    try:
        payment = PaymentOrchestrator().verify_payment(reference)
    except PaymentNotFoundError:
        logger.warning(
            "Verification requested for unknown reference",
            extra={"reference": reference},
        )
        return {"status": "not_found", "reference": reference}

    return {
        "status": payment.status,
        "reference": reference,
        "payment_id": str(payment.id),
    }


# =============================================================================
# Periodic Sweeps
# =============================================================================


@shared_task
def reverify_processing_payments() -> dict:
    """
    Queue verification for payments stuck in processing.

    Covers lost webhooks and parents who never returned to the callback
    page. Scheduled every few minutes via celery-beat.

    Returns:
        Dict with count of payments queued
    """
    cutoff = timezone.now() - timedelta(minutes=settings.PAYMENTS_REVERIFY_AFTER_MINUTES)
    references = list(
        Payment.objects.filter(status=PaymentStatus.PROCESSING)
        .stale(before=cutoff)
        .order_by("updated_at")
        .values_list("reference", flat=True)[:SWEEP_BATCH_SIZE]
    )

    for reference in references:
        verify_payment_task.delay(reference)

    if references:
        logger.info(
            f"Queued {len(references)} processing payments for verification",
            extra={"queued_count": len(references)},
        )
    return {"queued_count": len(references)}


@shared_task
def expire_abandoned_payments() -> dict:
    """
    Cancel open payments older than PAYMENTS_ABANDONED_AFTER_HOURS.

    Each payment is verified one last time first, so a charge that settled
    without a webhook is completed rather than cancelled. A payment whose
    final verification cannot reach the gateway is left for the next run.

    Returns:
        Dict with counts of cancelled, settled and skipped payments
    """
    cutoff = timezone.now() - timedelta(hours=settings.PAYMENTS_ABANDONED_AFTER_HOURS)
    candidates = list(
        Payment.objects.open()
        .filter(created_at__lt=cutoff)
        .order_by("created_at")[:SWEEP_BATCH_SIZE]
    )

    orchestrator = PaymentOrchestrator()
    cancelled = settled = skipped = 0

    for payment in candidates:
        if payment.status == PaymentStatus.PROCESSING:
            try:
                payment = orchestrator.verify_payment(payment.reference)
            except GatewayRetryableError:
                skipped += 1
                logger.warning(
                    "Final verification deferred, gateway unavailable",
                    extra={"payment_id": str(payment.id), "reference": payment.reference},
                )
                continue
            except BaseApplicationError as e:
                # One unsettleable payment must not stop the batch
                skipped += 1
                logger.error(
                    "Final verification failed",
                    extra={
                        "payment_id": str(payment.id),
                        "reference": payment.reference,
                        "error_code": e.error_code,
                    },
                )
                continue
            if payment.is_terminal:
                settled += 1
                continue

        payment = orchestrator.cancel_payment(
            payment_id=payment.id, reason="Checkout abandoned"
        )
        if payment.status == PaymentStatus.CANCELLED:
            cancelled += 1

    if candidates:
        logger.info(
            "Abandoned payment sweep finished",
            extra={"cancelled": cancelled, "settled": settled, "skipped": skipped},
        )
    return {"cancelled": cancelled, "settled": settled, "skipped": skipped}


@shared_task
def release_stale_refunds() -> dict:
    """
    Fail refunds stuck in requested for PAYMENTS_REFUND_STALE_AFTER_MINUTES.

    A worker that died mid-refund leaves the claim behind, and every later
    refund request for that payment would conflict with it. Released
    refunds can be requested again.

    Returns:
        Dict with count of refunds released
    """
    cutoff = timezone.now() - timedelta(minutes=settings.PAYMENTS_REFUND_STALE_AFTER_MINUTES)
    stale = list(
        PaymentRefund.objects.filter(state=RefundState.REQUESTED, updated_at__lt=cutoff)
        .select_related("payment")
        .order_by("updated_at")[:SWEEP_BATCH_SIZE]
    )

    orchestrator = PaymentOrchestrator()
    released = sum(1 for refund in stale if orchestrator.release_stale_refund(refund))

    if released:
        logger.info(
            f"Released {released} stale refunds",
            extra={"released_count": released},
        )
    return {"released_count": released}


@shared_task
def reconcile_wallet_balances() -> dict:
    """
    Compare every wallet's stored balance with its transaction log.

    Drift is logged at ERROR by WalletService.reconcile and never corrected
    automatically. Only one worker runs the sweep at a time.

    Returns:
        Dict with counts of checked and drifted wallets
    """
    try:
        with DistributedLock(WALLET_RECONCILE_LOCK, ttl=WALLET_RECONCILE_LOCK_TTL):
            checked = 0
            drifted = []
            for wallet in Wallet.objects.order_by("created_at").iterator():
                result = WalletService.reconcile(wallet)
                checked += 1
                if not result.is_consistent:
                    drifted.append(result.wallet_id)
    except LockAcquisitionError:
        logger.info("Wallet reconciliation already running, skipping")
        return {"status": "skipped"}

    logger.info(
        "Wallet reconciliation finished",
        extra={"checked": checked, "drifted": len(drifted)},
    )
    return {"status": "done", "checked": checked, "drifted": drifted}
