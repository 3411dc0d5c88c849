"""
Paystack webhook event handlers.

Webhook bodies are never trusted for state: a charge event only tells us
which reference to look at, and the verification task asks the gateway
itself before anything moves.

Usage:
    from payments.webhooks.handlers import dispatch_event, register_handler

    @register_handler("refund.processed")
    def handle_refund_processed(data: dict) -> str:
        ...

    outcome = dispatch_event(event["event"], event["data"])
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


# Maps Paystack event names to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[dict[str, Any]], str]] = {}


def register_handler(event_type: str) -> Callable:
    """Decorator registering ``func`` as the handler for ``event_type``."""

    def decorator(func: Callable[[dict[str, Any]], str]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_event(event_type: str, data: dict[str, Any]) -> str:
    """
    Route an event to its handler.

    Returns:
        Short outcome string for logging ("ignored" for unknown events)
    """
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info(
            f"No handler registered for event type: {event_type}",
            extra={"event_type": event_type},
        )
        return "ignored"
    return handler(data)


@register_handler("charge.success")
@register_handler("charge.failed")
def handle_charge_event(data: dict[str, Any]) -> str:
    """Queue verification of the charged reference."""
    from payments.tasks import verify_payment_task

    reference = data.get("reference")
    if not reference:
        logger.warning("Charge event without reference")
        return "missing_reference"

    verify_payment_task.delay(reference)
    logger.info("Verification queued", extra={"reference": reference})
    return "queued"
