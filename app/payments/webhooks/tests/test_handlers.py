"""
Tests for webhook event handlers.

Tests cover:
- Handler registration
- Dispatch of known and unknown events
- Charge events queue verification by reference
"""

from unittest.mock import patch

from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_event,
    handle_charge_event,
    register_handler,
)


# =============================================================================
# Handler Registration
# =============================================================================


class TestRegisterHandler:
    """Tests for the handler registry."""

    def test_charge_events_registered(self):
        assert WEBHOOK_HANDLERS["charge.success"] is handle_charge_event
        assert WEBHOOK_HANDLERS["charge.failed"] is handle_charge_event

    def test_register_new_handler(self):
        @register_handler("refund.processed")
        def handle_refund_processed(data):
            return "noted"

        try:
            assert WEBHOOK_HANDLERS["refund.processed"] is handle_refund_processed
            assert dispatch_event("refund.processed", {}) == "noted"
        finally:
            del WEBHOOK_HANDLERS["refund.processed"]


# =============================================================================
# Dispatch
# =============================================================================


class TestDispatchEvent:
    """Tests for dispatch_event()."""

    def test_unknown_event_ignored(self):
        assert dispatch_event("transfer.success", {"reference": "TRF_1"}) == "ignored"

    def test_charge_success_queues_verification(self):
        with patch("payments.tasks.verify_payment_task.delay") as delay:
            outcome = dispatch_event("charge.success", {"reference": "CS_1_abc"})

        assert outcome == "queued"
        delay.assert_called_once_with("CS_1_abc")

    def test_charge_failed_also_verifies(self):
        """A failure event is not trusted either; the gateway is asked."""
        with patch("payments.tasks.verify_payment_task.delay") as delay:
            outcome = dispatch_event("charge.failed", {"reference": "CS_1_abc"})

        assert outcome == "queued"
        delay.assert_called_once_with("CS_1_abc")

    def test_charge_without_reference(self):
        with patch("payments.tasks.verify_payment_task.delay") as delay:
            outcome = dispatch_event("charge.success", {"id": 3894102856})

        assert outcome == "missing_reference"
        delay.assert_not_called()
