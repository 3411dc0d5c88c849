"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, PaymentItem and PaymentRefund model tests
- test_references.py: Reference generation and collision handling
- test_orchestrator.py: Initialize, verify and cancel flows
- test_refunds.py: Refund flows and the top-up refund policy
- test_tasks.py: Verification task and periodic sweeps
- test_views.py: API endpoint tests, including parent access checks
- test_permissions.py: IsParentOrStaff and the parent token claim
- test_locks.py: DistributedLock tests

Adapter and webhook tests live beside their packages (adapters/tests,
webhooks/tests); wallet tests in wallet/tests.

Usage:
    pytest app/payments/tests/
    pytest app/payments/tests/test_orchestrator.py
"""
