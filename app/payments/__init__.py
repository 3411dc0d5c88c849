"""
Payments app for the tutoring platform.

This app handles:
- Checkout initialization with Paystack
- Idempotent verification (client poll, webhook and background sweep)
- Single, idempotent refunds of completed payments
- Parent wallets funded by top-up payments

Related apps:
    - core: base models, services and exceptions

Usage:
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator()
    checkout = orchestrator.initialize_payment(params)
    payment = orchestrator.verify_payment(checkout.reference)
"""
