"""
Pytest fixtures for wallet tests.
"""

import pytest

from payments import signals
from payments.wallet.services import WalletService
from payments.wallet.tests.factories import WalletFactory


@pytest.fixture
def wallet(db):
    """An empty NGN wallet."""
    return WalletFactory()


@pytest.fixture
def funded_wallet(db):
    """A wallet holding ₦100.00 from a single credit."""
    wallet = WalletFactory()
    WalletService.credit(wallet, 10000, "Opening top-up", "seed:opening")
    return wallet


@pytest.fixture
def wallet_events():
    """
    Record wallet_credited / wallet_debited as (name, kwargs) tuples.

    Signals are sent from on_commit callbacks; pair with
    django_capture_on_commit_callbacks(execute=True).
    """
    events = []

    def on_credited(sender, **kwargs):
        events.append(("wallet_credited", kwargs))

    def on_debited(sender, **kwargs):
        events.append(("wallet_debited", kwargs))

    signals.wallet_credited.connect(on_credited)
    signals.wallet_debited.connect(on_debited)
    yield events
    signals.wallet_credited.disconnect(on_credited)
    signals.wallet_debited.disconnect(on_debited)
