"""
conftest.py - Shared pytest fixtures for custody tests

Provides common fixtures used across unit, conformance and functional tests:
- Collaborators (price feed, stable token, native host, credential registry)
- A quiet bank wired to all of them
- A listener recording published notifications
"""

import pytest

from custody import (
    Bank, BankConfig,
    StaticPriceFeed, StableToken, NativeHost, CredentialRegistry,
)

from tests.fakes import ETH, QUOTE, PRICE, OWNER, BANK, Recorder


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def feed():
    """Native asset priced at 2000 quote units."""
    return StaticPriceFeed(PRICE)


@pytest.fixture
def token():
    """Empty stable token minted by 'treasury'."""
    return StableToken("USDX", minter="treasury")


@pytest.fixture
def host():
    return NativeHost()


@pytest.fixture
def registry():
    """Credential registry whose minter is the bank."""
    return CredentialRegistry(owner=OWNER, minter=BANK)


# =============================================================================
# BANK FIXTURES
# =============================================================================

@pytest.fixture
def config():
    """Cap of 1,000,000 quote units, 5 native units per withdrawal request."""
    return BankConfig(
        owner=OWNER,
        deposit_cap=1_000_000 * QUOTE,
        max_withdrawal_per_request=5 * ETH,
        address=BANK,
    )


@pytest.fixture
def bank(config, feed, token, host, registry):
    return Bank(config, feed, token, host, reward_issuer=registry, verbose=False)


@pytest.fixture
def recorder(bank):
    """Listener subscribed to the bank fixture."""
    rec = Recorder()
    bank.subscribe(rec)
    return rec
