"""
conftest.py - Shared pytest fixtures for ticket ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, seeded, listed)
- Sequencer setup
- FakeView for pure operation tests
"""

import pytest

from ticket_ledger import TicketLedger, Listing, Sequencer

from tests.fake_view import FakeView
from tests.ledger_helpers import OWNER, make_ledger


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with default policy and no balances."""
    return make_ledger()


@pytest.fixture
def seeded_ledger():
    """Alice owns 5 tickets, Bob holds 10000 currency, owner holds 50000."""
    return make_ledger(
        tickets={"alice": 5},
        currency={"bob": 10000, OWNER: 50000},
    )


@pytest.fixture
def listed_ledger(seeded_ledger):
    """Seeded ledger with Alice's 5 tickets listed at the default price."""
    seeded_ledger.list_for_sale("alice", 5)
    return seeded_ledger


@pytest.fixture
def production_ledger():
    """Non-test-mode ledger built only through logged operations."""
    ledger = TicketLedger("prod", owner=OWNER, verbose=False)
    ledger.issue_tickets(OWNER, "alice", 5)
    ledger.deposit("bob", 10000)
    ledger.deposit(OWNER, 50000)
    return ledger


@pytest.fixture
def sequencer(seeded_ledger):
    """Sequencer over the seeded ledger."""
    return Sequencer(seeded_ledger)


# =============================================================================
# FAKE VIEW FIXTURES
# =============================================================================

@pytest.fixture
def market_view():
    """FakeView with an open listing and a funded buyer."""
    return FakeView(
        owner=OWNER,
        tickets={"alice": 5},
        currency={"bob": 10000, OWNER: 50000},
        listings={"alice": Listing(5, 1000)},
        reserve=5,
    )
