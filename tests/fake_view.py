"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing operation
functions without requiring a full TicketLedger instance.
"""

from __future__ import annotations
from typing import Dict, Optional

from ticket_ledger import Listing, Policy
from ticket_ledger.core import EMPTY_LISTING


class FakeView:
    """
    Minimal LedgerView implementation for testing operation functions.

    Example:
        view = FakeView(
            owner="venue",
            tickets={"alice": 5},
            currency={"bob": 10000},
            listings={"alice": Listing(5, 1000)},
            reserve=5,
        )

        compute_buy(view, "bob", "alice", 5)
    """

    def __init__(
        self,
        owner: str = "venue",
        tickets: Optional[Dict[str, int]] = None,
        currency: Optional[Dict[str, int]] = None,
        listings: Optional[Dict[str, Listing]] = None,
        policy: Optional[Policy] = None,
        reserve: int = 0,
    ):
        self._owner = owner
        self._tickets = tickets or {}
        self._currency = currency or {}
        self._listings = listings or {}
        self._policy = policy or Policy()
        self._reserve = reserve

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def reserve(self) -> int:
        return self._reserve

    def get_tickets(self, user: str) -> int:
        return self._tickets.get(user, 0)

    def get_currency(self, user: str) -> int:
        return self._currency.get(user, 0)

    def get_listing(self, user: str) -> Listing:
        return self._listings.get(user, EMPTY_LISTING)

