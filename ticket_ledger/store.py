"""
store.py - Key/Value Substrate for Ledger Entries

LedgerStore holds the three per-user maps (tickets, currency, listings) and
nothing else. It has no validation: every read returns the stored value or
a zero default, and apply() writes whatever it is given. The TicketLedger
decides what may be written.

Zero-valued entries are removed on write, so a balance that was zeroed is
indistinguishable from one that was never touched.
"""

from __future__ import annotations
from typing import Dict, Iterable, Set

from .core import (
    Identity, Listing, Write,
    TicketMap, CurrencyMap, ListingMap,
    EMPTY_LISTING,
    TABLE_TICKETS, TABLE_CURRENCY, TABLE_LISTINGS,
)


class LedgerStore:
    """Get-or-zero maps for ticket balances, currency balances and listings."""

    def __init__(self):
        self.tickets: TicketMap = {}
        self.currency: CurrencyMap = {}
        self.listings: ListingMap = {}

    def _table(self, name: str) -> Dict[Identity, object]:
        if name == TABLE_TICKETS:
            return self.tickets
        if name == TABLE_CURRENCY:
            return self.currency
        if name == TABLE_LISTINGS:
            return self.listings
        raise KeyError(f"LedgerStore has no table {name!r}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_tickets(self, user: Identity) -> int:
        return self.tickets.get(user, 0)

    def get_currency(self, user: Identity) -> int:
        return self.currency.get(user, 0)

    def get_listing(self, user: Identity) -> Listing:
        return self.listings.get(user, EMPTY_LISTING)

    def get(self, table: str, user: Identity):
        """Read any keyed table with its zero default."""
        if table == TABLE_LISTINGS:
            return self.get_listing(user)
        return self._table(table).get(user, 0)

    def identities(self) -> Set[Identity]:
        """Every identity with at least one non-zero entry."""
        return set(self.tickets) | set(self.currency) | set(self.listings)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, table: str, user: Identity, value) -> None:
        """Write one entry, dropping it when the value is the zero default."""
        entries = self._table(table)
        zero = EMPTY_LISTING if table == TABLE_LISTINGS else 0
        if value == zero:
            entries.pop(user, None)
        else:
            entries[user] = value

    def apply(self, writes: Iterable[Write]) -> None:
        """
        Apply keyed writes in one step.

        Callers are responsible for validating the whole set first; this
        method never fails part-way for well-formed writes.
        """
        for w in writes:
            self.set(w.table, w.key, w.new)

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def copy(self) -> LedgerStore:
        """Independent copy. Values are immutable so a shallow map copy suffices."""
        cloned = LedgerStore()
        cloned.tickets = dict(self.tickets)
        cloned.currency = dict(self.currency)
        cloned.listings = dict(self.listings)
        return cloned

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerStore):
            return NotImplemented
        return (self.tickets == other.tickets
                and self.currency == other.currency
                and self.listings == other.listings)

    # Mutable container: equal by contents, never hashable.
    __hash__ = None

    def __repr__(self) -> str:
        return (f"LedgerStore({len(self.tickets)} ticket holders, "
                f"{len(self.currency)} currency holders, {len(self.listings)} listings)")
