"""
operations.py - Transaction Engine

Pure functions for every state-changing user operation:
1. compute_list_for_sale() / compute_delist_from_sale() - manage a user's listing
2. compute_buy() - purchase listed tickets from another user
3. compute_refund() / compute_partial_refund() - surrender tickets for currency
4. compute_withdraw() / compute_deposit() - move currency across the ledger boundary
5. compute_cancel_event() - owner clears its own ticket balance
6. compute_issue_tickets() - owner issues new tickets to a user

Each function validates its preconditions in order against a LedgerView,
raises the first violated TicketLedgerError, and otherwise returns a
PendingTransaction holding every write the operation makes. Nothing is
committed here; TicketLedger.execute() applies the whole set or none of it.

Derived amounts:
    cost = amount * listing.price
    fee  = amount * policy.ticket_price * policy.refund_rate_percent // 100

buy() credits the fee to the owner using the current global price, not the
listing's captured price. partial_refund() pays the caller without debiting
anyone. Both behaviours are part of the ledger's contract.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple

from .core import (
    Identity, LedgerView, Listing, PendingTransaction, Write,
    InsufficientTickets, InsufficientFunds, TransferFailed,
    InvalidAmount, MaxTicketsExceeded, SameUser,
    PERCENT_DENOMINATOR,
    TABLE_TICKETS, TABLE_CURRENCY, TABLE_LISTINGS,
    build_transaction, require_owner, require_positive, require_quantity,
)
from .reserve import reserve_write


def compute_refund_amount(view: LedgerView, amount: int) -> int:
    """Refund owed for surrendering amount tickets at the current policy."""
    policy = view.policy
    return amount * policy.ticket_price * policy.refund_rate_percent // PERCENT_DENOMINATOR


class _Staging:
    """
    Accumulates writes for one operation.

    Reads go through the staging set first, so two adjustments to the same
    entry (e.g. the owner being both seller and fee recipient) add up
    instead of overwriting each other.
    """

    def __init__(self, view: LedgerView):
        self.view = view
        self._pending: Dict[Tuple[str, Identity], object] = {}
        self._order = []

    def _read(self, table: str, user: Identity):
        key = (table, user)
        if key in self._pending:
            return self._pending[key]
        return self._original(table, user)

    def _original(self, table: str, user: Identity):
        if table == TABLE_TICKETS:
            return self.view.get_tickets(user)
        if table == TABLE_CURRENCY:
            return self.view.get_currency(user)
        return self.view.get_listing(user)

    def _stage(self, table: str, user: Identity, value) -> None:
        key = (table, user)
        if key not in self._pending:
            self._order.append(key)
        self._pending[key] = value

    def adjust_tickets(self, user: Identity, delta: int) -> None:
        self._stage(TABLE_TICKETS, user, self._read(TABLE_TICKETS, user) + delta)

    def set_tickets(self, user: Identity, value: int) -> None:
        self._stage(TABLE_TICKETS, user, value)

    def adjust_currency(self, user: Identity, delta: int) -> None:
        self._stage(TABLE_CURRENCY, user, self._read(TABLE_CURRENCY, user) + delta)

    def set_listing(self, user: Identity, listing: Listing) -> None:
        self._stage(TABLE_LISTINGS, user, listing)

    def writes(self, *extra: Optional[Write]) -> Tuple[Write, ...]:
        staged = tuple(
            Write(table, user, self._original(table, user), self._pending[(table, user)])
            for table, user in self._order
        )
        return staged + tuple(w for w in extra if w is not None)


# ============================================================================
# LISTINGS
# ============================================================================

def compute_list_for_sale(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """
    Offer amount more tickets for sale.

    The listing's price is refreshed to the current policy price on every
    call, overwriting the previously captured one.

    Raises:
        InvalidAmount: If amount is not positive.
        InsufficientTickets: If listed + amount would exceed tickets owned.
        ReserveLimitExceeded: If the reserve cannot absorb amount more tickets.

    Example:
        # alice owns 5 tickets, price 1000
        pending = compute_list_for_sale(ledger, "alice", 5)
        ledger.execute(pending)
        # listing[alice] = Listing(5 @ 1000), reserve += 5
    """
    require_positive(amount, InvalidAmount, "listing amount")
    listed = view.get_listing(caller).amount
    owned = view.get_tickets(caller)
    if owned < listed + amount:
        raise InsufficientTickets(
            f"{caller} owns {owned} tickets, cannot list {amount} more on top of {listed}"
        )
    reserve = reserve_write(view, amount)

    staging = _Staging(view)
    staging.set_listing(caller, Listing(listed + amount, view.policy.ticket_price))
    return build_transaction("list_for_sale", caller, (amount,), staging.writes(reserve))


def compute_delist_from_sale(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """
    Withdraw amount tickets from the caller's listing. The captured price is kept.

    Raises:
        InvalidAmount: If amount is negative.
        InsufficientTickets: If the listing holds fewer than amount tickets.
    """
    require_quantity(amount, InvalidAmount, "delist amount")
    listing = view.get_listing(caller)
    if listing.amount < amount:
        raise InsufficientTickets(
            f"{caller} has {listing.amount} tickets listed, cannot delist {amount}"
        )
    reserve = reserve_write(view, -amount)

    staging = _Staging(view)
    staging.set_listing(caller, Listing(listing.amount - amount, listing.price))
    return build_transaction("delist_from_sale", caller, (amount,), staging.writes(reserve))


# ============================================================================
# PURCHASE
# ============================================================================

def compute_buy(view: LedgerView, buyer: Identity, seller: Identity, amount: int) -> PendingTransaction:
    """
    Buy amount tickets from seller's listing.

    Moves:
        seller tickets   -amount        buyer tickets    +amount
        seller listing   -amount        buyer currency   -cost
        seller currency  +cost          owner currency   +fee

    The reserve counter is not touched: listed tickets were already counted.

    Raises:
        SameUser: If buyer and seller are the same identity.
        InvalidAmount: If amount is not positive.
        InsufficientTickets: If the listing (or the seller's holding) is short.
        InsufficientFunds: If the buyer cannot pay cost.
    """
    if buyer == seller:
        raise SameUser(f"{buyer} cannot buy from itself")
    require_positive(amount, InvalidAmount, "purchase amount")
    listing = view.get_listing(seller)
    if listing.amount < amount:
        raise InsufficientTickets(
            f"{seller} has {listing.amount} tickets listed, cannot sell {amount}"
        )
    # A refund or cancellation after listing can leave the listing larger than the holding.
    held = view.get_tickets(seller)
    if held < amount:
        raise InsufficientTickets(f"{seller} holds {held} tickets, cannot sell {amount}")

    cost = amount * listing.price
    fee = compute_refund_amount(view, amount)
    funds = view.get_currency(buyer)
    if funds < cost:
        raise InsufficientFunds(f"{buyer} has {funds}, purchase costs {cost}")

    staging = _Staging(view)
    staging.adjust_tickets(seller, -amount)
    staging.set_listing(seller, Listing(listing.amount - amount, listing.price))
    staging.adjust_currency(buyer, -cost)
    staging.adjust_tickets(buyer, amount)
    staging.adjust_currency(seller, cost)
    staging.adjust_currency(view.owner, fee)
    return build_transaction("buy", buyer, (seller, amount), staging.writes())


# ============================================================================
# REFUNDS
# ============================================================================

def _check_refundable(view: LedgerView, caller: Identity, amount: int) -> int:
    require_positive(amount, InvalidAmount, "refund amount")
    owned = view.get_tickets(caller)
    if owned < amount:
        raise InsufficientTickets(f"{caller} owns {owned} tickets, cannot refund {amount}")
    return compute_refund_amount(view, amount)


def compute_refund(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """
    Surrender amount tickets to the owner in exchange for a refund.

    The owner pays the refund and receives the tickets; the reserve shrinks
    by amount (floored at zero).

    Raises:
        InvalidAmount: If amount is not positive.
        InsufficientTickets: If the caller owns fewer than amount tickets.
        TransferFailed: If the owner cannot fund the refund.
    """
    refund = _check_refundable(view, caller, amount)
    owner = view.owner
    owner_funds = view.get_currency(owner)
    if owner_funds < refund:
        raise TransferFailed(f"owner {owner} has {owner_funds}, refund needs {refund}")
    reserve = reserve_write(view, -amount)

    staging = _Staging(view)
    staging.adjust_tickets(caller, -amount)
    staging.adjust_currency(caller, refund)
    staging.adjust_currency(owner, -refund)
    staging.adjust_tickets(owner, amount)
    return build_transaction("refund", caller, (amount,), staging.writes(reserve))


def compute_partial_refund(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """
    Surrender amount tickets for a refund that nobody pays.

    Only the caller's entries change: tickets are destroyed and currency is
    created. The owner, the reserve and the listings are left alone.
    """
    refund = _check_refundable(view, caller, amount)

    staging = _Staging(view)
    staging.adjust_tickets(caller, -amount)
    staging.adjust_currency(caller, refund)
    return build_transaction("partial_refund", caller, (amount,), staging.writes())


# ============================================================================
# CURRENCY BOUNDARY
# ============================================================================

def compute_withdraw(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """Debit amount from the caller's currency for settlement outside the ledger."""
    require_quantity(amount, InvalidAmount, "withdrawal amount")
    funds = view.get_currency(caller)
    if funds < amount:
        raise InsufficientFunds(f"{caller} has {funds}, cannot withdraw {amount}")

    staging = _Staging(view)
    staging.adjust_currency(caller, -amount)
    return build_transaction("withdraw", caller, (amount,), staging.writes())


def compute_deposit(view: LedgerView, caller: Identity, amount: int) -> PendingTransaction:
    """Credit amount to the caller's currency, arriving from outside the ledger."""
    require_positive(amount, InvalidAmount, "deposit amount")

    staging = _Staging(view)
    staging.adjust_currency(caller, amount)
    return build_transaction("deposit", caller, (amount,), staging.writes())


# ============================================================================
# OWNER OPERATIONS
# ============================================================================

def compute_cancel_event(view: LedgerView, caller: Identity) -> PendingTransaction:
    """
    Zero the owner's own ticket balance.

    Only the calling owner's balance is cleared; other users, listings and
    the reserve are untouched.
    """
    require_owner(view, caller)

    staging = _Staging(view)
    staging.set_tickets(caller, 0)
    return build_transaction("cancel_event", caller, (), staging.writes())


def compute_issue_tickets(
    view: LedgerView,
    caller: Identity,
    recipient: Identity,
    amount: int,
) -> PendingTransaction:
    """
    Issue amount new tickets to recipient.

    Raises:
        NotOwner: If caller is not the owner.
        InvalidAmount: If amount is not positive.
        MaxTicketsExceeded: If recipient would hold more than max_tickets_per_user.
    """
    require_owner(view, caller)
    require_positive(amount, InvalidAmount, "issue amount")
    held = view.get_tickets(recipient)
    cap = view.policy.max_tickets_per_user
    if held + amount > cap:
        raise MaxTicketsExceeded(
            f"{recipient} holds {held} tickets, issuing {amount} would exceed cap {cap}"
        )

    staging = _Staging(view)
    staging.adjust_tickets(recipient, amount)
    return build_transaction("issue_tickets", caller, (recipient, amount), staging.writes())
