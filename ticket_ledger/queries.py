"""
queries.py - Read-Only Projections

Thin accessors over a LedgerView. None of them mutate, and none of them
fail for an identity that was never touched: absent entries read as zero.

quote_purchase() and quote_refund() return the amounts an operation would
use without checking whether it would succeed.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict

from .core import Identity, LedgerView, Listing
from .operations import compute_refund_amount


@dataclass(frozen=True, slots=True)
class AccountView:
    """All per-user ledger entries for one identity."""
    user: Identity
    tickets: int
    currency: int
    listing: Listing


@dataclass(frozen=True, slots=True)
class PurchaseQuote:
    """
    Amounts a purchase would move.

    Attributes:
        cost: Paid by the buyer to the seller (listing price)
        owner_fee: Credited to the owner (current global price x refund rate)
        available: Tickets currently offered by the seller
    """
    cost: int
    owner_fee: int
    available: int


def get_ticket_price(view: LedgerView) -> int:
    return view.policy.ticket_price


def get_refund_rate(view: LedgerView) -> int:
    return view.policy.refund_rate_percent


def get_max_tickets_per_user(view: LedgerView) -> int:
    return view.policy.max_tickets_per_user


def get_reserve_limit(view: LedgerView) -> int:
    return view.policy.reserve_limit


def get_reserve(view: LedgerView) -> int:
    return view.reserve


def get_owner(view: LedgerView) -> Identity:
    return view.owner


def get_ticket_balance(view: LedgerView, user: Identity) -> int:
    return view.get_tickets(user)


def get_currency_balance(view: LedgerView, user: Identity) -> int:
    return view.get_currency(user)


def get_listing(view: LedgerView, user: Identity) -> Listing:
    return view.get_listing(user)


def get_account(view: LedgerView, user: Identity) -> AccountView:
    """Return tickets, currency and listing for user in one record."""
    return AccountView(
        user=user,
        tickets=view.get_tickets(user),
        currency=view.get_currency(user),
        listing=view.get_listing(user),
    )


def get_policy_summary(view: LedgerView) -> Dict[str, int]:
    """Current policy fields and reserve usage as a plain dict."""
    policy = view.policy
    return {
        'ticket_price': policy.ticket_price,
        'refund_rate_percent': policy.refund_rate_percent,
        'max_tickets_per_user': policy.max_tickets_per_user,
        'reserve_limit': policy.reserve_limit,
        'reserve': view.reserve,
    }


def quote_purchase(view: LedgerView, seller: Identity, amount: int) -> PurchaseQuote:
    """
    Price amount tickets from seller's listing.

    Example:
        # listing[alice] = Listing(5 @ 1000), price 1000, rate 80
        quote_purchase(ledger, "alice", 5)
        # PurchaseQuote(cost=5000, owner_fee=4000, available=5)
    """
    listing = view.get_listing(seller)
    return PurchaseQuote(
        cost=amount * listing.price,
        owner_fee=compute_refund_amount(view, amount),
        available=listing.amount,
    )


def quote_refund(view: LedgerView, amount: int) -> int:
    """Currency paid for surrendering amount tickets at the current policy."""
    return compute_refund_amount(view, amount)
