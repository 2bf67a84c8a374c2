"""
policy.py - Policy Registry

Owner-gated setters for the ledger policy. Each function checks the caller
first, then its argument bound, and returns a PendingTransaction holding a
single policy write. Nothing else is touched.

Bounds:
    set_ticket_price          price > 0            InvalidPrice
    set_refund_rate           0 <= rate <= 100     InvalidRate
    set_max_tickets_per_user  cap > 0              InvalidAmount
    set_reserve_limit         limit >= reserve     ReserveLimitExceeded
    increase_price            delta >= 0           InvalidPrice
    decrease_price            delta < price        InvalidPrice

decrease_price is stricter than set_ticket_price: it can never bring the
price to zero, while set_ticket_price accepts any positive value.
"""

from __future__ import annotations
from dataclasses import replace

from .core import (
    Identity, LedgerView, PendingTransaction, Policy, Write,
    InvalidPrice, InvalidRate, InvalidAmount, ReserveLimitExceeded,
    PERCENT_DENOMINATOR, TABLE_POLICY,
    build_transaction, require_owner, require_quantity, require_positive,
)


def _policy_transaction(
    view: LedgerView,
    operation: str,
    caller: Identity,
    argument: int,
    new_policy: Policy,
) -> PendingTransaction:
    return build_transaction(operation, caller, (argument,), (
        Write(TABLE_POLICY, None, view.policy, new_policy),
    ))


def compute_set_ticket_price(view: LedgerView, caller: Identity, price: int) -> PendingTransaction:
    """Set the per-ticket price used for new listings, fees and refunds."""
    require_owner(view, caller)
    require_positive(price, InvalidPrice, "ticket price")
    return _policy_transaction(
        view, "set_ticket_price", caller, price,
        replace(view.policy, ticket_price=price),
    )


def compute_set_refund_rate(view: LedgerView, caller: Identity, rate: int) -> PendingTransaction:
    """Set the refund rate, as a whole percentage."""
    require_owner(view, caller)
    require_quantity(rate, InvalidRate, "refund rate")
    if rate > PERCENT_DENOMINATOR:
        raise InvalidRate(f"refund rate must be at most {PERCENT_DENOMINATOR}, got {rate}")
    return _policy_transaction(
        view, "set_refund_rate", caller, rate,
        replace(view.policy, refund_rate_percent=rate),
    )


def compute_set_max_tickets_per_user(view: LedgerView, caller: Identity, cap: int) -> PendingTransaction:
    """Set the per-user ticket cap applied on issuance."""
    require_owner(view, caller)
    require_positive(cap, InvalidAmount, "max tickets per user")
    return _policy_transaction(
        view, "set_max_tickets_per_user", caller, cap,
        replace(view.policy, max_tickets_per_user=cap),
    )


def compute_set_reserve_limit(view: LedgerView, caller: Identity, limit: int) -> PendingTransaction:
    """
    Set the reserve limit.

    The limit may not shrink below the tickets already in the reserve.

    Raises:
        NotOwner: If caller is not the owner.
        ReserveLimitExceeded: If limit is below the current reserve (or negative).
    """
    require_owner(view, caller)
    require_quantity(limit, ReserveLimitExceeded, "reserve limit")
    if limit < view.reserve:
        raise ReserveLimitExceeded(
            f"reserve limit {limit} is below current reserve {view.reserve}"
        )
    return _policy_transaction(
        view, "set_reserve_limit", caller, limit,
        replace(view.policy, reserve_limit=limit),
    )


def compute_increase_price(view: LedgerView, caller: Identity, delta: int) -> PendingTransaction:
    require_owner(view, caller)
    require_quantity(delta, InvalidPrice, "price increase")
    policy = view.policy
    return _policy_transaction(
        view, "increase_price", caller, delta,
        replace(policy, ticket_price=policy.ticket_price + delta),
    )


def compute_decrease_price(view: LedgerView, caller: Identity, delta: int) -> PendingTransaction:
    """
    Lower the price by delta.

    Raises:
        InvalidPrice: Unless delta is strictly less than the current price.
    """
    require_owner(view, caller)
    require_quantity(delta, InvalidPrice, "price decrease")
    policy = view.policy
    if delta >= policy.ticket_price:
        raise InvalidPrice(
            f"price decrease {delta} must be less than current price {policy.ticket_price}"
        )
    return _policy_transaction(
        view, "decrease_price", caller, delta,
        replace(policy, ticket_price=policy.ticket_price - delta),
    )
