"""
reserve.py - Reserve Accountant

The reserve counter tracks tickets currently counted against the global
sale cap. Listing adds to it, delisting and refunding subtract from it.
Buying a listed ticket leaves it unchanged: the ticket was counted when
it was listed.

compute_reserve_delta() is pure. It returns the value the counter would
take; the write is staged alongside the rest of the operation's writes so
that a later failure in the same operation leaves the counter untouched.
"""

from __future__ import annotations

from .core import (
    LedgerView, Write, ReserveLimitExceeded,
    TABLE_RESERVE,
)


def compute_reserve_delta(view: LedgerView, signed_amount: int) -> int:
    """
    Compute the reserve counter after applying a signed delta.

    A negative delta larger than the current reserve floors the result at
    zero instead of failing.

    Args:
        view: Read-only ledger access
        signed_amount: Tickets entering (+) or leaving (-) the reserve

    Returns:
        The new reserve value.

    Raises:
        ReserveLimitExceeded: If the new value exceeds the policy's reserve limit.

    Example:
        # reserve=5, limit=1000
        compute_reserve_delta(view, 10)    # 15
        compute_reserve_delta(view, -8)    # 0, floored
    """
    new_reserve = max(view.reserve + signed_amount, 0)
    limit = view.policy.reserve_limit
    if new_reserve > limit:
        raise ReserveLimitExceeded(
            f"reserve {view.reserve} {signed_amount:+d} = {new_reserve} exceeds limit {limit}"
        )
    return new_reserve


def reserve_write(view: LedgerView, signed_amount: int) -> Write:
    """Stage the reserve counter update for a signed delta."""
    return Write(TABLE_RESERVE, None, view.reserve, compute_reserve_delta(view, signed_amount))
