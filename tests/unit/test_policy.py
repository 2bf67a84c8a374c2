"""
test_policy.py - Unit tests for the policy registry

Tests:
- Owner gating is checked before argument bounds
- Each setter's bound and error kind
- decrease_price is strict; set_ticket_price accepts any positive value
- set_reserve_limit cannot shrink below the reserve
- Setters touch only the policy
"""

import pytest

from ticket_ledger import (
    Policy, NotOwner, InvalidPrice, InvalidRate, InvalidAmount, ReserveLimitExceeded,
    TABLE_POLICY,
    compute_set_ticket_price, compute_set_refund_rate,
    compute_set_max_tickets_per_user, compute_set_reserve_limit,
    compute_increase_price, compute_decrease_price,
)

from tests.fake_view import FakeView
from tests.ledger_helpers import OWNER


SETTERS = [
    compute_set_ticket_price,
    compute_set_refund_rate,
    compute_set_max_tickets_per_user,
    compute_set_reserve_limit,
    compute_increase_price,
    compute_decrease_price,
]


def _new_policy(pending) -> Policy:
    (write,) = pending.writes
    assert write.table == TABLE_POLICY
    return write.new


class TestOwnerGating:

    @pytest.mark.parametrize("setter", SETTERS)
    def test_non_owner_rejected(self, setter):
        with pytest.raises(NotOwner):
            setter(FakeView(owner=OWNER), "alice", 1)

    @pytest.mark.parametrize("setter", SETTERS)
    def test_owner_checked_before_argument(self, setter):
        """An invalid argument from a non-owner still reports NotOwner."""
        with pytest.raises(NotOwner):
            setter(FakeView(owner=OWNER), "alice", -1)


class TestTicketPrice:

    def test_set_price(self):
        pending = compute_set_ticket_price(FakeView(), OWNER, 250)
        assert _new_policy(pending).ticket_price == 250
        assert pending.origin.operation == "set_ticket_price"
        assert pending.origin.arguments == (250,)

    def test_zero_price_rejected(self):
        with pytest.raises(InvalidPrice):
            compute_set_ticket_price(FakeView(), OWNER, 0)

    def test_set_price_to_one(self):
        assert _new_policy(compute_set_ticket_price(FakeView(), OWNER, 1)).ticket_price == 1

    def test_other_fields_untouched(self):
        view = FakeView(policy=Policy(refund_rate_percent=50, reserve_limit=7))
        policy = _new_policy(compute_set_ticket_price(view, OWNER, 3))
        assert policy == Policy(ticket_price=3, refund_rate_percent=50, reserve_limit=7)


class TestRefundRate:

    @pytest.mark.parametrize("rate", [0, 1, 80, 100])
    def test_valid_rates(self, rate):
        assert _new_policy(compute_set_refund_rate(FakeView(), OWNER, rate)).refund_rate_percent == rate

    @pytest.mark.parametrize("rate", [101, 1000, -1])
    def test_invalid_rates(self, rate):
        with pytest.raises(InvalidRate):
            compute_set_refund_rate(FakeView(), OWNER, rate)


class TestMaxTicketsPerUser:

    def test_set_cap(self):
        assert _new_policy(compute_set_max_tickets_per_user(FakeView(), OWNER, 4)).max_tickets_per_user == 4

    def test_zero_cap_rejected(self):
        with pytest.raises(InvalidAmount):
            compute_set_max_tickets_per_user(FakeView(), OWNER, 0)


class TestReserveLimit:

    def test_limit_equal_to_reserve_allowed(self):
        view = FakeView(reserve=5)
        assert _new_policy(compute_set_reserve_limit(view, OWNER, 5)).reserve_limit == 5

    def test_limit_below_reserve_rejected(self):
        view = FakeView(reserve=5)
        with pytest.raises(ReserveLimitExceeded, match="below current reserve"):
            compute_set_reserve_limit(view, OWNER, 3)

    def test_limit_zero_on_empty_reserve(self):
        assert _new_policy(compute_set_reserve_limit(FakeView(), OWNER, 0)).reserve_limit == 0

    def test_negative_limit_rejected(self):
        with pytest.raises(ReserveLimitExceeded):
            compute_set_reserve_limit(FakeView(), OWNER, -1)


class TestPriceAdjustments:

    def test_increase(self):
        assert _new_policy(compute_increase_price(FakeView(), OWNER, 500)).ticket_price == 1500

    def test_increase_by_zero(self):
        assert _new_policy(compute_increase_price(FakeView(), OWNER, 0)).ticket_price == 1000

    def test_decrease(self):
        assert _new_policy(compute_decrease_price(FakeView(), OWNER, 999)).ticket_price == 1

    def test_decrease_to_zero_rejected(self):
        """decrease_price is strict: delta must be below the price."""
        with pytest.raises(InvalidPrice):
            compute_decrease_price(FakeView(), OWNER, 1000)

    def test_decrease_past_zero_rejected(self):
        with pytest.raises(InvalidPrice):
            compute_decrease_price(FakeView(), OWNER, 5000)

    def test_set_price_allows_value_decrease_cannot_reach(self):
        """Price 1 is reachable through both paths; zero through neither."""
        view = FakeView(policy=Policy(ticket_price=1))
        with pytest.raises(InvalidPrice):
            compute_decrease_price(view, OWNER, 1)
        with pytest.raises(InvalidPrice):
            compute_set_ticket_price(view, OWNER, 0)


class TestSettersOnLedger:

    def test_setter_changes_only_policy(self, listed_ledger):
        before = listed_ledger.snapshot()
        listed_ledger.set_ticket_price(OWNER, 1200)
        after = listed_ledger.snapshot()

        assert after['policy'].ticket_price == 1200
        for key in ('reserve', 'tickets', 'currency', 'listings'):
            assert after[key] == before[key]

    def test_setters_are_idempotent(self, empty_ledger):
        empty_ledger.set_refund_rate(OWNER, 50)
        first = empty_ledger.snapshot()
        empty_ledger.set_refund_rate(OWNER, 50)
        assert empty_ledger.snapshot() == first
