"""
test_reserve.py - Unit tests for the reserve accountant

Tests:
- Positive deltas up to and past the limit
- Negative deltas floor at zero instead of failing
- reserve_write stages the counter without committing it
"""

import pytest

from ticket_ledger import Policy, ReserveLimitExceeded, TABLE_RESERVE, compute_reserve_delta
from ticket_ledger.reserve import reserve_write

from tests.fake_view import FakeView


class TestComputeReserveDelta:

    def test_add(self):
        assert compute_reserve_delta(FakeView(reserve=5), 10) == 15

    def test_add_up_to_limit(self):
        view = FakeView(reserve=5, policy=Policy(reserve_limit=10))
        assert compute_reserve_delta(view, 5) == 10

    def test_add_past_limit(self):
        view = FakeView(reserve=5, policy=Policy(reserve_limit=10))
        with pytest.raises(ReserveLimitExceeded, match="exceeds limit 10"):
            compute_reserve_delta(view, 6)

    def test_subtract(self):
        assert compute_reserve_delta(FakeView(reserve=5), -3) == 2

    def test_subtract_floors_at_zero(self):
        """A negative delta larger than the reserve yields 0, not an error."""
        assert compute_reserve_delta(FakeView(reserve=5), -8) == 0

    def test_subtract_from_empty(self):
        assert compute_reserve_delta(FakeView(reserve=0), -1) == 0

    def test_zero_delta(self):
        assert compute_reserve_delta(FakeView(reserve=4), 0) == 4

    def test_zero_limit_blocks_any_addition(self):
        view = FakeView(policy=Policy(reserve_limit=0))
        with pytest.raises(ReserveLimitExceeded):
            compute_reserve_delta(view, 1)


class TestReserveWrite:

    def test_write_records_old_and_new(self):
        w = reserve_write(FakeView(reserve=5), -2)
        assert w.table == TABLE_RESERVE
        assert w.key is None
        assert (w.old, w.new) == (5, 3)

    def test_write_propagates_limit_error(self):
        view = FakeView(reserve=1000)
        with pytest.raises(ReserveLimitExceeded):
            reserve_write(view, 1)
