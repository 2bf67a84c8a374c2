"""
test_sequencer.py - Unit tests for the single-writer Sequencer

Tests:
- FIFO execution and submission tickets
- Rejections are recorded and do not stop the queue
- Unknown operations and custom registration
- Concurrent submit() from several threads
- Locked reads
"""

import threading

import pytest

from ticket_ledger import (
    Sequencer, OperationRequest, OperationResult, DEFAULT_OPERATIONS,
    InsufficientFunds, InvalidRequest, SameUser, build_transaction, Write, TABLE_CURRENCY,
    get_currency_balance,
)

from tests.ledger_helpers import OWNER, make_ledger


class TestSubmission:

    def test_tickets_increase(self, sequencer):
        t1 = sequencer.submit(OperationRequest("bob", "deposit", (1,)))
        t2 = sequencer.submit(OperationRequest("bob", "deposit", (1,)))
        assert (t1, t2) == (0, 1)
        assert sequencer.pending_count() == 2

    def test_unknown_operation(self, sequencer):
        with pytest.raises(KeyError, match="transfer"):
            sequencer.submit(OperationRequest("bob", "transfer", ("alice", 5)))
        assert sequencer.pending_count() == 0

    def test_nothing_runs_before_step(self, sequencer):
        sequencer.submit(OperationRequest("bob", "deposit", (1,)))
        assert sequencer.ledger.get_currency("bob") == 10000

    def test_every_operation_registered(self):
        assert set(DEFAULT_OPERATIONS) == {
            "list_for_sale", "delist_from_sale", "buy",
            "refund", "partial_refund", "withdraw", "deposit",
            "cancel_event", "issue_tickets",
            "set_ticket_price", "set_refund_rate", "set_max_tickets_per_user",
            "set_reserve_limit", "increase_price", "decrease_price",
        }


class TestStep:

    def test_fifo_order(self, sequencer):
        results = sequencer.run([
            OperationRequest("alice", "list_for_sale", (5,)),
            OperationRequest("bob", "buy", ("alice", 5)),
        ])
        assert [r.ok for r in results] == [True, True]
        assert [r.ticket for r in results] == [0, 1]
        assert sequencer.ledger.get_tickets("bob") == 5

    def test_order_decides_outcome(self, sequencer):
        """Buying before the listing exists fails; the later listing still applies."""
        results = sequencer.run([
            OperationRequest("bob", "buy", ("alice", 5)),
            OperationRequest("alice", "list_for_sale", (5,)),
        ])
        assert not results[0].ok
        assert results[1].ok
        assert sequencer.ledger.get_tickets("bob") == 0

    def test_rejection_recorded_not_raised(self, sequencer):
        results = sequencer.run([
            OperationRequest("bob", "withdraw", (99999,)),
            OperationRequest("bob", "buy", ("bob", 1)),
            OperationRequest("bob", "withdraw", (1,)),
        ])
        assert isinstance(results[0].error, InsufficientFunds)
        assert isinstance(results[1].error, SameUser)
        assert results[2].ok
        assert results[2].transaction.origin.operation == "withdraw"
        assert [r.ticket for r in sequencer.rejected()] == [0, 1]

    def test_step_drains_queue(self, sequencer):
        sequencer.submit(OperationRequest("bob", "deposit", (1,)))
        assert len(sequencer.step()) == 1
        assert sequencer.step() == []
        assert sequencer.pending_count() == 0

    def test_results_accumulate(self, sequencer):
        sequencer.run([OperationRequest("bob", "deposit", (1,))])
        sequencer.run([OperationRequest("bob", "deposit", (1,))])
        assert len(sequencer.results) == 2
        assert all(isinstance(r, OperationResult) for r in sequencer.results)

    @pytest.mark.parametrize("malformed", [
        OperationRequest(OWNER, "issue_tickets", ("", 1)),
        OperationRequest("bob", "withdraw", ()),
        OperationRequest("bob", "withdraw", (1, 2)),
    ])
    def test_malformed_request_does_not_drop_batch(self, sequencer, malformed):
        """Bad arguments become a recorded rejection; later requests still run."""
        results = sequencer.run([
            malformed,
            OperationRequest("bob", "withdraw", (10,)),
        ])
        assert isinstance(results[0].error, InvalidRequest)
        assert results[1].ok
        assert [r.ticket for r in results] == [0, 1]
        assert sequencer.ledger.get_currency("bob") == 9990
        assert sequencer.pending_count() == 0
        assert sequencer.rejected() == [results[0]]


class TestRegistration:

    def test_register_custom_operation(self, sequencer):
        def compute_bonus(view, caller, amount):
            old = view.get_currency(caller)
            return build_transaction("bonus", caller, (amount,), (
                Write(TABLE_CURRENCY, caller, old, old + amount),
            ))

        sequencer.register("bonus", compute_bonus)
        (result,) = sequencer.run([OperationRequest("alice", "bonus", (7,))])
        assert result.ok
        assert sequencer.ledger.get_currency("alice") == 7

    def test_custom_registry_replaces_defaults(self):
        seq = Sequencer(make_ledger(), operations={"deposit": DEFAULT_OPERATIONS["deposit"]})
        with pytest.raises(KeyError):
            seq.submit(OperationRequest(OWNER, "withdraw", (1,)))


class TestConcurrency:

    def test_concurrent_submits_all_apply(self):
        ledger = make_ledger()
        seq = Sequencer(ledger)
        users = [f"user{i}" for i in range(8)]

        def worker(user):
            for _ in range(25):
                seq.submit(OperationRequest(user, "deposit", (1,)))

        threads = [threading.Thread(target=worker, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        results = seq.step()
        assert len(results) == 200
        assert [r.ticket for r in results] == list(range(200))
        assert all(r.ok for r in results)
        for user in users:
            assert ledger.get_currency(user) == 25

    def test_concurrent_steps_serialize(self):
        """Two threads racing on the same seller never oversell the listing."""
        ledger = make_ledger(tickets={"alice": 5}, currency={"bob": 10000, "carol": 10000})
        ledger.list_for_sale("alice", 5)
        seq = Sequencer(ledger)

        def buyer(user):
            for _ in range(5):
                seq.submit(OperationRequest(user, "buy", ("alice", 1)))
                seq.step()

        threads = [threading.Thread(target=buyer, args=(u,)) for u in ("bob", "carol")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        seq.step()

        assert ledger.get_tickets("bob") + ledger.get_tickets("carol") == 5
        assert ledger.get_tickets("alice") == 0
        assert len([r for r in seq.results if r.ok]) == 5
        assert ledger.verify_invariants()['valid']


class TestRead:

    def test_read_runs_query(self, sequencer):
        sequencer.run([OperationRequest("bob", "deposit", (5,))])
        assert sequencer.read(lambda view: get_currency_balance(view, "bob")) == 10005
