"""
ledger.py - Stateful Ticket and Currency Ledger

The TicketLedger class is the central state manager for the ticket ledger.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes pending transactions atomically (all writes apply or none do)
    - Owns the store, the policy, the reserve counter and the owner identity
    - Provides the public operations (compute + execute in one call)
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Tuple

from .core import (
    # Types
    Identity, Listing, Policy, Write,
    PendingTransaction, Transaction, ExecuteResult,
    # Constants
    TABLE_TICKETS, TABLE_CURRENCY, TABLE_LISTINGS, TABLE_POLICY, TABLE_RESERVE,
    KEYED_TABLES, PERCENT_DENOMINATOR,
    # Exceptions
    TicketLedgerError,
)
from .store import LedgerStore
from .policy import (
    compute_set_ticket_price, compute_set_refund_rate,
    compute_set_max_tickets_per_user, compute_set_reserve_limit,
    compute_increase_price, compute_decrease_price,
)
from .operations import (
    compute_list_for_sale, compute_delist_from_sale, compute_buy,
    compute_refund, compute_partial_refund,
    compute_withdraw, compute_deposit,
    compute_cancel_event, compute_issue_tickets,
)


class TicketLedger:
    """
    Ticket and currency ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    the pure operation functions that only read from it.

    Design Principles:
        - Two-phase: operations validate against the current state and stage
          every write; execute() re-checks the staged set against the ledger
          invariants and commits it in one step.
        - Always logs: every committed operation is recorded in the
          transaction log, enabling replay() to rebuild the same state.

    Thread Safety:
        Not thread-safe. Concurrent callers must go through a Sequencer.

    Example:
        ledger = TicketLedger("main", owner="venue")
        ledger.issue_tickets("venue", "alice", 5)
        ledger.deposit("bob", 10000)
        ledger.list_for_sale("alice", 5)
        ledger.buy("bob", "alice", 5)
    """

    def __init__(
        self,
        name: str,
        owner: Identity,
        policy: Optional[Policy] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            owner: Identity allowed to change policy; fixed for the ledger's lifetime
            policy: Initial policy (default: Policy() with the module defaults)
            verbose: Print each applied or rejected transaction (default: True)
            test_mode: Enable set_tickets()/set_currency() seeding (default: False)
        """
        if not isinstance(owner, str) or not owner.strip():
            raise ValueError("Ledger owner must be a non-empty string")
        self.name = name
        self._owner = owner
        self._initial_policy = policy or Policy()
        self._policy = self._initial_policy
        self._reserve = 0
        self.store = LedgerStore()
        self.transaction_log: List[Transaction] = []
        self.verbose = verbose
        self._test_mode = test_mode
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0
        # Reason for the most recent REJECTED result
        self.last_rejection: str = ""

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def owner(self) -> Identity:
        return self._owner

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def reserve(self) -> int:
        return self._reserve

    def get_tickets(self, user: Identity) -> int:
        """Tickets owned by user (0 if never touched)."""
        return self.store.get_tickets(user)

    def get_currency(self, user: Identity) -> int:
        """Currency held by user (0 if never touched)."""
        return self.store.get_currency(user)

    def get_listing(self, user: Identity) -> Listing:
        """The user's listing (Listing(0, 0) if none)."""
        return self.store.get_listing(user)

    def list_identities(self) -> List[Identity]:
        """All identities with a non-zero entry, plus the owner, sorted."""
        return sorted(self.store.identities() | {self._owner})

    def total_tickets(self) -> int:
        """Sum of owned tickets across all identities."""
        return sum(self.store.tickets[u] for u in sorted(self.store.tickets))

    def total_currency(self) -> int:
        """Sum of currency across all identities."""
        return sum(self.store.currency[u] for u in sorted(self.store.currency))

    def total_listed(self) -> int:
        """Sum of listed tickets across all listings."""
        return sum(self.store.listings[u].amount for u in sorted(self.store.listings))

    def snapshot(self) -> Dict[str, Any]:
        """
        Plain-data copy of the complete ledger state.

        Two snapshots compare equal exactly when the ledgers hold the same
        balances, listings, policy and reserve.
        """
        return {
            'owner': self._owner,
            'policy': self._policy,
            'reserve': self._reserve,
            'tickets': dict(self.store.tickets),
            'currency': dict(self.store.currency),
            'listings': dict(self.store.listings),
        }

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the ledger-wide invariants.

        Checks:
            - every ticket balance, currency balance and listing amount is >= 0
            - reserve is >= 0 and does not exceed the policy's reserve limit
            - the refund rate is within [0, 100]

        Returns:
            Dict with keys:
            - 'valid': bool - True if no invariant is violated
            - 'violations': List[str] - description of each violation
            - 'totals': Dict[str, int] - tickets, currency, listed, reserve

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], result['violations']
        """
        violations = []
        for user, qty in sorted(self.store.tickets.items()):
            if qty < 0:
                violations.append(f"tickets[{user}] = {qty} < 0")
        for user, qty in sorted(self.store.currency.items()):
            if qty < 0:
                violations.append(f"currency[{user}] = {qty} < 0")
        for user, listing in sorted(self.store.listings.items()):
            if listing.amount < 0:
                violations.append(f"listings[{user}].amount = {listing.amount} < 0")
        if self._reserve < 0:
            violations.append(f"reserve = {self._reserve} < 0")
        if self._reserve > self._policy.reserve_limit:
            violations.append(
                f"reserve = {self._reserve} > limit {self._policy.reserve_limit}"
            )
        if not 0 <= self._policy.refund_rate_percent <= PERCENT_DENOMINATOR:
            violations.append(f"refund rate = {self._policy.refund_rate_percent} outside [0, 100]")

        return {
            'valid': len(violations) == 0,
            'violations': violations,
            'totals': {
                'tickets': self.total_tickets(),
                'currency': self.total_currency(),
                'listed': self.total_listed(),
                'reserve': self._reserve,
            },
        }

    # ========================================================================
    # TEST SEEDING (Mutating)
    # ========================================================================

    def _require_test_mode(self, method: str) -> None:
        if not self._test_mode:
            raise TicketLedgerError(
                f"{method}() is disabled in production mode. "
                "Use issue_tickets()/deposit() to create balances. "
                "Set test_mode=True when creating TicketLedger for testing."
            )

    def set_tickets(self, user: Identity, quantity: int) -> None:
        """
        Set a user's ticket balance directly.

        WARNING: bypasses validation and the transaction log. Only
        available in test mode; replay() does not reproduce it.
        """
        self._require_test_mode("set_tickets")
        if quantity < 0:
            raise ValueError(f"Ticket balance cannot be negative, got {quantity}")
        self.store.set(TABLE_TICKETS, user, quantity)

    def set_currency(self, user: Identity, quantity: int) -> None:
        """Set a user's currency balance directly (test mode only, not logged)."""
        self._require_test_mode("set_currency")
        if quantity < 0:
            raise ValueError(f"Currency balance cannot be negative, got {quantity}")
        self.store.set(TABLE_CURRENCY, user, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}
        """
        return f"exec:{self.name}:{sequence:012d}"

    def _current_value(self, write: Write):
        if write.table == TABLE_POLICY:
            return self._policy
        if write.table == TABLE_RESERVE:
            return self._reserve
        return self.store.get(write.table, write.key)

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a staged write set against the ledger invariants.

        Checks performed:
        1. Every write was computed against the live value (no stale reads)
        2. Ticket and currency values are non-negative integers
        3. Listings and policies have the right record type
        4. The resulting reserve fits the resulting policy's limit

        Returns:
            Tuple of (success: bool, reason: str)
        """
        policy = self._policy
        reserve = self._reserve

        for w in pending.writes:
            current = self._current_value(w)
            if w.old != current:
                return False, f"stale write to {w.table}[{w.key}]: expected {w.old!r}, found {current!r}"

            if w.table in KEYED_TABLES:
                if w.table == TABLE_LISTINGS:
                    if not isinstance(w.new, Listing):
                        return False, f"listings[{w.key}]: {w.new!r} is not a Listing"
                elif isinstance(w.new, bool) or not isinstance(w.new, int):
                    return False, f"{w.table}[{w.key}]: {w.new!r} is not an int"
                elif w.new < 0:
                    return False, f"{w.table}[{w.key}]: {w.new} < 0"
            elif w.table == TABLE_POLICY:
                if not isinstance(w.new, Policy):
                    return False, f"policy: {w.new!r} is not a Policy"
                policy = w.new
            elif w.table == TABLE_RESERVE:
                if isinstance(w.new, bool) or not isinstance(w.new, int) or w.new < 0:
                    return False, f"reserve: {w.new!r} is not a non-negative int"
                reserve = w.new

        if reserve > policy.reserve_limit:
            return False, f"reserve {reserve} > limit {policy.reserve_limit}"
        return True, ""

    def _apply_writes(self, writes: Tuple[Write, ...]) -> None:
        keyed = []
        for w in writes:
            if w.table == TABLE_POLICY:
                self._policy = w.new
            elif w.table == TABLE_RESERVE:
                self._reserve = w.new
            else:
                keyed.append(w)
        self.store.apply(keyed)

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All writes are validated before any is applied; a single failing
        write rejects the whole set and leaves the ledger unchanged.

        Args:
            pending: PendingTransaction to execute

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        valid, reason = self._validate_pending(pending)
        if not valid:
            self.last_rejection = reason
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            writes=pending.writes,
            origin=pending.origin,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            sequence_number=sequence,
        )

        self._apply_writes(tx.writes)

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print transaction details with a trailing result line."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def submit(self, compute: Callable[..., PendingTransaction], caller: Identity, *args) -> Transaction:
        """
        Compute an operation against this ledger and commit it.

        Args:
            compute: One of the compute_* operation functions
            caller: Authenticated caller identity
            *args: Operation arguments after the caller

        Returns:
            The committed Transaction.

        Raises:
            TicketLedgerError: The operation's own precondition error, or a
                generic TicketLedgerError if the staged writes were rejected.
        """
        try:
            pending = compute(self, caller, *args)
        except TicketLedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {type(e).__name__}: {e}")
            raise
        result = self.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise TicketLedgerError(
                f"{pending.origin.operation} rejected: {self.last_rejection}"
            )
        return self.transaction_log[-1]

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def list_for_sale(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_list_for_sale, caller, amount)

    def delist_from_sale(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_delist_from_sale, caller, amount)

    def buy(self, caller: Identity, seller: Identity, amount: int) -> Transaction:
        return self.submit(compute_buy, caller, seller, amount)

    def refund(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_refund, caller, amount)

    def partial_refund(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_partial_refund, caller, amount)

    def withdraw(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_withdraw, caller, amount)

    def deposit(self, caller: Identity, amount: int) -> Transaction:
        return self.submit(compute_deposit, caller, amount)

    def cancel_event(self, caller: Identity) -> Transaction:
        return self.submit(compute_cancel_event, caller)

    def issue_tickets(self, caller: Identity, recipient: Identity, amount: int) -> Transaction:
        return self.submit(compute_issue_tickets, caller, recipient, amount)

    def set_ticket_price(self, caller: Identity, price: int) -> Transaction:
        return self.submit(compute_set_ticket_price, caller, price)

    def set_refund_rate(self, caller: Identity, rate: int) -> Transaction:
        return self.submit(compute_set_refund_rate, caller, rate)

    def set_max_tickets_per_user(self, caller: Identity, cap: int) -> Transaction:
        return self.submit(compute_set_max_tickets_per_user, caller, cap)

    def set_reserve_limit(self, caller: Identity, limit: int) -> Transaction:
        return self.submit(compute_set_reserve_limit, caller, limit)

    def increase_price(self, caller: Identity, delta: int) -> Transaction:
        return self.submit(compute_increase_price, caller, delta)

    def decrease_price(self, caller: Identity, delta: int) -> Transaction:
        return self.submit(compute_decrease_price, caller, delta)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> TicketLedger:
        """
        Create an independent copy of this ledger.

        Cloned state includes the store, policy, reserve, transaction log,
        sequence counter and configuration. Records are immutable, so
        copying the containers is enough.
        """
        cloned = TicketLedger.__new__(TicketLedger)
        cloned.name = self.name
        cloned._owner = self._owner
        cloned._initial_policy = self._initial_policy
        cloned._policy = self._policy
        cloned._reserve = self._reserve
        cloned.store = self.store.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._next_sequence = self._next_sequence
        cloned.last_rejection = self.last_rejection
        return cloned

    def replay(self, upto: Optional[int] = None) -> TicketLedger:
        """
        Create a new ledger by replaying the transaction log.

        The new ledger starts from this ledger's initial policy and empty
        balances and re-executes each logged transaction in order. Every
        write is re-checked against the replayed state, so a log that does
        not reproduce exactly raises instead of diverging silently.

        Note: balances seeded with set_tickets()/set_currency() are NOT
        replayed because they are not part of the transaction log.

        Args:
            upto: Replay only the first `upto` transactions (default: all)

        Returns:
            New TicketLedger with replayed state

        Raises:
            TicketLedgerError: If a logged transaction is rejected on replay
        """
        new_ledger = TicketLedger(
            name=f"{self.name}_replayed",
            owner=self._owner,
            policy=self._initial_policy,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )
        for tx in self.transaction_log[:upto]:
            pending = PendingTransaction(writes=tx.writes, origin=tx.origin)
            result = new_ledger.execute(pending)
            if result == ExecuteResult.REJECTED:
                raise TicketLedgerError(
                    f"Replay failed at tx {tx.exec_id}: {new_ledger.last_rejection}"
                )
        return new_ledger
