"""
sequencer.py - Single-Writer Operation Sequencer

TicketLedger is strictly serial and not thread-safe. The Sequencer is the
host that makes it usable from many callers: requests are queued from any
thread and executed one at a time, in submission order, under one lock.

Execution order each step():
1. Take every request queued so far (FIFO)
2. Compute and execute each against the ledger
3. Record the committed Transaction or the typed error
4. Keep going after a rejection; each request stands alone
   (malformed arguments are recorded as InvalidRequest)

Readers call read() to run a function against the ledger under the same
lock, so a read never observes a half-applied operation.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
import threading
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, TypeVar

from .core import (
    Identity, LedgerView, PendingTransaction, Transaction,
    InvalidRequest, TicketLedgerError,
)
from .ledger import TicketLedger
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


T = TypeVar("T")

OperationFunction = Callable[..., PendingTransaction]

# Operation name -> compute function. Every entry takes (view, caller, *args).
DEFAULT_OPERATIONS: Dict[str, OperationFunction] = {
    "list_for_sale": compute_list_for_sale,
    "delist_from_sale": compute_delist_from_sale,
    "buy": compute_buy,
    "refund": compute_refund,
    "partial_refund": compute_partial_refund,
    "withdraw": compute_withdraw,
    "deposit": compute_deposit,
    "cancel_event": compute_cancel_event,
    "issue_tickets": compute_issue_tickets,
    "set_ticket_price": compute_set_ticket_price,
    "set_refund_rate": compute_set_refund_rate,
    "set_max_tickets_per_user": compute_set_max_tickets_per_user,
    "set_reserve_limit": compute_set_reserve_limit,
    "increase_price": compute_increase_price,
    "decrease_price": compute_decrease_price,
}


@dataclass(frozen=True, slots=True)
class OperationRequest:
    """
    One call submitted by a host-authenticated caller.

    Attributes:
        caller: Authenticated identity
        operation: Name registered with the sequencer
        args: Arguments after the caller, in call order
    """
    caller: Identity
    operation: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Outcome of one request.

    Exactly one of transaction and error is set.

    Attributes:
        request: The request that was executed
        ticket: Submission order number assigned by submit()
        transaction: Committed transaction on success
        error: Typed error on rejection
    """
    request: OperationRequest
    ticket: int
    transaction: Optional[Transaction] = None
    error: Optional[TicketLedgerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Sequencer:
    """
    Serializes operation requests against one TicketLedger.

    Features:
    - Thread-safe submit() from any number of callers
    - FIFO execution, one operation at a time
    - Rejections are recorded, not raised, and never stop the queue
    - Locked reads between operations
    """

    def __init__(
        self,
        ledger: TicketLedger,
        operations: Optional[Dict[str, OperationFunction]] = None,
    ):
        """
        Initialize the sequencer.

        Args:
            ledger: The ledger to operate on
            operations: Operation registry (default: DEFAULT_OPERATIONS)
        """
        self.ledger = ledger
        self.operations: Dict[str, OperationFunction] = dict(operations or DEFAULT_OPERATIONS)
        self.verbose = ledger.verbose
        self.results: List[OperationResult] = []
        self._queue: Deque[Tuple[int, OperationRequest]] = deque()
        self._next_ticket = 0
        self._queue_lock = threading.Lock()
        self._ledger_lock = threading.Lock()

    def register(self, name: str, operation: OperationFunction) -> None:
        """
        Register an operation under a name.

        Args:
            name: Name used in OperationRequest.operation
            operation: Function taking (view, caller, *args) and returning a PendingTransaction
        """
        self.operations[name] = operation

    def submit(self, request: OperationRequest) -> int:
        """
        Queue a request for execution.

        Returns:
            Submission ticket, increasing in queue order.

        Raises:
            KeyError: If the operation name is not registered.
        """
        if request.operation not in self.operations:
            raise KeyError(f"Unknown operation: {request.operation}")
        with self._queue_lock:
            ticket = self._next_ticket
            self._next_ticket += 1
            self._queue.append((ticket, request))
        return ticket

    def submit_many(self, requests: List[OperationRequest]) -> List[int]:
        """Queue several requests, keeping their order."""
        return [self.submit(r) for r in requests]

    def step(self) -> List[OperationResult]:
        """
        Execute every request queued before this call.

        Returns:
            Results in execution order
        """
        executed: List[OperationResult] = []
        # Drain under the ledger lock so batches from racing step() calls run in ticket order.
        with self._ledger_lock:
            with self._queue_lock:
                batch = list(self._queue)
                self._queue.clear()
            for ticket, request in batch:
                executed.append(self._execute_one(ticket, request))
            self.results.extend(executed)
        return executed

    def _execute_one(self, ticket: int, request: OperationRequest) -> OperationResult:
        compute = self.operations[request.operation]
        try:
            tx = self._submit(compute, request)
        except TicketLedgerError as e:
            if self.verbose:
                print(f"[SEQUENCER] #{ticket} {request.operation} by {request.caller} rejected: {e}")
            return OperationResult(request=request, ticket=ticket, error=e)
        return OperationResult(request=request, ticket=ticket, transaction=tx)

    def _submit(self, compute: OperationFunction, request: OperationRequest) -> Transaction:
        try:
            return self.ledger.submit(compute, request.caller, *request.args)
        except (TypeError, ValueError) as e:
            # Arguments that cannot form the operation
            raise InvalidRequest(f"malformed {request.operation} request: {e}") from e

    def run(self, requests: List[OperationRequest]) -> List[OperationResult]:
        """Submit requests and execute them, returning their results."""
        self.submit_many(requests)
        return self.step()

    def read(self, fn: Callable[[LedgerView], T]) -> T:
        """Run a read-only function against the ledger between operations."""
        with self._ledger_lock:
            return fn(self.ledger)

    # ========================================================================
    # QUERY METHODS
    # ========================================================================

    def pending_count(self) -> int:
        """Number of requests queued but not yet executed."""
        with self._queue_lock:
            return len(self._queue)

    def rejected(self) -> List[OperationResult]:
        """Results of every rejected request so far."""
        return [r for r in self.results if not r.ok]
