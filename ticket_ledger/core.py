"""
Core types and pure functions for the ticket ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Policy, Listing, Write, PendingTransaction, Transaction
3. Exceptions: TicketLedgerError and one subclass per failure kind
4. Type aliases: Identity, TicketMap, CurrencyMap, ListingMap
5. Guards: argument and capability checks shared by every operation

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import hashlib
from typing import (
    Dict, Optional, Any, Protocol, Tuple, Type, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Policy defaults applied when a ledger is created without an explicit policy.
DEFAULT_TICKET_PRICE = 1000
DEFAULT_REFUND_RATE_PERCENT = 80
DEFAULT_MAX_TICKETS_PER_USER = 10
DEFAULT_RESERVE_LIMIT = 1000

# Refund and fee amounts are expressed as a percentage of price x quantity.
PERCENT_DENOMINATOR = 100

# Staging tables. Each Write targets exactly one of these.
TABLE_TICKETS = "tickets"
TABLE_CURRENCY = "currency"
TABLE_LISTINGS = "listings"
TABLE_POLICY = "policy"
TABLE_RESERVE = "reserve"

KEYED_TABLES = (TABLE_TICKETS, TABLE_CURRENCY, TABLE_LISTINGS)
SINGLETON_TABLES = (TABLE_POLICY, TABLE_RESERVE)


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque caller identifier supplied by the host's authentication layer.
Identity = str

# Mapping from identity to tickets owned outright.
TicketMap = Dict[Identity, int]

# Mapping from identity to currency balance (smallest currency unit).
CurrencyMap = Dict[Identity, int]

# Mapping from identity to its single standing sale listing.
ListingMap = Dict[Identity, 'Listing']


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TicketLedgerError(Exception):
    """Base exception for all ticket ledger errors."""
    pass


class NotOwner(TicketLedgerError):
    """Raised when a non-owner calls an owner-gated operation."""
    pass


class InsufficientTickets(TicketLedgerError):
    """Raised when a requested amount exceeds the available ticket or listing balance."""
    pass


class InsufficientFunds(TicketLedgerError):
    """Raised when a caller's currency balance cannot cover a debit."""
    pass


class TransferFailed(TicketLedgerError):
    """Raised when the owner's currency balance cannot fund a refund."""
    pass


class InvalidPrice(TicketLedgerError):
    """Raised when a price argument violates its bound."""
    pass


class InvalidAmount(TicketLedgerError):
    """Raised when a quantity argument violates its bound."""
    pass


class MaxTicketsExceeded(InvalidAmount):
    """Raised when issuance would push a user past the per-user ticket cap."""
    pass


class InvalidRate(TicketLedgerError):
    """Raised when a refund rate is outside [0, 100]."""
    pass


class ReserveLimitExceeded(TicketLedgerError):
    """Raised when the reserve would exceed its limit, or the limit would drop below the reserve."""
    pass


class SameUser(TicketLedgerError):
    """Raised when buyer and seller are the same identity."""
    pass


class InvalidRequest(TicketLedgerError):
    """Raised by the Sequencer for a request whose arguments cannot form an operation."""
    pass


# ============================================================================
# GUARDS
# ============================================================================

def require_quantity(value: Any, error: Type[TicketLedgerError], what: str) -> int:
    """
    Check that value is a non-negative integer.

    Booleans are rejected even though they subclass int.

    Raises:
        error: If the value is not an int or is negative.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise error(f"{what} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise error(f"{what} must be non-negative, got {value}")
    return value


def require_positive(value: Any, error: Type[TicketLedgerError], what: str) -> int:
    """Check that value is an integer strictly greater than zero."""
    require_quantity(value, error, what)
    if value == 0:
        raise error(f"{what} must be positive, got 0")
    return value


def require_owner(view: 'LedgerView', caller: Identity) -> None:
    """
    Capability check for owner-gated operations.

    Raises:
        NotOwner: If caller is not the ledger owner.
    """
    if caller != view.owner:
        raise NotOwner(f"{caller} is not the ledger owner")


def _require_identity(value: Any, what: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} must be a non-empty string")


# ============================================================================
# POLICY AND LISTING RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Policy:
    """
    Mutable-by-replacement ledger configuration.

    Attributes:
        ticket_price: Current per-ticket price (> 0).
        refund_rate_percent: Share of price x quantity paid back on refund (0..100).
        max_tickets_per_user: Per-user cap enforced on primary issuance (> 0).
        reserve_limit: Upper bound on the reserve counter.

    Construction rejects out-of-range fields with ValueError. Owner-facing
    setters raise the typed errors before a Policy is ever built.
    """
    ticket_price: int = DEFAULT_TICKET_PRICE
    refund_rate_percent: int = DEFAULT_REFUND_RATE_PERCENT
    max_tickets_per_user: int = DEFAULT_MAX_TICKETS_PER_USER
    reserve_limit: int = DEFAULT_RESERVE_LIMIT

    def __post_init__(self):
        for name in ('ticket_price', 'refund_rate_percent', 'max_tickets_per_user', 'reserve_limit'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Policy {name} must be int, got {type(value).__name__}")
        if self.ticket_price <= 0:
            raise ValueError(f"Policy ticket_price must be positive, got {self.ticket_price}")
        if not 0 <= self.refund_rate_percent <= PERCENT_DENOMINATOR:
            raise ValueError(f"Policy refund_rate_percent must be in [0, 100], got {self.refund_rate_percent}")
        if self.max_tickets_per_user <= 0:
            raise ValueError(f"Policy max_tickets_per_user must be positive, got {self.max_tickets_per_user}")
        if self.reserve_limit < 0:
            raise ValueError(f"Policy reserve_limit must be non-negative, got {self.reserve_limit}")


@dataclass(frozen=True, slots=True)
class Listing:
    """
    A standing offer to sell tickets.

    Attributes:
        amount: Tickets currently offered.
        price: Per-ticket price captured when the listing was last topped up.
    """
    amount: int = 0
    price: int = 0

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount < 0:
            raise ValueError(f"Listing amount must be a non-negative int, got {self.amount!r}")
        if isinstance(self.price, bool) or not isinstance(self.price, int) or self.price < 0:
            raise ValueError(f"Listing price must be a non-negative int, got {self.price!r}")

    def is_empty(self) -> bool:
        return self.amount == 0 and self.price == 0

    def __repr__(self) -> str:
        return f"Listing({self.amount} @ {self.price})"


EMPTY_LISTING = Listing(0, 0)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Operation functions accept a LedgerView to declare their read-only
    intent: they validate and compute against it and return a
    PendingTransaction describing the writes, never touching state.

    The TicketLedger class implements this protocol but also provides
    mutation methods. For testing, FakeView provides a plain implementation.
    """

    @property
    def owner(self) -> Identity:
        """Return the identity fixed as owner at creation."""
        ...

    @property
    def policy(self) -> Policy:
        """Return the current policy record."""
        ...

    @property
    def reserve(self) -> int:
        """Return the current reserve counter."""
        ...

    def get_tickets(self, user: Identity) -> int:
        """Return tickets owned by user, 0 if never touched."""
        ...

    def get_currency(self, user: Identity) -> int:
        """Return currency held by user, 0 if never touched."""
        ...

    def get_listing(self, user: Identity) -> Listing:
        """Return the user's listing, Listing(0, 0) if none."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: All staged writes were validated and committed.
    REJECTED: A staged write would break a ledger invariant or was built
              against stale state; nothing was committed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# STAGED WRITES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Write:
    """
    A single staged write to one ledger entry.

    Stores both the value read when the write was computed and the value to
    commit, which enables:
    - Forward replay: apply new
    - Stale detection: old must still match the live value at commit time
    - Audit: every transaction records exactly what changed

    Attributes:
        table: One of TABLE_TICKETS, TABLE_CURRENCY, TABLE_LISTINGS,
               TABLE_POLICY, TABLE_RESERVE
        key: Identity for keyed tables, None for singletons
        old: Value before the write
        new: Value after the write
    """
    table: str
    key: Optional[Identity]
    old: Any
    new: Any

    def __post_init__(self):
        if self.table in KEYED_TABLES:
            _require_identity(self.key, f"Write key for {self.table}")
        elif self.table in SINGLETON_TABLES:
            if self.key is not None:
                raise ValueError(f"Write to {self.table} must not carry a key")
        else:
            raise ValueError(f"Unknown table: {self.table}")

    def delta(self) -> Optional[int]:
        """Signed change for integer entries, None for records."""
        if isinstance(self.new, int) and isinstance(self.old, int):
            return self.new - self.old
        return None

    def __repr__(self) -> str:
        target = self.table if self.key is None else f"{self.table}[{self.key}]"
        return f"Write({target}: {self.old!r}→{self.new!r})"


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Output is independent of dict insertion order and suitable for
    content-addressable hashing.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, Listing):
        return f"L:{value.amount}@{value.price}"
    if isinstance(value, Policy):
        return (f"P:{value.ticket_price}|{value.refund_rate_percent}|"
                f"{value.max_tickets_per_user}|{value.reserve_limit}")
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of the call that produced a transaction.

    Attributes:
        operation: Operation name (e.g. "buy", "set_ticket_price")
        caller: Authenticated identity that invoked the operation
        arguments: Positional arguments after the caller, in call order
    """
    operation: str
    caller: Identity
    arguments: Tuple[Any, ...] = ()

    def __post_init__(self):
        if not self.operation or not self.operation.strip():
            raise ValueError("Origin operation cannot be empty")
        _require_identity(self.caller, "Origin caller")

    def __repr__(self) -> str:
        args = ", ".join(repr(a) for a in self.arguments)
        return f"Origin({self.caller}: {self.operation}({args}))"


def _compute_intent_id(writes: Tuple[Write, ...], origin: TransactionOrigin) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Same origin and same staged writes always produce the same id, regardless
    of the order writes were staged in.
    """
    parts = [
        f"origin:{origin.operation}:{origin.caller}:{_canonicalize(origin.arguments)}"
    ]
    for w in sorted(writes, key=lambda w: (w.table, w.key or "")):
        parts.append(f"write:{w.table}|{w.key or ''}|{_canonicalize(w.old)}|{_canonicalize(w.new)}")
    content = "|".join(parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


# ============================================================================
# PENDING AND EXECUTED TRANSACTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A staging set before execution - represents INTENT.

    Created by the operation functions and submitted to the ledger for
    execution. Holds every write the operation needs, so the ledger can
    apply all of them in one step or none of them.

    Lifecycle:
    1. An operation reads a LedgerView, validates, and stages writes
    2. intent_id is auto-computed from content (deterministic hash)
    3. TicketLedger.execute() re-validates and commits, creating a Transaction

    Attributes:
        writes: Staged writes, at most one per (table, key)
        origin: Operation and caller that produced the writes
        intent_id: Content-addressable hash of the intent (auto-computed)
    """
    writes: Tuple[Write, ...]
    origin: TransactionOrigin
    intent_id: str = field(default="")

    def __post_init__(self):
        seen = set()
        for w in self.writes:
            target = (w.table, w.key)
            if target in seen:
                raise ValueError(f"Duplicate staged write for {w.table}[{w.key}]")
            seen.add(target)
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(self.writes, self.origin))

    def is_empty(self) -> bool:
        """Return True if nothing would change."""
        return not self.writes

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.writes)} writes, {self.origin})"


def build_transaction(
    operation: str,
    caller: Identity,
    arguments: Tuple[Any, ...],
    writes: Tuple[Write, ...],
) -> PendingTransaction:
    """
    Build a PendingTransaction from staged writes.

    Writes are kept even when new equals old, so every successful call is
    recorded in the transaction log.

    Example:
        old = view.get_currency("alice")
        return build_transaction("deposit", "alice", (500,), (
            Write(TABLE_CURRENCY, "alice", old, old + 500),
        ))
    """
    return PendingTransaction(
        writes=tuple(writes),
        origin=TransactionOrigin(operation, caller, tuple(arguments)),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Created by the ledger when committing a PendingTransaction.

    Attributes:
        writes: Writes that were committed
        origin: Operation and caller
        intent_id: Content hash from PendingTransaction
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger (for ordering)
    """
    writes: Tuple[Write, ...]
    origin: TransactionOrigin
    intent_id: str
    exec_id: str
    ledger_name: str
    sequence_number: int

    def writes_for(self, table: str) -> Dict[Optional[Identity], Write]:
        """Return committed writes of one table keyed by identity."""
        return {w.key: w for w in self.writes if w.table == table}

    def __repr__(self) -> str:
        w = 100  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + repr(self.origin))}│",
            f"├{bar}┤",
            f"│{pad(' Writes (' + str(len(self.writes)) + '):')}│",
        ]
        for i, write in enumerate(self.writes):
            target = write.table if write.key is None else f"{write.table}[{write.key}]"
            lines.append(f"│{pad(f'   [{i}] {target}: {write.old!r} → {write.new!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
