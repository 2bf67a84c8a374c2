"""
ticket_ledger - Event Ticket and Currency Ledger

A single-process ledger tracking ticket inventory and a parallel currency
balance per user, with atomic multi-entry operations and owner-gated policy.

Usage:
    from ticket_ledger import TicketLedger

    ledger = TicketLedger("main", owner="venue")

    # Primary issuance and funding
    ledger.issue_tickets("venue", "alice", 5)
    ledger.deposit("bob", 10000)

    # Secondary market
    ledger.list_for_sale("alice", 5)
    ledger.buy("bob", "alice", 5)

    # Pure compute + explicit execute
    from ticket_ledger import compute_refund
    pending = compute_refund(ledger, "bob", 2)
    result = ledger.execute(pending)
"""

# Core types
from .core import (
    LedgerView,
    Identity,
    Policy,
    Listing,
    Write,
    PendingTransaction,
    Transaction,
    TransactionOrigin,
    ExecuteResult,
    build_transaction,
    TicketLedgerError,
    NotOwner,
    InsufficientTickets,
    InsufficientFunds,
    TransferFailed,
    InvalidPrice,
    InvalidAmount,
    MaxTicketsExceeded,
    InvalidRate,
    ReserveLimitExceeded,
    SameUser,
    InvalidRequest,
    EMPTY_LISTING,
    DEFAULT_TICKET_PRICE,
    DEFAULT_REFUND_RATE_PERCENT,
    DEFAULT_MAX_TICKETS_PER_USER,
    DEFAULT_RESERVE_LIMIT,
    TABLE_TICKETS,
    TABLE_CURRENCY,
    TABLE_LISTINGS,
    TABLE_POLICY,
    TABLE_RESERVE,
)

# Store
from .store import LedgerStore

# Ledger
from .ledger import TicketLedger

# Policy registry
from .policy import (
    compute_set_ticket_price,
    compute_set_refund_rate,
    compute_set_max_tickets_per_user,
    compute_set_reserve_limit,
    compute_increase_price,
    compute_decrease_price,
)

# Reserve accountant
from .reserve import compute_reserve_delta

# Transaction engine
from .operations import (
    compute_refund_amount,
    compute_list_for_sale,
    compute_delist_from_sale,
    compute_buy,
    compute_refund,
    compute_partial_refund,
    compute_withdraw,
    compute_deposit,
    compute_cancel_event,
    compute_issue_tickets,
)

# Queries
from .queries import (
    AccountView,
    PurchaseQuote,
    get_ticket_price,
    get_refund_rate,
    get_max_tickets_per_user,
    get_reserve_limit,
    get_reserve,
    get_owner,
    get_ticket_balance,
    get_currency_balance,
    get_listing,
    get_account,
    get_policy_summary,
    quote_purchase,
    quote_refund,
)

# Sequencer
from .sequencer import (
    Sequencer,
    OperationRequest,
    OperationResult,
    DEFAULT_OPERATIONS,
)

__all__ = [
    # Core
    'LedgerView', 'Identity', 'Policy', 'Listing', 'Write',
    'PendingTransaction', 'Transaction', 'TransactionOrigin', 'ExecuteResult',
    'build_transaction',
    'TicketLedgerError', 'NotOwner', 'InsufficientTickets', 'InsufficientFunds',
    'TransferFailed', 'InvalidPrice', 'InvalidAmount', 'MaxTicketsExceeded',
    'InvalidRate', 'ReserveLimitExceeded', 'SameUser', 'InvalidRequest',
    'EMPTY_LISTING',
    'DEFAULT_TICKET_PRICE', 'DEFAULT_REFUND_RATE_PERCENT',
    'DEFAULT_MAX_TICKETS_PER_USER', 'DEFAULT_RESERVE_LIMIT',
    'TABLE_TICKETS', 'TABLE_CURRENCY', 'TABLE_LISTINGS', 'TABLE_POLICY', 'TABLE_RESERVE',
    # Store and ledger
    'LedgerStore', 'TicketLedger',
    # Policy registry
    'compute_set_ticket_price', 'compute_set_refund_rate',
    'compute_set_max_tickets_per_user', 'compute_set_reserve_limit',
    'compute_increase_price', 'compute_decrease_price',
    # Reserve
    'compute_reserve_delta',
    # Transaction engine
    'compute_refund_amount', 'compute_list_for_sale', 'compute_delist_from_sale',
    'compute_buy', 'compute_refund', 'compute_partial_refund',
    'compute_withdraw', 'compute_deposit',
    'compute_cancel_event', 'compute_issue_tickets',
    # Queries
    'AccountView', 'PurchaseQuote',
    'get_ticket_price', 'get_refund_rate', 'get_max_tickets_per_user',
    'get_reserve_limit', 'get_reserve', 'get_owner',
    'get_ticket_balance', 'get_currency_balance', 'get_listing',
    'get_account', 'get_policy_summary', 'quote_purchase', 'quote_refund',
    # Sequencer
    'Sequencer', 'OperationRequest', 'OperationResult', 'DEFAULT_OPERATIONS',
]

__version__ = '1.0.0'
