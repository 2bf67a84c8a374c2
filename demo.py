#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Ticket Ledger Step by Step

A walkthrough of the ticket ledger. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation      - The empty ledger, issuance, funding
  4-6:  Market          - Listing, buying, the reserve counter
  7-8:  Refunds         - Owner-funded refunds and partial refunds
  9-10: Guarantees      - Atomic rejections, owner-only policy
  11:   Replay          - Rebuilding state from the log
  12:   Sequencer       - Serializing concurrent callers

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys
import threading

from ticket_ledger import (
    TicketLedger, Sequencer, OperationRequest,
    TicketLedgerError,
    get_account, get_policy_summary, quote_purchase, quote_refund,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "venue"

    # Primary issuance
    alice_tickets: int = 5
    owner_tickets: int = 10

    # Funding
    bob_deposit: int = 10000
    owner_deposit: int = 50000

    # Sequencer step
    concurrent_buyers: int = 4


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_accounts(ledger: TicketLedger, *users: str):
    for user in users:
        account = get_account(ledger, user)
        print(f"  {user:8s} tickets={account.tickets:<4d} currency={account.currency:<7d} "
              f"listing={account.listing!r}")
    print(f"  reserve = {ledger.reserve} / {ledger.policy.reserve_limit}")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_empty_ledger() -> TicketLedger:
    step_header(1, "The Empty Ledger",
        "A ledger starts with an owner, a default policy and no balances.")

    print(f">>> ledger = TicketLedger('tutorial', owner='{CONFIG.owner}')")
    ledger = TicketLedger("tutorial", owner=CONFIG.owner)

    section_header("Policy")
    for key, value in get_policy_summary(ledger).items():
        print(f"  {key:22s} {value}")

    section_header("Key Insight")
    print("""
    Every balance reads as zero until something writes it. There is no
    account registration: any identity can receive tickets or currency.
    """)
    return ledger


def step_02_issue_tickets(ledger: TicketLedger) -> TicketLedger:
    step_header(2, "Issuing Tickets",
        "Only the owner creates tickets, and never past the per-user cap.")

    print(f">>> ledger.issue_tickets('{CONFIG.owner}', 'alice', {CONFIG.alice_tickets})")
    ledger.issue_tickets(CONFIG.owner, "alice", CONFIG.alice_tickets)
    ledger.issue_tickets(CONFIG.owner, CONFIG.owner, CONFIG.owner_tickets)

    section_header("Over the cap")
    try:
        ledger.issue_tickets(CONFIG.owner, "alice", ledger.policy.max_tickets_per_user)
    except TicketLedgerError as e:
        print(f"  Rejected as expected: {type(e).__name__}")
    return ledger


def step_03_funding(ledger: TicketLedger) -> TicketLedger:
    step_header(3, "Funding Accounts",
        "Currency enters through deposit() and leaves through withdraw().")

    ledger.deposit("bob", CONFIG.bob_deposit)
    ledger.deposit(CONFIG.owner, CONFIG.owner_deposit)
    show_accounts(ledger, "alice", "bob", CONFIG.owner)
    return ledger


# ============================================================================
# PHASE 2: MARKET
# ============================================================================

def step_04_listing(ledger: TicketLedger) -> TicketLedger:
    step_header(4, "Listing for Sale",
        "A listing captures the current price and counts toward the reserve.")

    print(">>> ledger.list_for_sale('alice', 3)")
    ledger.list_for_sale("alice", 3)
    show_accounts(ledger, "alice")

    section_header("Topping up after a price change")
    ledger.increase_price(CONFIG.owner, 500)
    ledger.list_for_sale("alice", 1)
    show_accounts(ledger, "alice")
    print("""
    The second call refreshed the listing price for ALL listed tickets.
    """)
    return ledger


def step_05_buying(ledger: TicketLedger) -> TicketLedger:
    step_header(5, "Buying",
        "The buyer pays the listing price; the owner earns a fee at the global price.")

    quote = quote_purchase(ledger, "alice", 2)
    print(f"  quote: cost={quote.cost} owner_fee={quote.owner_fee} available={quote.available}")

    print(">>> ledger.buy('bob', 'alice', 2)")
    ledger.buy("bob", "alice", 2)
    show_accounts(ledger, "alice", "bob", CONFIG.owner)
    return ledger


def step_06_reserve(ledger: TicketLedger) -> TicketLedger:
    step_header(6, "The Reserve Counter",
        "Listing raises the reserve, buying leaves it, delisting and refunds lower it.")

    print(f"  reserve before delist: {ledger.reserve}")
    ledger.delist_from_sale("alice", 1)
    print(f"  reserve after delist:  {ledger.reserve}")

    section_header("Shrinking the limit below usage")
    try:
        ledger.set_reserve_limit(CONFIG.owner, ledger.reserve - 1)
    except TicketLedgerError as e:
        print(f"  Rejected as expected: {type(e).__name__}")
    return ledger


# ============================================================================
# PHASE 3: REFUNDS
# ============================================================================

def step_07_refund(ledger: TicketLedger) -> TicketLedger:
    step_header(7, "Refunds",
        "A refund returns tickets to the owner, who pays price x rate.")

    print(f"  quote_refund(1) = {quote_refund(ledger, 1)}")
    ledger.refund("bob", 1)
    show_accounts(ledger, "bob", CONFIG.owner)
    return ledger


def step_08_partial_refund(ledger: TicketLedger) -> TicketLedger:
    step_header(8, "Partial Refunds",
        "A partial refund destroys tickets and pays out without debiting anyone.")

    before = ledger.total_currency()
    ledger.partial_refund("alice", 1)
    print(f"  total currency: {before} -> {ledger.total_currency()}")
    return ledger


# ============================================================================
# PHASE 4: GUARANTEES
# ============================================================================

def step_09_atomicity(ledger: TicketLedger) -> TicketLedger:
    step_header(9, "Atomic Rejections",
        "A failed operation leaves every balance exactly as it was.")

    before = ledger.snapshot()
    try:
        ledger.buy("carol", "alice", 1)
    except TicketLedgerError as e:
        print(f"  Rejected: {type(e).__name__}: {e}")
    print(f"  state unchanged: {ledger.snapshot() == before}")
    return ledger


def step_10_owner_gating(ledger: TicketLedger) -> TicketLedger:
    step_header(10, "Owner-Only Policy",
        "Only the owner can change the policy or cancel the event.")

    try:
        ledger.set_ticket_price("bob", 1)
    except TicketLedgerError as e:
        print(f"  Rejected: {type(e).__name__}")

    ledger.cancel_event(CONFIG.owner)
    show_accounts(ledger, CONFIG.owner, "alice", "bob")
    print("""
    cancel_event() only clears the owner's own ticket balance.
    """)
    return ledger


# ============================================================================
# PHASE 5: REPLAY AND SEQUENCING
# ============================================================================

def step_11_replay(ledger: TicketLedger) -> TicketLedger:
    step_header(11, "Replay",
        "The transaction log rebuilds the same state from scratch.")

    ledger.verbose = False
    replayed = ledger.replay()
    print(f"  {len(ledger.transaction_log)} transactions replayed")
    print(f"  identical state: {replayed.snapshot() == ledger.snapshot()}")
    result = ledger.verify_invariants()
    print(f"  invariants valid: {result['valid']}  totals: {result['totals']}")
    return ledger


def step_12_sequencer():
    step_header(12, "The Sequencer",
        "Concurrent callers are queued and executed one at a time.")

    ledger = TicketLedger("market", owner=CONFIG.owner, verbose=False)
    ledger.issue_tickets(CONFIG.owner, "alice", 3)
    ledger.list_for_sale("alice", 3)
    sequencer = Sequencer(ledger)

    buyers = [f"buyer{i}" for i in range(CONFIG.concurrent_buyers)]
    for buyer in buyers:
        ledger.deposit(buyer, 5000)

    def race(buyer):
        sequencer.submit(OperationRequest(buyer, "buy", ("alice", 1)))

    threads = [threading.Thread(target=race, args=(b,)) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for result in sequencer.step():
        outcome = "ok" if result.ok else type(result.error).__name__
        print(f"  #{result.ticket} {result.request.caller:8s} {outcome}")
    print(f"  alice has {ledger.get_tickets('alice')} tickets left")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       TICKET LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    ledger = step_01_empty_ledger()
    for step in (
        step_02_issue_tickets, step_03_funding,
        step_04_listing, step_05_buying, step_06_reserve,
        step_07_refund, step_08_partial_refund,
        step_09_atomicity, step_10_owner_gating,
        step_11_replay,
    ):
        wait_for_enter()
        ledger = step(ledger)

    wait_for_enter()
    step_12_sequencer()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See ticket_ledger/operations.py for every operation's preconditions
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
