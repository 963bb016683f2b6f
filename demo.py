#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Custodial Bank Step by Step

A walkthrough of the custodial bank. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Foundation  - Wiring a bank, raw units, valued deposits
  4-6:   Withdrawals - Two-phase requests, refused payouts, rollback
  7-8:   Limits      - The deposit cap, the loyalty credential
  9-10:  Safety      - Reentrancy, owner operations and the custody audit

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from custody import (
    # Controller and configuration
    Bank, BankConfig, AssetKind,
    # Collaborators
    StaticPriceFeed, StableToken, NativeHost, CredentialRegistry,
    # Exceptions
    BankError, ExceedsCap, ExternalTransferFailed, ReentrantCall,
    # Units
    parse_units, format_units,
    NATIVE_DECIMALS, EXTERNAL_DECIMALS, QUOTE_DECIMALS,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "admin"
    bank_address: str = "bank"

    # Human-readable amounts, converted with parse_units()
    native_price: str = "2000"
    deposit_cap: str = "5000"
    max_withdrawal: str = "5"

    alice_native: str = "0.1"
    bob_stable: str = "500"


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


def quote(amount: int) -> str:
    return format_units(amount, QUOTE_DECIMALS)


def show_account(bank: Bank, address: str):
    acc = bank.get_account(address)
    print(f"{address}:")
    print(f"  native balance:   {format_units(acc.native_balance, NATIVE_DECIMALS)}")
    print(f"  stable balance:   {format_units(acc.external_balance, EXTERNAL_DECIMALS)}")
    print(f"  pending native:   {format_units(acc.pending_native_withdrawal, NATIVE_DECIMALS)}")
    print(f"  pending stable:   {format_units(acc.pending_external_withdrawal, EXTERNAL_DECIMALS)}")
    print(f"  lifetime value:   {quote(acc.cumulative_quote_value)}")
    print(f"  rewarded:         {acc.rewarded}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_wire_bank():
    """Create the collaborators and the bank."""
    step_header(1, "Wiring a Bank",
        "A bank is a controller over four collaborators it does not own.")

    print("""
    The bank never moves assets itself. It asks:

    - a PRICE FEED for the native asset price
    - a STABLE TOKEN ledger to pull and push the stable asset
    - the NATIVE HOST to push native asset out
    - a CREDENTIAL REGISTRY to issue the loyalty credential

    Configuration (owner, cap, per-request limit) is fixed at construction.
    """)

    wait_for_enter()

    feed = StaticPriceFeed(parse_units(CONFIG.native_price, QUOTE_DECIMALS))
    token = StableToken("USDX", minter="treasury")
    host = NativeHost()
    registry = CredentialRegistry(owner=CONFIG.owner)
    registry.set_minter(CONFIG.owner, CONFIG.bank_address)

    bank = Bank(
        BankConfig(
            owner=CONFIG.owner,
            deposit_cap=parse_units(CONFIG.deposit_cap, QUOTE_DECIMALS),
            max_withdrawal_per_request=parse_units(CONFIG.max_withdrawal, NATIVE_DECIMALS),
            address=CONFIG.bank_address,
        ),
        price_feed=feed,
        token=token,
        native=host,
        reward_issuer=registry,
        verbose=True,
    )

    section_header("Initial State")
    print(f"Owner:          {bank.owner}")
    print(f"Deposit cap:    {quote(bank.config.deposit_cap)}")
    print(f"Native price:   {quote(bank.native_price())}")
    print(f"Stats:          {bank.get_stats()}")

    return bank, feed, token, host, registry


def step_02_raw_units():
    """Explain raw base units."""
    step_header(2, "Raw Units",
        "Every amount is an integer in the base unit of its asset.")

    print("""
    Three scales are in play:

      native asset   18 decimals
      stable asset    6 decimals
      quote currency  8 decimals

    parse_units() converts text to raw units, truncating extra digits.
    """)

    wait_for_enter()

    for text, decimals in (("0.1", NATIVE_DECIMALS), ("500", EXTERNAL_DECIMALS),
                           ("2000", QUOTE_DECIMALS), ("1.0000009", EXTERNAL_DECIMALS)):
        print(f">>> parse_units({text!r}, {decimals}) = {parse_units(text, decimals)}")


def step_03_deposits(bank: Bank, token: StableToken):
    """Deposit both assets."""
    step_header(3, "Valued Deposits",
        "Deposits are valued in quote currency at the moment they arrive.")

    print(f"""
    Native:  value = amount * price // 10**18
    Stable:  value = amount * 100   (1:1 peg, 6 -> 8 decimals)

    Alice deposits {CONFIG.alice_native} native; Bob approves the bank and
    deposits {CONFIG.bob_stable} stable.
    """)

    wait_for_enter()

    amount = parse_units(CONFIG.alice_native, NATIVE_DECIMALS)
    print(f">>> bank.deposit_native('alice', {amount})")
    bank.deposit_native("alice", amount)

    stable = parse_units(CONFIG.bob_stable, EXTERNAL_DECIMALS)
    token.mint("treasury", "bob", stable)
    token.approve("bob", bank.address, stable)
    print(f">>> bank.deposit_external('bob', {stable})")
    bank.deposit_external("bob", stable)

    section_header("Accounts")
    show_account(bank, "alice")
    show_account(bank, "bob")
    print(f"\nAggregate lifetime value: {quote(bank.total_quote_value())}")
    print(f"Registered accounts:      {bank.registered_accounts()}")


# ============================================================================
# PHASE 2: WITHDRAWALS (Steps 4-6)
# ============================================================================

def step_04_two_phase(bank: Bank, host: NativeHost):
    """Request then complete a withdrawal."""
    step_header(4, "Two-Phase Withdrawal",
        "A request reserves funds; a completion pays out everything reserved.")

    wait_for_enter()

    half = parse_units("0.05", NATIVE_DECIMALS)
    print(f">>> bank.request_native_withdrawal('alice', {half})")
    bank.request_native_withdrawal("alice", half)
    show_account(bank, "alice")

    print("\n>>> bank.complete_native_withdrawal('alice')")
    paid = bank.complete_native_withdrawal("alice")
    print(f"Paid:  {format_units(paid, NATIVE_DECIMALS)}")
    print(f"Host paid alice: {format_units(host.paid_to('alice'), NATIVE_DECIMALS)}")

    section_header("Key Insight")
    print("""
    Lifetime value did not drop. It counts deposits, not holdings, so a
    withdrawal never frees room under the cap.
    """)


def step_05_refused_payout(bank: Bank, host: NativeHost):
    """A recipient refusing payment."""
    step_header(5, "Refused Payout",
        "A failed payout rolls back completely; the reservation survives.")

    wait_for_enter()

    rest = parse_units("0.05", NATIVE_DECIMALS)
    bank.request_native_withdrawal("alice", rest)
    host.refuse("alice")

    try:
        bank.complete_native_withdrawal("alice")
    except ExternalTransferFailed as e:
        print(f"Caught: {type(e).__name__}")

    show_account(bank, "alice")

    host.accept("alice")
    bank.complete_native_withdrawal("alice")
    print(f"\nAfter accepting: paid {format_units(host.paid_to('alice'), NATIVE_DECIMALS)}")


def step_06_rejections(bank: Bank):
    """Rejected requests."""
    step_header(6, "Rejections",
        "Invalid requests are rejected before anything changes.")

    wait_for_enter()

    attempts = [
        ("zero amount", lambda: bank.deposit_native("carol", 0)),
        ("more than balance", lambda: bank.request_external_withdrawal("bob", 10 ** 12)),
        ("nothing pending", lambda: bank.complete_external_withdrawal("bob")),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except BankError as e:
            print(f"  {label:20s} -> {type(e).__name__}")


# ============================================================================
# PHASE 3: LIMITS (Steps 7-8)
# ============================================================================

def step_07_cap(bank: Bank):
    """Hit the deposit cap."""
    step_header(7, "The Deposit Cap",
        f"Aggregate lifetime value may never exceed {quote(bank.config.deposit_cap)}.")

    wait_for_enter()

    print(f"Aggregate now: {quote(bank.total_quote_value())}")
    try:
        bank.deposit_native("carol", parse_units("3", NATIVE_DECIMALS))
    except ExceedsCap as e:
        print(f"Caught: {type(e).__name__}: {e}")

    section_header("Key Insight")
    print("""
    The cap-reached notice is published even though the deposit fails,
    so operators hear about rejected deposits.
    """)


def step_08_reward(bank: Bank, registry: CredentialRegistry):
    """Earn the loyalty credential."""
    step_header(8, "The Loyalty Credential",
        "Reaching 1000 quote units of lifetime deposits earns one credential.")

    wait_for_enter()

    bank.deposit_native("carol", parse_units("0.5", NATIVE_DECIMALS))
    show_account(bank, "carol")
    print(f"\nCredentials held by carol: {registry.tokens_of('carol')}")

    bank.deposit_native("carol", parse_units("0.1", NATIVE_DECIMALS))
    print(f"After another deposit:    {registry.tokens_of('carol')}")


# ============================================================================
# PHASE 4: SAFETY (Steps 9-10)
# ============================================================================

def step_09_reentrancy(bank: Bank, host: NativeHost):
    """A recipient trying to re-enter."""
    step_header(9, "Reentrancy",
        "Collaborators cannot call back into the bank while it waits on them.")

    wait_for_enter()

    bank.request_native_withdrawal("carol", parse_units("0.1", NATIVE_DECIMALS))

    def greedy(amount):
        try:
            bank.complete_native_withdrawal("carol")
        except ReentrantCall as e:
            print(f"  inside payout: {type(e).__name__}")

    host.on_receive("carol", greedy)
    paid = bank.complete_native_withdrawal("carol")
    print(f"Paid once: {format_units(paid, NATIVE_DECIMALS)}")


def step_10_owner_and_audit(bank: Bank, host: NativeHost):
    """Emergency withdrawal and conservation audit."""
    step_header(10, "Owner Operations and the Audit",
        "Only the owner may sweep funds; the audit shows what that costs.")

    wait_for_enter()

    print(f"Before: {bank.verify_conservation()['valid']}")
    bank.emergency_withdraw_native(bank.owner, "cold_storage", parse_units("0.1", NATIVE_DECIMALS))

    audit = bank.verify_conservation()
    print(f"After:  {audit['valid']}")
    for d in audit['discrepancies']:
        print(f"  {d['asset'].value}: custody {d['custody']} vs owed {d['liabilities']}")

    section_header("Audit Trail")
    for n in bank.notifications:
        print(f"  {n!r}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       CUSTODIAL BANK - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    bank, feed, token, host, registry = step_01_wire_bank()
    step_02_raw_units()
    step_03_deposits(bank, token)
    step_04_two_phase(bank, host)
    step_05_refused_payout(bank, host)
    step_06_rejections(bank)
    step_07_cap(bank)
    step_08_reward(bank, registry)
    step_09_reentrancy(bank, host)
    step_10_owner_and_audit(bank, host)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Deposits are valued once, at arrival, in quote currency
      - Withdrawals are two-phase and roll back on failed payouts
      - The cap counts lifetime deposits; the credential is one-time
      - The bank rejects reentrant calls and audits its own custody

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
