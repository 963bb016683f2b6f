"""
Core types for the custodial bank.

This module provides the foundational data structures and protocols:
1. Constants: decimal scales and the reward threshold
2. Protocols: the collaborators the bank calls (price feed, stable token,
   reward registry, native transfer host)
3. Data structures: Account, AccountSnapshot, BankStats, BankConfig,
   CallResult, Notification
4. Exceptions: BankError and one subclass per failure kind
5. Amount helpers: parse_units / format_units / require_amount

All amounts are integers in raw base units of their asset. Nothing in this
module mutates bank state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, localcontext
from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Decimal scales of the three units the bank deals in.
QUOTE_DECIMALS = 8
NATIVE_DECIMALS = 18
EXTERNAL_DECIMALS = 6

# Cumulative valuation (quote units) at which the one-time credential is issued.
REWARD_THRESHOLD = 1000 * 10 ** QUOTE_DECIMALS

# Metadata reference handed to the reward issuer with every credential.
DEFAULT_REWARD_METADATA = "ipfs://custody-loyalty/metadata.json"

# Decimal precision for unit conversions; covers any 256-bit amount.
UNITS_PRECISION = 80


# ============================================================================
# ENUMS
# ============================================================================

class AssetKind(Enum):
    """The two assets the bank accepts."""
    NATIVE = "native"
    EXTERNAL = "external"


class NotificationType(Enum):
    """
    Classification of bank notifications.

    Used by listeners and by the audit trail kept in Bank.notifications.
    """
    DEPOSIT = "deposit"
    CAP_REACHED = "cap_reached"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    REWARD_EARNED = "reward_earned"
    EMERGENCY_WITHDRAWAL = "emergency_withdrawal"
    PRICE_FEED_UPDATED = "price_feed_updated"
    REWARD_ISSUER_UPDATED = "reward_issuer_updated"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class BankError(Exception):
    """Base exception for all bank errors."""
    pass


class ZeroAmount(BankError):
    """Raised when an operation is given an amount of zero."""
    pass


class ExceedsCap(BankError):
    """Raised when a deposit would push the aggregate valuation above the deposit cap."""
    pass


class ExceedsMaxWithdrawal(BankError):
    """Raised when a withdrawal request is larger than the per-request maximum."""
    pass


class InsufficientBalance(BankError):
    """Raised when an amount exceeds the live balance it would be taken from."""
    pass


class NothingPending(BankError):
    """Raised when completing a withdrawal with no pending amount."""
    pass


class Unauthorized(BankError):
    """Raised when a non-owner calls an administrative operation."""
    pass


class ReentrantCall(BankError):
    """Raised when a mutating entry point is called while another is in progress."""
    pass


class ExternalTransferFailed(BankError):
    """Raised when a native push or stable-token transfer fails or reports False."""
    pass


class InvalidPrice(BankError):
    """Raised when the price feed answers with a non-positive price."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceOracle(Protocol):
    """
    Price of one whole native unit in quote currency, scaled by 10**QUOTE_DECIMALS.

    The answer is signed; the bank treats anything <= 0 as InvalidPrice.
    """

    def latest_answer(self) -> int:
        ...


@runtime_checkable
class ExternalAssetLedger(Protocol):
    """
    Conventional fungible-token ledger holding the stable asset.

    `sender` is the identity making the call (the bank's own address).
    Both methods return False or raise on failure.
    """

    def transfer_from(self, sender: str, owner: str, recipient: str, amount: int) -> bool:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, holder: str) -> int:
        ...


@runtime_checkable
class RewardIssuer(Protocol):
    """Non-fungible credential registry; only its configured minter may issue."""

    def issue(self, sender: str, recipient: str, metadata_reference: str) -> Any:
        ...


@runtime_checkable
class NativeTransfer(Protocol):
    """Host facility pushing native asset out of the bank to a recipient."""

    def send(self, recipient: str, amount: int) -> bool:
        ...


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(slots=True)
class Account:
    """
    Mutable per-address record held by the AccountLedger.

    cumulative_quote_value is a lifetime deposit counter: withdrawals never
    reduce it, and the cap and reward checks read it as such.
    """
    native_balance: int = 0
    external_balance: int = 0
    cumulative_quote_value: int = 0
    pending_native_withdrawal: int = 0
    pending_external_withdrawal: int = 0
    rewarded: bool = False

    def balance(self, asset: AssetKind) -> int:
        if asset is AssetKind.NATIVE:
            return self.native_balance
        return self.external_balance

    def pending(self, asset: AssetKind) -> int:
        if asset is AssetKind.NATIVE:
            return self.pending_native_withdrawal
        return self.pending_external_withdrawal

    def copy(self) -> Account:
        return Account(
            native_balance=self.native_balance,
            external_balance=self.external_balance,
            cumulative_quote_value=self.cumulative_quote_value,
            pending_native_withdrawal=self.pending_native_withdrawal,
            pending_external_withdrawal=self.pending_external_withdrawal,
            rewarded=self.rewarded,
        )


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """
    Immutable view of one account, returned by Bank.get_account().

    Attributes:
        address: Account address
        native_balance: Native asset available for withdrawal requests
        external_balance: Stable asset available for withdrawal requests
        cumulative_quote_value: Lifetime deposit valuation in quote units
        pending_native_withdrawal: Native asset reserved by requests
        pending_external_withdrawal: Stable asset reserved by requests
        rewarded: Whether the one-time credential has been attempted
    """
    address: str
    native_balance: int
    external_balance: int
    cumulative_quote_value: int
    pending_native_withdrawal: int
    pending_external_withdrawal: int
    rewarded: bool

    @classmethod
    def of(cls, address: str, account: Account) -> AccountSnapshot:
        return cls(
            address=address,
            native_balance=account.native_balance,
            external_balance=account.external_balance,
            cumulative_quote_value=account.cumulative_quote_value,
            pending_native_withdrawal=account.pending_native_withdrawal,
            pending_external_withdrawal=account.pending_external_withdrawal,
            rewarded=account.rewarded,
        )


@dataclass(frozen=True, slots=True)
class BankStats:
    """Aggregate statistics returned by Bank.get_stats()."""
    total_deposit_ops: int
    total_withdrawal_ops: int
    native_custody: int
    registered_account_count: int


@dataclass(frozen=True, slots=True)
class BankConfig:
    """
    Fixed configuration injected into a Bank at construction.

    Attributes:
        owner: The only identity allowed to call administrative operations
        deposit_cap: Maximum aggregate cumulative valuation, quote units
        max_withdrawal_per_request: Per-request limit, native units, applied
            to both assets
        address: The bank's own identity toward its collaborators
        reward_threshold: Cumulative valuation that earns the credential
        reward_metadata: Metadata reference passed to the reward issuer
    """
    owner: str
    deposit_cap: int
    max_withdrawal_per_request: int
    address: str = "bank"
    reward_threshold: int = REWARD_THRESHOLD
    reward_metadata: str = DEFAULT_REWARD_METADATA

    def __post_init__(self):
        if not self.owner or not self.owner.strip():
            raise ValueError("owner cannot be empty")
        if not self.address or not self.address.strip():
            raise ValueError("address cannot be empty")
        if self.owner == self.address:
            raise ValueError("owner and bank address must be different")
        for name in ("deposit_cap", "max_withdrawal_per_request", "reward_threshold"):
            require_amount(getattr(self, name), name)


@dataclass(frozen=True, slots=True)
class CallResult:
    """
    Outcome of a call into external code.

    success is False when the callee raised; value holds whatever it
    returned otherwise (which may itself be a False payload).
    """
    success: bool
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True for a call that returned without raising and did not answer False."""
        return self.success and self.value is not False


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable record of something the bank announced.

    Attributes:
        sequence: Monotonic number within the bank
        kind: NotificationType
        account: Address the notification concerns
        asset: Asset involved, if any
        amount: Raw amount involved (0 when not applicable)
        quote_value: Quote valuation involved (0 when not applicable)
        data: Extra fields (credential id, cap figures, new collaborator)
    """
    sequence: int
    kind: NotificationType
    account: str
    asset: Optional[AssetKind] = None
    amount: int = 0
    quote_value: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence}", self.kind.value, self.account]
        if self.asset is not None:
            parts.append(f"{self.amount} {self.asset.value}")
        if self.quote_value:
            parts.append(f"quote={self.quote_value}")
        if self.data:
            parts.append(", ".join(f"{k}={v!r}" for k, v in sorted(self.data.items())))
        return f"Notification({' '.join(parts)})"


# ============================================================================
# AMOUNT HELPERS
# ============================================================================

def require_amount(amount: Any, name: str = "amount") -> int:
    """
    Check that an amount is a non-negative int and return it.

    bool is rejected even though it subclasses int.

    Raises:
        ValueError: If amount is not an int or is negative
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative, got {amount}")
    return amount


def parse_units(value: Any, decimals: int) -> int:
    """
    Convert a human-readable amount into raw base units, truncating extra digits.

    Strings are parsed exactly through Decimal; floats are routed through
    str() first to avoid binary artifacts.

    Example:
        parse_units("0.1", NATIVE_DECIMALS)  # 100000000000000000
        parse_units("500", EXTERNAL_DECIMALS)  # 500000000
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"amount must be finite, got {value}")
    with localcontext() as ctx:
        ctx.prec = UNITS_PRECISION
        raw = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(raw)


def format_units(amount: int, decimals: int) -> str:
    """Render raw base units as a plain decimal string ("0.1", "500")."""
    with localcontext() as ctx:
        ctx.prec = UNITS_PRECISION
        value = Decimal(amount).scaleb(-decimals).normalize()
        if value == value.to_integral_value():
            return str(int(value))
        return format(value, "f")
