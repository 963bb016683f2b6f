"""
custody - Multi-Asset Custodial Ledger

Accepts deposits of a native asset and a stable asset, values both in a
common quote currency, enforces an aggregate deposit cap, releases funds
through a two-phase withdrawal protocol and awards a one-time loyalty
credential.

Usage:
    from custody import (
        Bank, BankConfig, StaticPriceFeed, StableToken, NativeHost,
        CredentialRegistry, parse_units, NATIVE_DECIMALS,
    )

    registry = CredentialRegistry(owner="admin", minter="bank")
    bank = Bank(
        BankConfig(owner="admin", deposit_cap=parse_units("100000", 8),
                   max_withdrawal_per_request=parse_units("5", NATIVE_DECIMALS)),
        price_feed=StaticPriceFeed(parse_units("2000", 8)),
        token=StableToken("USDX", minter="treasury"),
        native=NativeHost(),
        reward_issuer=registry,
    )

    bank.deposit_native("alice", parse_units("0.1", NATIVE_DECIMALS))
    bank.request_native_withdrawal("alice", parse_units("0.05", NATIVE_DECIMALS))
    bank.complete_native_withdrawal("alice")
"""

# Core types
from .core import (
    Account,
    AccountSnapshot,
    AssetKind,
    BankConfig,
    BankStats,
    CallResult,
    Notification,
    NotificationType,
    # Collaborator protocols
    PriceOracle,
    ExternalAssetLedger,
    RewardIssuer,
    NativeTransfer,
    # Exceptions
    BankError,
    ZeroAmount,
    ExceedsCap,
    ExceedsMaxWithdrawal,
    InsufficientBalance,
    NothingPending,
    Unauthorized,
    ReentrantCall,
    ExternalTransferFailed,
    InvalidPrice,
    # Constants
    QUOTE_DECIMALS,
    NATIVE_DECIMALS,
    EXTERNAL_DECIMALS,
    REWARD_THRESHOLD,
    DEFAULT_REWARD_METADATA,
    # Helpers
    parse_units,
    format_units,
    require_amount,
)

# Valuation
from .valuation import (
    ValuationEngine,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
)

# Ledger and guards
from .account_ledger import AccountLedger, Checkpoint
from .guard import ReentrancyGuard, AccessControl

# Controller
from .bank import Bank

# In-memory collaborators
from .assets import StableToken, NativeHost
from .rewards import CredentialRegistry


__all__ = [
    # Core
    'Account', 'AccountSnapshot', 'AssetKind', 'BankConfig', 'BankStats',
    'CallResult', 'Notification', 'NotificationType',
    'PriceOracle', 'ExternalAssetLedger', 'RewardIssuer', 'NativeTransfer',
    # Exceptions
    'BankError', 'ZeroAmount', 'ExceedsCap', 'ExceedsMaxWithdrawal',
    'InsufficientBalance', 'NothingPending', 'Unauthorized', 'ReentrantCall',
    'ExternalTransferFailed', 'InvalidPrice',
    # Constants
    'QUOTE_DECIMALS', 'NATIVE_DECIMALS', 'EXTERNAL_DECIMALS',
    'REWARD_THRESHOLD', 'DEFAULT_REWARD_METADATA',
    # Helpers
    'parse_units', 'format_units', 'require_amount',
    # Valuation
    'ValuationEngine', 'StaticPriceFeed', 'TimeSeriesPriceFeed',
    # Ledger and guards
    'AccountLedger', 'Checkpoint', 'ReentrancyGuard', 'AccessControl',
    # Controller
    'Bank',
    # Collaborators
    'StableToken', 'NativeHost', 'CredentialRegistry',
]

__version__ = '1.0.0'
