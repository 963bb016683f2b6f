"""
bank.py - Custodial bank controller

The Bank is the only entry point that changes custody state. Every mutating
call follows the same shape:

    1. Take the reentrancy guard (fail fast with ReentrantCall if held)
    2. Open an AccountLedger checkpoint
    3. Run checks, valuation and external calls
    4. Commit, or roll the ledger back exactly and re-raise
    5. Publish staged notifications, release the guard

Deposits are valued in quote currency and checked against the bank-wide cap
before any state is written. Withdrawals are two-phase: a request reserves
funds without calling out, a completion pays out what was reserved.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .core import (
    # Types
    AssetKind, NotificationType, Notification,
    AccountSnapshot, BankStats, BankConfig, CallResult,
    PriceOracle, ExternalAssetLedger, RewardIssuer, NativeTransfer,
    # Exceptions
    ZeroAmount, ExceedsCap, ExceedsMaxWithdrawal,
    InsufficientBalance, ExternalTransferFailed,
    # Helpers
    require_amount,
)
from .account_ledger import AccountLedger
from .guard import AccessControl, ReentrancyGuard
from .valuation import ValuationEngine


# Receives every published notification, in order.
Listener = Callable[[Notification], None]

# Sequence placeholder for notifications not yet published.
UNSEQUENCED = -1


class Bank:
    """
    Multi-asset custodial ledger with a deposit cap and two-phase withdrawals.

    Accepts the native asset and one stable asset, values both in quote
    currency, and awards a one-time credential once an account's lifetime
    deposits reach the reward threshold.

    Thread Safety:
        Not thread-safe. Calls are serialized by the reentrancy guard, which
        rejects overlapping calls rather than waiting for them.

    Example:
        bank = Bank(
            BankConfig(owner="admin", deposit_cap=1_000_000 * 10**8,
                       max_withdrawal_per_request=10**18),
            price_feed=StaticPriceFeed(2000 * 10**8),
            token=StableToken("USDX", minter="treasury"),
            native=NativeHost(),
        )
        bank.deposit_native("alice", 10**17)          # 200 * 10**8 quote units
        bank.request_native_withdrawal("alice", 10**17)
        bank.complete_native_withdrawal("alice")
    """

    def __init__(
        self,
        config: BankConfig,
        price_feed: PriceOracle,
        token: ExternalAssetLedger,
        native: NativeTransfer,
        reward_issuer: Optional[RewardIssuer] = None,
        verbose: bool = True,
    ):
        """
        Create a bank.

        Args:
            config: Fixed owner, cap, withdrawal limit and identity
            price_feed: Source of the native asset price
            token: Ledger of the stable asset
            native: Host facility for native push-transfers
            reward_issuer: Optional credential registry (None disables rewards)
            verbose: Print one line per applied or rejected operation
        """
        if price_feed is None:
            raise ValueError("price_feed is required")
        if token is None:
            raise ValueError("token is required")
        if native is None:
            raise ValueError("native transfer host is required")
        self.config = config
        self.ledger = AccountLedger()
        self.valuation = ValuationEngine(price_feed)
        self.token = token
        self.native = native
        self.reward_issuer = reward_issuer
        self.verbose = verbose
        self.notifications: List[Notification] = []
        self.listener_errors: List[Tuple[Notification, str]] = []
        self._access = AccessControl(config.owner)
        self._guard = ReentrancyGuard()
        self._listeners: List[Listener] = []
        self._staged: Optional[List[Notification]] = None
        self._next_sequence = 0

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    @property
    def owner(self) -> str:
        return self._access.owner

    @property
    def address(self) -> str:
        return self.config.address

    @property
    def price_feed(self) -> PriceOracle:
        return self.valuation.feed

    def get_account(self, address: str) -> AccountSnapshot:
        """Balances, pending withdrawals, lifetime valuation and reward flag of an address."""
        return self.ledger.snapshot(address)

    def get_stats(self) -> BankStats:
        return BankStats(
            total_deposit_ops=self.ledger.total_deposit_ops,
            total_withdrawal_ops=self.ledger.total_withdrawal_ops,
            native_custody=self.ledger.native_custody,
            registered_account_count=self.ledger.registered_count(),
        )

    def native_price(self) -> int:
        """
        Current native price in quote units.

        Raises:
            InvalidPrice: If the feed answers with a non-positive price
        """
        return self.valuation.native_price()

    def registered_account_count(self) -> int:
        return self.ledger.registered_count()

    def registered_accounts(self) -> List[str]:
        """Depositor addresses in the order they were first credited."""
        return self.ledger.registered_accounts

    def total_quote_value(self) -> int:
        """Aggregate lifetime valuation, the figure the deposit cap is checked against."""
        return self.ledger.aggregate_quote_value()

    def external_custody(self) -> int:
        """Stable asset held by the bank according to the token ledger."""
        return self.token.balance_of(self.config.address)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that custody of each asset equals what the bank owes its accounts.

        See AccountLedger.verify_conservation() for the result format.
        """
        return self.ledger.verify_conservation({
            AssetKind.NATIVE: self.ledger.native_custody,
            AssetKind.EXTERNAL: self.external_custody(),
        })

    def subscribe(self, listener: Listener) -> None:
        """
        Call listener with every notification published from now on.

        Listeners run after the call has committed. Their exceptions are
        collected in listener_errors and never reach the caller.
        """
        self._listeners.append(listener)

    # ========================================================================
    # DEPOSITS (Mutating)
    # ========================================================================

    def deposit_native(self, caller: str, amount: int) -> int:
        """
        Credit native asset sent along with the call.

        Args:
            caller: Depositor
            amount: Raw native amount (18 decimals)

        Returns:
            Quote value credited to the caller's lifetime valuation

        Raises:
            ZeroAmount: If amount is zero
            InvalidPrice: If the feed answers with a non-positive price
            ExceedsCap: If the deposit would take the aggregate over the cap
        """
        with self._entry("deposit_native"):
            self._require_nonzero(amount)
            quote_value = self.valuation.value_of(AssetKind.NATIVE, amount)
            self._check_cap(caller, AssetKind.NATIVE, amount, quote_value)
            self.ledger.add_native_custody(amount)
            self._credit(caller, AssetKind.NATIVE, amount, quote_value)
        return quote_value

    def deposit_external(self, caller: str, amount: int) -> int:
        """
        Pull stable asset from the caller and credit it.

        The caller must have approved the bank's address for at least amount.
        The cap is checked before the pull, so a deposit that would exceed
        the cap never moves tokens.

        Returns:
            Quote value credited (amount rescaled from 6 to 8 decimals)

        Raises:
            ZeroAmount: If amount is zero
            ExceedsCap: If the deposit would take the aggregate over the cap
            ExternalTransferFailed: If the pull raises or answers False
        """
        with self._entry("deposit_external"):
            self._require_nonzero(amount)
            quote_value = self.valuation.value_of(AssetKind.EXTERNAL, amount)
            self._check_cap(caller, AssetKind.EXTERNAL, amount, quote_value)
            result = self._call(
                self.token.transfer_from,
                self.config.address, caller, self.config.address, amount,
            )
            if not result.ok:
                raise ExternalTransferFailed(
                    f"pull of {amount} from {caller} failed: {result.error or result.value!r}"
                )
            self._credit(caller, AssetKind.EXTERNAL, amount, quote_value)
        return quote_value

    def _check_cap(self, caller: str, asset: AssetKind, amount: int, quote_value: int) -> None:
        aggregate = self.ledger.aggregate_quote_value()
        if aggregate + quote_value > self.config.deposit_cap:
            # Published immediately: the failing call discards staged notifications.
            self._publish([Notification(
                sequence=UNSEQUENCED,
                kind=NotificationType.CAP_REACHED,
                account=caller,
                asset=asset,
                amount=amount,
                quote_value=quote_value,
                data={'aggregate': aggregate, 'cap': self.config.deposit_cap},
            )])
            raise ExceedsCap(
                f"{caller}: {aggregate} + {quote_value} > cap {self.config.deposit_cap}"
            )

    def _credit(self, caller: str, asset: AssetKind, amount: int, quote_value: int) -> None:
        self.ledger.credit(caller, asset, amount, quote_value)
        self.ledger.record_deposit_op()
        self._stage(NotificationType.DEPOSIT, caller, asset, amount, quote_value)
        self._maybe_reward(caller)

    def _maybe_reward(self, address: str) -> None:
        """
        Issue the loyalty credential once the lifetime valuation reaches the threshold.

        The flag is written before issuance is attempted and is not cleared
        if issuance fails, so a failed attempt is never retried.
        """
        issuer = self.reward_issuer
        if issuer is None:
            return
        if self.ledger.is_rewarded(address):
            return
        account = self.ledger.snapshot(address)
        if account.cumulative_quote_value < self.config.reward_threshold:
            return
        self.ledger.mark_rewarded(address)
        result = self._call(issuer.issue, self.config.address, address, self.config.reward_metadata)
        if result.ok:
            self._stage(
                NotificationType.REWARD_EARNED, address,
                quote_value=account.cumulative_quote_value,
                data={'credential': result.value},
            )
        elif self.verbose:
            print(f"⚠️  REWARD NOT ISSUED: {address}: {result.error or result.value!r}")

    # ========================================================================
    # WITHDRAWALS (Mutating)
    # ========================================================================

    def request_withdrawal(self, caller: str, asset: AssetKind, amount: int) -> int:
        """
        Reserve part of a live balance for a later completion.

        Requests accumulate: several requests before a completion add up to
        one pending total. No external call is made.

        Returns:
            The caller's new pending total for asset

        Raises:
            ZeroAmount: If amount is zero
            InsufficientBalance: If amount exceeds the live balance
            ExceedsMaxWithdrawal: If amount exceeds max_withdrawal_per_request
        """
        self._require_asset(asset)
        with self._entry(f"request_{asset.value}_withdrawal"):
            self._require_nonzero(amount)
            live = self.ledger.snapshot(caller)
            available = live.native_balance if asset is AssetKind.NATIVE else live.external_balance
            if amount > available:
                raise InsufficientBalance(
                    f"{caller} {asset.value}: requested {amount} > balance {available}"
                )
            if amount > self.config.max_withdrawal_per_request:
                raise ExceedsMaxWithdrawal(
                    f"{caller} {asset.value}: {amount} > max {self.config.max_withdrawal_per_request}"
                )
            self.ledger.reserve_for_withdrawal(caller, asset, amount)
            self.ledger.record_withdrawal_op()
            self._stage(NotificationType.WITHDRAWAL_REQUESTED, caller, asset, amount)
        snapshot = self.ledger.snapshot(caller)
        if asset is AssetKind.NATIVE:
            return snapshot.pending_native_withdrawal
        return snapshot.pending_external_withdrawal

    def complete_withdrawal(self, caller: str, asset: AssetKind) -> int:
        """
        Pay out everything the caller has pending in asset.

        If the payout fails, the pending amount is restored untouched.

        Returns:
            Amount paid out

        Raises:
            NothingPending: If nothing is pending
            ExternalTransferFailed: If the push-transfer raises or answers False
        """
        self._require_asset(asset)
        with self._entry(f"complete_{asset.value}_withdrawal"):
            amount = self.ledger.release_pending(caller, asset)
            self._push(asset, caller, amount)
            self._stage(NotificationType.WITHDRAWAL_COMPLETED, caller, asset, amount)
        return amount

    def request_native_withdrawal(self, caller: str, amount: int) -> int:
        return self.request_withdrawal(caller, AssetKind.NATIVE, amount)

    def request_external_withdrawal(self, caller: str, amount: int) -> int:
        return self.request_withdrawal(caller, AssetKind.EXTERNAL, amount)

    def complete_native_withdrawal(self, caller: str) -> int:
        return self.complete_withdrawal(caller, AssetKind.NATIVE)

    def complete_external_withdrawal(self, caller: str) -> int:
        return self.complete_withdrawal(caller, AssetKind.EXTERNAL)

    def _push(self, asset: AssetKind, recipient: str, amount: int) -> None:
        if asset is AssetKind.NATIVE:
            if amount > self.ledger.native_custody:
                raise ExternalTransferFailed(
                    f"native transfer of {amount} to {recipient} failed: "
                    f"bank holds {self.ledger.native_custody}"
                )
            self.ledger.remove_native_custody(amount)
            result = self._call(self.native.send, recipient, amount)
        else:
            result = self._call(self.token.transfer, self.config.address, recipient, amount)
        if not result.ok:
            raise ExternalTransferFailed(
                f"{asset.value} transfer of {amount} to {recipient} failed: "
                f"{result.error or result.value!r}"
            )

    # ========================================================================
    # ADMINISTRATION (Mutating, owner only)
    # ========================================================================

    def set_price_feed(self, caller: str, feed: PriceOracle) -> None:
        """
        Point the bank at a different price feed.

        Raises:
            Unauthorized: If caller is not the owner
        """
        with self._entry("set_price_feed"):
            self._access.require_owner(caller, "set_price_feed")
            if feed is None:
                raise ValueError("feed cannot be None")
            previous = self.valuation.feed
            self.valuation = ValuationEngine(feed)
            self._stage(
                NotificationType.PRICE_FEED_UPDATED, caller,
                data={'previous': repr(previous), 'current': repr(feed)},
            )

    def set_reward_issuer(self, caller: str, issuer: Optional[RewardIssuer]) -> None:
        """
        Configure the credential registry (None disables rewards).

        Raises:
            Unauthorized: If caller is not the owner
        """
        with self._entry("set_reward_issuer"):
            self._access.require_owner(caller, "set_reward_issuer")
            self.reward_issuer = issuer
            self._stage(
                NotificationType.REWARD_ISSUER_UPDATED, caller,
                data={'issuer': repr(issuer)},
            )

    def emergency_withdraw_native(self, caller: str, recipient: str, amount: int) -> None:
        """
        Send native asset held by the bank to any recipient.

        Bypasses the withdrawal protocol and leaves account balances as they
        are, so custody can end up below what accounts are owed.

        Raises:
            Unauthorized: If caller is not the owner
            ZeroAmount: If amount is zero
            InsufficientBalance: If the bank holds less than amount
            ExternalTransferFailed: If the push-transfer fails
        """
        with self._entry("emergency_withdraw_native"):
            self._access.require_owner(caller, "emergency_withdraw_native")
            self._require_nonzero(amount)
            if amount > self.ledger.native_custody:
                raise InsufficientBalance(
                    f"bank native custody {self.ledger.native_custody} < {amount}"
                )
            self._push(AssetKind.NATIVE, recipient, amount)
            self._stage(
                NotificationType.EMERGENCY_WITHDRAWAL, recipient, AssetKind.NATIVE, amount,
                data={'by': caller},
            )

    def emergency_withdraw_external(self, caller: str, recipient: str, amount: int) -> None:
        """
        Send stable asset held by the bank to any recipient.

        Raises:
            Unauthorized: If caller is not the owner
            ZeroAmount: If amount is zero
            InsufficientBalance: If the bank holds less than amount
            ExternalTransferFailed: If the token transfer fails
        """
        with self._entry("emergency_withdraw_external"):
            self._access.require_owner(caller, "emergency_withdraw_external")
            self._require_nonzero(amount)
            held = self.external_custody()
            if amount > held:
                raise InsufficientBalance(f"bank external custody {held} < {amount}")
            self._push(AssetKind.EXTERNAL, recipient, amount)
            self._stage(
                NotificationType.EMERGENCY_WITHDRAWAL, recipient, AssetKind.EXTERNAL, amount,
                data={'by': caller},
            )

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @contextmanager
    def _entry(self, operation: str) -> Iterator[None]:
        """
        Guard, checkpoint and notification staging for one mutating call.

        Staged notifications are published only if the call commits. Any
        exception is reported as a rejection and re-raised after rollback.
        """
        with self._guard.hold(operation):
            staged: List[Notification] = []
            self._staged = staged
            try:
                with self.ledger.atomic():
                    yield
            except Exception as exc:
                if self.verbose:
                    print(f"✗ REJECTED: {operation}: {type(exc).__name__}: {exc}")
                raise
            finally:
                self._staged = None
            self._publish(staged)

    @staticmethod
    def _call(fn: Callable[..., Any], *args: Any) -> CallResult:
        """
        Call into external code, turning any exception into a failed CallResult.

        A ReentrantCall raised by the callee trying to re-enter the bank is
        caught here too: the callee's call fails, not the bank's.
        """
        try:
            value = fn(*args)
        except Exception as exc:
            return CallResult(success=False, error=f"{type(exc).__name__}: {exc}")
        return CallResult(success=True, value=value)

    @staticmethod
    def _require_nonzero(amount: int) -> None:
        if require_amount(amount) == 0:
            raise ZeroAmount("amount must be greater than zero")

    @staticmethod
    def _require_asset(asset: AssetKind) -> None:
        if not isinstance(asset, AssetKind):
            raise ValueError(f"asset must be AssetKind, got {asset!r}")

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence

    def _stage(
        self,
        kind: NotificationType,
        account: str,
        asset: Optional[AssetKind] = None,
        amount: int = 0,
        quote_value: int = 0,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._staged.append(Notification(
            sequence=UNSEQUENCED,
            kind=kind,
            account=account,
            asset=asset,
            amount=amount,
            quote_value=quote_value,
            data=data or {},
        ))

    def _publish(self, batch: List[Notification]) -> None:
        """
        Sequence and record a batch, then fan it out to listeners.

        The whole batch reaches the audit trail before any listener runs.
        A listener that raises is recorded in listener_errors and skipped;
        it never changes the outcome of the call that produced the batch.
        """
        published = [replace(n, sequence=self._take_sequence()) for n in batch]
        self.notifications.extend(published)
        for notification in published:
            if self.verbose:
                icon = "⚠️ " if notification.kind is NotificationType.CAP_REACHED else "✓"
                print(f"{icon} {notification!r}")
            for listener in self._listeners:
                try:
                    listener(notification)
                except Exception as exc:
                    error = f"{type(exc).__name__}: {exc}"
                    self.listener_errors.append((notification, error))
                    if self.verbose:
                        print(f"⚠️  LISTENER FAILED: #{notification.sequence}: {error}")
