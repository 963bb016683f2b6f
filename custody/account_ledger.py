"""
account_ledger.py - Per-account balances and aggregate bank state

The AccountLedger is the only structure holding mutable balances. The Bank
decides WHEN to mutate it; the ledger decides WHETHER a mutation is legal
(balances can never go below zero) and keeps the registry of depositors.

Key responsibilities:
    - Lazily created accounts, never destroyed
    - Registration of an address on its first credit (append-only, ordered)
    - Two-phase withdrawal bookkeeping (reserve, then release)
    - Global counters and the live native custody total
    - Commit-or-nothing checkpoints for the Bank's entry points
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple

from .core import (
    Account, AccountSnapshot, AssetKind,
    InsufficientBalance, NothingPending,
    require_amount,
)


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Frozen copy of every mutable field of an AccountLedger."""
    accounts: Tuple[Tuple[str, Account], ...]
    registered: Tuple[str, ...]
    total_deposit_ops: int
    total_withdrawal_ops: int
    native_custody: int


class AccountLedger:
    """
    Map of per-account balances plus the bank-wide aggregate state.

    Invariants:
        - Every balance and pending field is a non-negative int
        - cumulative_quote_value never decreases
        - An address appears in registered_accounts at most once, appended
          by the credit that takes its cumulative_quote_value off zero
        - A pending field grows only through reserve_for_withdrawal() and
          drops to exactly zero only through release_pending()

    Thread Safety:
        Not thread-safe. The Bank serializes access through its guard.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._registered: List[str] = []
        self.total_deposit_ops: int = 0
        self.total_withdrawal_ops: int = 0
        self.native_custody: int = 0

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def snapshot(self, address: str) -> AccountSnapshot:
        """Immutable view of an account; unknown addresses read as all-zero."""
        account = self._accounts.get(address)
        return AccountSnapshot.of(address, account if account is not None else Account())

    @property
    def registered_accounts(self) -> List[str]:
        """Registered addresses in registration order (a copy)."""
        return list(self._registered)

    def registered_count(self) -> int:
        return len(self._registered)

    def is_rewarded(self, address: str) -> bool:
        account = self._accounts.get(address)
        return account is not None and account.rewarded

    def aggregate_quote_value(self) -> int:
        """
        Sum of cumulative_quote_value over every registered account.

        Walks the whole registry on every call, so cost grows with the
        number of distinct depositors the bank has ever seen.
        """
        total = 0
        for address in self._registered:
            total += self._accounts[address].cumulative_quote_value
        return total

    def liabilities(self, asset: AssetKind) -> int:
        """Everything the bank owes in one asset: live balances plus pending withdrawals."""
        return sum(
            account.balance(asset) + account.pending(asset)
            for _, account in sorted(self._accounts.items())
        )

    # ========================================================================
    # MUTATION
    # ========================================================================

    def _account(self, address: str) -> Account:
        account = self._accounts.get(address)
        if account is None:
            account = Account()
            self._accounts[address] = account
        return account

    def credit(self, address: str, asset: AssetKind, amount: int, quote_value: int) -> None:
        """
        Add a deposit to an account.

        Does not check the deposit cap; the caller does that first.

        Args:
            address: Depositor
            asset: Which balance receives amount
            amount: Raw amount of asset
            quote_value: Valuation of amount, added to cumulative_quote_value
        """
        require_amount(amount)
        require_amount(quote_value, "quote_value")
        account = self._account(address)
        if account.cumulative_quote_value == 0 and quote_value > 0:
            self._registered.append(address)
        if asset is AssetKind.NATIVE:
            account.native_balance += amount
        else:
            account.external_balance += amount
        account.cumulative_quote_value += quote_value

    def reserve_for_withdrawal(self, address: str, asset: AssetKind, amount: int) -> None:
        """
        Move amount from the live balance into the pending-withdrawal field.

        Raises:
            InsufficientBalance: If amount exceeds the live balance
        """
        require_amount(amount)
        existing = self._accounts.get(address)
        live = existing.balance(asset) if existing is not None else 0
        if amount > live:
            raise InsufficientBalance(
                f"{address} {asset.value}: requested {amount} > balance {live}"
            )
        account = self._account(address)
        if asset is AssetKind.NATIVE:
            account.native_balance -= amount
            account.pending_native_withdrawal += amount
        else:
            account.external_balance -= amount
            account.pending_external_withdrawal += amount

    def release_pending(self, address: str, asset: AssetKind) -> int:
        """
        Zero the pending field and return what it held.

        Raises:
            NothingPending: If nothing is pending for this account and asset
        """
        account = self._accounts.get(address)
        amount = account.pending(asset) if account is not None else 0
        if amount == 0:
            raise NothingPending(f"{address} {asset.value}: nothing pending")
        if asset is AssetKind.NATIVE:
            account.pending_native_withdrawal = 0
        else:
            account.pending_external_withdrawal = 0
        return amount

    def mark_rewarded(self, address: str) -> None:
        """Set the one-time reward flag. There is no way to clear it."""
        self._account(address).rewarded = True

    def record_deposit_op(self) -> None:
        self.total_deposit_ops += 1

    def record_withdrawal_op(self) -> None:
        self.total_withdrawal_ops += 1

    def add_native_custody(self, amount: int) -> None:
        self.native_custody += require_amount(amount)

    def remove_native_custody(self, amount: int) -> None:
        """
        Raises:
            InsufficientBalance: If the bank holds less native asset than amount
        """
        require_amount(amount)
        if amount > self.native_custody:
            raise InsufficientBalance(
                f"bank native custody {self.native_custody} < {amount}"
            )
        self.native_custody -= amount

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    def checkpoint(self) -> Checkpoint:
        """Capture every mutable field for a later rollback()."""
        return Checkpoint(
            accounts=tuple((addr, acc.copy()) for addr, acc in self._accounts.items()),
            registered=tuple(self._registered),
            total_deposit_ops=self.total_deposit_ops,
            total_withdrawal_ops=self.total_withdrawal_ops,
            native_custody=self.native_custody,
        )

    def rollback(self, checkpoint: Checkpoint) -> None:
        """Restore the ledger exactly to a checkpoint, dropping accounts created since."""
        self._accounts = {addr: acc.copy() for addr, acc in checkpoint.accounts}
        self._registered = list(checkpoint.registered)
        self.total_deposit_ops = checkpoint.total_deposit_ops
        self.total_withdrawal_ops = checkpoint.total_withdrawal_ops
        self.native_custody = checkpoint.native_custody

    @contextmanager
    def atomic(self) -> Iterator[AccountLedger]:
        """
        Run a block with commit-or-nothing semantics.

        Any exception escaping the block restores the state captured on
        entry and is then re-raised unchanged.

        Example:
            with ledger.atomic():
                amount = ledger.release_pending("alice", AssetKind.NATIVE)
                push_or_raise(amount)
        """
        saved = self.checkpoint()
        try:
            yield self
        except BaseException:
            self.rollback(saved)
            raise

    def clone(self) -> AccountLedger:
        """
        Create a fully independent copy of this ledger.

        Modifications to the clone never affect the original, and vice versa.
        """
        cloned = AccountLedger()
        cloned.rollback(self.checkpoint())
        return cloned

    # ========================================================================
    # AUDIT
    # ========================================================================

    def verify_conservation(self, custody: Dict[AssetKind, int]) -> Dict[str, Any]:
        """
        Compare what the bank holds against what it owes, per asset.

        Without emergency withdrawals every deposit is matched by custody and
        every completed withdrawal removes exactly what it pays out, so custody
        equals liabilities.

        Args:
            custody: Amount of each asset actually held by the bank

        Returns:
            Dict with keys:
            - 'valid': bool - True if custody equals liabilities for every asset
            - 'liabilities': Dict[AssetKind, int]
            - 'custody': Dict[AssetKind, int]
            - 'discrepancies': List[Dict] with asset, custody, liabilities, difference

        Example:
            result = ledger.verify_conservation({AssetKind.NATIVE: ledger.native_custody,
                                                 AssetKind.EXTERNAL: token.balance_of("bank")})
            assert result['valid'], result['discrepancies']
        """
        liabilities = {asset: self.liabilities(asset) for asset in AssetKind}
        discrepancies = []
        for asset in AssetKind:
            held = custody.get(asset, 0)
            owed = liabilities[asset]
            if held != owed:
                discrepancies.append({
                    'asset': asset,
                    'custody': held,
                    'liabilities': owed,
                    'difference': held - owed,
                })
        return {
            'valid': len(discrepancies) == 0,
            'liabilities': liabilities,
            'custody': dict(custody),
            'discrepancies': discrepancies,
        }
