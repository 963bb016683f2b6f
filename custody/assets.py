"""
assets.py - In-memory asset collaborators

Reference implementations of the two asset-moving interfaces the bank
depends on:

- StableToken: a conventional fungible-token ledger (balances, allowances,
  pull via transfer_from, push via transfer), answering False rather than
  raising when a transfer cannot be honoured
- NativeHost: the host's native push-transfer; recipients may refuse
  payment or run arbitrary code on receipt

Both are deterministic and suitable for simulations and tests.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, Set, Tuple

from .core import EXTERNAL_DECIMALS, require_amount


class StableToken:
    """
    Fungible token with owner-gated minting.

    Example:
        usd = StableToken("USDX", minter="treasury")
        usd.mint("treasury", "alice", 500 * 10**6)
        usd.approve("alice", "bank", 500 * 10**6)
        usd.transfer_from("bank", "alice", "bank", 500 * 10**6)  # True
    """

    def __init__(self, symbol: str, minter: str, decimals: int = EXTERNAL_DECIMALS):
        if not symbol or not symbol.strip():
            raise ValueError("symbol cannot be empty")
        self.symbol = symbol
        self.minter = minter
        self.decimals = decimals
        self.balances: Dict[str, int] = defaultdict(int)
        self.allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self.total_supply = 0

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def mint(self, sender: str, recipient: str, amount: int) -> None:
        """
        Raises:
            PermissionError: If sender is not the minter
        """
        require_amount(amount)
        if sender != self.minter:
            raise PermissionError(f"{sender} is not the {self.symbol} minter")
        self.balances[recipient] += amount
        self.total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self.allowances[(owner, spender)] = require_amount(amount)
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        require_amount(amount)
        if self.balances.get(sender, 0) < amount:
            return False
        self._move(sender, recipient, amount)
        return True

    def transfer_from(self, sender: str, owner: str, recipient: str, amount: int) -> bool:
        """Move amount from owner to recipient against sender's allowance."""
        require_amount(amount)
        if self.allowances.get((owner, sender), 0) < amount:
            return False
        if self.balances.get(owner, 0) < amount:
            return False
        self.allowances[(owner, sender)] -= amount
        self._move(owner, recipient, amount)
        return True

    def _move(self, source: str, dest: str, amount: int) -> None:
        self.balances[source] -= amount
        self.balances[dest] += amount

    def __repr__(self):
        return f"StableToken({self.symbol}, supply={self.total_supply})"


# Code run by a recipient when native asset reaches it.
ReceiveHook = Callable[[int], None]


class NativeHost:
    """
    Native push-transfer facility.

    Tracks what each recipient has been paid out of the bank. A recipient
    can be configured to refuse payment (send() raises) or to run a hook on
    receipt; an exception raised by the hook makes the send fail.
    """

    def __init__(self):
        self.received: Dict[str, int] = defaultdict(int)
        self.refusing: Set[str] = set()
        self.hooks: Dict[str, ReceiveHook] = {}

    def refuse(self, address: str) -> None:
        """Make every future send to address fail."""
        self.refusing.add(address)

    def accept(self, address: str) -> None:
        self.refusing.discard(address)

    def on_receive(self, address: str, hook: ReceiveHook) -> None:
        """Run hook(amount) whenever address is paid."""
        self.hooks[address] = hook

    def send(self, recipient: str, amount: int) -> bool:
        """
        Raises:
            ConnectionRefusedError: If the recipient refuses payment
        """
        require_amount(amount)
        if recipient in self.refusing:
            raise ConnectionRefusedError(f"{recipient} refused {amount}")
        hook = self.hooks.get(recipient)
        if hook is not None:
            hook(amount)
        self.received[recipient] += amount
        return True

    def paid_to(self, address: str) -> int:
        return self.received.get(address, 0)
