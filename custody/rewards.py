"""
rewards.py - Loyalty credential registry

A conventional non-fungible registry: each credential has a sequential id,
one holder and a metadata reference. Only the configured minter (the bank's
address) may issue, and the registry owner chooses the minter.
"""

from __future__ import annotations
from typing import Dict, List, Optional


class CredentialRegistry:
    """
    Owner-gated credential issuance.

    Example:
        registry = CredentialRegistry(owner="admin")
        registry.set_minter("admin", "bank")
        token_id = registry.issue("bank", "alice", "ipfs://.../metadata.json")
    """

    def __init__(self, owner: str, minter: Optional[str] = None, name: str = "Custody Loyalty"):
        self.owner = owner
        self.minter = minter
        self.name = name
        self.holders: Dict[int, str] = {}
        self.metadata: Dict[int, str] = {}
        self._next_id = 1

    def set_minter(self, sender: str, minter: str) -> None:
        """
        Raises:
            PermissionError: If sender is not the registry owner
        """
        if sender != self.owner:
            raise PermissionError(f"{sender} is not the registry owner")
        self.minter = minter

    def issue(self, sender: str, recipient: str, metadata_reference: str) -> int:
        """
        Issue a new credential to recipient and return its id.

        Raises:
            PermissionError: If sender is not the minter
        """
        if self.minter is None or sender != self.minter:
            raise PermissionError(f"{sender} may not issue {self.name} credentials")
        token_id = self._next_id
        self._next_id += 1
        self.holders[token_id] = recipient
        self.metadata[token_id] = metadata_reference
        return token_id

    def owner_of(self, token_id: int) -> str:
        """
        Raises:
            KeyError: If no such credential exists
        """
        return self.holders[token_id]

    def tokens_of(self, holder: str) -> List[int]:
        return sorted(tid for tid, h in self.holders.items() if h == holder)

    def balance_of(self, holder: str) -> int:
        return len(self.tokens_of(holder))
