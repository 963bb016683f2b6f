"""
guard.py - Serialization and authorization primitives

ReentrancyGuard serializes every mutating entry point of a Bank: while one
call is in flight (including while it waits on a price feed, a token or a
reward registry), any other mutating call fails immediately with
ReentrantCall instead of observing half-applied state.

AccessControl pins the administrative identity at construction.
"""

from __future__ import annotations
from typing import Optional

from .core import ReentrantCall, Unauthorized


class ReentrancyGuard:
    """
    Non-blocking process-wide mutex used as a context manager.

    Acquisition never waits: a held guard fails the caller at once. The
    guard is released on every exit path, including exceptions.

    Example:
        guard = ReentrancyGuard()
        with guard.hold("deposit_native"):
            ...
    """

    def __init__(self):
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def holder(self) -> Optional[str]:
        """Name of the entry point currently holding the guard."""
        return self._holder

    def acquire(self, operation: str) -> None:
        """
        Raises:
            ReentrantCall: If the guard is already held
        """
        if self._holder is not None:
            raise ReentrantCall(
                f"{operation} called while {self._holder} is in progress"
            )
        self._holder = operation

    def release(self) -> None:
        self._holder = None

    def hold(self, operation: str) -> _Held:
        return _Held(self, operation)


class _Held:
    """Context manager returned by ReentrancyGuard.hold()."""

    __slots__ = ("_guard", "_operation")

    def __init__(self, guard: ReentrancyGuard, operation: str):
        self._guard = guard
        self._operation = operation

    def __enter__(self) -> ReentrancyGuard:
        self._guard.acquire(self._operation)
        return self._guard

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._guard.release()
        return False


class AccessControl:
    """Fixed owner identity; set once, never rotated."""

    __slots__ = ("_owner",)

    def __init__(self, owner: str):
        if not owner or not owner.strip():
            raise ValueError("owner cannot be empty")
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def require_owner(self, caller: str, operation: str) -> None:
        """
        Raises:
            Unauthorized: If caller is not the owner
        """
        if caller != self._owner:
            raise Unauthorized(f"{caller} may not call {operation}")
