"""
valuation.py - Quote-currency valuation of deposits

Provides the price feeds and the valuation engine the bank uses to express
both assets in the common quote currency.

Classes:
- StaticPriceFeed: a single settable answer
- TimeSeriesPriceFeed: answers from a price history at a logical clock
- ValuationEngine: converts raw asset amounts into quote units

Prices are quote units (8 decimals) per whole native unit (18 decimals).
The stable asset is valued at a 1:1 peg and never touches a feed.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime
from typing import List, Optional, Tuple

from .core import (
    AssetKind, PriceOracle, InvalidPrice,
    QUOTE_DECIMALS, NATIVE_DECIMALS, EXTERNAL_DECIMALS,
    require_amount,
)


class StaticPriceFeed:
    """
    Price feed with one answer, changed only by update_price().

    Counts how many times it was queried so callers can check that a
    code path did or did not consult the feed.
    """

    def __init__(self, answer: int):
        """
        Initialize with a raw answer.

        Args:
            answer: Quote units per whole native unit (may be non-positive
                    to model a broken feed)
        """
        self.answer = answer
        self.queries = 0

    def latest_answer(self) -> int:
        self.queries += 1
        return self.answer

    def update_price(self, answer: int) -> None:
        """Replace the current answer."""
        self.answer = answer

    def __repr__(self):
        return f"StaticPriceFeed(answer={self.answer})"


class TimeSeriesPriceFeed:
    """
    Price feed replaying a history of observations.

    The answer is the most recent observation at or before the feed's
    clock, which only moves forward via advance_time(). Before the first
    observation the feed answers 0, which the bank rejects as InvalidPrice.
    """

    def __init__(
        self,
        observations: Optional[List[Tuple[datetime, int]]] = None,
        start_time: Optional[datetime] = None,
    ):
        """
        Initialize the feed.

        Args:
            observations: Optional list of (timestamp, answer) tuples
            start_time: Initial clock (default: 1970-01-01)

        Example:
            feed = TimeSeriesPriceFeed([
                (datetime(2025, 1, 1), 2000 * 10**8),
                (datetime(2025, 1, 2), 2100 * 10**8),
            ], start_time=datetime(2025, 1, 1))
        """
        self.history: List[Tuple[datetime, int]] = sorted(observations or [], key=lambda x: x[0])
        self._timestamps: List[datetime] = [ts for ts, _ in self.history]
        self._current_time = start_time or datetime(1970, 1, 1)
        self.queries = 0

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def add_observation(self, timestamp: datetime, answer: int) -> None:
        """Insert an observation, keeping the history in timestamp order."""
        idx = bisect_right(self._timestamps, timestamp)
        self._timestamps.insert(idx, timestamp)
        self.history.insert(idx, (timestamp, answer))

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the clock forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def latest_answer(self) -> int:
        self.queries += 1
        idx = bisect_right(self._timestamps, self._current_time)
        if idx == 0:
            return 0
        return self.history[idx - 1][1]

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, at={self._current_time})"


class ValuationEngine:
    """
    Converts raw asset amounts into quote units.

    Integer arithmetic only; any remainder is truncated. The feed is read
    once per native valuation and never written.
    """

    NATIVE_SCALE = 10 ** NATIVE_DECIMALS
    EXTERNAL_TO_QUOTE = 10 ** (QUOTE_DECIMALS - EXTERNAL_DECIMALS)

    def __init__(self, feed: PriceOracle):
        self.feed = feed

    def native_price(self) -> int:
        """
        Query the feed and return its answer.

        Raises:
            InvalidPrice: If the answer is not strictly positive
        """
        price = self.feed.latest_answer()
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise InvalidPrice(f"price feed answered {price!r}")
        return price

    def value_of_native(self, amount: int) -> int:
        """
        Quote value of a raw native amount: amount * price // 10**18.

        Raises:
            InvalidPrice: If the feed answer is not strictly positive
        """
        require_amount(amount)
        return amount * self.native_price() // self.NATIVE_SCALE

    def value_of_external(self, amount: int) -> int:
        """Quote value of a raw stable amount at the 1:1 peg (6 to 8 decimals)."""
        require_amount(amount)
        return amount * self.EXTERNAL_TO_QUOTE

    def value_of(self, asset: AssetKind, amount: int) -> int:
        """Dispatch on AssetKind."""
        if asset is AssetKind.NATIVE:
            return self.value_of_native(amount)
        return self.value_of_external(amount)

