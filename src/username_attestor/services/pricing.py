"""Pricing table — identifier length to required payment amount."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from username_attestor.config.settings import PriceThreshold


class PricingTable:
    """Length-threshold lookup.

    The price of an identifier is the amount of the last threshold (in
    ascending ``min_length`` order) whose ``min_length`` does not exceed the
    identifier's length. No matching threshold means 0, i.e. not for sale.
    """

    def __init__(self, thresholds: Iterable[PriceThreshold]) -> None:
        self._thresholds: list[tuple[int, int]] = sorted(
            (t.min_length, t.amount) for t in thresholds
        )

    def price(self, identifier: str) -> int:
        if not identifier:
            return 0
        length = len(identifier)
        amount = 0
        for min_length, threshold_amount in self._thresholds:
            if min_length > length:
                break
            amount = threshold_amount
        return amount

    def price_lines(self) -> list[tuple[int, int]]:
        """``(min_length, amount)`` pairs in ascending order, for display."""
        return list(self._thresholds)
