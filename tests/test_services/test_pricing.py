"""Tests for the identifier pricing table."""

from __future__ import annotations

from username_attestor.config.settings import PriceThreshold, PricingConfig
from username_attestor.services.pricing import PricingTable


def _table(*pairs: tuple[int, int]) -> PricingTable:
    return PricingTable(PriceThreshold(min_length=n, amount=a) for n, a in pairs)


class TestDefaultTable:
    def test_short_identifiers_not_for_sale(self) -> None:
        table = PricingTable(PricingConfig().thresholds)
        assert table.price("") == 0
        assert table.price("a") == 0
        assert table.price("ab") == 0

    def test_thresholds(self) -> None:
        table = PricingTable(PricingConfig().thresholds)
        assert table.price("bob") == 1450
        assert table.price("anna") == 1750
        assert table.price("alice") == 2050
        assert table.price("a" * 32) == 2050


class TestPricingTable:
    def test_unsorted_thresholds_are_sorted(self) -> None:
        table = _table((5, 30), (1, 10), (3, 20))
        assert table.price("ab") == 10
        assert table.price("abc") == 20
        assert table.price("abcdef") == 30
        assert table.price_lines() == [(1, 10), (3, 20), (5, 30)]

    def test_empty_identifier_is_free_even_with_zero_threshold(self) -> None:
        table = _table((0, 500))
        assert table.price("") == 0
        assert table.price("x") == 500

    def test_non_decreasing_in_length(self) -> None:
        table = _table((2, 100), (4, 300), (8, 700))
        prices = [table.price("x" * n) for n in range(0, 40)]
        assert prices == sorted(prices)

    def test_no_thresholds(self) -> None:
        assert PricingTable([]).price("anything") == 0
