"""Tests for order totals."""

import logging
from decimal import Decimal

import pytest

from printpos.aggregator import Priority, aggregate, priority_fee
from printpos.errors import InvalidInputError
from printpos.line_items import rebuild_line_item


@pytest.fixture
def items():
    """Two lines adding up to 650000."""
    return [
        rebuild_line_item({"name": "Cetak A", "qty": 1, "unit_price": 400000}),
        rebuild_line_item({"name": "Cetak B", "qty": 1, "unit_price": 250000}),
    ]


class TestAggregate:
    def test_grand_total(self, items):
        totals = aggregate(items, discount=70000, service_fee=20000)
        assert totals.subtotal == Decimal("650000")
        assert totals.discount == Decimal("70000")
        assert totals.service_fee == Decimal("20000")
        assert totals.grand_total == Decimal("600000")
        assert totals.discount_clamped is False

    def test_breakdown_dict(self, items):
        totals = aggregate(items, discount=70000, service_fee=20000)
        assert totals.to_dict() == {
            "subtotal": 650000,
            "discount": 70000,
            "service_fee": 20000,
            "grand_total": 600000,
        }

    def test_discount_above_subtotal_is_clamped(self, items, caplog):
        with caplog.at_level(logging.WARNING, logger="printpos.aggregator"):
            totals = aggregate(items, discount=900000)
        assert totals.discount == Decimal("650000")
        assert totals.grand_total == Decimal("0")
        assert totals.discount_clamped is True
        assert totals.requested_discount == Decimal("900000")
        assert "clamped" in caplog.text

    def test_negative_discount_is_clamped_to_zero(self, items):
        totals = aggregate(items, discount=-5000)
        assert totals.discount == Decimal("0")
        assert totals.grand_total == Decimal("650000")

    def test_fee_still_charged_when_discount_covers_subtotal(self, items):
        totals = aggregate(items, discount=650000, service_fee=15000)
        assert totals.grand_total == Decimal("15000")

    def test_empty_order(self):
        totals = aggregate([])
        assert totals.subtotal == 0
        assert totals.grand_total == 0

    def test_negative_service_fee_rejected(self, items):
        with pytest.raises(InvalidInputError):
            aggregate(items, service_fee=-1)

    def test_non_numeric_discount_rejected(self, items):
        with pytest.raises(InvalidInputError):
            aggregate(items, discount="banyak")


class TestPriorityFee:
    @pytest.mark.parametrize(
        "priority, fee",
        [
            (Priority.STANDARD, Decimal("0")),
            (Priority.EXPRESS, Decimal("15000")),
            ("URGENT", Decimal("30000")),
        ],
    )
    def test_presets(self, priority, fee):
        assert priority_fee(priority) == fee

    def test_unknown_priority(self):
        with pytest.raises(InvalidInputError):
            priority_fee("KILAT")
