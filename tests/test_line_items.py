"""Tests for line item construction."""

import logging
from decimal import Decimal

import pytest

from printpos.errors import InvalidInputError
from printpos.line_items import (
    build_line_item,
    charges_from_raw,
    describe_specs,
    rebuild_line_item,
    stored_dimension,
    resolve_quantity,
    resolve_raw_unit_price,
)
from printpos.models import Selection


class TestResolveQuantity:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ({}, 1),
            ({"qty": 5}, 5),
            ({"quantity": 3}, 3),
            ({"qty": 5, "quantity": 3}, 5),
            ({"qty": None, "quantity": 3}, 3),
            ({"qty": "4"}, 4),
        ],
    )
    def test_precedence(self, raw, expected):
        assert resolve_quantity(raw) == expected

    @pytest.mark.parametrize("raw", [{"qty": 0}, {"qty": -2}, {"quantity": 2.5}, {"qty": "abc"}])
    def test_rejects_unusable_values(self, raw):
        with pytest.raises(InvalidInputError):
            resolve_quantity(raw)


class TestResolveRawUnitPrice:
    def test_zero_unit_price_backfilled_from_subtotal(self):
        raw = {"subtotal": 200000, "qty": 10, "unitPrice": 0}
        assert resolve_raw_unit_price(raw, 10) == Decimal("20000")

    def test_explicit_unit_price_wins(self):
        assert resolve_raw_unit_price({"unitPrice": 5000, "price": 7000}, 1) == Decimal("5000")

    def test_price_fallback(self):
        assert resolve_raw_unit_price({"price": 7000}, 1) == Decimal("7000")

    def test_total_price_before_subtotal(self):
        raw = {"totalPrice": 100, "subtotal": 50}
        assert resolve_raw_unit_price(raw, 3) == Decimal("33.33")

    def test_nothing_to_go_on(self):
        assert resolve_raw_unit_price({}, 1) == Decimal("0")


class TestDescribeSpecs:
    def test_variant_info_wins(self):
        specs = {"variant_info": "Bahan Korea 3m x 1m", "inputs": {"length": 3, "width": 1}}
        assert describe_specs(specs) == "Bahan Korea 3m x 1m"

    def test_summary_before_dimensions(self):
        specs = {"summary": "Flexi 280gr", "inputs": {"length": 3, "width": 1}}
        assert describe_specs(specs) == "Flexi 280gr"

    def test_derived_from_inputs(self):
        assert describe_specs({"inputs": {"length": 1.5, "width": 1}}) == "1.5m x 1m"

    def test_empty(self):
        assert describe_specs({}) == ""
        assert describe_specs({"variant_info": "", "inputs": {"length": 2}}) == ""

    def test_unparseable_dimension_shown_as_written(self):
        assert describe_specs({"inputs": {"length": "3,5", "width": 1}}) == "3,5m x 1m"


class TestStoredDimension:
    def test_number(self):
        assert stored_dimension({"inputs": {"length": "2.5"}}, "length") == Decimal("2.5")

    def test_missing(self):
        assert stored_dimension({}, "width") is None

    def test_unparseable_value_is_none_with_warning(self):
        warnings = []
        assert stored_dimension({"inputs": {"length": "3,5"}}, "length", warnings) is None
        assert warnings == ["length '3,5' is not a number; kept as text"]


class TestChargesFromRaw:
    def test_entries_with_amount_are_charges(self):
        charges = charges_from_raw(
            [{"id": "lam", "name": "Laminasi", "unit_price": 500, "quantity": 4, "amount": 2000}]
        )
        assert charges[0].amount == Decimal("2000")
        assert charges[0].quantity == 4

    def test_older_entries_are_zero_cost_references(self):
        charges = charges_from_raw(["Mata Ayam", {"id": "lam", "name": "Laminasi", "price": 500}])
        assert [c.name for c in charges] == ["Mata Ayam", "Laminasi"]
        assert all(c.amount == 0 for c in charges)
        assert charges[1].id == "lam"


class TestBuildLineItem:
    def test_area_item_with_finishing_and_note(self, catalog):
        selection = Selection(
            quantity=2,
            length=Decimal("3"),
            width=Decimal("1"),
            variant="Flexi Korea",
            finishings=[catalog.finishing("mata-ayam")],
        )
        item = build_line_item(catalog.product("spanduk"), selection, {"notes": "Jahit keliling"})

        assert item.quantity == 2
        assert item.unit_price == Decimal("135000")
        assert item.subtotal == Decimal("280000")
        assert item.subtotal == item.unit_price * item.quantity + item.finishing_total
        assert item.notes == "Jahit keliling"
        assert item.specs["note"] == "Jahit keliling"
        assert item.specs["finishing_list"] == ["Mata Ayam"]
        assert item.specs["inputs"]["length"] == 3
        assert item.description == "Flexi Korea 3m x 1m"
        assert item.variant == "Flexi Korea"
        assert item.pricing_model == "AREA"

    def test_raw_quantity_overrides_selection(self, catalog):
        item = build_line_item(catalog.product("stiker"), Selection(quantity=2), {"qty": 5})
        assert item.quantity == 5
        assert item.subtotal == Decimal("125000")

    def test_raw_qty_wins_over_quantity(self, catalog):
        item = build_line_item(catalog.product("stiker"), Selection(), {"qty": 5, "quantity": 3})
        assert item.quantity == 5

    def test_cached_subtotal_never_trusted(self, catalog):
        item = build_line_item(
            catalog.product("stiker"), Selection(quantity=4), {"subtotal": 1, "totalPrice": 2}
        )
        assert item.subtotal == Decimal("100000")

    def test_variant_info_in_raw_specs_drives_description(self, catalog):
        item = build_line_item(
            catalog.product("stiker"), Selection(), {"specs": {"variant_info": "Cutting A3+"}}
        )
        assert item.description == "Cutting A3+"

    def test_finishing_names_are_merged(self, catalog):
        selection = Selection(
            length=Decimal("3"), width=Decimal("1"), finishings=[catalog.finishing("mata-ayam")]
        )
        item = build_line_item(
            catalog.product("spanduk"), selection, {"specs": {"finishing_list": ["Jahit"]}}
        )
        assert item.specs["finishing_list"] == ["Jahit", "Mata Ayam"]

    def test_advanced_item_includes_per_unit_text_charge(self, catalog):
        selection = Selection(
            quantity=12, group_selections={"sablon": ["1 Warna"]}, text_inputs={"nama": "Budi"}
        )
        item = build_line_item(catalog.product("kaos"), selection)
        assert item.unit_price == Decimal("85000")
        assert item.subtotal == Decimal("85000") * 12 + Decimal("180000")

    def test_pricing_errors_propagate(self, catalog):
        with pytest.raises(InvalidInputError):
            build_line_item(catalog.product("banner-roll"), Selection())

    def test_invalid_raw_quantity_raises(self, catalog):
        with pytest.raises(InvalidInputError):
            build_line_item(catalog.product("stiker"), Selection(), {"qty": 0})

    def test_inputs_must_be_an_object(self, catalog):
        with pytest.raises(InvalidInputError) as exc_info:
            build_line_item(catalog.product("stiker"), Selection(), {"specs": {"inputs": "x"}})
        assert exc_info.value.field == "specs.inputs"

    def test_blank_inputs_ignored(self, catalog):
        item = build_line_item(catalog.product("stiker"), Selection(), {"specs": {"inputs": ""}})
        assert item.subtotal == Decimal("25000")


class TestRebuildLineItem:
    def test_backfills_unit_price(self):
        item = rebuild_line_item({"subtotal": 200000, "qty": 10, "unitPrice": 0})
        assert item.unit_price == Decimal("20000")
        assert item.subtotal == Decimal("200000")
        assert item.quantity == 10

    def test_recomputes_stale_subtotal(self, caplog):
        raw = {"productName": "Stiker", "qty": 4, "unitPrice": 25000, "subtotal": 999}
        with caplog.at_level(logging.WARNING, logger="printpos.line_items"):
            item = rebuild_line_item(raw)
        assert item.subtotal == Decimal("100000")
        assert "replaces cached subtotal" in caplog.text

    def test_keeps_line_level_charges(self):
        raw = {
            "name": "Brosur",
            "qty": 2,
            "unit_price": 1000,
            "finishings": [{"name": "Lipat", "unit_price": 500, "quantity": 2, "amount": 1000}],
        }
        item = rebuild_line_item(raw)
        assert item.subtotal == Decimal("3000")
        assert item.specs["finishing_list"] == ["Lipat"]

    def test_legacy_field_names(self):
        raw = {
            "productId": "spanduk",
            "productName": "Spanduk",
            "quantity": 1,
            "price": 75000,
            "variantLabel": "Flexi",
            "specs": {"inputs": {"length": 3, "width": 1}, "note": "Urgent"},
        }
        item = rebuild_line_item(raw)
        assert item.product_id == "spanduk"
        assert item.variant == "Flexi"
        assert item.length == Decimal("3")
        assert item.notes == "Urgent"
        assert item.description == "3m x 1m"

    def test_unparseable_dimensions_kept_as_text(self, caplog):
        raw = {"name": "Spanduk", "qty": 1, "price": 75000, "specs": {"inputs": {"length": "3,5", "width": "1"}}}
        with caplog.at_level(logging.WARNING, logger="printpos.line_items"):
            item = rebuild_line_item(raw)
        assert item.length is None
        assert item.width == Decimal("1")
        assert item.description == "3,5m x 1m"
        assert "3,5" in caplog.text
