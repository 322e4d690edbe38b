"""Pricing calculator tests."""

from decimal import Decimal

import pytest

from conftest import make_line
from storefront.checkout.pricing import (
    PricingPolicy,
    build_pricing_snapshot,
    calculate_grand_total,
    calculate_shipping,
    calculate_subtotal,
    calculate_tax,
    calculate_total_items_count,
    parse_price,
    resolve_unit_price,
    round_currency,
)
from storefront.schemas import CartLine, ResolvedProduct

POLICY = PricingPolicy(
    free_shipping_threshold=Decimal("50"),
    shipping_fee=Decimal("5"),
    tax_rate=Decimal("0.088"),
)


class TestParsePrice:

    @pytest.mark.parametrize("raw, expected", [
        (12.5, Decimal("12.5")),
        (3, Decimal("3")),
        ("12.50", Decimal("12.50")),
        ("$1,299.99", Decimal("1299.99")),
        (" 7 USD", Decimal("7")),
        (Decimal("4.20"), Decimal("4.20")),
    ])
    def test_reads_numbers_and_formatted_strings(self, raw, expected):
        assert parse_price(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "..", float("nan"), float("inf"), True, object(), [1]])
    def test_garbage_is_zero(self, raw):
        assert parse_price(raw) == Decimal("0")


class TestResolveUnitPrice:

    def test_resolved_product_wins(self):
        line = CartLine(
            id="1", quantity=1, price=9, price_at_purchase=8,
            resolved_product=ResolvedProduct(id="m1", price="11.00"),
            product=ResolvedProduct(id="m1", price=10),
        )
        assert resolve_unit_price(line) == Decimal("11.00")

    def test_falls_through_missing_and_unparseable(self):
        line = CartLine(
            id="1", quantity=1, price="n/a", price_at_purchase="6.25",
            resolved_product=ResolvedProduct(id="m1"),
        )
        assert resolve_unit_price(line) == Decimal("6.25")

    def test_embedded_product_before_line_price(self):
        line = CartLine(id="1", quantity=1, price=9, product=ResolvedProduct(id="p", price=7))
        assert resolve_unit_price(line) == Decimal("7")

    def test_plain_dict_lines(self):
        assert resolve_unit_price({"price": "4.5", "quantity": 2}) == Decimal("4.5")

    def test_nothing_usable_is_zero(self):
        assert resolve_unit_price(CartLine(id="1", quantity=3)) == Decimal("0")


class TestCalculations:

    def test_items_count(self):
        assert calculate_total_items_count([make_line("a", 1, 2), make_line("b", 1, 3)]) == 5
        assert calculate_total_items_count([]) == 0

    def test_subtotal(self):
        lines = [make_line("a", "10.00", 2), make_line("b", 20, 1)]
        assert calculate_subtotal(lines) == Decimal("40.00")

    @pytest.mark.parametrize("subtotal, expected", [
        (Decimal("49.99"), Decimal("5")),
        (Decimal("50"), Decimal("0")),
        (Decimal("60"), Decimal("0")),
        (Decimal("0"), Decimal("5")),
    ])
    def test_shipping_threshold_is_inclusive(self, subtotal, expected):
        assert calculate_shipping(subtotal, POLICY) == expected

    def test_tax_includes_shipping(self):
        assert calculate_tax(Decimal("40"), Decimal("5"), POLICY) == Decimal("3.960")

    def test_no_tax_on_empty_cart(self):
        assert calculate_tax(Decimal("0"), Decimal("5"), POLICY) == Decimal("0")

    def test_grand_total_never_negative(self):
        assert calculate_grand_total(Decimal("10"), Decimal("5"), Decimal("1"), Decimal("100")) == Decimal("0")

    def test_round_currency_half_up(self):
        assert round_currency(Decimal("2.345")) == Decimal("2.35")
        assert round_currency(Decimal("2.344")) == Decimal("2.34")


class TestPricingSnapshot:
    """Worked checkout scenarios."""

    @pytest.fixture
    def cart(self):
        return [make_line("a", 10, 2), make_line("b", 20, 1)]

    def test_small_cart_pays_shipping_and_tax(self, cart):
        snapshot = build_pricing_snapshot(cart, 0, POLICY)
        assert snapshot.total_items_count == 3
        assert snapshot.subtotal == Decimal("40")
        assert snapshot.shipping == Decimal("5")
        assert round_currency(snapshot.tax) == Decimal("3.96")
        assert round_currency(snapshot.grand_total) == Decimal("48.96")
        assert snapshot.tax_rate_percent == Decimal("8.800")

    def test_discount_reduces_grand_total(self, cart):
        snapshot = build_pricing_snapshot(cart, Decimal("10"), POLICY)
        assert round_currency(snapshot.grand_total) == Decimal("38.96")
        assert snapshot.discount_amount == Decimal("10")

    def test_free_shipping_above_threshold(self):
        snapshot = build_pricing_snapshot([make_line("a", 30, 2)], 0, POLICY)
        assert snapshot.subtotal == Decimal("60")
        assert snapshot.shipping == Decimal("0")

    def test_empty_cart_is_shipping_only(self):
        snapshot = build_pricing_snapshot([], 0, POLICY)
        assert snapshot.total_items_count == 0
        assert snapshot.subtotal == Decimal("0")
        assert snapshot.shipping == Decimal("5")
        assert snapshot.tax == Decimal("0")
        assert snapshot.grand_total == Decimal("5")

    def test_negative_discount_is_ignored(self, cart):
        snapshot = build_pricing_snapshot(cart, "-10", POLICY)
        assert snapshot.discount_amount == Decimal("0")

    def test_same_inputs_same_snapshot(self, cart):
        assert build_pricing_snapshot(cart, 3, POLICY) == build_pricing_snapshot(cart, 3, POLICY)

    def test_to_dict_rounds_to_cents(self, cart):
        data = build_pricing_snapshot(cart, 0, POLICY).to_dict()
        assert data == {
            "total_items_count": 3,
            "subtotal": 40.0,
            "shipping": 5.0,
            "tax": 3.96,
            "tax_rate_percent": 8.8,
            "discount_amount": 0.0,
            "grand_total": 48.96,
        }
