"""Order line-item builder tests."""

from decimal import Decimal

import pytest

from conftest import make_line
from storefront.checkout.line_items import (
    build_order_line_items,
    derive_product_linkage,
    normalize_variant_metadata,
    resolve_product_reference,
)
from storefront.core.exceptions import DataIntegrityError
from storefront.schemas import CartLine, ProductType, ResolvedProduct


class TestProductReference:

    def test_prefers_resolved_product(self):
        line = CartLine(
            id="row-1", quantity=1,
            resolved_product=ResolvedProduct(id="m1", name="Margherita"),
            product=ResolvedProduct(id="p1", name="Old name"),
        )
        reference = resolve_product_reference(line)
        assert (reference.id, reference.name) == ("m1", "Margherita")

    def test_synthesizes_name_from_ids(self):
        reference = resolve_product_reference(CartLine(id="row-1", quantity=1, product_id="p9"))
        assert (reference.id, reference.name) == ("p9", "Item p9")

    def test_line_name_used_when_product_has_none(self):
        line = CartLine(id="row-1", quantity=1, name="Tiramisu", product=ResolvedProduct(id="p2"))
        assert resolve_product_reference(line).name == "Tiramisu"


class TestProductLinkage:

    def test_explicit_ids_win(self):
        line = CartLine(id="r", quantity=1, menu_item_id="m1", resolved_product_type=ProductType.LEGACY)
        assert derive_product_linkage(line) == ("m1", None)

    @pytest.mark.parametrize("tag, expected", [
        (ProductType.MENU_ITEM, ("x1", None)),
        (ProductType.DISH, (None, "x1")),
        (ProductType.LEGACY, (None, "x1")),
        (None, (None, None)),
    ])
    def test_inferred_from_type_tag(self, tag, expected):
        line = CartLine(
            id="r", quantity=1,
            resolved_product=ResolvedProduct(id="x1", name="X"),
            resolved_product_type=tag,
        )
        assert derive_product_linkage(line) == expected


class TestVariantMetadata:

    def test_structured_metadata_kept(self):
        assert normalize_variant_metadata({"variant_metadata": {"size": "L"}}) == {"size": "L"}

    def test_serialized_json_parsed(self):
        assert normalize_variant_metadata({"variant_metadata": '{"size": "M"}'}) == {"size": "M"}

    def test_unparseable_string_wrapped(self):
        assert normalize_variant_metadata({"variant_metadata": "Large, extra cheese"}) == {
            "display": "Large, extra cheese"
        }

    def test_json_that_is_not_an_object_wrapped(self):
        assert normalize_variant_metadata({"variant_snapshot": "[1, 2]"}) == {"display": "[1, 2]"}

    def test_display_string_fallback(self):
        assert normalize_variant_metadata({"variant_display": "Small"}) == {"display": "Small"}

    def test_nothing(self):
        assert normalize_variant_metadata({}) is None


class TestBuildOrderLineItems:

    def test_builds_items(self):
        items = build_order_line_items([
            make_line("a", "12.50", 2, variant_metadata='{"size": "L"}'),
        ])
        assert len(items) == 1
        item = items[0]
        assert item.name == "Dish a"
        assert item.quantity == 2
        assert item.price_at_purchase == Decimal("12.50")
        assert item.menu_item_id == "dish-a"
        assert item.product_id is None
        assert item.variant_metadata == {"size": "L"}

    @pytest.mark.parametrize("price", [0, "0.00", "-3", None, "free"])
    def test_non_positive_price_aborts_whole_build(self, price):
        lines = [make_line("ok", 5, 1), make_line("bad", price, 1, name="Ghost Pepper Wings")]
        with pytest.raises(DataIntegrityError) as exc_info:
            build_order_line_items(lines)
        assert exc_info.value.user_message == "Invalid price for product: Ghost Pepper Wings"
