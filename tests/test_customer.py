"""Customer data (cart rows, address book) and guest cart tests."""

from decimal import Decimal

import pytest

from conftest import make_line, valid_address
from storefront.schemas import ProductType
from storefront.services.customer import GuestCartStore, MockCustomerDataService


@pytest.fixture
def customer_data():
    return MockCustomerDataService()


class TestMockCustomerData:

    @pytest.mark.asyncio
    async def test_cart_rows_joined_with_catalog(self, customer_data):
        dish = customer_data.add_catalog_item("Margherita", "14.99", item_id="m1")
        legacy = customer_data.add_catalog_item("Salad", 7, table="products", item_id="p1")
        customer_data.add_cart_row("user-1", dish, quantity=2)
        customer_data.add_cart_row("user-1", legacy, table="products")

        first, second = await customer_data.fetch_cart("user-1")

        assert first.menu_item_id == "m1"
        assert first.resolved_product.price == Decimal("14.99")
        assert first.resolved_product_type == ProductType.MENU_ITEM
        assert second.product_id == "p1"
        assert second.resolved_product_type == ProductType.LEGACY

    @pytest.mark.asyncio
    async def test_live_price_visible_on_next_fetch(self, customer_data):
        dish = customer_data.add_catalog_item("Margherita", 10, item_id="m1")
        customer_data.add_cart_row("user-1", dish)

        rows = customer_data.update_catalog_item("menu_items", "m1", price=Decimal("12"))

        assert rows["old"]["price"] == Decimal("10")
        assert rows["new"]["price"] == Decimal("12")
        (line,) = await customer_data.fetch_cart("user-1")
        assert line.resolved_product.price == Decimal("12")
        # the price recorded on the row is untouched
        assert line.price == Decimal("10")

    @pytest.mark.asyncio
    async def test_missing_product_left_unresolved(self, customer_data):
        customer_data.add_cart_row("user-1", "gone")
        (line,) = await customer_data.fetch_cart("user-1")
        assert line.resolved_product is None
        assert line.resolved_product_type is None

    @pytest.mark.asyncio
    async def test_clear_cart(self, customer_data):
        dish = customer_data.add_catalog_item("Margherita", 10)
        customer_data.add_cart_row("user-1", dish)
        customer_data.add_cart_row("user-1", dish)

        assert await customer_data.clear_cart("user-1") == 2
        assert await customer_data.fetch_cart("user-1") == []
        assert await customer_data.clear_cart("user-1") == 0

    @pytest.mark.asyncio
    async def test_default_address_first(self, customer_data):
        customer_data.add_address("user-1", id="work", **valid_address().model_dump())
        customer_data.add_address("user-1", id="home", is_default=True, **valid_address().model_dump())

        book = await customer_data.fetch_addresses("user-1")

        assert [address.id for address in book] == ["home", "work"]
        assert await customer_data.fetch_addresses("nobody") == []

    def test_update_unknown_address(self, customer_data):
        customer_data.add_address("user-1", id="home", **valid_address().model_dump())
        with pytest.raises(KeyError):
            customer_data.update_address("user-1", "work", city="Boston")


class TestGuestCartStore:

    def test_set_get_clear(self):
        store = GuestCartStore()
        store.set("guest-1", [make_line("a")])

        lines = store.get("guest-1")
        lines.append(make_line("b"))

        assert [line.id for line in store.get("guest-1")] == ["a"]
        assert len(store) == 1
        store.clear("guest-1")
        store.clear("guest-1")
        assert store.get("guest-1") == []
        assert len(store) == 0
