"""Order service tests (in-memory store)."""

from decimal import Decimal

import pytest

from storefront.checkout.line_items import OrderLineItem
from storefront.checkout.pricing import PricingPolicy
from storefront.services.orders import MockOrderService, OrderDraft
from storefront.services.orders.base import compute_totals, validate_draft


def draft(**overrides) -> OrderDraft:
    fields = {
        "customer_email": "jane@example.com",
        "customer_name": "Jane Doe",
        "shipping_address": {"city": "New York"},
        "items": [
            OrderLineItem(name="Margherita", quantity=2, price_at_purchase=Decimal("10"), menu_item_id="m1"),
            OrderLineItem(name="Old Salad", quantity=1, price_at_purchase=Decimal("20"), product_id="p1"),
        ],
    }
    fields.update(overrides)
    return OrderDraft(**fields)


class TestDraftValidation:

    @pytest.mark.parametrize("overrides, problem", [
        ({"customer_email": " "}, "Customer email is required"),
        ({"customer_name": None}, "Customer name is required"),
        ({"shipping_address": {}}, "Shipping address is required"),
        ({"items": []}, "Order must contain at least one item"),
        ({"items": [OrderLineItem(name="x", quantity=1, price_at_purchase=Decimal("1"))]},
         "Each item must have a menu_item_id or product_id"),
        ({"items": [OrderLineItem(name="x", quantity=0, price_at_purchase=Decimal("1"), product_id="p")]},
         "Each item must have a valid quantity"),
    ])
    def test_problems(self, overrides, problem):
        assert validate_draft(draft(**overrides)) == problem

    def test_acceptable(self):
        assert validate_draft(draft()) is None


class TestComputeTotals:

    def test_totals_recomputed_from_items(self):
        totals = compute_totals(draft().items, Decimal("10"), PricingPolicy())
        assert totals.subtotal == Decimal("40.00")
        assert totals.shipping == Decimal("5.00")
        assert totals.tax == Decimal("3.96")
        assert totals.discount_amount == Decimal("10.00")
        assert totals.order_total == Decimal("38.96")


class TestMockOrderService:

    @pytest.mark.asyncio
    async def test_create_and_read_back(self):
        service = MockOrderService(pricing_policy=PricingPolicy())
        result = await service.create_order(draft(user_id="user-1"))
        assert result.success

        order = await service.get_order(result.order_id)
        assert order.order_total == Decimal("48.96")
        assert order.status == "pending"
        assert order.items[0] == {
            "menu_item_id": "m1",
            "product_id": None,
            "name": "Margherita",
            "quantity": 2,
            "price": 10.0,
            "variant_metadata": None,
        }
        assert order.to_dict()["order_total"] == 48.96

    @pytest.mark.asyncio
    async def test_invalid_draft_not_stored(self):
        service = MockOrderService()
        result = await service.create_order(draft(items=[]))
        assert not result.success
        assert result.error_message == "Order must contain at least one item"
        assert service.orders == {}

    @pytest.mark.asyncio
    async def test_simulated_failure(self):
        service = MockOrderService(failure_rate=1.0)
        result = await service.create_order(draft())
        assert not result.success
        assert result.error_message == "Simulated database error"

    @pytest.mark.asyncio
    async def test_list_filters_by_owner(self):
        service = MockOrderService()
        await service.create_order(draft(user_id="user-1"))
        await service.create_order(draft(user_id="user-2"))
        await service.create_order(draft(guest_session_id="guest-1", is_guest=True))

        assert len(await service.list_orders(user_id="user-1")) == 1
        (guest_order,) = await service.list_orders(guest_session_id="guest-1")
        assert guest_order.is_guest
        assert len(await service.list_orders()) == 3
        assert len(await service.list_orders(limit=2)) == 2
