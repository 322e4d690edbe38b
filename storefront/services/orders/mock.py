"""
Mock Order Service

Keeps orders in memory. Same validation and totals as the SQL service,
plus optional simulated latency and failures for local load runs.
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from storefront.checkout.pricing import PricingPolicy
from storefront.services.orders.base import (
    BaseOrderService,
    OrderCreationResult,
    OrderDraft,
    OrderSummary,
    OrderTotals,
)

logger = logging.getLogger(__name__)


class MockOrderService(BaseOrderService):
    """In-memory order store."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        max_latency: float = 0.0,
        pricing_policy: Optional[PricingPolicy] = None,
    ):
        super().__init__(pricing_policy)
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.orders: dict[str, OrderSummary] = {}
        logger.info(f"MockOrderService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        if self.max_latency:
            await asyncio.sleep(random.uniform(0, self.max_latency))

    async def _insert_order(self, draft: OrderDraft, totals: OrderTotals) -> OrderCreationResult:
        await self._simulate_latency()

        if random.random() < self.failure_rate:
            logger.warning("Mock: Order creation failed (simulated)")
            return OrderCreationResult(success=False, error_message="Simulated database error")

        order_id = str(uuid.uuid4())
        self.orders[order_id] = OrderSummary(
            id=order_id,
            user_id=draft.user_id,
            guest_session_id=draft.guest_session_id,
            is_guest=draft.is_guest,
            customer_email=draft.customer_email,
            customer_name=draft.customer_name,
            shipping_address=dict(draft.shipping_address),
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount_amount=totals.discount_amount,
            order_total=totals.order_total,
            items=[
                {
                    "menu_item_id": item.menu_item_id,
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": float(item.price_at_purchase),
                    "variant_metadata": item.variant_metadata,
                }
                for item in draft.items
            ],
            created_at=datetime.now(timezone.utc),
        )
        logger.info(f"Mock: Order {order_id} created - ${totals.order_total}")
        return OrderCreationResult(success=True, order_id=order_id)

    async def get_order(self, order_id: str) -> Optional[OrderSummary]:
        return self.orders.get(order_id)

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        guest_session_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[OrderSummary]:
        orders = [
            order for order in self.orders.values()
            if (user_id is None or order.user_id == user_id)
            and (guest_session_id is None or order.guest_session_id == guest_session_id)
        ]
        orders.sort(key=lambda order: order.created_at, reverse=True)
        return orders[:limit]

    async def health_check(self) -> bool:
        return True
