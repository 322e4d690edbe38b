"""
SQL Order Service

Production order collaborator backed by PostgreSQL (SQLAlchemy async).
The order row and its items are written in one transaction; catalog
availability is checked first; item prices are stored as priced and charged.

Author: Storefront Team
Version: 1.0.0
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.checkout.pricing import PricingPolicy
from storefront.database import async_session_maker
from storefront.models import MenuItem, Order, OrderItem, Product
from storefront.services.orders.base import (
    BaseOrderService,
    OrderCreationResult,
    OrderDraft,
    OrderSummary,
    OrderTotals,
    compute_totals,
)

logger = logging.getLogger(__name__)


def _to_summary(order: Order) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        user_id=order.user_id,
        guest_session_id=order.guest_session_id,
        is_guest=order.is_guest,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        shipping_address=order.shipping_address or {},
        subtotal=Decimal(order.subtotal),
        shipping=Decimal(order.shipping),
        tax=Decimal(order.tax),
        discount_amount=Decimal(order.discount_amount),
        order_total=Decimal(order.order_total),
        status=order.status.value,
        items=[
            {
                "menu_item_id": item.menu_item_id,
                "product_id": item.product_id,
                "name": item.name,
                "quantity": item.quantity,
                "price": float(item.price),
                "variant_metadata": item.variant_metadata,
            }
            for item in order.items
        ],
        created_at=order.created_at,
    )


class SQLOrderService(BaseOrderService):
    """Orders stored in the ``orders`` / ``order_items`` tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker = async_session_maker,
        pricing_policy: Optional[PricingPolicy] = None,
    ):
        super().__init__(pricing_policy)
        self._session_factory = session_factory

    @property
    def provider_name(self) -> str:
        return "postgresql"

    async def create_order(self, draft: OrderDraft) -> OrderCreationResult:
        try:
            async with self._session_factory() as db:
                problem = await self._check_availability(db, draft)
                if problem:
                    return OrderCreationResult(success=False, error_message=problem)
        except SQLAlchemyError as e:
            logger.error(f"Catalog lookup failed: {e}")
            return OrderCreationResult(success=False, error_message="Failed to create order")
        return await super().create_order(draft)

    async def _check_availability(self, db: AsyncSession, draft: OrderDraft) -> Optional[str]:
        """Reject items that were removed from the catalog or marked unavailable."""
        for item in draft.items:
            if item.menu_item_id:
                row = await db.get(MenuItem, item.menu_item_id)
            elif item.product_id:
                row = await db.get(Product, item.product_id)
            else:
                continue
            if row is None or not row.is_available:
                return f"{item.name} is no longer available"
        return None

    async def _insert_order(self, draft: OrderDraft, totals: OrderTotals) -> OrderCreationResult:
        order = Order(
            user_id=draft.user_id,
            customer_email=draft.customer_email.strip(),
            customer_name=draft.customer_name.strip(),
            is_guest=draft.is_guest,
            guest_session_id=draft.guest_session_id,
            shipping_address=draft.shipping_address,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount_code_id=draft.discount_code_id,
            discount_amount=totals.discount_amount,
            order_total=totals.order_total,
        )
        order.items = [
            OrderItem(
                menu_item_id=item.menu_item_id,
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                price=item.price_at_purchase,
                variant_id=item.variant_id,
                combination_id=item.combination_id,
                variant_metadata=item.variant_metadata,
            )
            for item in draft.items
        ]

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    db.add(order)
        except SQLAlchemyError as e:
            logger.error(f"Order insert failed: {e}")
            return OrderCreationResult(success=False, error_message="Failed to create order")

        logger.info(f"Order {order.id} created - ${totals.order_total}")
        return OrderCreationResult(success=True, order_id=order.id)

    async def get_order(self, order_id: str) -> Optional[OrderSummary]:
        async with self._session_factory() as db:
            result = await db.execute(select(Order).where(Order.id == order_id))
            order = result.scalar_one_or_none()
            return _to_summary(order) if order else None

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        guest_session_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[OrderSummary]:
        query = select(Order).order_by(Order.created_at.desc()).limit(limit)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if guest_session_id is not None:
            query = query.where(Order.guest_session_id == guest_session_id)

        async with self._session_factory() as db:
            result = await db.execute(query)
            return [_to_summary(order) for order in result.scalars().all()]

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as db:
                await db.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
