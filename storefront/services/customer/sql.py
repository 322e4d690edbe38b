"""
SQL Customer Data Service

Cart rows (joined with menu items / legacy products) and saved addresses
from PostgreSQL.
"""

import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from storefront.database import async_session_maker
from storefront.models import CartItem, CustomerAddress
from storefront.schemas import CartLine, ProductType, ResolvedProduct, SavedAddress
from storefront.services.customer.base import BaseCustomerDataService

logger = logging.getLogger(__name__)


def _resolved(row) -> ResolvedProduct:
    return ResolvedProduct(id=row.id, name=row.name, price=row.price, is_available=row.is_available)


def _to_line(item: CartItem) -> CartLine:
    if item.menu_item is not None:
        product, product_type = _resolved(item.menu_item), ProductType.MENU_ITEM
    elif item.product is not None:
        product, product_type = _resolved(item.product), ProductType.LEGACY
    else:
        product, product_type = None, None

    return CartLine(
        id=item.id,
        quantity=item.quantity,
        price=item.price,
        menu_item_id=item.menu_item_id,
        product_id=item.product_id,
        resolved_product=product,
        resolved_product_type=product_type,
        variant_id=item.variant_id,
        combination_id=item.combination_id,
        variant_metadata=item.variant_metadata,
    )


class SQLCustomerDataService(BaseCustomerDataService):

    def __init__(self, session_factory: async_sessionmaker = async_session_maker):
        self._session_factory = session_factory

    @property
    def provider_name(self) -> str:
        return "postgresql"

    async def fetch_cart(self, user_id: str) -> List[CartLine]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CartItem)
                .where(CartItem.user_id == user_id)
                .order_by(CartItem.created_at)
            )
            return [_to_line(item) for item in result.unique().scalars().all()]

    async def clear_cart(self, user_id: str) -> int:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        logger.info(f"Cleared {result.rowcount} cart rows for user {user_id}")
        return result.rowcount

    async def fetch_addresses(self, user_id: str) -> List[SavedAddress]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CustomerAddress)
                .where(CustomerAddress.user_id == user_id)
                .order_by(CustomerAddress.is_default.desc(), CustomerAddress.updated_at.desc())
            )
            return [
                SavedAddress.model_validate(row, from_attributes=True)
                for row in result.scalars().all()
            ]

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as db:
                await db.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
