"""
SQL Discount Service

Discount codes in PostgreSQL. Recording usage locks the code row, checks for
an earlier use by the same customer and the limit, then inserts the usage
row and bumps the counter in one transaction. The unique (code, customer)
constraint catches concurrent reuse.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from storefront.database import async_session_maker
from storefront.models import DiscountCode, DiscountCodeUsage
from storefront.services.discounts.base import (
    DUPLICATE_USAGE,
    USAGE_LIMIT_REACHED,
    BaseDiscountService,
    DiscountCodeRecord,
    DiscountUsageResult,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"


def _to_record(row: DiscountCode) -> DiscountCodeRecord:
    return DiscountCodeRecord(
        id=row.id,
        code=row.code,
        discount_type=row.discount_type.value,
        discount_value=Decimal(row.discount_value),
        min_order_amount=Decimal(row.min_order_amount) if row.min_order_amount is not None else None,
        max_discount_amount=Decimal(row.max_discount_amount) if row.max_discount_amount is not None else None,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count or 0,
        one_per_customer=row.one_per_customer,
        is_active=row.is_active,
        starts_at=row.starts_at,
        expires_at=row.expires_at,
    )


class SQLDiscountService(BaseDiscountService):

    def __init__(self, session_factory: async_sessionmaker = async_session_maker):
        self._session_factory = session_factory

    @property
    def provider_name(self) -> str:
        return "postgresql"

    async def _fetch_active_code(self, code: str) -> Optional[DiscountCodeRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(DiscountCode).where(
                    DiscountCode.code == code,
                    DiscountCode.is_active.is_(True),
                )
            )
            row = result.scalar_one_or_none()
            return _to_record(row) if row else None

    async def _has_used(self, discount_code_id: str, user_id: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(DiscountCodeUsage.id).where(
                    DiscountCodeUsage.discount_code_id == discount_code_id,
                    DiscountCodeUsage.user_id == user_id,
                )
            )
            return result.first() is not None

    async def apply_to_order(
        self,
        discount_code_id: str,
        user_id: str,
        order_id: str,
        discount_amount: Decimal,
        order_subtotal: Decimal,
    ) -> DiscountUsageResult:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    result = await db.execute(
                        select(DiscountCode)
                        .where(DiscountCode.id == discount_code_id)
                        .with_for_update()
                    )
                    code = result.scalar_one_or_none()
                    if code is None:
                        return DiscountUsageResult(success=False, error_message="Unknown discount code")

                    used = await db.execute(
                        select(DiscountCodeUsage.id).where(
                            DiscountCodeUsage.discount_code_id == discount_code_id,
                            DiscountCodeUsage.user_id == user_id,
                        )
                    )
                    if used.first() is not None:
                        return DiscountUsageResult(
                            success=False,
                            error_message="You have already used this discount code.",
                            error_type=DUPLICATE_USAGE,
                        )

                    if code.usage_limit and (code.usage_count or 0) >= code.usage_limit:
                        return DiscountUsageResult(
                            success=False,
                            error_message="This discount code has reached its usage limit.",
                            error_type=USAGE_LIMIT_REACHED,
                        )

                    db.add(DiscountCodeUsage(
                        discount_code_id=discount_code_id,
                        user_id=user_id,
                        order_id=order_id,
                        discount_amount=discount_amount,
                        order_subtotal=order_subtotal,
                    ))
                    code.usage_count = (code.usage_count or 0) + 1

        except IntegrityError as e:
            sqlstate = getattr(e.orig, "sqlstate", None)
            logger.error(f"Error recording discount code usage: {sqlstate} {e.orig}")
            if sqlstate == UNIQUE_VIOLATION:
                return DiscountUsageResult(
                    success=False,
                    error_message="You have already used this discount code.",
                    error_type=DUPLICATE_USAGE,
                )
            if sqlstate == CHECK_VIOLATION:
                return DiscountUsageResult(
                    success=False,
                    error_message="This discount code has reached its usage limit.",
                    error_type=USAGE_LIMIT_REACHED,
                )
            return DiscountUsageResult(success=False, error_message="Failed to record discount code usage")

        except SQLAlchemyError as e:
            logger.error(f"Error recording discount code usage: {e}")
            return DiscountUsageResult(success=False, error_message="Failed to record discount code usage")

        return DiscountUsageResult(success=True)

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as db:
                await db.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
