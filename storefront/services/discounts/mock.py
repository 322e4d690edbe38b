"""
Mock Discount Service

In-memory discount codes, seeded with a couple of development codes.
Usage recording enforces the same uniqueness and limit rules as the
database constraints.
"""

import logging
import uuid
from decimal import Decimal
from typing import Iterable, Optional

from storefront.services.discounts.base import (
    DUPLICATE_USAGE,
    USAGE_LIMIT_REACHED,
    BaseDiscountService,
    DiscountCodeRecord,
    DiscountUsageResult,
)

logger = logging.getLogger(__name__)


def default_codes() -> list[DiscountCodeRecord]:
    return [
        DiscountCodeRecord(
            id=str(uuid.uuid4()),
            code="WELCOME10",
            discount_type="percentage",
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("15"),
            one_per_customer=True,
        ),
        DiscountCodeRecord(
            id=str(uuid.uuid4()),
            code="FIVEOFF",
            discount_type="fixed",
            discount_value=Decimal("5"),
            min_order_amount=Decimal("20"),
        ),
    ]


class MockDiscountService(BaseDiscountService):

    def __init__(self, codes: Optional[Iterable[DiscountCodeRecord]] = None):
        self.codes: dict[str, DiscountCodeRecord] = {}
        self.usages: list[dict] = []
        for record in (default_codes() if codes is None else codes):
            self.add_code(record)

    @property
    def provider_name(self) -> str:
        return "mock"

    def add_code(self, record: DiscountCodeRecord) -> None:
        record.code = record.code.strip().upper()
        self.codes[record.code] = record

    def _by_id(self, discount_code_id: str) -> Optional[DiscountCodeRecord]:
        return next((r for r in self.codes.values() if r.id == discount_code_id), None)

    async def _fetch_active_code(self, code: str) -> Optional[DiscountCodeRecord]:
        record = self.codes.get(code)
        return record if record and record.is_active else None

    async def _has_used(self, discount_code_id: str, user_id: str) -> bool:
        return any(
            usage["discount_code_id"] == discount_code_id and usage["user_id"] == user_id
            for usage in self.usages
        )

    async def apply_to_order(
        self,
        discount_code_id: str,
        user_id: str,
        order_id: str,
        discount_amount: Decimal,
        order_subtotal: Decimal,
    ) -> DiscountUsageResult:
        record = self._by_id(discount_code_id)
        if record is None:
            return DiscountUsageResult(success=False, error_message="Unknown discount code")

        if await self._has_used(discount_code_id, user_id):
            return DiscountUsageResult(
                success=False,
                error_message="You have already used this discount code.",
                error_type=DUPLICATE_USAGE,
            )
        if record.usage_limit and record.usage_count >= record.usage_limit:
            return DiscountUsageResult(
                success=False,
                error_message="This discount code has reached its usage limit.",
                error_type=USAGE_LIMIT_REACHED,
            )

        record.usage_count += 1
        self.usages.append({
            "discount_code_id": discount_code_id,
            "user_id": user_id,
            "order_id": order_id,
            "discount_amount": Decimal(discount_amount),
            "order_subtotal": Decimal(order_subtotal),
        })
        logger.info(f"Mock: Discount {record.code} recorded for order {order_id}")
        return DiscountUsageResult(success=True)

    async def health_check(self) -> bool:
        return True
