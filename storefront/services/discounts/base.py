"""
Discount Service Abstract Base Class

Discount codes are validated when the shopper applies them and their usage
is recorded after the order exists. Validation is not atomic: two shoppers
can both pass validation for the last use of a code. The store has the
final word when the usage is recorded, which is reported through
``DiscountUsageResult.error_type``.

Author: Storefront Team
Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

logger = logging.getLogger(__name__)

DUPLICATE_USAGE = "duplicate_usage"
USAGE_LIMIT_REACHED = "usage_limit_reached"


@dataclass
class DiscountCodeRecord:
    id: str
    code: str
    discount_type: str  # "percentage" | "fixed"
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    one_per_customer: bool = False
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


@dataclass
class DiscountValidationResult:
    valid: bool
    discount_code_id: Optional[str] = None
    code: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    final_total: Optional[Decimal] = None
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class DiscountUsageResult:
    success: bool
    error_message: Optional[str] = None
    error_type: Optional[str] = None


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def calculate_discount_amount(record: DiscountCodeRecord, order_total: Decimal) -> Decimal:
    """
    Percentage codes take a share of the order total, capped by
    ``max_discount_amount``; fixed codes never exceed the order total.
    """
    if record.discount_type == "percentage":
        amount = order_total * record.discount_value / 100
        if record.max_discount_amount and amount > record.max_discount_amount:
            amount = record.max_discount_amount
    elif record.discount_type == "fixed":
        amount = min(record.discount_value, order_total)
    else:
        amount = Decimal("0")
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class BaseDiscountService(ABC):
    """Abstract base class for discount services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def _fetch_active_code(self, code: str) -> Optional[DiscountCodeRecord]:
        """Active code by its (upper-cased) text."""
        pass

    @abstractmethod
    async def _has_used(self, discount_code_id: str, user_id: str) -> bool:
        pass

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def validate_code(
        self,
        code: str,
        user_id: Optional[str],
        order_total: Decimal,
    ) -> DiscountValidationResult:
        """
        Check ``code`` against ``order_total`` (subtotal + shipping + tax).

        The one-per-customer rule can only be checked for signed-in shoppers.
        """
        normalized = (code or "").strip().upper()
        order_total = Decimal(order_total)

        record = await self._fetch_active_code(normalized) if normalized else None
        if record is None:
            return DiscountValidationResult(
                valid=False,
                error="Invalid discount code",
                message="This discount code does not exist or is not active.",
            )

        now = self._now()
        if record.expires_at and now > _aware(record.expires_at):
            return DiscountValidationResult(
                valid=False, error="Expired code", message="This discount code has expired."
            )
        if record.starts_at and now < _aware(record.starts_at):
            return DiscountValidationResult(
                valid=False, error="Code not started", message="This discount code is not yet active."
            )

        if record.min_order_amount and order_total < record.min_order_amount:
            return DiscountValidationResult(
                valid=False,
                error="Minimum order not met",
                message=f"Minimum order amount of ${record.min_order_amount:.2f} required.",
            )

        if record.usage_limit and record.usage_count >= record.usage_limit:
            return DiscountValidationResult(
                valid=False,
                error="Usage limit reached",
                message="This discount code has reached its usage limit.",
            )

        if record.one_per_customer and user_id and await self._has_used(record.id, user_id):
            return DiscountValidationResult(
                valid=False,
                error="Already used",
                message="You have already used this discount code.",
            )

        amount = calculate_discount_amount(record, order_total)
        logger.debug(f"Discount {record.code} worth ${amount} on ${order_total}")
        return DiscountValidationResult(
            valid=True,
            discount_code_id=record.id,
            code=record.code,
            discount_amount=amount,
            final_total=order_total - amount,
        )

    @abstractmethod
    async def apply_to_order(
        self,
        discount_code_id: str,
        user_id: str,
        order_id: str,
        discount_amount: Decimal,
        order_subtotal: Decimal,
    ) -> DiscountUsageResult:
        """Record that ``user_id`` used the code on ``order_id``."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
