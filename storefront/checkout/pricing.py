"""
Pricing Calculator

Pure functions turning a cart snapshot and a discount amount into the
checkout totals. Money is handled as ``Decimal`` end to end; only the
payment amount is rounded (half-up, two places) before it leaves the
service.

Prices coming from the cart store are not trusted: they may be numbers,
numeric strings, formatted strings ("$12.50") or garbage. ``parse_price``
never raises and falls back to zero.

Usage:
    from storefront.checkout.pricing import build_pricing_snapshot

    snapshot = build_pricing_snapshot(cart.lines, discount_amount=Decimal("5"))
    print(snapshot.grand_total)

Author: Storefront Team
Version: 1.0.0
"""

import math
import re
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from storefront.core.config import get_settings, Settings


ZERO = Decimal("0")
CENT = Decimal("0.01")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


# =============================================================================
# POLICY & SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class PricingPolicy:
    """Free-shipping threshold, flat shipping fee and tax rate."""
    free_shipping_threshold: Decimal = Decimal("50.00")
    shipping_fee: Decimal = Decimal("5.00")
    tax_rate: Decimal = Decimal("0.088")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PricingPolicy":
        settings = settings or get_settings()
        return cls(
            free_shipping_threshold=Decimal(str(settings.free_shipping_threshold)),
            shipping_fee=Decimal(str(settings.shipping_fee)),
            tax_rate=Decimal(str(settings.tax_rate)),
        )

    @property
    def tax_rate_percent(self) -> Decimal:
        return self.tax_rate * 100


@dataclass(frozen=True)
class PricingSnapshot:
    """Totals derived from (lines, discount). No identity of its own."""
    total_items_count: int
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    tax_rate_percent: Decimal
    discount_amount: Decimal
    grand_total: Decimal

    def to_dict(self) -> dict:
        """JSON-friendly view with amounts rounded to cents."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = float(round_currency(value))
        return data


# =============================================================================
# PARSING
# =============================================================================

def read_field(obj: Any, name: str) -> Any:
    """Read ``name`` from a model or a plain dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _coerce_price(value: Any) -> Optional[Decimal]:
    """Parse a price, or return None when nothing numeric can be read."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        match = _LEADING_NUMBER.match(cleaned)
        if not match:
            return None
        try:
            return Decimal(match.group(0))
        except InvalidOperation:
            return None

    return None


def parse_price(value: Any) -> Decimal:
    """
    Leniently parse a price.

    Numbers pass through (NaN/inf become 0). Strings are stripped of
    everything but digits, '.' and '-' and their leading number is read.
    Anything else yields 0. Never raises.
    """
    parsed = _coerce_price(value)
    return parsed if parsed is not None else ZERO


def resolve_unit_price(line: Any) -> Decimal:
    """
    Unit price of a cart line.

    Tries, in order: the resolved (joined) product price, the embedded
    product price, the line's recorded price, then its price at purchase.
    The first present and parseable value wins; 0 when none is.
    """
    candidates = (
        read_field(read_field(line, "resolved_product"), "price"),
        read_field(read_field(line, "product"), "price"),
        read_field(line, "price"),
        read_field(line, "price_at_purchase"),
    )
    for candidate in candidates:
        parsed = _coerce_price(candidate)
        if parsed is not None:
            return parsed
    return ZERO


def _quantity(line: Any) -> int:
    try:
        return int(read_field(line, "quantity") or 0)
    except (TypeError, ValueError):
        return 0


# =============================================================================
# CALCULATIONS
# =============================================================================

def calculate_total_items_count(lines: Iterable[Any]) -> int:
    """Sum of quantities; 0 for an empty cart."""
    return sum(_quantity(line) for line in lines or ())


def calculate_subtotal(lines: Iterable[Any]) -> Decimal:
    """Sum of unit price × quantity over all lines."""
    return sum(
        (resolve_unit_price(line) * _quantity(line) for line in lines or ()),
        ZERO,
    )


def calculate_shipping(subtotal: Decimal, policy: Optional[PricingPolicy] = None) -> Decimal:
    """Free at or above the threshold, flat fee below it."""
    policy = policy or PricingPolicy.from_settings()
    if Decimal(subtotal) >= policy.free_shipping_threshold:
        return ZERO
    return policy.shipping_fee


def calculate_tax(
    subtotal: Decimal,
    shipping: Decimal = ZERO,
    policy: Optional[PricingPolicy] = None,
) -> Decimal:
    """
    Tax on the goods plus shipping at the flat rate.

    An empty (zero subtotal) cart accrues no tax, even though shipping is
    still quoted for it.
    """
    policy = policy or PricingPolicy.from_settings()
    subtotal = Decimal(subtotal)
    if subtotal <= ZERO:
        return ZERO
    return (subtotal + Decimal(shipping)) * policy.tax_rate


def calculate_grand_total(
    subtotal: Decimal,
    shipping: Decimal,
    tax: Decimal,
    discount: Decimal = ZERO,
) -> Decimal:
    """subtotal + shipping + tax - discount, never below zero."""
    total = Decimal(subtotal) + Decimal(shipping) + Decimal(tax) - Decimal(discount or 0)
    return max(ZERO, total)


def round_currency(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def build_pricing_snapshot(
    lines: Iterable[Any],
    discount_amount: Any = ZERO,
    policy: Optional[PricingPolicy] = None,
) -> PricingSnapshot:
    """Compute every checkout total for a cart and a discount amount."""
    policy = policy or PricingPolicy.from_settings()
    lines = list(lines or ())
    discount = max(ZERO, parse_price(discount_amount))

    subtotal = calculate_subtotal(lines)
    shipping = calculate_shipping(subtotal, policy)
    tax = calculate_tax(subtotal, shipping, policy)

    return PricingSnapshot(
        total_items_count=calculate_total_items_count(lines),
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        tax_rate_percent=policy.tax_rate_percent,
        discount_amount=discount,
        grand_total=calculate_grand_total(subtotal, shipping, tax, discount),
    )
