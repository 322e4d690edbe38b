"""
Order line-item builder.

Turns cart lines into the item payload sent to the order collaborator:
canonical product reference and name, unit price from the pricing chain,
menu-item vs legacy-product linkage, and one normalized variant metadata
shape.

A line whose resolved price is zero or negative aborts the whole build.
Nothing here touches the network.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from storefront.checkout.pricing import read_field, resolve_unit_price, ZERO
from storefront.core.exceptions import DataIntegrityError

logger = logging.getLogger(__name__)


@dataclass
class ProductReference:
    id: Optional[str]
    name: str


@dataclass
class OrderLineItem:
    """One line of an order as the order collaborator expects it."""
    name: str
    quantity: int
    price_at_purchase: Decimal
    menu_item_id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    combination_id: Optional[str] = None
    variant_metadata: Optional[Dict[str, Any]] = field(default=None)


def _type_tag(line: Any) -> Optional[str]:
    tag = read_field(line, "resolved_product_type")
    return getattr(tag, "value", tag)


def resolve_product_reference(line: Any) -> ProductReference:
    """
    The product a line points at.

    Prefers the joined product, then the embedded one. Without either, a
    reference is synthesized from the line's own ids ("Item {id}").
    """
    for source in (read_field(line, "resolved_product"), read_field(line, "product")):
        if source is not None:
            ref_id = read_field(source, "id")
            name = read_field(source, "name") or read_field(line, "name") or (
                f"Item {ref_id or _fallback_id(line)}"
            )
            return ProductReference(id=ref_id, name=name)

    fallback_id = _fallback_id(line)
    return ProductReference(
        id=fallback_id,
        name=read_field(line, "name") or f"Item {fallback_id}",
    )


def _fallback_id(line: Any) -> Optional[str]:
    return read_field(line, "menu_item_id") or read_field(line, "product_id") or read_field(line, "id")


def derive_product_linkage(line: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    (menu_item_id, product_id) for a line.

    Explicit ids on the line win. Otherwise the type tag decides which side
    the joined product's id lands on: menu items link through
    ``menu_item_id``; dishes and legacy products through ``product_id``.
    """
    tag = _type_tag(line)
    inferred_id = (
        read_field(read_field(line, "resolved_product"), "id")
        or read_field(read_field(line, "product"), "id")
    )

    menu_item_id = read_field(line, "menu_item_id") or (inferred_id if tag == "menu_item" else None)
    product_id = read_field(line, "product_id") or (inferred_id if tag in ("dish", "legacy") else None)
    return menu_item_id, product_id


def normalize_variant_metadata(line: Any) -> Optional[Dict[str, Any]]:
    """
    Coalesce variant info into a single dict.

    Order: structured metadata, then the snapshot, then the display string.
    Serialized JSON is parsed; anything unparseable (or not an object) is
    wrapped as ``{"display": raw}``.
    """
    metadata = read_field(line, "variant_metadata") or read_field(line, "variant_snapshot")
    if not metadata:
        display = read_field(line, "variant_display")
        return {"display": display} if display else None

    if isinstance(metadata, str):
        try:
            parsed = json.loads(metadata)
        except ValueError:
            return {"display": metadata}
        return parsed if isinstance(parsed, dict) else {"display": metadata}

    if isinstance(metadata, dict):
        return metadata
    return {"display": str(metadata)}


def build_order_line_items(lines: List[Any]) -> List[OrderLineItem]:
    """
    Build the order payload lines.

    Raises:
        DataIntegrityError: a line resolved to a price <= 0
    """
    items = []
    for line in lines:
        reference = resolve_product_reference(line)
        price = resolve_unit_price(line)
        if price <= ZERO:
            logger.warning(f"Rejecting cart line {read_field(line, 'id')}: resolved price {price}")
            raise DataIntegrityError(f"Invalid price for product: {reference.name}")

        menu_item_id, product_id = derive_product_linkage(line)
        items.append(
            OrderLineItem(
                name=reference.name,
                quantity=int(read_field(line, "quantity")),
                price_at_purchase=price,
                menu_item_id=menu_item_id,
                product_id=product_id,
                variant_id=read_field(line, "variant_id"),
                combination_id=read_field(line, "combination_id"),
                variant_metadata=normalize_variant_metadata(line),
            )
        )
    return items
