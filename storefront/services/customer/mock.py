"""
Mock Customer Data Service

In-memory catalog, cart rows and address book for development. The
catalog is joined into cart lines on every fetch, so editing a price here
and publishing the change on the realtime feed behaves like production.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from storefront.schemas import CartLine, ProductType, ResolvedProduct, SavedAddress
from storefront.services.customer.base import BaseCustomerDataService

logger = logging.getLogger(__name__)

CatalogKey = Tuple[str, str]  # (table, id)


class MockCustomerDataService(BaseCustomerDataService):

    def __init__(self):
        self.catalog: Dict[CatalogKey, Dict[str, Any]] = {}
        self.cart_rows: Dict[str, List[Dict[str, Any]]] = {}
        self.addresses: Dict[str, List[SavedAddress]] = {}

    @property
    def provider_name(self) -> str:
        return "mock"

    # ------------------------------------------------------------------
    # Seeding helpers (development / tests)
    # ------------------------------------------------------------------

    def add_catalog_item(
        self,
        name: str,
        price: Any,
        table: str = "menu_items",
        item_id: Optional[str] = None,
        is_available: bool = True,
    ) -> str:
        item_id = item_id or str(uuid.uuid4())
        self.catalog[(table, item_id)] = {
            "id": item_id,
            "name": name,
            "price": Decimal(str(price)),
            "is_available": is_available,
        }
        return item_id

    def update_catalog_item(self, table: str, item_id: str, **changes: Any) -> Dict[str, Any]:
        """Apply ``changes`` and return the (old, new) row pair as a dict."""
        row = self.catalog[(table, item_id)]
        old = dict(row)
        row.update(changes)
        return {"old": old, "new": dict(row)}

    def add_cart_row(
        self,
        user_id: str,
        item_id: str,
        quantity: int = 1,
        table: str = "menu_items",
        **extra: Any,
    ) -> str:
        row_id = str(uuid.uuid4())
        product = self.catalog.get((table, item_id), {})
        row = {
            "id": row_id,
            "quantity": quantity,
            "price": product.get("price"),
            "menu_item_id": item_id if table == "menu_items" else None,
            "product_id": item_id if table == "products" else None,
            **extra,
        }
        self.cart_rows.setdefault(user_id, []).append(row)
        return row_id

    def add_address(self, user_id: str, **fields: Any) -> SavedAddress:
        address = SavedAddress(id=fields.pop("id", str(uuid.uuid4())), user_id=user_id, **fields)
        self.addresses.setdefault(user_id, []).append(address)
        return address

    def update_address(self, user_id: str, address_id: str, **changes: Any) -> SavedAddress:
        book = self.addresses[user_id]
        for index, address in enumerate(book):
            if address.id == address_id:
                book[index] = address.model_copy(update=changes)
                return book[index]
        raise KeyError(address_id)

    # ------------------------------------------------------------------
    # Collaborator interface
    # ------------------------------------------------------------------

    def _join(self, row: Dict[str, Any]) -> CartLine:
        if row.get("menu_item_id"):
            key, product_type = ("menu_items", row["menu_item_id"]), ProductType.MENU_ITEM
        else:
            key, product_type = ("products", row.get("product_id")), ProductType.LEGACY
        product = self.catalog.get(key)
        return CartLine(
            **row,
            resolved_product=ResolvedProduct(**product) if product else None,
            resolved_product_type=product_type if product else None,
        )

    async def fetch_cart(self, user_id: str) -> List[CartLine]:
        return [self._join(row) for row in self.cart_rows.get(user_id, [])]

    async def clear_cart(self, user_id: str) -> int:
        removed = len(self.cart_rows.pop(user_id, []))
        logger.info(f"Mock: Cleared {removed} cart rows for user {user_id}")
        return removed

    async def fetch_addresses(self, user_id: str) -> List[SavedAddress]:
        book = list(self.addresses.get(user_id, []))
        book.sort(key=lambda address: not address.is_default)
        return book

    async def health_check(self) -> bool:
        return True
