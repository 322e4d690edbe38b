"""
Customer Data Service Abstract Base Class

Server-side cart rows and the address book of signed-in shoppers. Cart
lines come back with their joined product so pricing can prefer live
catalog prices over the price recorded when the item was added.
"""

from abc import ABC, abstractmethod
from typing import List

from storefront.schemas import CartLine, SavedAddress


class BaseCustomerDataService(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def fetch_cart(self, user_id: str) -> List[CartLine]:
        pass

    @abstractmethod
    async def clear_cart(self, user_id: str) -> int:
        """Delete every cart row of ``user_id``; returns the number removed."""
        pass

    @abstractmethod
    async def fetch_addresses(self, user_id: str) -> List[SavedAddress]:
        """Default address first."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
