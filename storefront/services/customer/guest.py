"""
Guest cart store.

Guests have no server-side cart rows; their cart lives with their guest
session id. Access is synchronous so the payment-success path can clear it
without awaiting anything.
"""

import logging
from typing import Dict, List

from storefront.schemas import CartLine

logger = logging.getLogger(__name__)


class GuestCartStore:

    def __init__(self):
        self._carts: Dict[str, List[CartLine]] = {}

    def get(self, guest_session_id: str) -> List[CartLine]:
        return list(self._carts.get(guest_session_id, []))

    def set(self, guest_session_id: str, lines: List[CartLine]) -> None:
        self._carts[guest_session_id] = list(lines)

    def clear(self, guest_session_id: str) -> None:
        self._carts.pop(guest_session_id, None)
        logger.info(f"Guest cart cleared for session {guest_session_id}")

    def __len__(self) -> int:
        return len(self._carts)
