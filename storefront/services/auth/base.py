"""
Auth collaborator interface.

Session issuance is not this service's job; it only turns a bearer token
into "who is shopping" and mints guest session ids. A token that cannot be
resolved yields an anonymous (guest) session, never an error.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from storefront.checkout.context import SessionContext


class BaseAuthService(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get_session(self, token: Optional[str]) -> SessionContext:
        """Resolve ``token`` to its shopper; anonymous when unknown or missing."""
        pass

    @staticmethod
    def new_guest_session_id() -> str:
        return str(uuid.uuid4())


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
