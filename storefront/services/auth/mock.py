"""
Mock Auth Service

In-memory token map for development and tests. Tokens are registered
explicitly; nothing is verified.
"""

import logging
import secrets
from typing import Dict, Optional

from storefront.checkout.context import SessionContext
from storefront.services.auth.base import BaseAuthService

logger = logging.getLogger(__name__)


class MockAuthService(BaseAuthService):

    def __init__(self):
        self._sessions: Dict[str, SessionContext] = {}

    @property
    def provider_name(self) -> str:
        return "mock"

    def register(self, user_id: str, email: Optional[str], token: Optional[str] = None) -> str:
        """Associate a bearer token with a user; returns the token."""
        token = token or secrets.token_urlsafe(24)
        self._sessions[token] = SessionContext(user_id=user_id, email=email, access_token=token)
        logger.info(f"[MOCK] Registered session for user {user_id}")
        return token

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    async def get_session(self, token: Optional[str]) -> SessionContext:
        if token and token in self._sessions:
            return self._sessions[token]
        return SessionContext()
