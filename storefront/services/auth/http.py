"""
HTTP Auth Service

Asks the auth provider who owns a bearer token:

    GET {AUTH_USER_ENDPOINT_URL}
    Authorization: Bearer <token>
    apikey: <ANON_KEY>

A 2xx answer carries the user as ``{"id": "...", "email": "..."}``. Any
other answer, or a transport failure, is logged and the request continues
as a guest.
"""

import logging
from typing import Optional

import httpx

from storefront.checkout.context import SessionContext
from storefront.core.config import get_settings, Settings
from storefront.services.auth.base import BaseAuthService

logger = logging.getLogger(__name__)


class HttpAuthService(BaseAuthService):

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.endpoint_url = settings.auth_user_endpoint_url
        self.anon_key = settings.anon_key
        self.timeout = settings.auth_timeout_seconds
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "http"

    async def get_session(self, token: Optional[str]) -> SessionContext:
        if not token:
            return SessionContext()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    self.endpoint_url,
                    headers={"Authorization": f"Bearer {token}", "apikey": self.anon_key},
                )
            except httpx.HTTPError as e:
                logger.error(f"Auth lookup failed: {e}")
                return SessionContext()

        if response.is_error:
            if response.status_code != 401:
                logger.error(f"Auth lookup failed: {response.status_code} - {response.text}")
            return SessionContext()

        try:
            user = response.json()
        except ValueError:
            logger.error("Auth lookup returned a non-JSON body")
            return SessionContext()

        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            logger.warning("Auth lookup answered without a user id")
            return SessionContext()

        return SessionContext(user_id=str(user_id), email=user.get("email"), access_token=token)
