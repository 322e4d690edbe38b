"""
Order confirmation dispatch.

After a successful payment the checkout asks the confirmation endpoint to
e-mail the shopper. The request carries the shopper's access token, or the
anonymous key for guests:

    POST {CONFIRMATION_ENDPOINT_URL}
    Authorization: Bearer <token>
    {"orderId": "...", "email": "..."}

Any failure (transport error or non-2xx answer) is raised as a
NotificationError; callers run this through the best-effort outbox, which
only logs it.
"""

import logging
from typing import Optional

import httpx

from storefront.core.config import get_settings, Settings
from storefront.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


class ConfirmationDispatcher:
    """POSTs order confirmation requests to the confirmation endpoint."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.endpoint_url = settings.confirmation_endpoint_url
        self.anon_key = settings.anon_key
        self.timeout = settings.confirmation_timeout_seconds
        self._transport = transport

    def _headers(self, access_token: Optional[str]) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token or self.anon_key}",
        }

    async def send(self, order_id: str, email: str, access_token: Optional[str] = None) -> dict:
        """
        Request the confirmation e-mail for ``order_id``.

        Returns:
            The endpoint's JSON answer

        Raises:
            NotificationError: transport failure or non-2xx response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.endpoint_url,
                    headers=self._headers(access_token),
                    json={"orderId": order_id, "email": email},
                )
            except httpx.HTTPError as e:
                raise NotificationError(f"Failed to send confirmation email: {e}") from e

        if response.is_error:
            raise NotificationError(
                f"Failed to send confirmation email: {response.status_code} - {response.text}"
            )

        logger.info(f"Order confirmation requested for order {order_id}")
        return response.json()
