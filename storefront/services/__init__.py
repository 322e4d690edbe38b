"""
                        Services Module

Collaborators the checkout core talks to, with the hybrid architecture
pattern: each has a Mock (development) and a Real (staging/production)
implementation chosen by ENV_MODE in its package factory.

Services:
    - orders: order creation with items (in-memory / PostgreSQL)
    - discounts: discount code validation and usage (in-memory / PostgreSQL)
    - customer: cart rows and address book (in-memory / PostgreSQL), guest carts
    - payment: payment intents (mock / Stripe)
    - notifications: confirmation e-mail (mock / SendGrid) and its HTTP dispatcher
    - realtime: row change feed (in-process / Redis pub/sub)
    - auth: bearer token to shopper lookup
    - outbox: fire-and-forget runner for non-critical side effects
"""

from functools import lru_cache

from storefront.checkout.context import CheckoutServices
from storefront.core.config import get_settings
from storefront.services.auth import get_auth_service
from storefront.services.customer import (
    get_customer_data_service,
    get_guest_cart_store,
    reset_customer_data_service,
)
from storefront.services.discounts import get_discount_service, reset_discount_service
from storefront.services.notifications import (
    get_confirmation_dispatcher,
    get_notification_service,
    reset_notification_service,
)
from storefront.services.orders import get_order_service, reset_order_service
from storefront.services.outbox import BestEffortOutbox
from storefront.services.payment import get_payment_service, reset_payment_service
from storefront.services.realtime import get_realtime_service, reset_realtime_service


@lru_cache()
def get_outbox() -> BestEffortOutbox:
    return BestEffortOutbox()


@lru_cache()
def get_checkout_services() -> CheckoutServices:
    """Every collaborator a checkout session needs, from the cached factories."""
    return CheckoutServices(
        settings=get_settings(),
        orders=get_order_service(),
        payments=get_payment_service(),
        discounts=get_discount_service(),
        customer_data=get_customer_data_service(),
        guest_carts=get_guest_cart_store(),
        dispatcher=get_confirmation_dispatcher(),
        realtime=get_realtime_service(),
        outbox=get_outbox(),
    )


def reset_services() -> None:
    """Forget every cached service (tests, settings reloads)."""
    reset_order_service()
    reset_payment_service()
    reset_discount_service()
    reset_customer_data_service()
    reset_notification_service()
    reset_realtime_service()
    get_auth_service.cache_clear()
    get_outbox.cache_clear()
    get_checkout_services.cache_clear()


__all__ = [
    "get_checkout_services",
    "get_outbox",
    "get_auth_service",
    "get_notification_service",
    "reset_services",
]
