"""Pytest configuration and shared fixtures."""

import asyncio
from typing import List

import httpx
import pytest

from storefront.checkout.context import CheckoutCart, CheckoutContext, CheckoutServices, SessionContext
from storefront.checkout.messages import MessageBoard
from storefront.checkout.pricing import PricingPolicy
from storefront.checkout.state import SubmissionStateMachine
from storefront.core.config import Settings
from storefront.schemas import CartLine, ShippingAddress
from storefront.services.customer import GuestCartStore, MockCustomerDataService
from storefront.services.discounts.mock import MockDiscountService
from storefront.services.notifications.dispatch import ConfirmationDispatcher
from storefront.services.orders import MockOrderService
from storefront.services.outbox import BestEffortOutbox, RetryPolicy
from storefront.services.payment import MockPaymentService
from storefront.services.realtime import MockRealtimeService


def make_line(line_id: str = "line-1", price=10, quantity: int = 1, **fields) -> CartLine:
    """A cart line for a menu item, priced on the line itself."""
    fields.setdefault("menu_item_id", f"dish-{line_id}")
    fields.setdefault("name", f"Dish {line_id}")
    return CartLine(id=line_id, price=price, quantity=quantity, **fields)


def valid_address(**overrides) -> ShippingAddress:
    data = {
        "full_name": "Jane Doe",
        "street_address": "350 Fifth Avenue",
        "city": "New York",
        "state_province": "NY",
        "postal_code": "10118",
        "country": "US",
        "phone_number": "(555) 123-4567",
    }
    data.update(overrides)
    return ShippingAddress(**data)


async def settle(rounds: int = 10) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    """Development settings with every checkout delay shortened."""
    return Settings(
        _env_file=None,
        env_mode="development",
        success_paint_delay_seconds=0,
        redirect_delay_seconds=0.01,
        validation_message_seconds=0.05,
        error_message_seconds=0.05,
        realtime_debounce_seconds=0.02,
        realtime_initial_reconnect_delay=0.01,
        realtime_max_reconnect_delay=0.04,
        realtime_max_reconnect_attempts=3,
        confirmation_endpoint_url="http://confirm.test/functions/v1/send-order-confirmation",
        anon_key="anon-test-key",
    )


@pytest.fixture
def confirmation_requests() -> List[httpx.Request]:
    """Requests captured by the fake confirmation endpoint."""
    return []


@pytest.fixture
def services(settings, confirmation_requests) -> CheckoutServices:
    """Every collaborator as an in-memory mock."""

    def handler(request: httpx.Request) -> httpx.Response:
        confirmation_requests.append(request)
        return httpx.Response(200, json={"success": True, "message": "queued"})

    policy = PricingPolicy.from_settings(settings)
    return CheckoutServices(
        settings=settings,
        orders=MockOrderService(pricing_policy=policy),
        payments=MockPaymentService(max_latency=0),
        discounts=MockDiscountService(),
        customer_data=MockCustomerDataService(),
        guest_carts=GuestCartStore(),
        dispatcher=ConfirmationDispatcher(settings, transport=httpx.MockTransport(handler)),
        realtime=MockRealtimeService(),
        outbox=BestEffortOutbox(RetryPolicy()),
        pricing_policy=policy,
    )


@pytest.fixture
def guest_context(services) -> CheckoutContext:
    return CheckoutContext(
        session=SessionContext(),
        cart=CheckoutCart([make_line("a", 10, 2), make_line("b", 20, 1)]),
        guest_session_id="guest-123",
        pricing_policy=services.pricing_policy,
    )


@pytest.fixture
def member_context(services) -> CheckoutContext:
    return CheckoutContext(
        session=SessionContext(user_id="user-1", email="member@example.com", access_token="tok-1"),
        cart=CheckoutCart([make_line("a", 10, 2), make_line("b", 20, 1)]),
        pricing_policy=services.pricing_policy,
    )


@pytest.fixture
def machine() -> SubmissionStateMachine:
    return SubmissionStateMachine()


@pytest.fixture
def board() -> MessageBoard:
    return MessageBoard()
