"""Checkout session and registry tests."""

import asyncio
from decimal import Decimal

import pytest

from conftest import make_line, valid_address
from storefront.checkout.context import SessionContext
from storefront.checkout.orchestrator import CheckoutForm
from storefront.checkout.session import CheckoutSessionRegistry
from storefront.core.exceptions import SessionNotFoundError, SubmissionInProgressError, ValidationError

MEMBER = SessionContext(user_id="user-1", email="member@example.com", access_token="tok-1")


@pytest.fixture
def registry(services):
    return CheckoutSessionRegistry(services, new_guest_session_id=lambda: "guest-new")


class TestRegistry:

    @pytest.mark.asyncio
    async def test_guest_session_seeds_guest_cart(self, registry, services):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 10, 2)])

        assert checkout.context.guest_session_id == "guest-new"
        assert services.guest_carts.get("guest-new")[0].id == "a"
        assert len(checkout.context.cart.lines) == 1
        assert registry.get(checkout.session_id) is checkout
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_guest_session_reuses_existing_cart(self, registry, services):
        services.guest_carts.set("guest-old", [make_line("z", 3, 1)])
        checkout = await registry.create(SessionContext(), guest_session_id="guest-old")
        assert [line.id for line in checkout.context.cart.lines] == ["z"]

    @pytest.mark.asyncio
    async def test_member_session_loads_cart_and_default_address(self, registry, services):
        dish = services.customer_data.add_catalog_item("Margherita", "14.99", item_id="m1")
        services.customer_data.add_cart_row("user-1", dish, quantity=2)
        services.customer_data.add_address("user-1", id="work", **valid_address().model_dump())
        services.customer_data.add_address("user-1", id="home", is_default=True, **valid_address().model_dump())

        checkout = await registry.create(MEMBER, guest_session_id="ignored")

        ctx = checkout.context
        assert ctx.guest_session_id is None
        assert ctx.cart.lines[0].resolved_product.name == "Margherita"
        assert ctx.pricing().subtotal == Decimal("29.98")
        assert ctx.selected_address.id == "home"
        assert len(services.realtime.channels) == 2

    @pytest.mark.asyncio
    async def test_unknown_session(self, registry):
        with pytest.raises(SessionNotFoundError):
            registry.get("nope")
        with pytest.raises(SessionNotFoundError):
            await registry.remove("nope")

    @pytest.mark.asyncio
    async def test_remove_and_close_all(self, registry, services):
        first = await registry.create(SessionContext(), lines=[make_line("a", 10, 1)])
        await registry.create(SessionContext(), lines=[make_line("b", 10, 1)])
        assert len(services.realtime.channels) == 2

        await registry.remove(first.session_id)
        assert len(registry) == 1
        await registry.close_all()
        assert len(registry) == 0
        assert services.realtime.channels == []


class TestDiscounts:

    @pytest.mark.asyncio
    async def test_apply_percentage_code(self, registry):
        checkout = await registry.create(MEMBER)
        checkout.context.cart.replace([make_line("a", 10, 2), make_line("b", 20, 1)])

        discount = await checkout.apply_discount_code(" welcome10 ")

        # 10% of 48.96 (subtotal + shipping + tax)
        assert discount.code == "WELCOME10"
        assert discount.amount == Decimal("4.90")
        assert checkout.snapshot()["pricing"]["grand_total"] == 44.06

    @pytest.mark.asyncio
    async def test_rejected_code(self, registry):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 5, 1)])
        with pytest.raises(ValidationError) as exc_info:
            await checkout.apply_discount_code("FIVEOFF")
        assert exc_info.value.user_message == "Minimum order amount of $20.00 required."
        assert checkout.context.discount is None

    @pytest.mark.asyncio
    async def test_locked_while_paying(self, registry):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 30, 1)])
        await checkout.submit(CheckoutForm(address=valid_address(), guest_email="jane@example.com"))

        with pytest.raises(SubmissionInProgressError):
            await checkout.apply_discount_code("FIVEOFF")
        with pytest.raises(SubmissionInProgressError):
            checkout.remove_discount()

    @pytest.mark.asyncio
    async def test_refresh_locked_while_paying(self, registry):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 30, 1)])
        await checkout.submit(CheckoutForm(address=valid_address(), guest_email="jane@example.com"))

        with pytest.raises(SubmissionInProgressError):
            await checkout.refresh_cart()
        assert checkout.context.cart.lines[0].id == "a"

    @pytest.mark.asyncio
    async def test_remove(self, registry):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 30, 1)])
        await checkout.apply_discount_code("FIVEOFF")
        checkout.remove_discount()
        assert checkout.snapshot()["discount"] is None


class TestSnapshot:

    @pytest.mark.asyncio
    async def test_full_guest_flow(self, registry, services):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 10, 2), make_line("b", 20, 1)])
        view = checkout.snapshot()
        assert view["state"] == "idle"
        assert view["pricing"]["grand_total"] == 48.96
        assert view["live_updates"] is True
        assert view["client_secret"] is None

        intent = await checkout.submit(CheckoutForm(address=valid_address(), guest_email="jane@example.com"))
        view = checkout.snapshot()
        assert view["state"] == "awaiting_payment"
        assert view["client_secret"] == intent.client_secret
        assert view["live_updates"] is False

        assert await checkout.payment_succeeded() is True
        view = checkout.snapshot()
        assert view["state"] == "succeeded"
        assert view["client_secret"] is None
        assert view["show_conversion_modal"] is True
        assert view["guest_checkout_data"]["order_id"] == intent.order_id
        assert view["lines"] == []

        checkout.close_modal()
        assert checkout.snapshot()["state"] == "idle"
        await services.outbox.drain()

    @pytest.mark.asyncio
    async def test_failure_reason_and_message(self, registry):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 10, 1)])
        with pytest.raises(ValidationError):
            await checkout.submit(CheckoutForm(address=valid_address()))

        view = checkout.snapshot()
        assert view["state"] == "failed"
        assert view["failure_reason"] == "Please provide your email address."
        assert view["message"] == {"text": "Please provide your email address.", "level": "error"}


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestEviction:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def registry(self, services, clock):
        return CheckoutSessionRegistry(services, new_guest_session_id=lambda: "guest-new", clock=clock)

    @pytest.mark.asyncio
    async def test_idle_session_evicted_after_ttl(self, registry, services, clock):
        active = await registry.create(SessionContext(), lines=[make_line("a", 10, 1)])
        idle = await registry.create(SessionContext(), lines=[make_line("b", 10, 1)])

        clock.now = 1000
        registry.get(active.session_id)
        clock.now = 1800

        assert await registry.evict_idle() == 1
        assert len(registry) == 1
        assert registry.get(active.session_id) is active
        with pytest.raises(SessionNotFoundError):
            registry.get(idle.session_id)
        assert len(services.realtime.channels) == 1

    @pytest.mark.asyncio
    async def test_finished_session_evicted_after_grace(self, registry, services, clock):
        checkout = await registry.create(SessionContext(), lines=[make_line("a", 10, 1)])
        await checkout.submit(CheckoutForm(address=valid_address(), guest_email="jane@example.com"))
        assert await checkout.payment_succeeded() is True

        clock.now = 30
        # the conversion modal is still showing
        assert await registry.evict_idle() == 0

        checkout.close_modal()
        assert checkout.is_finished
        assert await registry.evict_idle() == 1
        assert len(registry) == 0
        await services.outbox.drain()

    @pytest.mark.asyncio
    async def test_sweeper_evicts_in_background(self, services):
        services.settings.checkout_session_ttl_seconds = 0
        services.settings.checkout_session_sweep_seconds = 0.01
        registry = CheckoutSessionRegistry(services)
        await registry.create(SessionContext(), lines=[make_line("a", 10, 1)])

        registry.start_sweeper()
        await asyncio.sleep(0.05)

        assert len(registry) == 0
        await registry.close_all()
