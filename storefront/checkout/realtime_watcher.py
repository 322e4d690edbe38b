"""
Realtime Reconciliation Watcher

Keeps a checkout's cart and address book in step with rows that change
underneath it (an admin repricing a dish, a dish selling out, the shopper
editing an address in another tab).

The watcher is live only while it is mounted, the cart is non-empty and
the submission state is quiescent (idle / validating / failed). Entering
placing_order, awaiting_payment or anything later tears every channel
down, so a refetch can never change a cart that is being paid for.

Channels:
    menu_items   UPDATE events for menu-item and dish ids in the cart
    products     UPDATE events for legacy product ids in the cart
    addresses    all events for ``user_id=eq.{user}`` (signed-in only)

A dropped channel (TIMED_OUT / CLOSED / CHANNEL_ERROR) is resubscribed
with exponential backoff: min(initial * 2^attempt, max_delay), bounded
attempts, counter reset on SUBSCRIBED. Running out of attempts only costs
live updates; checkout itself carries on.

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Set

from storefront.checkout.context import CheckoutContext, CheckoutServices
from storefront.checkout.messages import MessageBoard
from storefront.checkout.pricing import parse_price, read_field
from storefront.checkout.state import SubmissionState, SubmissionStateMachine
from storefront.core.exceptions import RealtimeError
from storefront.schemas import CartLine, SavedAddress
from storefront.services.realtime.base import (
    ChangeFilter,
    ChannelStatus,
    DROPPED_STATUSES,
    RealtimeChannel,
    RowChange,
)

logger = logging.getLogger(__name__)

PRICE_UPDATED_NOTICE = "Price updated for an item in your cart"
UNAVAILABLE_NOTICE = "An item in your cart is no longer available"

MENU_ITEMS = "menu_items"
PRODUCTS = "products"
ADDRESSES = "addresses"


def watched_product_ids(lines: List[CartLine]) -> Dict[str, Set[str]]:
    """
    Product ids referenced by ``lines``, keyed by the table they live in.

    Menu items and dishes are both rows of ``menu_items``; legacy products
    live in ``products``.
    """
    ids: Dict[str, Set[str]] = {MENU_ITEMS: set(), PRODUCTS: set()}
    for line in lines:
        tag = read_field(line, "resolved_product_type")
        tag = getattr(tag, "value", tag)
        resolved_id = read_field(read_field(line, "resolved_product"), "id")
        menu_item_id = read_field(line, "menu_item_id")
        product_id = read_field(line, "product_id")

        if menu_item_id or tag == "menu_item":
            ids[MENU_ITEMS].add(menu_item_id or resolved_id)
        if product_id or tag == "dish":
            ids[MENU_ITEMS].add(product_id or resolved_id)
        if product_id or tag == "legacy":
            ids[PRODUCTS].add(product_id or resolved_id)

    return {table: {str(i) for i in found if i} for table, found in ids.items()}


class RealtimeReconciliationWatcher:

    def __init__(
        self,
        context: CheckoutContext,
        machine: SubmissionStateMachine,
        board: MessageBoard,
        services: CheckoutServices,
    ):
        self.context = context
        self.machine = machine
        self.board = board
        self.services = services
        self.realtime = services.realtime

        settings = services.settings
        self.debounce_seconds = settings.realtime_debounce_seconds
        self.max_attempts = settings.realtime_max_reconnect_attempts
        self.initial_delay = settings.realtime_initial_reconnect_delay
        self.max_delay = settings.realtime_max_reconnect_delay

        self._mounted = False
        self._active = False
        self._lock = asyncio.Lock()
        self._sync_task: Optional[asyncio.Task] = None

        self._channels: Dict[str, RealtimeChannel] = {}
        self._watched: Dict[str, Set[str]] = {MENU_ITEMS: set(), PRODUCTS: set()}
        self._attempts: Dict[str, int] = {}
        self._reconnects: Dict[str, asyncio.Task] = {}
        self._debounce_timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def active(self) -> bool:
        return self._active

    @property
    def live(self) -> bool:
        """True while at least one channel is delivering."""
        return any(c.status == ChannelStatus.SUBSCRIBED for c in self._channels.values())

    def should_be_active(self) -> bool:
        return self._mounted and not self.context.cart.is_empty and self.machine.is_quiescent

    async def mount(self) -> None:
        self._mounted = True
        self.machine.add_listener(self._on_state_change)
        self.context.cart.add_listener(self._on_cart_change)
        await self.sync()

    async def unmount(self) -> None:
        self._mounted = False
        self.machine.remove_listener(self._on_state_change)
        self.context.cart.remove_listener(self._on_cart_change)
        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
        await self.sync()

    def _on_state_change(self, previous: SubmissionState, current: SubmissionState) -> None:
        self._schedule_sync()

    def _on_cart_change(self, lines: List[CartLine]) -> None:
        self._schedule_sync()

    def _schedule_sync(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; realtime sync skipped")
            return
        self._sync_task = loop.create_task(self.sync())

    async def sync(self) -> None:
        """Bring the open channels in line with the current cart and state."""
        async with self._lock:
            if not self.should_be_active():
                if self._active:
                    await self._teardown()
                return

            self._active = True
            self._watched = watched_product_ids(self.context.cart.lines)
            wanted = {table for table, ids in self._watched.items() if ids}
            if self.context.session.is_authenticated:
                wanted.add(ADDRESSES)

            for key in list(self._channels):
                if key not in wanted:
                    await self._remove(key)
            for key in wanted:
                if key not in self._channels and key not in self._reconnects:
                    await self._subscribe(key)

    async def _teardown(self) -> None:
        self._active = False
        for timer in self._debounce_timers.values():
            timer.cancel()
        self._debounce_timers.clear()

        pending = list(self._reconnects.values()) + list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._reconnects.clear()
        self._tasks.clear()
        self._attempts.clear()

        for key in list(self._channels):
            await self._remove(key)
        logger.debug("Realtime watcher torn down")

    # =========================================================================
    # Channels
    # =========================================================================

    async def _subscribe(self, key: str) -> None:
        if key == ADDRESSES:
            kwargs = dict(
                table=ADDRESSES,
                on_change=self._on_address_change,
                event="*",
                change_filter=ChangeFilter("user_id", str(self.context.session.user_id)),
            )
        else:
            kwargs = dict(table=key, on_change=self._on_product_change, event="UPDATE")

        try:
            channel = await self.realtime.subscribe(
                name=f"checkout-{key.replace('_', '-')}-updates",
                on_status=lambda status, key=key: self._on_status(key, status),
                **kwargs,
            )
        except RealtimeError as e:
            logger.warning(f"Failed to subscribe to {key} updates: {e}")
            self._schedule_reconnect(key)
            return

        if not self._active:
            # Torn down while the subscribe was in flight
            await self.realtime.remove_channel(channel)
            return
        self._channels[key] = channel

    async def _remove(self, key: str) -> None:
        channel = self._channels.pop(key, None)
        if channel is None:
            return
        try:
            await self.realtime.remove_channel(channel)
        except RealtimeError as e:
            logger.warning(f"Error removing {key} channel: {e}")

    def _on_status(self, key: str, status: ChannelStatus) -> None:
        if status == ChannelStatus.SUBSCRIBED:
            self._attempts[key] = 0
            return
        if status not in DROPPED_STATUSES or not self._active:
            return

        logger.warning(f"Realtime channel for {key} dropped ({status.value})")
        channel = self._channels.pop(key, None)
        if channel is not None:
            self._spawn(self.realtime.remove_channel(channel))
        self._schedule_reconnect(key)

    def reconnect_delay(self, attempt: int) -> float:
        return min(self.initial_delay * (2 ** attempt), self.max_delay)

    def _schedule_reconnect(self, key: str) -> None:
        if not self._active or key in self._reconnects:
            return

        attempt = self._attempts.get(key, 0)
        if attempt >= self.max_attempts:
            logger.error(
                f"Giving up on {key} updates after {attempt} reconnect attempts; "
                f"continuing without live updates"
            )
            return

        self._attempts[key] = attempt + 1
        delay = self.reconnect_delay(attempt)
        logger.info(f"Reconnecting {key} in {delay:.1f}s (attempt {attempt + 1}/{self.max_attempts})")
        self._reconnects[key] = asyncio.get_running_loop().create_task(self._reconnect(key, delay))

    async def _reconnect(self, key: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnects.pop(key, None)
        async with self._lock:
            if self._active and key not in self._channels:
                await self._subscribe(key)

    # =========================================================================
    # Change handlers
    # =========================================================================

    def _on_product_change(self, change: RowChange) -> None:
        row_id = change.new.get("id") or change.old.get("id")
        if row_id is None or str(row_id) not in self._watched.get(change.table, set()):
            return

        old_price, new_price = change.old.get("price"), change.new.get("price")
        if old_price is not None and new_price is not None and parse_price(old_price) != parse_price(new_price):
            self.board.notify(PRICE_UPDATED_NOTICE, "info")

        if change.new.get("is_available") is False:
            self.board.notify(UNAVAILABLE_NOTICE, "warning")

        self._debounce("cart", self.refetch_cart)

    def _on_address_change(self, change: RowChange) -> None:
        selected = self.context.selected_address
        row_id = change.new.get("id") or change.old.get("id")

        if selected is not None and change.new and str(row_id) == str(selected.id):
            updates = {k: v for k, v in change.new.items() if k in SavedAddress.model_fields}
            self.context.selected_address = SavedAddress.model_validate(
                {**selected.model_dump(), **updates}
            )
            logger.info(f"Adopted updated selected address {selected.id}")

        self._debounce("addresses", self.refetch_addresses)

    def _debounce(self, name: str, job: Callable[[], Awaitable[None]]) -> None:
        timer = self._debounce_timers.pop(name, None)
        if timer is not None:
            timer.cancel()
        self._debounce_timers[name] = asyncio.get_running_loop().call_later(
            self.debounce_seconds, self._fire, name, job
        )

    def _fire(self, name: str, job: Callable[[], Awaitable[None]]) -> None:
        self._debounce_timers.pop(name, None)
        if self._active:
            self._spawn(job())

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Refetches
    # =========================================================================

    async def refetch_cart(self) -> None:
        """Reload the cart; whichever refetch finishes last wins."""
        ctx = self.context
        try:
            if ctx.session.is_authenticated:
                lines = await self.services.customer_data.fetch_cart(ctx.session.user_id)
            elif ctx.guest_session_id:
                lines = self.services.guest_carts.get(ctx.guest_session_id)
            else:
                return
        except Exception as e:
            logger.warning(f"Cart refetch failed: {e}")
            return
        ctx.cart.replace(lines)

    async def refetch_addresses(self) -> None:
        ctx = self.context
        if not ctx.session.is_authenticated:
            return
        try:
            addresses = await self.services.customer_data.fetch_addresses(ctx.session.user_id)
        except Exception as e:
            logger.warning(f"Address refetch failed: {e}")
            return

        ctx.addresses = addresses
        if ctx.selected_address is not None:
            ctx.select_address(ctx.selected_address.id)
