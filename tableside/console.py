"""
Staff Order Console

Restaurant-side order management:
    - List orders filtered by status, table and date (today by default)
    - Re-fetch immediately on every filter change and in the background
    - Move orders along the status pipeline
    - Delete pending or cancelled orders after explicit confirmation
    - Place orders for a table from the staff order form
    - Show one order in a detail view and render its invoice

The backend is authoritative. Status changes are applied only after the
server confirms them; a rejected change is followed by a re-fetch so the
console shows whatever the server ended up with.

Usage:
    console = StaffOrderConsole(service, restaurant_id=1)
    await console.mount()
    await console.set_filters(status="pending")
    await console.update_status(42, "confirmed")
    await console.unmount()

Version: 1.0.0
"""

import asyncio
import inspect
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from tableside.banners import Banner
from tableside.core.config import get_settings
from tableside.core.exceptions import (
    DeletionNotAllowedError,
    IllegalTransitionError,
    MissingTargetError,
    NoValidItemsError,
    OrderingError,
    OrderValidationError,
    ServerRejectedError,
    UnknownStatusError,
)
from tableside.invoice import render_invoice
from tableside.money import to_decimal
from tableside.normalize import normalize_order, normalize_orders, unwrap_result
from tableside.registry import (
    OrderStatus,
    StatusLike,
    parse_status,
    valid_transitions,
)
from tableside.schemas import Order, OrderCreateRequest, OrderFilters, OrderItemPayload
from tableside.sequencing import RequestSequencer
from tableside.services.orders.base import BaseOrderService

logger = logging.getLogger(__name__)

STATUS_UPDATED_MESSAGE = "Order status updated successfully!"
ORDER_DELETED_MESSAGE = "Order deleted successfully!"
NO_RESTAURANT_MESSAGE = "No restaurant associated with your account"
ORDER_CREATED_MESSAGE = "Order created successfully!"
CREATE_FAILED_MESSAGE = "Failed to create order"
SELECT_TABLE_MESSAGE = "Please select a table"

Confirm = Callable[[Order], Union[bool, Awaitable[bool]]]


def _valid_form_items(lines: Iterable[Mapping[str, Any]]) -> list[OrderItemPayload]:
    """Order items for the form rows that have a meal, a quantity and a price."""
    items = []
    for line in lines:
        try:
            meal_id = int(line.get("meal_id") or 0)
            quantity = int(line.get("quantity") or 0)
            price = to_decimal(line.get("price") or 0)
        except (TypeError, ValueError):
            continue
        if meal_id <= 0 or quantity <= 0 or not price.is_finite() or price <= 0:
            continue
        note = (line.get("note") or "").strip() or None
        items.append(
            OrderItemPayload(meal_id=meal_id, quantity=quantity, price=price, note=note)
        )
    return items


class StaffOrderConsole:
    """
    One staff member's view of a restaurant's orders.

    Attributes:
        service: Order Service collaborator
        restaurant_id: Restaurant whose orders are shown
        refresh_interval: Seconds between background refreshes
        filters: Current list filters
        selected: Order open in the detail view, if any
        loading: True while the initial fetch after mount is pending
    """

    def __init__(
        self,
        service: BaseOrderService,
        restaurant_id: Optional[int],
        refresh_interval: Optional[float] = None,
        banner_ttl: Optional[float] = None,
        today: Callable[[], date] = date.today,
    ):
        settings = get_settings()
        ttl = banner_ttl if banner_ttl is not None else settings.console_banner_seconds

        self.service = service
        self.restaurant_id = restaurant_id
        self.refresh_interval = (
            refresh_interval if refresh_interval is not None
            else settings.console_refresh_seconds
        )
        self.currency = settings.currency
        self.filters = OrderFilters()
        self.selected: Optional[Order] = None
        self.loading = False
        self.success_banner = Banner("console-success", ttl)
        self.error_banner = Banner("console-error", ttl)

        self._today = today
        self._orders: list[Order] = []
        self._sequencer = RequestSequencer()
        self._timer: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._mounted = False
        self._torn_down = False

    def __repr__(self) -> str:
        return (
            f"<StaffOrderConsole restaurant={self.restaurant_id} "
            f"orders={len(self._orders)} mounted={self._mounted}>"
        )

    async def __aenter__(self) -> "StaffOrderConsole":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    @property
    def orders(self) -> list[Order]:
        return list(self._orders)

    @property
    def mounted(self) -> bool:
        return self._mounted

    def get(self, order_id: int) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        if self.selected is not None and self.selected.id == order_id:
            return self.selected
        return None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def mount(self) -> None:
        """
        Default the date filter to today, fetch once, then start the
        background refresh.
        """
        if self._mounted:
            return
        if self._torn_down:
            raise RuntimeError("Console has been unmounted")
        if self.restaurant_id is None:
            logger.warning("Console: no restaurant for this account, not mounting")
            self.error_banner.show(NO_RESTAURANT_MESSAGE)
            return

        self.filters = self.filters.model_copy(update={"date": self._today()})
        self._mounted = True
        self.loading = True
        logger.info(
            f"Console: mounted for restaurant {self.restaurant_id} "
            f"(refresh every {self.refresh_interval}s)"
        )

        await self.refresh()
        self._timer = asyncio.create_task(
            self._refresh_forever(),
            name=f"console-refresh-{self.restaurant_id}",
        )

    async def unmount(self) -> None:
        """Stop background refreshes and make outstanding fetches inert."""
        self._torn_down = True
        self._mounted = False

        pending = [task for task in self._inflight if not task.done()]
        if self._timer is not None:
            pending.append(self._timer)
            self._timer = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()

        self.success_banner.close()
        self.error_banner.close()
        logger.info(f"Console: unmounted for restaurant {self.restaurant_id}")

    async def _refresh_forever(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            task = asyncio.create_task(self.refresh())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    # =========================================================================
    # LIST
    # =========================================================================

    async def refresh(self) -> bool:
        """
        Fetch the order list for the current filters.

        Returns:
            True if the response was applied, False if it failed or was stale
        """
        if self._torn_down or self.restaurant_id is None:
            return False

        ticket = self._sequencer.issue()
        filters = self.filters

        try:
            payload = await self.service.get_all_orders(self.restaurant_id, filters)
            orders = normalize_orders(payload)
        except OrderingError as e:
            if isinstance(e, UnknownStatusError):
                logger.error(f"Console: backend sent an unknown status - {e.message}")
            else:
                logger.warning(f"Console: fetch #{ticket} failed - {e.message}")
            if not self._torn_down and ticket > self._sequencer.applied:
                self.error_banner.show(e.message)
                self.loading = False
            return False

        if self._torn_down:
            return False
        if not self._sequencer.accept(ticket):
            logger.debug(
                f"Console: dropped stale response #{ticket} "
                f"(already showing #{self._sequencer.applied})"
            )
            return False

        self._orders = orders
        self.loading = False
        self._sync_selected()
        logger.debug(f"Console: showing {len(orders)} order(s) for {filters.to_params()}")
        return True

    async def set_filters(self, **changes: Any) -> bool:
        """
        Change one or more filters (status, table_id, date).

        Re-fetches immediately when mounted and a value actually changed.
        ``None`` or ``""`` clears a filter.

        Invalid values are shown in the error banner and the current filters
        are kept.

        Returns:
            True if a re-fetch was made
        """
        try:
            new_filters = OrderFilters.model_validate({**self.filters.model_dump(), **changes})
        except UnknownStatusError as e:
            logger.error(f"Console: {e.message}")
            self.error_banner.show(e.message)
            return False
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or "filters"
            message = f"Invalid filter {field}: {error['msg']}"
            logger.info(f"Console: {message}")
            self.error_banner.show(message)
            return False

        if new_filters == self.filters:
            return False

        self.filters = new_filters
        if not self._mounted:
            return False
        await self.refresh()
        return True

    # =========================================================================
    # DETAIL VIEW
    # =========================================================================

    def select_order(self, order_id: int) -> Optional[Order]:
        self.selected = self.get(order_id)
        return self.selected

    def close_details(self) -> None:
        self.selected = None

    def _sync_selected(self) -> None:
        if self.selected is None:
            return
        for order in self._orders:
            if order.id == self.selected.id:
                self.selected = order
                return

    def _replace(self, updated: Order) -> None:
        self._orders = [updated if order.id == updated.id else order for order in self._orders]
        if self.selected is not None and self.selected.id == updated.id:
            self.selected = updated

    # =========================================================================
    # STATUS UPDATES
    # =========================================================================

    def available_transitions(self, order: Order) -> tuple[OrderStatus, ...]:
        """Statuses offered in the order's status menu (empty for terminal orders)."""
        if not order.is_updatable:
            return ()
        return valid_transitions(order.status)

    def can_delete(self, order: Order) -> bool:
        return order.is_deletable

    async def update_status(self, order_id: int, new_status: StatusLike) -> bool:
        """
        Ask the server to move an order to ``new_status``.

        Illegal moves are refused locally. Nothing is changed on screen
        until the server confirms.

        Returns:
            True if the server accepted the change
        """
        order = self.get(order_id)
        if order is None:
            self.error_banner.show(f"Order #{order_id} not found")
            return False

        try:
            target = parse_status(new_status)
        except UnknownStatusError as e:
            logger.error(f"Console: {e.message}")
            self.error_banner.show(e.message)
            return False

        if target not in self.available_transitions(order):
            error = IllegalTransitionError(order.status.value, target.value)
            logger.info(f"Console: order #{order_id} - {error.message}")
            self.error_banner.show(error.message)
            return False

        try:
            payload = await self.service.update_order_status(order_id, target)
            updated = normalize_order(payload)
        except ServerRejectedError as e:
            logger.warning(f"Console: status update for #{order_id} rejected - {e.message}")
            self.error_banner.show(e.message)
            await self.refresh()
            return False
        except OrderingError as e:
            logger.warning(f"Console: status update for #{order_id} failed - {e.message}")
            self.error_banner.show(e.message)
            return False

        if self._torn_down:
            return True

        if updated is not None:
            self._replace(updated)
        logger.info(f"Console: order #{order_id} {order.status.value} -> {target.value}")
        self.success_banner.show(STATUS_UPDATED_MESSAGE)

        await self.refresh()
        return True

    # =========================================================================
    # STAFF-CREATED ORDERS
    # =========================================================================

    async def create_order(
        self,
        table_id: Optional[int],
        lines: Iterable[Mapping[str, Any]],
    ) -> bool:
        """
        Place an order for a table from the staff order form.

        Form rows without a meal, a positive quantity or a price are
        dropped. Nothing is sent when no row is left or no table is chosen.

        Args:
            table_id: Table the order is for
            lines: Rows with ``meal_id``, ``quantity``, ``price`` and an
                optional ``note``

        Returns:
            True if the server created the order
        """
        if self.restaurant_id is None:
            self.error_banner.show(NO_RESTAURANT_MESSAGE)
            return False

        try:
            items = _valid_form_items(lines)
            if not items:
                raise NoValidItemsError()
            if table_id in (None, ""):
                raise MissingTargetError(SELECT_TABLE_MESSAGE)
            request = OrderCreateRequest(
                restaurant_id=self.restaurant_id,
                table_id=table_id,
                order_items=items,
            )
        except OrderValidationError as e:
            logger.info(f"Console: order form refused - {e.message}")
            self.error_banner.show(e.message)
            return False
        except ValidationError:
            message = f"Invalid table: {table_id!r}"
            logger.info(f"Console: order form refused - {message}")
            self.error_banner.show(message)
            return False

        try:
            unwrap_result(await self.service.create_order(request))
        except OrderingError as e:
            message = e.message or CREATE_FAILED_MESSAGE
            logger.warning(f"Console: order for table {table_id} failed - {message}")
            self.error_banner.show(message)
            return False

        if self._torn_down:
            return True

        logger.info(
            f"Console: order created for table {request.table_id} "
            f"({len(request.order_items)} line(s))"
        )
        self.success_banner.show(ORDER_CREATED_MESSAGE)

        await self.refresh()
        return True

    # =========================================================================
    # DELETION
    # =========================================================================

    async def delete_order(self, order_id: int, confirm: Confirm) -> bool:
        """
        Delete a pending or cancelled order once ``confirm(order)`` agrees.

        ``confirm`` may be a plain or an async callable. Nothing is sent
        if the order is not deletable or the confirmation is declined.

        Returns:
            True if the order was deleted
        """
        order = self.get(order_id)
        if order is None:
            self.error_banner.show(f"Order #{order_id} not found")
            return False

        if not order.is_deletable:
            error = DeletionNotAllowedError(order.status.value)
            logger.info(f"Console: order #{order_id} - {error.message}")
            self.error_banner.show(error.message)
            return False

        decision = confirm(order)
        if inspect.isawaitable(decision):
            decision = await decision
        if not decision:
            logger.debug(f"Console: deletion of order #{order_id} not confirmed")
            return False

        try:
            unwrap_result(await self.service.delete_order(order_id))
        except ServerRejectedError as e:
            logger.warning(f"Console: deletion of #{order_id} rejected - {e.message}")
            self.error_banner.show(e.message)
            await self.refresh()
            return False
        except OrderingError as e:
            logger.warning(f"Console: deletion of #{order_id} failed - {e.message}")
            self.error_banner.show(e.message)
            return False

        if self._torn_down:
            return True

        self._orders = [o for o in self._orders if o.id != order_id]
        if self.selected is not None and self.selected.id == order_id:
            self.selected = None
        logger.info(f"Console: order #{order_id} deleted")
        self.success_banner.show(ORDER_DELETED_MESSAGE)

        await self.refresh()
        return True

    # =========================================================================
    # INVOICE
    # =========================================================================

    def render_invoice(self, order_id: int, fmt: str = "text") -> str:
        """Render an already-fetched order as a printable invoice."""
        order = self.get(order_id)
        if order is None:
            raise KeyError(f"Order #{order_id} is not loaded")
        return render_invoice(order, fmt=fmt, currency=self.currency)
