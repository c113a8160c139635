"""
Order Tracking Poller

Keeps a diner's view of their table's order(s) fresh while the tracking view
is open:

    closed --open()--> open-loading --first response--> open-idle
      ^                                                      |
      +---------------------------close()--------------------+

While open, a fetch is issued immediately and then every
``tracking_poll_seconds``. Fetches run as independent tasks and may overlap;
each one takes a ticket from a RequestSequencer and a response is applied
only if no later-issued fetch has already been applied. An applied response
replaces the whole order list.

Usage:
    async with OrderTrackingPoller(service, restaurant_id=1, table_id=4) as poller:
        ...
        poller.orders  # most advanced order first

Version: 1.0.0
"""

import asyncio
import enum
import logging
from datetime import datetime
from typing import Callable, Optional

from tableside.core.config import get_settings
from tableside.core.exceptions import OrderingError, UnknownStatusError
from tableside.normalize import normalize_orders
from tableside.registry import sort_by_progress
from tableside.schemas import Order
from tableside.sequencing import RequestSequencer
from tableside.services.orders.base import BaseOrderService

logger = logging.getLogger(__name__)


class TrackerState(str, enum.Enum):
    """Tracking view lifecycle."""
    CLOSED = "closed"
    OPEN_LOADING = "open-loading"
    OPEN_IDLE = "open-idle"


class OrderTrackingPoller:
    """
    Polls the Order Service for one (restaurant, table) pair.

    Attributes:
        service: Order Service collaborator
        restaurant_id: Restaurant of the diner session
        table_id: Table of the diner session
        interval: Seconds between polls while open
        on_update: Optional callback receiving each applied order list
        error: Message from the latest failed fetch, cleared on success
        last_updated: When an order list was last applied
    """

    def __init__(
        self,
        service: BaseOrderService,
        restaurant_id: Optional[int],
        table_id: Optional[int],
        interval: Optional[float] = None,
        on_update: Optional[Callable[[list[Order]], None]] = None,
    ):
        self.service = service
        self.restaurant_id = restaurant_id
        self.table_id = table_id
        self.interval = interval if interval is not None else get_settings().tracking_poll_seconds
        self.on_update = on_update
        self.error: Optional[str] = None
        self.last_updated: Optional[datetime] = None

        self._orders: list[Order] = []
        self._state = TrackerState.CLOSED
        self._sequencer = RequestSequencer()
        self._timer: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._torn_down = False

    def __repr__(self) -> str:
        return (
            f"<OrderTrackingPoller restaurant={self.restaurant_id} "
            f"table={self.table_id} state={self._state.value}>"
        )

    async def __aenter__(self) -> "OrderTrackingPoller":
        self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is not TrackerState.CLOSED

    @property
    def loading(self) -> bool:
        """True only while waiting for the first result after opening."""
        return self._state is TrackerState.OPEN_LOADING

    @property
    def orders(self) -> list[Order]:
        """Tracked orders, most advanced first."""
        return list(self._orders)

    @property
    def has_target(self) -> bool:
        return self.restaurant_id is not None and self.table_id is not None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def open(self) -> None:
        """Open the tracking view and start polling."""
        if self._torn_down:
            raise RuntimeError("Tracking poller has been torn down")
        if self.is_open:
            return
        if not self.has_target:
            logger.warning("Tracking: no restaurant/table for this session, not polling")
            return

        self._state = TrackerState.OPEN_LOADING
        self._timer = asyncio.create_task(
            self._poll_forever(),
            name=f"order-tracking-{self.restaurant_id}-{self.table_id}",
        )
        logger.info(
            f"Tracking: opened for restaurant {self.restaurant_id}, "
            f"table {self.table_id} (every {self.interval}s)"
        )

    def close(self) -> None:
        """Close the tracking view. No further polls are issued."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.is_open:
            logger.info(f"Tracking: closed for table {self.table_id}")
        self._state = TrackerState.CLOSED

    async def teardown(self) -> None:
        """
        Stop polling and make every outstanding fetch inert.

        Safe to call more than once.
        """
        self._torn_down = True
        timer = self._timer
        self.close()

        pending = [task for task in self._inflight if not task.done()]
        if timer is not None:
            pending.append(timer)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()

    async def _poll_forever(self) -> None:
        while True:
            self.refresh()
            await asyncio.sleep(self.interval)

    # =========================================================================
    # FETCHING
    # =========================================================================

    def refresh(self) -> Optional[asyncio.Task]:
        """
        Issue one fetch now, independent of the poll timer.

        Also used after a successful order submission. Works while the view
        is closed; does nothing after teardown or without a target.

        Returns:
            The fetch task, resolving to True if its result was applied
        """
        if self._torn_down or not self.has_target:
            return None

        ticket = self._sequencer.issue()
        task = asyncio.create_task(self._fetch(ticket))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _fetch(self, ticket: int) -> bool:
        try:
            payload = await self.service.get_orders_by_table(self.restaurant_id, self.table_id)
            orders = normalize_orders(payload)
        except UnknownStatusError as e:
            logger.error(f"Tracking: backend sent an unknown status - {e.message}")
            self._fail(ticket, e.message)
            return False
        except OrderingError as e:
            logger.warning(f"Tracking: fetch #{ticket} failed - {e.message}")
            self._fail(ticket, e.message)
            return False

        if self._torn_down:
            return False
        if not self._sequencer.accept(ticket):
            logger.debug(
                f"Tracking: dropped stale response #{ticket} "
                f"(already showing #{self._sequencer.applied})"
            )
            return False

        self._orders = sort_by_progress(orders)
        self.error = None
        self.last_updated = datetime.now()
        self._settle()

        if self.on_update is not None:
            self.on_update(self.orders)
        return True

    def _fail(self, ticket: int, message: str) -> None:
        # Orders are left as they were; a newer success outranks this failure
        if self._torn_down or ticket <= self._sequencer.applied:
            return
        self.error = message
        self._settle()

    def _settle(self) -> None:
        if self._state is TrackerState.OPEN_LOADING:
            self._state = TrackerState.OPEN_IDLE
