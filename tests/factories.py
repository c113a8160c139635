"""Test doubles and raw payload builders."""

import asyncio
from datetime import datetime
from typing import Any, Optional

from tableside.schemas import OrderFilters
from tableside.services.orders import MockOrderService

FIXED_NOW = datetime(2026, 3, 14, 12, 30)


class CountingOrderService(MockOrderService):
    """In-memory service that counts list reads."""

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        super().__init__(**kwargs)
        self.table_reads = 0
        self.list_reads = 0
        self.last_filters: Optional[OrderFilters] = None

    async def get_orders_by_table(self, restaurant_id: int, table_id: int) -> Any:
        self.table_reads += 1
        return await super().get_orders_by_table(restaurant_id, table_id)

    async def get_all_orders(self, restaurant_id: int, filters: Optional[OrderFilters] = None) -> Any:
        self.list_reads += 1
        self.last_filters = filters
        return await super().get_all_orders(restaurant_id, filters)


class ScriptedOrderService(MockOrderService):
    """
    In-memory service whose reads wait until the test answers them.

    Each read appends a future to ``pending``; resolve it with a payload or
    set an exception on it to deliver the response.
    """

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        super().__init__(**kwargs)
        self.pending: list[asyncio.Future] = []

    async def _scripted(self) -> Any:
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    async def get_orders_by_table(self, restaurant_id: int, table_id: int) -> Any:
        return await self._scripted()

    async def get_all_orders(self, restaurant_id: int, filters: Optional[OrderFilters] = None) -> Any:
        return await self._scripted()

    async def wait_for_requests(self, count: int) -> None:
        for _ in range(100):
            if len(self.pending) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} request(s), saw {len(self.pending)}")


def order_row(
    order_id: int,
    status: str = "pending",
    table_id: int = 4,
    restaurant_id: int = 1,
    **extra: Any,
) -> dict[str, Any]:
    """Build a raw order dict the way the backend sends it."""
    row = {
        "id": order_id,
        "restaurant_id": restaurant_id,
        "table_id": table_id,
        "status": status,
        "order_items": [
            {"meal_id": 1, "quantity": 2, "price": "10.00", "note": None},
        ],
        "total": "20.00",
        "created_at": FIXED_NOW.isoformat(),
    }
    row.update(extra)
    return row
