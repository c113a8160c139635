"""
Mock Order Service Implementation

Keeps orders in memory and answers with the same envelopes the real backend
uses. Used in development mode (ENV_MODE=development) and by the sandbox
server to:
    - Run diner and staff sessions locally without a backend
    - Exercise every response shape the normalization layer supports
    - Simulate network failures and latency

Behavior:
    - Simulates response times (configurable, default none)
    - Randomly raises NetworkError at ``failure_rate``
    - Enforces the status transition table and the deletion guard
      server-side, rejecting with 422 like the backend
    - Wraps list responses in the configured envelope

Version: 1.0.0
"""

import asyncio
import copy
import itertools
import logging
import random
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from tableside.core.exceptions import NetworkError, ServerRejectedError
from tableside.money import to_cents
from tableside.registry import (
    OrderStatus,
    can_transition,
    is_deletable,
    parse_status,
)
from tableside.schemas import OrderCreateRequest, OrderFilters
from tableside.services.orders.base import BaseOrderService, Payload

logger = logging.getLogger(__name__)


class MockOrderService(BaseOrderService):
    """
    In-memory implementation of the Order Service.

    Attributes:
        failure_rate: Probability of a simulated network failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
        envelope: List response shape: "bare", "data" or "laravel"

    Example:
        >>> service = MockOrderService(envelope="bare")
        >>> payload = await service.get_all_orders(1)
        >>> print(payload)
        []
    """

    ENVELOPES = ("bare", "data", "laravel")

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        envelope: str = "laravel",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the mock order service.

        Args:
            failure_rate: Probability of network failure (default: never)
            min_latency: Minimum response time in seconds
            max_latency: Maximum response time in seconds
            envelope: Shape used for list responses
            clock: Source of ``created_at`` timestamps (default: now)
        """
        if envelope not in self.ENVELOPES:
            raise ValueError(f"Invalid envelope. Must be one of: {list(self.ENVELOPES)}")

        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max(min_latency, max_latency)
        self.envelope = envelope
        self._clock = clock or datetime.now
        self._orders: dict[int, dict[str, Any]] = {}
        self._ids = itertools.count(1)

        logger.info(
            f"MockOrderService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{self.max_latency}s, envelope={envelope})"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    @property
    def order_count(self) -> int:
        return len(self._orders)

    # =========================================================================
    # SIMULATION
    # =========================================================================

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    async def _roundtrip(self, operation: str) -> None:
        await self._simulate_latency()
        if self._should_fail():
            logger.debug(f"Mock: simulated network failure during {operation}")
            raise NetworkError()

    def _wrap_list(self, rows: list[dict[str, Any]]) -> Payload:
        rows = copy.deepcopy(rows)
        if self.envelope == "bare":
            return rows
        if self.envelope == "data":
            return {"data": rows}
        return {
            "success": True,
            "data": {
                "current_page": 1,
                "data": rows,
                "per_page": max(len(rows), 15),
                "total": len(rows),
            },
        }

    def _get_row(self, order_id: int) -> dict[str, Any]:
        row = self._orders.get(order_id)
        if row is None:
            raise ServerRejectedError(f"Order #{order_id} not found", 404)
        return row

    # =========================================================================
    # ORDER SERVICE INTERFACE
    # =========================================================================

    async def create_order(self, request: OrderCreateRequest) -> Payload:
        """Store a new pending order with prices frozen from the request."""
        await self._roundtrip("create_order")

        lines = [
            {
                "meal_id": item.meal_id,
                "quantity": item.quantity,
                "price": str(item.price),
                "note": item.note,
            }
            for item in request.order_items
        ]
        total = sum(
            (item.price * item.quantity for item in request.order_items),
            Decimal("0"),
        )

        order_id = next(self._ids)
        row = {
            "id": order_id,
            "restaurant_id": request.restaurant_id,
            "table_id": request.table_id,
            "status": OrderStatus.PENDING.value,
            "order_items": lines,
            "total": str(to_cents(total)),
            "created_at": self._clock().isoformat(),
        }
        self._orders[order_id] = row

        logger.info(
            f"Mock: Order #{order_id} created - restaurant {request.restaurant_id}, "
            f"table {request.table_id}, {len(lines)} line(s)"
        )

        return {
            "success": True,
            "message": "Order created successfully",
            "data": copy.deepcopy(row),
        }

    async def get_orders_by_table(self, restaurant_id: int, table_id: int) -> Payload:
        """Return the table's last order in the ``{success, order}`` shape."""
        await self._roundtrip("get_orders_by_table")

        rows = [
            row for row in self._orders.values()
            if row["restaurant_id"] == restaurant_id and row["table_id"] == table_id
        ]
        last = max(rows, key=lambda row: row["id"]) if rows else None

        return {"success": True, "order": copy.deepcopy(last)}

    async def get_all_orders(
        self,
        restaurant_id: int,
        filters: Optional[OrderFilters] = None,
    ) -> Payload:
        await self._roundtrip("get_all_orders")

        filters = filters or OrderFilters()
        rows = []
        for row in self._orders.values():
            if row["restaurant_id"] != restaurant_id:
                continue
            if filters.status is not None and row["status"] != filters.status.value:
                continue
            if filters.table_id is not None and row["table_id"] != filters.table_id:
                continue
            if filters.date is not None:
                created = datetime.fromisoformat(row["created_at"]).date()
                if created != filters.date:
                    continue
            rows.append(row)

        rows.sort(key=lambda row: row["id"], reverse=True)
        return self._wrap_list(rows)

    async def get_order(self, order_id: int) -> Payload:
        await self._roundtrip("get_order")
        return {"success": True, "data": copy.deepcopy(self._get_row(order_id))}

    async def update_order_status(self, order_id: int, status: OrderStatus) -> Payload:
        """Apply a transition if the table allows it from the stored status."""
        await self._roundtrip("update_order_status")

        row = self._get_row(order_id)
        current = parse_status(row["status"])
        target = parse_status(status)

        if not can_transition(current, target):
            logger.info(
                f"Mock: Rejected transition for order #{order_id} "
                f"({current.value} -> {target.value})"
            )
            raise ServerRejectedError(
                f"Invalid status transition from {current.value} to {target.value}",
                422,
                {"status": f"The order is currently {current.value}."},
            )

        row["status"] = target.value
        logger.info(f"Mock: Order #{order_id} {current.value} -> {target.value}")

        return {
            "success": True,
            "message": "Order status updated successfully",
            "data": copy.deepcopy(row),
        }

    async def delete_order(self, order_id: int) -> Payload:
        await self._roundtrip("delete_order")

        row = self._get_row(order_id)
        if not is_deletable(row["status"]):
            raise ServerRejectedError(
                f"Order #{order_id} is {row['status']} and cannot be deleted",
                422,
            )

        del self._orders[order_id]
        logger.info(f"Mock: Order #{order_id} deleted")

        return {"success": True, "message": "Order deleted successfully"}

    async def health_check(self) -> bool:
        """
        Mock health check always returns True.

        In development, we assume the in-memory service is always available.
        """
        logger.debug("Mock: Health check passed")
        return True
