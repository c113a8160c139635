"""
Order Service Abstract Base Class

Defines the interface contract for every Order Service implementation.
Both MockOrderService and HttpOrderService implement these methods, so the
cart submission flow, the tracking poller and the staff console behave
identically whichever backend is active.

Methods return the decoded response body as-is. Envelope handling lives in
``tableside.normalize``; implementations must not reshape payloads.

Design Pattern: Strategy Pattern
    - Allows runtime switching between the sandbox and the real backend
    - Facilitates testing with the in-memory implementation

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from tableside.registry import OrderStatus
from tableside.schemas import OrderCreateRequest, OrderFilters

# Decoded JSON body (dict, list or None)
Payload = Any


class BaseOrderService(ABC):
    """
    Abstract base class for Order Service collaborators.

    Failures are reported by raising:
        NetworkError: No response was received
        ServerRejectedError: The service answered with a rejection

    Example:
        >>> service = get_order_service()  # Mock or HTTP
        >>> payload = await service.get_orders_by_table(1, 4)
        >>> orders = normalize_orders(payload)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the implementation.

        Returns:
            str: Provider name (e.g., "mock", "http")
        """
        pass

    @abstractmethod
    async def create_order(self, request: OrderCreateRequest) -> Payload:
        """
        Create an order from a submitted cart in one atomic request.

        Args:
            request: Target restaurant/table and the order lines

        Returns:
            ``{success, data?: Order, message?}``
        """
        pass

    @abstractmethod
    async def get_orders_by_table(self, restaurant_id: int, table_id: int) -> Payload:
        """
        Fetch the most recent order(s) for a table (diner tracking view).

        Returns:
            A list envelope or ``{success, order}`` for the last order
        """
        pass

    @abstractmethod
    async def get_all_orders(
        self,
        restaurant_id: int,
        filters: Optional[OrderFilters] = None,
    ) -> Payload:
        """
        List a restaurant's orders filtered by status, table and date.

        Returns:
            Any list envelope (bare, ``{data}``, Laravel paginator)
        """
        pass

    @abstractmethod
    async def get_order(self, order_id: int) -> Payload:
        """Fetch a single order."""
        pass

    @abstractmethod
    async def update_order_status(self, order_id: int, status: OrderStatus) -> Payload:
        """
        Move an order to a new status.

        The service is authoritative: it may reject a move the client
        believed legal (e.g. another staff member got there first).

        Returns:
            ``{success, data: Order, message?}``
        """
        pass

    @abstractmethod
    async def delete_order(self, order_id: int) -> Payload:
        """Delete an order. Returns ``{success, message?}`` or nothing."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the Order Service.

        Returns:
            bool: True if the service is reachable and operational
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
