"""
Order Submission Flow

Turns the diner's cart into one atomic create-order request.

Flow:
    1. Validate locally (non-empty cart, restaurant and table present)
    2. Map cart lines to order lines (notes trimmed, blank notes -> None)
    3. Send a single create-order request
    4. Success: drop the sent lines from the cart, show the success banner,
       refresh tracking
       Failure: keep the cart for a retry, show the error banner

Validation errors never reach the network. A second submit while one is
already in flight is refused locally.

Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from tableside.banners import Banner
from tableside.cart import Cart
from tableside.core.config import get_settings
from tableside.core.exceptions import (
    EmptyCartError,
    MissingTargetError,
    OrderingError,
    OrderValidationError,
    ServerRejectedError,
)
from tableside.normalize import normalize_order, unwrap_result
from tableside.schemas import Order, OrderCreateRequest, OrderItemPayload
from tableside.services.orders.base import BaseOrderService
from tableside.tracking import OrderTrackingPoller

logger = logging.getLogger(__name__)

ORDER_SENT_MESSAGE = "Order sent to the kitchen!"
SUBMIT_FAILED_MESSAGE = "Failed to submit order. Please try again."
ALREADY_SUBMITTING_MESSAGE = "Your order is already being sent"


def _clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = note.strip()
    return note or None


def build_order_request(cart: Cart) -> OrderCreateRequest:
    """
    Map a cart to a create-order request.

    Raises:
        EmptyCartError: If the cart has no lines
        MissingTargetError: If restaurant or table is missing
    """
    if cart.is_empty:
        raise EmptyCartError()
    if cart.restaurant_id in (None, "") or cart.table_id in (None, ""):
        raise MissingTargetError()

    return OrderCreateRequest(
        restaurant_id=cart.restaurant_id,
        table_id=cart.table_id,
        order_items=[
            OrderItemPayload(
                meal_id=line.item_id,
                quantity=line.quantity,
                price=line.unit_price,
                note=_clean_note(line.note),
            )
            for line in cart
        ],
    )


@dataclass
class SubmissionOutcome:
    """
    Result of one submit attempt.

    Attributes:
        success: True if the order was created
        order: The created order when the response carried one
        message: Text shown to the diner
        field_errors: Per-field messages from a server rejection
        sent: False when the attempt was stopped before any network call
    """
    success: bool
    order: Optional[Order] = None
    message: Optional[str] = None
    field_errors: dict[str, Any] = field(default_factory=dict)
    sent: bool = True


class OrderSubmissionFlow:
    """
    Submits one diner session's cart.

    The cart is injected and owned by the caller; so is the optional
    tracking poller, which is refreshed after every successful submit.

    Example:
        >>> flow = OrderSubmissionFlow(service, cart, tracker=poller)
        >>> outcome = await flow.submit()
        >>> outcome.success, flow.success_banner.message
        (True, 'Order sent to the kitchen!')
    """

    def __init__(
        self,
        service: BaseOrderService,
        cart: Cart,
        tracker: Optional[OrderTrackingPoller] = None,
        success_ttl: Optional[float] = None,
        error_ttl: Optional[float] = None,
    ):
        settings = get_settings()

        self.service = service
        self.cart = cart
        self.tracker = tracker
        self.success_banner = Banner(
            "order-success",
            success_ttl if success_ttl is not None else settings.order_success_banner_seconds,
        )
        self.error_banner = Banner(
            "order-error",
            error_ttl if error_ttl is not None else settings.order_error_banner_seconds,
        )
        self.field_errors: dict[str, Any] = {}

        self._submitting = False
        self._closed = False

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Detach the flow from the screen.

        A submit already in flight is allowed to finish; its result still
        removes the sent lines on success but no longer touches banners or
        tracking.
        """
        self._closed = True
        self.success_banner.close()
        self.error_banner.close()

    async def submit(self) -> SubmissionOutcome:
        """
        Send the cart as one order.

        Never raises for ordering errors; every failure is returned as an
        outcome and shown in the error banner.
        """
        if self._submitting:
            logger.info("Submit ignored, an order is already in flight")
            return SubmissionOutcome(
                success=False, message=ALREADY_SUBMITTING_MESSAGE, sent=False
            )

        try:
            request = build_order_request(self.cart)
        except OrderValidationError as e:
            logger.info(f"Submit refused locally - {e.message}")
            self._show_error(e.message)
            return SubmissionOutcome(success=False, message=e.message, sent=False)

        self._submitting = True
        self.field_errors = {}
        self.error_banner.clear()

        logger.info(
            f"Submitting order for restaurant {request.restaurant_id}, "
            f"table {request.table_id} ({len(request.order_items)} line(s))"
        )

        try:
            payload = await self.service.create_order(request)
            result = unwrap_result(payload)
        except OrderingError as e:
            return self._fail(e)
        finally:
            self._submitting = False

        order = self._read_created_order(payload)
        self._remove_sent_lines(request)

        if order is not None:
            logger.info(f"Order #{order.id} created ({order.status.value})")
        else:
            logger.info("Order created (no order body in response)")

        if self._closed:
            logger.info("Order confirmed after the session was closed")
        else:
            self.success_banner.show(ORDER_SENT_MESSAGE)
            if self.tracker is not None:
                self.tracker.refresh()

        return SubmissionOutcome(
            success=True,
            order=order,
            message=result.message or ORDER_SENT_MESSAGE,
        )

    def _fail(self, error: OrderingError) -> SubmissionOutcome:
        message = error.message or SUBMIT_FAILED_MESSAGE
        field_errors = error.field_errors if isinstance(error, ServerRejectedError) else {}

        logger.warning(f"Order submission failed - {message}")
        self.field_errors = field_errors
        self._show_error(message)

        return SubmissionOutcome(success=False, message=message, field_errors=field_errors)

    def _remove_sent_lines(self, request: OrderCreateRequest) -> None:
        # Lines added or increased while the request was in flight stay in the cart
        for item in request.order_items:
            self.cart.set_quantity(item.meal_id, -item.quantity)
        if not self.cart.is_empty:
            logger.info(f"{len(self.cart)} line(s) added during submission kept in the cart")

    def _show_error(self, message: str) -> None:
        if not self._closed:
            self.success_banner.clear()
            self.error_banner.show(message)

    @staticmethod
    def _read_created_order(payload: Any) -> Optional[Order]:
        # The order exists server-side even if its echo cannot be parsed
        try:
            return normalize_order(payload)
        except OrderingError as e:
            logger.error(f"Created order could not be read back - {e.message}")
            return None
