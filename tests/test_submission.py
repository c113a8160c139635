"""Tests for the order submission flow."""

import asyncio
from decimal import Decimal

import pytest

from tableside.cart import Cart
from tableside.core.exceptions import EmptyCartError, MissingTargetError, NetworkError, ServerRejectedError
from tableside.submission import (
    ORDER_SENT_MESSAGE,
    SUBMIT_FAILED_MESSAGE,
    OrderSubmissionFlow,
    build_order_request,
)
from tableside.tracking import OrderTrackingPoller


class RejectingService:
    """Stands in for the create call only."""

    def __init__(self, error):
        self.error = error
        self.calls = 0

    async def create_order(self, request):
        self.calls += 1
        raise self.error


class SlowService:
    """Create call that waits until released."""

    def __init__(self, payload):
        self.payload = payload
        self.release = asyncio.Event()
        self.calls = 0
        self.requests = []

    async def create_order(self, request):
        self.calls += 1
        self.requests.append(request)
        await self.release.wait()
        return self.payload


@pytest.fixture
def filled_cart(cart, menu) -> Cart:
    cart.add_item(menu["tagine"])
    cart.add_item(menu["tagine"])
    cart.add_item(menu["harira"])
    cart.set_note(2, "  extra lemon ")
    return cart


class TestBuildOrderRequest:
    """Tests for mapping a cart to a create-order request."""

    def test_maps_lines(self, filled_cart):
        """Test each line becomes an order item with its captured price."""
        request = build_order_request(filled_cart)

        assert request.restaurant_id == 1
        assert request.table_id == 4
        assert [(i.meal_id, i.quantity, i.price) for i in request.order_items] == [
            (1, 2, Decimal("10.00")),
            (2, 1, Decimal("5.00")),
        ]

    @pytest.mark.parametrize("note,expected", [("", None), ("   ", None), (" hot ", "hot"), ("x", "x")])
    def test_note_normalization(self, cart, menu, note, expected):
        """Test notes are trimmed and blank notes sent as null."""
        cart.add_item(menu["tagine"])
        cart.set_note(1, note)

        assert build_order_request(cart).order_items[0].note == expected

    def test_empty_cart(self, cart):
        """Test an empty cart is refused."""
        with pytest.raises(EmptyCartError):
            build_order_request(cart)

    @pytest.mark.parametrize("restaurant_id,table_id", [(None, 4), (1, None), ("", 4)])
    def test_missing_target(self, menu, restaurant_id, table_id):
        """Test a missing restaurant or table is refused."""
        cart = Cart(restaurant_id=restaurant_id, table_id=table_id)
        cart.add_item(menu["tagine"])

        with pytest.raises(MissingTargetError):
            build_order_request(cart)

    def test_request_serializes_note_as_null(self, cart, menu):
        """Test the wire body carries null, not an empty string."""
        cart.add_item(menu["tagine"])
        cart.set_note(1, "  ")

        body = build_order_request(cart).model_dump(mode="json")

        assert body["order_items"][0]["note"] is None
        assert body["order_items"][0]["price"] == "10.00"


class TestSubmitSuccess:
    """Tests for a successful submission."""

    @pytest.mark.asyncio
    async def test_success_clears_cart_and_shows_banner(self, service, filled_cart):
        """Test the cart is cleared and the success banner shown."""
        flow = OrderSubmissionFlow(service, filled_cart)

        outcome = await flow.submit()

        assert outcome.success
        assert outcome.order.id == 1
        assert outcome.order.status.value == "pending"
        assert filled_cart.is_empty
        assert flow.success_banner.message == ORDER_SENT_MESSAGE
        assert not flow.error_banner.active
        assert service.order_count == 1

    @pytest.mark.asyncio
    async def test_success_banner_expires(self, service, filled_cart):
        """Test the success banner clears itself."""
        flow = OrderSubmissionFlow(service, filled_cart, success_ttl=0.01)

        await flow.submit()
        assert flow.success_banner.active
        await asyncio.sleep(0.03)

        assert not flow.success_banner.active

    @pytest.mark.asyncio
    async def test_success_refreshes_tracking(self, service, filled_cart):
        """Test the tracking view is refreshed after submitting."""
        poller = OrderTrackingPoller(service, 1, 4, interval=60)
        flow = OrderSubmissionFlow(service, filled_cart, tracker=poller)

        await flow.submit()
        await asyncio.sleep(0.01)

        assert service.table_reads == 1
        assert [o.id for o in poller.orders] == [1]
        await poller.teardown()

    @pytest.mark.asyncio
    async def test_banner_defaults(self, service, filled_cart):
        """Test three and five second banner lifetimes."""
        flow = OrderSubmissionFlow(service, filled_cart)

        assert flow.success_banner.ttl == 3.0
        assert flow.error_banner.ttl == 5.0


class TestSubmitFailure:
    """Tests for failed submissions."""

    @pytest.mark.asyncio
    async def test_validation_never_hits_network(self, cart):
        """Test an empty cart is refused locally."""
        service = RejectingService(NetworkError())
        flow = OrderSubmissionFlow(service, cart)

        outcome = await flow.submit()

        assert not outcome.success
        assert not outcome.sent
        assert outcome.message == "Your cart is empty"
        assert flow.error_banner.message == "Your cart is empty"
        assert service.calls == 0

    @pytest.mark.asyncio
    async def test_missing_target_surfaced(self, menu):
        """Test a missing table is shown to the user."""
        cart = Cart(restaurant_id=1, table_id=None)
        cart.add_item(menu["tagine"])
        service = RejectingService(NetworkError())
        flow = OrderSubmissionFlow(service, cart)

        outcome = await flow.submit()

        assert outcome.message == "Missing restaurant or table information"
        assert service.calls == 0
        assert len(cart) == 1

    @pytest.mark.asyncio
    async def test_network_error_keeps_cart(self, filled_cart):
        """Test a network failure leaves the cart for a retry."""
        flow = OrderSubmissionFlow(RejectingService(NetworkError()), filled_cart)

        outcome = await flow.submit()

        assert not outcome.success
        assert outcome.sent
        assert len(filled_cart) == 2
        assert flow.error_banner.message == "Network error: Could not connect to server"

    @pytest.mark.asyncio
    async def test_server_message_and_field_errors(self, filled_cart):
        """Test the server's message is shown and field errors exposed."""
        error = ServerRejectedError(
            "The given data was invalid.", 422, {"table_id": "The selected table is invalid."}
        )
        flow = OrderSubmissionFlow(RejectingService(error), filled_cart)

        outcome = await flow.submit()

        assert outcome.message == "The given data was invalid."
        assert outcome.field_errors == {"table_id": "The selected table is invalid."}
        assert flow.field_errors == outcome.field_errors
        assert flow.error_banner.message == "The given data was invalid."

    @pytest.mark.asyncio
    async def test_generic_message_when_server_gives_none(self, filled_cart):
        """Test the generic failure text is used for an empty message."""
        flow = OrderSubmissionFlow(RejectingService(ServerRejectedError("", 400)), filled_cart)

        outcome = await flow.submit()

        assert outcome.message == SUBMIT_FAILED_MESSAGE
        assert flow.error_banner.message == SUBMIT_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_success_false_envelope_is_failure(self, filled_cart):
        """Test a 2xx body with success false still counts as a failure."""
        service = SlowService({"success": False, "message": "Table is closed"})
        service.release.set()
        flow = OrderSubmissionFlow(service, filled_cart)

        outcome = await flow.submit()

        assert not outcome.success
        assert outcome.message == "Table is closed"
        assert len(filled_cart) == 2

    @pytest.mark.asyncio
    async def test_error_banner_expires(self, filled_cart):
        """Test the error banner clears itself."""
        flow = OrderSubmissionFlow(RejectingService(NetworkError()), filled_cart, error_ttl=0.01)

        await flow.submit()
        await asyncio.sleep(0.03)

        assert not flow.error_banner.active

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, service, filled_cart):
        """Test the kept cart can be submitted again."""
        flow = OrderSubmissionFlow(RejectingService(NetworkError()), filled_cart)
        await flow.submit()

        flow.service = service
        outcome = await flow.submit()

        assert outcome.success
        assert not flow.error_banner.active
        assert filled_cart.is_empty


class TestSubmitConcurrency:
    """Tests for overlapping submissions and closed sessions."""

    @pytest.mark.asyncio
    async def test_second_submit_refused_while_in_flight(self, filled_cart):
        """Test a double submit sends one request."""
        service = SlowService({"success": True, "data": None})
        flow = OrderSubmissionFlow(service, filled_cart)

        first = asyncio.create_task(flow.submit())
        await asyncio.sleep(0)
        assert flow.is_submitting

        second = await flow.submit()
        service.release.set()
        outcome = await first

        assert not second.success
        assert not second.sent
        assert outcome.success
        assert service.calls == 1
        assert not flow.is_submitting

    @pytest.mark.asyncio
    async def test_success_after_close_is_graceful(self, service, filled_cart):
        """Test a late success clears the cart without touching the closed view."""
        slow = SlowService(await service.create_order(build_order_request(filled_cart)))
        poller = OrderTrackingPoller(service, 1, 4, interval=60)
        flow = OrderSubmissionFlow(slow, filled_cart, tracker=poller)

        task = asyncio.create_task(flow.submit())
        await asyncio.sleep(0)
        flow.close()
        slow.release.set()
        outcome = await task

        assert outcome.success
        assert filled_cart.is_empty
        assert not flow.success_banner.active
        assert service.table_reads == 0

    @pytest.mark.asyncio
    async def test_unreadable_created_order_still_succeeds(self, filled_cart):
        """Test an order echo with an unknown status does not fail the submit."""
        service = SlowService({"success": True, "data": {"id": 8, "status": "queued"}})
        service.release.set()
        flow = OrderSubmissionFlow(service, filled_cart)

        outcome = await flow.submit()

        assert outcome.success
        assert outcome.order is None
        assert filled_cart.is_empty

    @pytest.mark.asyncio
    async def test_sessions_do_not_share_carts(self, service, menu):
        """Test two tables submit independently."""
        carts = [Cart(restaurant_id=1, table_id=t) for t in (1, 2)]
        for cart in carts:
            cart.add_item(menu["harira"])
        flows = [OrderSubmissionFlow(service, cart) for cart in carts]

        outcomes = await asyncio.gather(*(flow.submit() for flow in flows))

        assert all(o.success for o in outcomes)
        assert {o.order.table_id for o in outcomes} == {1, 2}
        assert all(cart.is_empty for cart in carts)

    @pytest.mark.asyncio
    async def test_lines_added_in_flight_survive(self, cart, menu):
        """Test only the sent quantities leave the cart on success."""
        service = SlowService({"success": True, "data": None})
        cart.add_item(menu["tagine"])
        flow = OrderSubmissionFlow(service, cart)

        task = asyncio.create_task(flow.submit())
        await asyncio.sleep(0)
        cart.add_item(menu["harira"])
        cart.add_item(menu["tagine"])
        service.release.set()
        outcome = await task

        sent = service.requests[0].order_items
        assert outcome.success
        assert [(i.meal_id, i.quantity) for i in sent] == [(1, 1)]
        assert [(line.item_id, line.quantity) for line in cart] == [(1, 1), (2, 1)]

    @pytest.mark.asyncio
    async def test_line_removed_in_flight_stays_removed(self, cart, menu):
        """Test a line dropped during the request is not brought back."""
        service = SlowService({"success": True, "data": None})
        cart.add_item(menu["tagine"])
        cart.add_item(menu["harira"])
        flow = OrderSubmissionFlow(service, cart)

        task = asyncio.create_task(flow.submit())
        await asyncio.sleep(0)
        cart.remove_item(1)
        service.release.set()
        await task

        assert cart.is_empty
