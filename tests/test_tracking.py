"""Tests for the order tracking poller."""

import asyncio

import pytest

from tableside.core.exceptions import NetworkError
from tableside.schemas import OrderCreateRequest, OrderItemPayload
from tableside.tracking import OrderTrackingPoller, TrackerState
from tests.factories import order_row


def place(service, table_id=4):
    return service.create_order(
        OrderCreateRequest(
            restaurant_id=1,
            table_id=table_id,
            order_items=[OrderItemPayload(meal_id=1, quantity=1, price="9.00")],
        )
    )


class TestPollerLifecycle:
    """Tests for open/close state and timers."""

    @pytest.mark.asyncio
    async def test_open_loads_then_idles(self, service):
        """Test closed -> open-loading -> open-idle on the first response."""
        await place(service)
        poller = OrderTrackingPoller(service, 1, 4, interval=60)
        assert poller.state is TrackerState.CLOSED

        poller.open()
        assert poller.state is TrackerState.OPEN_LOADING
        assert poller.loading

        await asyncio.sleep(0.01)

        assert poller.state is TrackerState.OPEN_IDLE
        assert not poller.loading
        assert [o.id for o in poller.orders] == [1]
        await poller.teardown()

    @pytest.mark.asyncio
    async def test_polls_on_interval(self, service):
        """Test fetches repeat while open."""
        poller = OrderTrackingPoller(service, 1, 4, interval=0.01)
        poller.open()
        await asyncio.sleep(0.055)
        await poller.teardown()

        assert service.table_reads >= 3

    @pytest.mark.asyncio
    async def test_close_stops_polling(self, service):
        """Test no request is issued after close."""
        poller = OrderTrackingPoller(service, 1, 4, interval=0.01)
        poller.open()
        await asyncio.sleep(0.035)
        poller.close()
        reads = service.table_reads

        await asyncio.sleep(0.05)

        assert service.table_reads == reads
        assert poller.state is TrackerState.CLOSED
        await poller.teardown()

    @pytest.mark.asyncio
    async def test_teardown_leaves_no_timer(self, service):
        """Test teardown cancels the timer and in-flight fetches."""
        service.max_latency = service.min_latency = 0.02
        poller = OrderTrackingPoller(service, 1, 4, interval=0.01)
        poller.open()
        await asyncio.sleep(0.015)

        await poller.teardown()
        reads = service.table_reads
        await asyncio.sleep(0.05)

        assert service.table_reads == reads
        assert poller.refresh() is None
        with pytest.raises(RuntimeError):
            poller.open()

    @pytest.mark.asyncio
    async def test_context_manager(self, service):
        """Test async with opens and tears down."""
        async with OrderTrackingPoller(service, 1, 4, interval=60) as poller:
            assert poller.is_open
        assert not poller.is_open

    @pytest.mark.asyncio
    async def test_missing_target_does_not_poll(self, service):
        """Test a session without a table never polls."""
        poller = OrderTrackingPoller(service, 1, None, interval=0.01)
        poller.open()
        await asyncio.sleep(0.03)

        assert not poller.is_open
        assert service.table_reads == 0
        assert poller.refresh() is None

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, service):
        """Test the view can be opened again."""
        poller = OrderTrackingPoller(service, 1, 4, interval=60)
        poller.open()
        poller.close()
        poller.open()

        assert poller.state is TrackerState.OPEN_LOADING
        await poller.teardown()


class TestPollerResponses:
    """Tests for applying, replacing and dropping responses."""

    @pytest.mark.asyncio
    async def test_stale_response_is_dropped(self, scripted):
        """Test R1 issued first but arriving second does not overwrite R2."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        first = poller.refresh()
        second = poller.refresh()
        await scripted.wait_for_requests(2)

        scripted.pending[1].set_result({"success": True, "order": order_row(2, "preparing")})
        assert await second is True

        scripted.pending[0].set_result({"success": True, "order": order_row(1, "pending")})
        assert await first is False

        assert [(o.id, o.status.value) for o in poller.orders] == [(2, "preparing")]

    @pytest.mark.asyncio
    async def test_in_order_responses_both_apply(self, scripted):
        """Test responses arriving in issue order are all applied."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        first = poller.refresh()
        second = poller.refresh()
        await scripted.wait_for_requests(2)

        scripted.pending[0].set_result([order_row(1)])
        assert await first is True
        scripted.pending[1].set_result([order_row(1, "confirmed")])
        assert await second is True

        assert poller.orders[0].status.value == "confirmed"

    @pytest.mark.asyncio
    async def test_response_replaces_whole_list(self, scripted):
        """Test no merge happens between responses."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        task = poller.refresh()
        await scripted.wait_for_requests(1)
        scripted.pending[0].set_result([order_row(1), order_row(2)])
        await task

        task = poller.refresh()
        await scripted.wait_for_requests(2)
        scripted.pending[1].set_result([order_row(3)])
        await task

        assert [o.id for o in poller.orders] == [3]

    @pytest.mark.asyncio
    async def test_orders_sorted_by_progress(self, scripted):
        """Test the most advanced order is shown first, cancelled last."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        task = poller.refresh()
        await scripted.wait_for_requests(1)
        scripted.pending[0].set_result(
            [order_row(1, "cancelled"), order_row(2, "pending"), order_row(3, "served")]
        )
        await task

        assert [o.id for o in poller.orders] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_error_keeps_previous_orders(self, scripted):
        """Test a failed fetch leaves the last good list in place."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        task = poller.refresh()
        await scripted.wait_for_requests(1)
        scripted.pending[0].set_result([order_row(1)])
        await task

        task = poller.refresh()
        await scripted.wait_for_requests(2)
        scripted.pending[1].set_exception(NetworkError())
        assert await task is False

        assert [o.id for o in poller.orders] == [1]
        assert poller.error == "Network error: Could not connect to server"

    @pytest.mark.asyncio
    async def test_stale_error_does_not_mask_newer_success(self, scripted):
        """Test an older failure arriving late is ignored."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        first = poller.refresh()
        second = poller.refresh()
        await scripted.wait_for_requests(2)

        scripted.pending[1].set_result([order_row(5)])
        await second
        scripted.pending[0].set_exception(NetworkError())
        await first

        assert poller.error is None

    @pytest.mark.asyncio
    async def test_unknown_status_is_logged_as_error(self, scripted, caplog):
        """Test an unknown status surfaces as an error, not a crash."""
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60)
        task = poller.refresh()
        await scripted.wait_for_requests(1)
        scripted.pending[0].set_result([order_row(1, "on_the_way")])

        assert await task is False
        assert "Unknown order status" in poller.error
        assert any(r.levelname == "ERROR" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_late_response_after_teardown_is_inert(self, scripted):
        """Test nothing is applied once the poller is torn down."""
        updates = []
        poller = OrderTrackingPoller(scripted, 1, 4, interval=60, on_update=updates.append)
        poller.refresh()
        await scripted.wait_for_requests(1)

        await poller.teardown()

        assert poller.orders == []
        assert updates == []

    @pytest.mark.asyncio
    async def test_on_update_callback(self, service):
        """Test subscribers receive each applied list."""
        await place(service)
        updates = []
        poller = OrderTrackingPoller(service, 1, 4, interval=60, on_update=updates.append)

        assert await poller.refresh() is True
        assert [[o.id for o in batch] for batch in updates] == [[1]]

    @pytest.mark.asyncio
    async def test_tracks_only_its_table(self, service):
        """Test another table's orders are not shown."""
        await place(service, table_id=4)
        await place(service, table_id=9)
        poller = OrderTrackingPoller(service, 1, 4, interval=60)

        await poller.refresh()

        assert [o.table_id for o in poller.orders] == [4]

    @pytest.mark.asyncio
    async def test_interval_defaults_from_settings(self, service, monkeypatch):
        """Test the ten second default and its override."""
        from tableside.core.config import get_settings

        assert OrderTrackingPoller(service, 1, 4).interval == 10.0

        monkeypatch.setenv("TRACKING_POLL_SECONDS", "2.5")
        get_settings.cache_clear()
        assert OrderTrackingPoller(service, 1, 4).interval == 2.5
