"""
Pytest configuration for tableside tests.
"""

import pytest

from tableside.cart import Cart, MenuItem
from tableside.core.config import get_settings
from tableside.services.orders import reset_order_service
from tests.factories import CountingOrderService, ScriptedOrderService


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate every test from the developer's environment and caches."""
    monkeypatch.setenv("ENV_MODE", "development")
    monkeypatch.delenv("API_TOKEN", raising=False)
    get_settings.cache_clear()
    reset_order_service()
    yield
    get_settings.cache_clear()
    reset_order_service()


@pytest.fixture
def menu() -> dict[str, MenuItem]:
    """A small menu keyed by short name."""
    return {
        "tagine": MenuItem(1, "Chicken Tagine", "10.00"),
        "harira": MenuItem(2, "Harira", "5.00"),
        "tea": MenuItem(3, "Mint Tea", 2.2),
        "sold_out": MenuItem(4, "Pastilla", "70.00", available=False),
    }


@pytest.fixture
def cart() -> Cart:
    """Empty cart for restaurant 1, table 4."""
    return Cart(restaurant_id=1, table_id=4)


@pytest.fixture
def service() -> CountingOrderService:
    """In-memory order service with a fixed clock."""
    return CountingOrderService()


@pytest.fixture
def scripted() -> ScriptedOrderService:
    """Order service whose reads are answered by the test."""
    return ScriptedOrderService()
