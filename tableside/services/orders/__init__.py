"""
Order Service Factory

Provides a single entry point for obtaining an Order Service instance.
The factory keeps the cart, tracking and staff flows agnostic about which
implementation is being used.

Usage:
    from tableside.services.orders import get_order_service

    # Returns MockOrderService or HttpOrderService based on ENV_MODE
    service = get_order_service()

    payload = await service.get_orders_by_table(1, 4)

Environment Switching:
    - ENV_MODE=development -> MockOrderService (in memory)
    - ENV_MODE=staging -> HttpOrderService (staging backend)
    - ENV_MODE=production -> HttpOrderService (live backend)

Version: 1.0.0
"""

import logging
from functools import lru_cache

from tableside.core.config import get_settings
from tableside.services.orders.base import BaseOrderService, Payload
from tableside.services.orders.http import HttpOrderService
from tableside.services.orders.mock import MockOrderService

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_service() -> BaseOrderService:
    """
    Get the configured Order Service instance.

    The instance is cached so every flow in the process shares one store
    (mock) or one connection pool (HTTP).

    Returns:
        BaseOrderService: Configured order service instance

    Example:
        >>> service = get_order_service()
        >>> print(service.provider_name)
        'mock'  # In development mode
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Order Service: Using MockOrderService (development mode)")
        return MockOrderService(
            failure_rate=settings.mock_failure_rate,
            min_latency=settings.mock_min_latency,
            max_latency=settings.mock_max_latency,
        )
    else:
        logger.info(
            f"Order Service: Using HttpOrderService "
            f"({settings.env_mode.value} mode)"
        )
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")
        return HttpOrderService()


def reset_order_service() -> None:
    """
    Clear the cached Order Service instance.

    Useful for testing or when configuration changes at runtime.
    The next call to get_order_service() will create a new instance.
    """
    get_order_service.cache_clear()
    logger.debug("Order service cache cleared")


__all__ = [
    "get_order_service",
    "reset_order_service",
    "BaseOrderService",
    "Payload",
    "MockOrderService",
    "HttpOrderService",
]
