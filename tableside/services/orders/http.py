"""
HTTP Order Service Implementation

Production implementation talking to the ordering backend's REST API.
Used when ENV_MODE=production or ENV_MODE=staging.

Endpoints (relative to API_BASE_URL):
    POST   /orders                                  public, create order
    GET    /orders/table/{restaurant_id}/{table_id} public, last order
    GET    /owner/orders                            staff list
    GET    /owner/orders/{id}                       staff detail
    PATCH  /owner/orders/{id}/status                staff status update
    DELETE /owner/orders/{id}                       staff delete

Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx

from tableside.core.config import get_settings
from tableside.core.exceptions import NetworkError, ServerRejectedError
from tableside.money import to_cents
from tableside.registry import OrderStatus, parse_status
from tableside.schemas import OrderCreateRequest, OrderFilters
from tableside.services.orders.base import BaseOrderService, Payload

logger = logging.getLogger(__name__)


def _order_body(request: OrderCreateRequest) -> dict[str, Any]:
    """Create-order body with prices as JSON numbers rounded to cents."""
    body = request.model_dump(mode="json")
    for line, item in zip(body["order_items"], request.order_items):
        line["price"] = float(to_cents(item.price))
    return body


class HttpOrderService(BaseOrderService):
    """
    Order Service backed by the ordering REST API.

    Error mapping:
        - Connection failures and timeouts raise NetworkError
        - 4xx/5xx responses raise ServerRejectedError carrying the body's
          ``message`` and per-field ``errors`` when present
        - A successful response that is not JSON raises ServerRejectedError

    Example:
        >>> service = HttpOrderService(base_url="https://api.example.com/api")
        >>> payload = await service.get_orders_by_table(1, 4)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: API root (default: settings.api_base_url)
            api_token: Bearer token for owner endpoints (default: settings.api_token)
            timeout: Request timeout in seconds
            http_client: Optional client for dependency injection (testing)
        """
        settings = get_settings()

        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._api_token = api_token if api_token is not None else settings.api_token
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.http_timeout_seconds,
        )
        self._owns_client = http_client is None

        logger.info(f"HttpOrderService initialized ({self._base_url})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "http"

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _headers(self, auth: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth and self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
        auth: bool = True,
    ) -> Payload:
        url = f"{self._base_url}{path}"

        try:
            response = await self._client.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=self._headers(auth),
            )
        except httpx.RequestError as e:
            logger.warning(f"HTTP: {method} {path} got no response - {e!r}")
            raise NetworkError()

        content_type = response.headers.get("content-type", "")
        is_json = "application/json" in content_type

        if response.is_error:
            body = None
            if is_json:
                try:
                    body = response.json()
                except ValueError:
                    logger.error(f"HTTP: {method} {path} sent unparseable error JSON")
            else:
                logger.error(
                    f"HTTP: {method} {path} returned non-JSON error "
                    f"({response.status_code}): {response.text[:200]}"
                )
            error = ServerRejectedError.from_payload(body, response.status_code)
            logger.info(f"HTTP: {method} {path} rejected ({response.status_code}) - {error.message}")
            raise error

        if response.status_code == 204 or not response.content:
            return None

        if not is_json:
            logger.error(f"HTTP: {method} {path} returned {content_type or 'no content type'}")
            raise ServerRejectedError(
                "Server returned an unexpected response format. Expected JSON.",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise ServerRejectedError(
                "Server returned an unexpected response format. Expected JSON.",
                response.status_code,
            )

    # =========================================================================
    # ORDER SERVICE INTERFACE
    # =========================================================================

    async def create_order(self, request: OrderCreateRequest) -> Payload:
        return await self._request(
            "POST",
            "/orders",
            json=_order_body(request),
            auth=False,
        )

    async def get_orders_by_table(self, restaurant_id: int, table_id: int) -> Payload:
        return await self._request(
            "GET",
            f"/orders/table/{restaurant_id}/{table_id}",
            auth=False,
        )

    async def get_all_orders(
        self,
        restaurant_id: int,
        filters: Optional[OrderFilters] = None,
    ) -> Payload:
        params = {"restaurant_id": str(restaurant_id)}
        if filters is not None:
            params.update(filters.to_params())
        return await self._request("GET", "/owner/orders", params=params)

    async def get_order(self, order_id: int) -> Payload:
        return await self._request("GET", f"/owner/orders/{order_id}")

    async def update_order_status(self, order_id: int, status: OrderStatus) -> Payload:
        return await self._request(
            "PATCH",
            f"/owner/orders/{order_id}/status",
            json={"status": parse_status(status).value},
        )

    async def delete_order(self, order_id: int) -> Payload:
        return await self._request("DELETE", f"/owner/orders/{order_id}")

    async def health_check(self) -> bool:
        """Check that the API root answers without a server error."""
        try:
            response = await self._client.get(
                f"{self._base_url}/health",
                headers=self._headers(auth=False),
            )
        except httpx.RequestError as e:
            logger.error(f"HTTP: health check failed - {e!r}")
            return False
        return response.status_code < 500
