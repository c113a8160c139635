"""
Response Normalization

The ordering backend answers in several envelopes depending on the endpoint:

    [ {...}, {...} ]                        bare array
    {"data": [ ... ]}                       wrapped array
    {"success": true, "data": {"data": [...], "current_page": 1}}
                                            Laravel paginator
    {"success": true, "orders": [ ... ]}    keyed fallback
    {"success": true, "order": {...}}       single "last order"
    {"success": true, "data": {...}}        single order (create / update)
    {"success": false, "message": "..."}    rejection

Every call site goes through this module; nothing else inspects shapes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from tableside.core.exceptions import ServerRejectedError
from tableside.schemas import Order

logger = logging.getLogger(__name__)

LIST_KEYS = ("data", "orders", "items", "results")
SINGLE_KEYS = ("order", "data")


@dataclass
class ApiResult:
    """A successful envelope with its message and raw body."""
    success: bool
    data: Any = None
    message: Optional[str] = None
    errors: dict[str, Any] = field(default_factory=dict)


def unwrap_result(payload: Any) -> ApiResult:
    """
    Check the envelope for an explicit rejection.

    Raises:
        ServerRejectedError: If ``success`` is false or the body is not JSON-like
    """
    if payload is None or isinstance(payload, list):
        return ApiResult(success=True, data=payload)

    if isinstance(payload, dict):
        if payload.get("success") is False:
            raise ServerRejectedError.from_payload(payload)
        return ApiResult(success=True, data=payload, message=payload.get("message"))

    raise ServerRejectedError(
        "Server returned an unexpected response format. Expected JSON."
    )


def _looks_like_order(value: Any) -> bool:
    return isinstance(value, dict) and "id" in value and "status" in value


def extract_order_rows(payload: Any) -> list[Any]:
    """
    Reduce any supported envelope to a list of raw order rows.

    A bare order object is checked first because orders carry their own
    ``items`` list, which must not be mistaken for a list of orders.
    """
    body = unwrap_result(payload).data

    if body is None:
        return []
    if isinstance(body, list):
        return body

    if _looks_like_order(body):
        return [body]

    for key in LIST_KEYS:
        value = body.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, dict) and isinstance(value.get("data"), list):
            return value["data"]

    for key in SINGLE_KEYS:
        value = body.get(key)
        if _looks_like_order(value):
            return [value]
        if key in body and value is None:
            return []

    logger.warning(f"Unrecognized order payload keys: {sorted(body.keys())}")
    return []


def _parse_order(row: Any) -> Order:
    if not isinstance(row, dict):
        raise ServerRejectedError(f"Malformed order in response: {row!r}")
    try:
        return Order.model_validate(row)
    except ValidationError as e:
        raise ServerRejectedError(
            f"Malformed order #{row.get('id', '?')} in response "
            f"({e.error_count()} invalid field(s))"
        )


def normalize_orders(payload: Any) -> list[Order]:
    """
    Canonical list of orders from any supported envelope.

    Raises:
        ServerRejectedError: On a rejection envelope or a malformed row
        UnknownStatusError: If any row carries an unknown status
    """
    return [_parse_order(row) for row in extract_order_rows(payload)]


def normalize_order(payload: Any) -> Optional[Order]:
    """The single order carried by a payload, if any."""
    orders = normalize_orders(payload)
    return orders[0] if orders else None
