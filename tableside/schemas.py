"""
Pydantic Schemas for the Order Service Contract

Wire models exchanged with the ordering backend:
- OrderCreateRequest / OrderItemPayload: body of the create-order call
- Order / OrderLine: server-authoritative orders read back by the tracking
  view and the staff console
- OrderFilters: staff console query filters

Version: 1.0.0
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from tableside.money import to_decimal
from tableside.registry import (
    OrderStatus,
    display_color,
    display_label,
    is_deletable,
    is_updatable,
    parse_status,
    progress_percent,
    valid_transitions,
)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemPayload(BaseModel):
    """Single line of a create-order request."""
    meal_id: int = Field(..., examples=[12])
    quantity: int = Field(..., ge=1, examples=[2])
    price: Decimal = Field(..., gt=0, examples=["10.00"])
    note: Optional[str] = Field(None, examples=["No onions"])


class OrderCreateRequest(BaseModel):
    """Request schema for creating a new order from a cart."""
    restaurant_id: int = Field(..., examples=[1])
    table_id: int = Field(..., examples=[4])
    order_items: list[OrderItemPayload] = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    """Body of the status-update call. Parsed strictly by the receiver."""
    status: str


class OrderFilters(BaseModel):
    """Staff console filters. Empty values mean "no filter"."""
    status: Optional[OrderStatus] = None
    table_id: Optional[int] = None
    date: Optional[dt.date] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_filter_status(cls, v: Any) -> Optional[OrderStatus]:
        if v is None or v == "":
            return None
        return parse_status(v)

    @field_validator("table_id", mode="before")
    @classmethod
    def blank_table(cls, v: Any) -> Any:
        return None if v == "" else v

    def to_params(self) -> dict[str, str]:
        """Query parameters with empty filters dropped."""
        params: dict[str, str] = {}
        if self.status is not None:
            params["status"] = self.status.value
        if self.table_id is not None:
            params["table_id"] = str(self.table_id)
        if self.date is not None:
            params["date"] = self.date.isoformat()
        return params


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderLine(BaseModel):
    """A line of a placed order. Price is frozen at order time."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    meal_id: int
    quantity: int = Field(..., ge=1)
    price: Decimal
    note: Optional[str] = None
    meal_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("meal_name", "name"),
    )

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Order(BaseModel):
    """
    Server-authoritative order.

    Lines are accepted under either ``items`` or ``order_items``. The status
    goes through the registry's strict parser, so an unknown value raises
    ``UnknownStatusError`` instead of validating.
    """
    model_config = ConfigDict(extra="ignore")

    id: int
    restaurant_id: Optional[int] = None
    table_id: Optional[int] = None
    status: OrderStatus
    items: list[OrderLine] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "order_items"),
    )
    total: Decimal = Decimal("0")
    created_at: Optional[dt.datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def strict_status(cls, v: Any) -> OrderStatus:
        return parse_status(v)

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v: Any) -> Decimal:
        if v is None:
            return Decimal("0")
        return to_decimal(v)

    # =========================================================================
    # REGISTRY SHORTCUTS
    # =========================================================================

    @property
    def label(self) -> str:
        return display_label(self.status)

    @property
    def color(self) -> str:
        return display_color(self.status)

    @property
    def progress(self) -> int:
        return progress_percent(self.status)

    @property
    def is_updatable(self) -> bool:
        return is_updatable(self.status)

    @property
    def is_deletable(self) -> bool:
        return is_deletable(self.status)

    @property
    def next_statuses(self) -> tuple[OrderStatus, ...]:
        return valid_transitions(self.status)

    @property
    def items_subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0"))
