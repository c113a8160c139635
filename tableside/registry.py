"""
Order Status Registry

Single source of truth for the order status state machine:

    pending -> confirmed -> preparing -> ready -> served -> completed
    (pending | confirmed | preparing | ready) -> cancelled

The pipeline is declared once as an ordered tuple. Both the transition table
and the numeric display ordering are derived from it, so they cannot drift
apart. Every lookup goes through ``parse_status``, which refuses unknown
values instead of guessing a default.

Version: 1.0.0
"""

import enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Union

from tableside.core.exceptions import UnknownStatusError

if TYPE_CHECKING:
    from tableside.schemas import Order


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


StatusLike = Union[OrderStatus, str]


# =============================================================================
# CANONICAL PIPELINE
# =============================================================================

PIPELINE: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
)

# Last pipeline stage from which an order may still be cancelled
LAST_CANCELLABLE = OrderStatus.READY

DELETABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED})


def _build_transitions() -> Mapping[OrderStatus, tuple[OrderStatus, ...]]:
    cancel_cutoff = PIPELINE.index(LAST_CANCELLABLE)
    table: dict[OrderStatus, tuple[OrderStatus, ...]] = {}

    for index, status in enumerate(PIPELINE):
        moves: list[OrderStatus] = []
        if index + 1 < len(PIPELINE):
            moves.append(PIPELINE[index + 1])
        if index <= cancel_cutoff:
            moves.append(OrderStatus.CANCELLED)
        table[status] = tuple(moves)

    table[OrderStatus.CANCELLED] = ()
    return MappingProxyType(table)


TRANSITIONS = _build_transitions()

TERMINAL_STATUSES = frozenset(
    status for status, moves in TRANSITIONS.items() if not moves
)

# Display-only ordering: cancelled ranks lowest, completed highest
_STATUS_ORDER: Mapping[OrderStatus, int] = MappingProxyType({
    OrderStatus.CANCELLED: 0,
    **{status: index + 1 for index, status in enumerate(PIPELINE)},
})


# =============================================================================
# PRESENTATION
# =============================================================================

_LABELS: Mapping[OrderStatus, str] = MappingProxyType({
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.READY: "Ready",
    OrderStatus.SERVED: "Served",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
})

_COLORS: Mapping[OrderStatus, str] = MappingProxyType({
    OrderStatus.PENDING: "yellow",
    OrderStatus.CONFIRMED: "blue",
    OrderStatus.PREPARING: "purple",
    OrderStatus.READY: "green",
    OrderStatus.SERVED: "teal",
    OrderStatus.COMPLETED: "gray",
    OrderStatus.CANCELLED: "red",
})

# Progress bar fill shown on the diner tracking card
_PROGRESS: Mapping[OrderStatus, int] = MappingProxyType({
    OrderStatus.PENDING: 14,
    OrderStatus.CONFIRMED: 28,
    OrderStatus.PREPARING: 42,
    OrderStatus.READY: 57,
    OrderStatus.SERVED: 71,
    OrderStatus.COMPLETED: 100,
    OrderStatus.CANCELLED: 0,
})


# =============================================================================
# LOOKUPS
# =============================================================================

def parse_status(value: Any) -> OrderStatus:
    """
    Strictly convert a raw value to an OrderStatus.

    Accepts enum members and case-insensitive strings.

    Raises:
        UnknownStatusError: For anything outside the enum
    """
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        try:
            return OrderStatus(value.strip().lower())
        except ValueError:
            raise UnknownStatusError(value)
    raise UnknownStatusError(value)


def is_updatable(status: StatusLike) -> bool:
    """True while the order has not reached a terminal status."""
    return parse_status(status) not in TERMINAL_STATUSES


def valid_transitions(status: StatusLike) -> tuple[OrderStatus, ...]:
    """Legal next statuses (empty for terminal statuses)."""
    return TRANSITIONS[parse_status(status)]


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    return parse_status(target) in valid_transitions(current)


def is_deletable(status: StatusLike) -> bool:
    """Only orders not yet in the kitchen pipeline may be deleted."""
    return parse_status(status) in DELETABLE_STATUSES


def status_order(status: StatusLike) -> int:
    """Numeric rank for sorting by pipeline progress."""
    return _STATUS_ORDER[parse_status(status)]


def display_label(status: StatusLike) -> str:
    return _LABELS[parse_status(status)]


def display_color(status: StatusLike) -> str:
    return _COLORS[parse_status(status)]


def progress_percent(status: StatusLike) -> int:
    return _PROGRESS[parse_status(status)]


def sort_by_progress(orders: Iterable["Order"]) -> list["Order"]:
    """
    Order for display with the most advanced order first.

    Cancelled orders sink to the bottom so they never bury active ones.
    The sort is stable, so ties keep the server's ordering.
    """
    return sorted(orders, key=lambda order: status_order(order.status), reverse=True)
