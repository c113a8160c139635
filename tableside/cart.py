"""
Cart Model

In-memory cart for one (restaurant, table) session. Lines are keyed by menu
item id, so an item appears at most once and re-adding it bumps quantity.
The unit price is captured when the item is first added; later menu edits
never reprice a cart that is already being built.

All arithmetic stays in Decimal. Nothing here rounds; use ``summary()`` or
``tableside.money.to_cents`` at the display boundary.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, Optional

from tableside.core.config import get_settings
from tableside.core.exceptions import InvalidCartItemError
from tableside.money import to_cents, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuItem:
    """A meal as listed on the table's menu."""

    item_id: int
    name: str
    price: Any
    available: bool = True


@dataclass
class CartLine:
    """One selected item with its captured price."""

    item_id: int
    name: str
    unit_price: Decimal
    quantity: int = 1
    note: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """
    Cart owned by a single browsing session.

    Attributes:
        restaurant_id: Restaurant the session belongs to
        table_id: Table the session belongs to
        tax_rate: Rate applied to the subtotal
        flat_fee: Service fee added once per cart

    Example:
        >>> cart = Cart(restaurant_id=1, table_id=4)
        >>> _ = cart.add_item(MenuItem(7, "Tagine", "10.00"))
        >>> _ = cart.add_item(MenuItem(7, "Tagine", "10.00"))
        >>> cart.item_count()
        2
    """

    def __init__(
        self,
        restaurant_id: Optional[int] = None,
        table_id: Optional[int] = None,
        tax_rate: Optional[Decimal] = None,
        service_fee: Optional[Decimal] = None,
    ):
        settings = get_settings()
        self.restaurant_id = restaurant_id
        self.table_id = table_id
        self.tax_rate = to_decimal(settings.tax_rate if tax_rate is None else tax_rate)
        self.flat_fee = to_decimal(
            settings.service_fee if service_fee is None else service_fee
        )
        self._lines: dict[int, CartLine] = {}

    def __repr__(self) -> str:
        return (
            f"<Cart restaurant={self.restaurant_id} table={self.table_id} "
            f"lines={len(self._lines)} items={self.item_count()}>"
        )

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self._lines.values()))

    @property
    def lines(self) -> list[CartLine]:
        """Lines in the order they were first added."""
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get(self, item_id: int) -> Optional[CartLine]:
        return self._lines.get(item_id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(self, item: MenuItem) -> Optional[CartLine]:
        """
        Add one unit of a menu item.

        Unavailable items are ignored. An item already in the cart has its
        quantity incremented; its captured price is left untouched.

        Returns:
            The affected line, or None when the item was not orderable

        Raises:
            InvalidCartItemError: If a new item carries a non-positive price
        """
        if not item.available:
            logger.debug(f"Cart: item {item.item_id} unavailable, not added")
            return None

        line = self._lines.get(item.item_id)
        if line is not None:
            line.quantity += 1
            return line

        try:
            price = to_decimal(item.price)
        except ValueError:
            raise InvalidCartItemError(f"Item {item.item_id} has no valid price")
        if not price.is_finite() or price <= 0:
            raise InvalidCartItemError(f"Item {item.item_id} has no valid price")

        line = CartLine(item_id=item.item_id, name=item.name, unit_price=price)
        self._lines[item.item_id] = line
        return line

    def set_quantity(self, item_id: int, delta: int) -> None:
        """
        Adjust a line's quantity by ``delta``.

        A result of zero or less drops the line. Unknown ids are ignored.
        """
        line = self._lines.get(item_id)
        if line is None:
            return

        quantity = line.quantity + delta
        if quantity <= 0:
            del self._lines[item_id]
        else:
            line.quantity = quantity

    def remove_item(self, item_id: int) -> None:
        """Drop a line regardless of quantity. Unknown ids are ignored."""
        self._lines.pop(item_id, None)

    def set_note(self, item_id: int, text: str) -> None:
        """
        Replace a line's note as typed.

        Whitespace-only notes are kept here and dropped at submission.
        """
        line = self._lines.get(item_id)
        if line is not None:
            line.note = text

    def clear(self) -> None:
        self._lines.clear()

    # =========================================================================
    # TOTALS
    # =========================================================================

    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def tax(self) -> Decimal:
        return self.subtotal() * self.tax_rate

    def service_fee(self) -> Decimal:
        return self.flat_fee

    def grand_total(self) -> Decimal:
        return self.subtotal() + self.tax() + self.service_fee()

    def item_count(self) -> int:
        """Total units across lines, used for cart badges."""
        return sum(line.quantity for line in self._lines.values())

    def summary(self) -> dict[str, Decimal]:
        """Totals rounded to cents for display."""
        return {
            "subtotal": to_cents(self.subtotal()),
            "tax": to_cents(self.tax()),
            "service_fee": to_cents(self.service_fee()),
            "total": to_cents(self.grand_total()),
        }
