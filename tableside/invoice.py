"""
Invoice Rendering

Pure read-side rendering of an already-fetched order, as plain text for a
receipt printer or as a standalone HTML page for the browser print dialog.
Templates live in ``tableside/templates``.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from tableside.core.config import get_settings
from tableside.money import format_price
from tableside.schemas import Order

logger = logging.getLogger(__name__)

TEMPLATES = {
    "text": "invoice.txt",
    "html": "invoice.html",
}


@lru_cache()
def get_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("tableside", "templates"),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["price"] = format_price
    return env


def render_invoice(
    order: Order,
    fmt: str = "text",
    currency: Optional[str] = None,
    restaurant_name: Optional[str] = None,
    printed_at: Optional[datetime] = None,
) -> str:
    """
    Render an order as an invoice.

    Args:
        order: Order to render
        fmt: "text" or "html"
        currency: Display currency (default: settings.currency)
        restaurant_name: Optional heading
        printed_at: Timestamp shown on the invoice (default: now)

    Raises:
        ValueError: For an unsupported format
    """
    template_name = TEMPLATES.get(fmt)
    if template_name is None:
        raise ValueError(f"Invalid invoice format. Must be one of: {list(TEMPLATES)}")

    settings = get_settings()
    template = get_environment().get_template(template_name)

    rendered = template.render(
        order=order,
        lines=order.items,
        currency=currency or settings.currency,
        restaurant_name=restaurant_name or settings.app_name,
        printed_at=(printed_at or datetime.now()).strftime("%Y-%m-%d %H:%M"),
        created_at=order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else "-",
    )
    logger.debug(f"Rendered {fmt} invoice for order #{order.id}")
    return rendered
