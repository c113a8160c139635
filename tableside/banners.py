"""Transient success/error messages that clear themselves on the event loop."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class Banner:
    """
    A message slot that expires ``ttl`` seconds after it was last shown.

    Showing a new message restarts the timer, so an older expiry never
    clears a newer message. ``close()`` cancels any pending expiry; a closed
    banner ignores further ``show()`` calls.

    Attributes:
        name: Label used in log lines ("success", "error", ...)
        ttl: Default lifetime in seconds
    """

    def __init__(self, name: str, ttl: float):
        self.name = name
        self.ttl = ttl
        self._message: Optional[str] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    def __repr__(self) -> str:
        return f"<Banner {self.name} message={self._message!r}>"

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def active(self) -> bool:
        return self._message is not None

    def show(self, message: str, ttl: Optional[float] = None) -> None:
        """Display a message and (re)start its expiry timer."""
        if self._closed:
            logger.debug(f"Banner {self.name} closed, dropping {message!r}")
            return

        self._cancel_timer()
        self._message = message
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.ttl if ttl is None else ttl, self._expire)

    def clear(self) -> None:
        self._cancel_timer()
        self._message = None

    def close(self) -> None:
        self.clear()
        self._closed = True

    def _expire(self) -> None:
        self._handle = None
        self._message = None

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
