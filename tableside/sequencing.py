"""Request sequencing for overlapping fetches."""

import itertools


class RequestSequencer:
    """
    Hands out increasing tickets and accepts only the newest response.

    Each fetch takes a ticket before it is sent. When the response lands,
    ``accept(ticket)`` returns False if a response to a later ticket has
    already been applied, so a slow stale answer cannot overwrite fresher
    state.

    Example:
        >>> seq = RequestSequencer()
        >>> first, second = seq.issue(), seq.issue()
        >>> seq.accept(second)
        True
        >>> seq.accept(first)
        False
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._issued = 0
        self._applied = 0

    @property
    def issued(self) -> int:
        return self._issued

    @property
    def applied(self) -> int:
        return self._applied

    def issue(self) -> int:
        self._issued = next(self._counter)
        return self._issued

    def accept(self, ticket: int) -> bool:
        if ticket <= self._applied:
            return False
        self._applied = ticket
        return True

    def is_latest(self, ticket: int) -> bool:
        """True if no later request has been issued."""
        return ticket == self._issued
