"""
Cancellation tokens and busy flags for per-view async operations.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Raised at a suspension point once the owning token has been cancelled."""


class CancellationToken:
    """Cooperative cancellation flag checked at each await boundary."""

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        if not self._cancelled:
            logger.debug("Cancelling operation %s", self.label or "<unnamed>")
        self._cancelled = True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise OperationCancelled(f"Operation {self.label or '<unnamed>'} was superseded")


def check_cancelled(token: Optional[CancellationToken]):
    """Shorthand for optional tokens."""
    if token is not None:
        token.raise_if_cancelled()


class BusyFlag:
    """
    Single-slot guard: a second acquire while held is refused instead of queued.

    Only safe on one event loop; there is no await between the check and the set.
    """

    def __init__(self, name: str):
        self.name = name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_acquire(self) -> bool:
        if self._busy:
            logger.info("%s already in progress, ignoring request", self.name)
            return False
        self._busy = True
        return True

    def release(self):
        self._busy = False
