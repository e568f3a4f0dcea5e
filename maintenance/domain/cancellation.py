from __future__ import annotations

import threading

from .errors import OperationCancelledError


class CancellationToken:
    """Cooperative cancellation flag passed through every blocking call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("operation cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to ``timeout`` seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)


def check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
