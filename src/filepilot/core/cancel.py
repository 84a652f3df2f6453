from __future__ import annotations

import threading
from typing import Optional

from filepilot.core.errors import OperationCancelledError


class CancelToken:
    """Cooperative cancellation flag passed to every provider call.

    Backends running on worker threads poll ``cancelled`` between chunks, so
    the flag is a ``threading.Event`` rather than an asyncio primitive.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Operation cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation cancelled")


def check(token: Optional[CancelToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()
