from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from filepilot.core.logging import get_logger

_log = get_logger("filepilot.notify")


class NotificationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    status: NotificationStatus
    title: str
    message: str


Listener = Callable[[Optional[Notification]], None]


class NotificationSink:
    """Single transient notification slot, auto-dismissed after ``duration_ms``.

    Listeners receive the new notification, or None when it is dismissed.
    """

    def __init__(self, duration_ms: int = 3000):
        self.duration_ms = duration_ms
        self.current: Optional[Notification] = None
        self.history: List[Notification] = []
        self._listeners: List[Listener] = []
        self._timer: Optional[asyncio.TimerHandle] = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def notify(self, status: NotificationStatus, title: str, message: str) -> Notification:
        n = Notification(status=NotificationStatus(status), title=title, message=message)
        self.current = n
        self.history.append(n)
        _log.info(f"[{n.status.value}] {title}: {message}")
        self._schedule_dismiss(n)
        self._emit(n)
        return n

    def success(self, title: str, message: str) -> Notification:
        return self.notify(NotificationStatus.SUCCESS, title, message)

    def error(self, title: str, message: str) -> Notification:
        return self.notify(NotificationStatus.ERROR, title, message)

    def info(self, title: str, message: str) -> Notification:
        return self.notify(NotificationStatus.INFO, title, message)

    def warning(self, title: str, message: str) -> Notification:
        return self.notify(NotificationStatus.WARNING, title, message)

    def clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.current is not None:
            self.current = None
            self._emit(None)

    def _schedule_dismiss(self, n: Notification) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.duration_ms <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): the notification stays until cleared.
            return
        self._timer = loop.call_later(self.duration_ms / 1000.0, self._dismiss, n)

    def _dismiss(self, n: Notification) -> None:
        self._timer = None
        if self.current is n:
            self.current = None
            self._emit(None)

    def _emit(self, n: Optional[Notification]) -> None:
        for listener in list(self._listeners):
            listener(n)
