from __future__ import annotations

import dataclasses
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from filepilot.core.cancel import CancelToken
from filepilot.core.history import append_event
from filepilot.core.logging import get_logger
from filepilot.services.notifications import NotificationSink

CANCELLED_MESSAGE = "Operation cancelled"


class OperationKind(str, Enum):
    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"


class OperationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (OperationStatus.PENDING, OperationStatus.IN_PROGRESS)


@dataclass
class TransferOperation:
    id: str
    kind: OperationKind
    status: OperationStatus
    total_items: int
    processed_items: int = 0
    current_file: Optional[str] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    cancel_token: CancelToken = field(default_factory=CancelToken, repr=False, compare=False)

    @property
    def progress(self) -> float:
        if self.total_items <= 0:
            return 100.0 if self.status == OperationStatus.COMPLETED else 0.0
        return self.processed_items * 100.0 / self.total_items


def plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


class TransferOperationTracker:
    """Owns the list of TransferOperation records shown by the progress surface.

    Records are only ever removed by ``acknowledge``.
    """

    def __init__(
        self,
        notifier: NotificationSink,
        *,
        history_path: Optional[Path] = None,
        history_enabled: bool = False,
    ):
        self.logger = get_logger("filepilot.transfers")
        self._notifier = notifier
        self._ops: Dict[str, TransferOperation] = {}
        self._lock = threading.RLock()
        self._listeners: List[Callable[[List[TransferOperation]], None]] = []
        self._history_path = history_path
        self._history_enabled = history_enabled

    def add_listener(self, listener: Callable[[List[TransferOperation]], None]) -> None:
        self._listeners.append(listener)

    def operations(self) -> List[TransferOperation]:
        """Snapshot copies, in creation order."""
        with self._lock:
            return [dataclasses.replace(op) for op in self._ops.values()]

    def get(self, op_id: str) -> Optional[TransferOperation]:
        with self._lock:
            op = self._ops.get(op_id)
            return dataclasses.replace(op) if op else None

    def cancel_token(self, op_id: str) -> CancelToken:
        with self._lock:
            return self._ops[op_id].cancel_token

    @property
    def has_active(self) -> bool:
        with self._lock:
            return any(op.status.is_active for op in self._ops.values())

    def begin(self, kind: OperationKind, total_items: int) -> str:
        if total_items < 0:
            raise ValueError("total_items must be >= 0")
        op = TransferOperation(
            id=uuid.uuid4().hex,
            kind=OperationKind(kind),
            status=OperationStatus.PENDING,
            total_items=total_items,
        )
        with self._lock:
            self._ops[op.id] = op
        self.logger.info(f"operation {op.id[:8]} begin: {op.kind.value} of {total_items} item(s)")
        self._changed()
        return op.id

    def advance(self, op_id: str, processed_items: int, current_file: Optional[str]) -> None:
        with self._lock:
            op = self._ops.get(op_id)
            if op is None or not op.status.is_active:
                return
            if not 0 <= processed_items <= op.total_items:
                raise ValueError(f"processed_items {processed_items} outside 0..{op.total_items}")
            op.status = OperationStatus.IN_PROGRESS
            op.processed_items = processed_items
            op.current_file = current_file
        self._changed()

    def complete(self, op_id: str) -> None:
        with self._lock:
            op = self._ops.get(op_id)
            if op is None or not op.status.is_active:
                return
            op.status = OperationStatus.COMPLETED
            op.processed_items = op.total_items
            op.current_file = None
            op.finished_at = time.time()
        self.logger.info(f"operation {op_id[:8]} completed")
        self._finished(op)

    def fail(self, op_id: str, message: str) -> None:
        with self._lock:
            op = self._ops.get(op_id)
            if op is None or not op.status.is_active:
                return
            op.status = OperationStatus.ERROR
            op.error = message
            op.finished_at = time.time()
        self.logger.warning(f"operation {op_id[:8]} failed: {message}")
        self._finished(op)

    def cancel(self, op_id: str) -> bool:
        """Mark the operation as cancelled.

        Advisory only: a provider call already in flight runs to completion;
        the executor stops at its next cancellation check.
        """
        with self._lock:
            op = self._ops.get(op_id)
            if op is None or not op.status.is_active:
                return False
            op.cancel_token.cancel(CANCELLED_MESSAGE)
            op.status = OperationStatus.ERROR
            op.error = CANCELLED_MESSAGE
            op.finished_at = time.time()
        self.logger.info(f"Cancellation requested for operation {op_id[:8]}")
        self._finished(op)
        return True

    def acknowledge(self) -> bool:
        """Drop all records once nothing is pending or in progress."""
        with self._lock:
            if any(op.status.is_active for op in self._ops.values()):
                return False
            completed = sum(1 for op in self._ops.values() if op.status == OperationStatus.COMPLETED)
            self._ops.clear()
        if completed:
            self._notifier.success(
                "Operation Complete",
                f"Successfully completed {plural(completed, 'file operation')}",
            )
        self._changed()
        return True

    def _finished(self, op: TransferOperation) -> None:
        if self._history_enabled:
            append_event(
                {
                    "id": op.id,
                    "kind": op.kind.value,
                    "status": op.status.value,
                    "total_items": op.total_items,
                    "processed_items": op.processed_items,
                    "error": op.error,
                },
                path=self._history_path,
            )
        self._changed()

    def _changed(self) -> None:
        if not self._listeners:
            return
        snapshot = self.operations()
        for listener in list(self._listeners):
            listener(snapshot)
