import pytest

from filepilot.core.history import load_events
from filepilot.services.notifications import NotificationSink, NotificationStatus
from filepilot.services.transfer_tracker import (
    CANCELLED_MESSAGE,
    OperationKind,
    OperationStatus,
    TransferOperationTracker,
    plural,
)


@pytest.fixture
def notifier() -> NotificationSink:
    return NotificationSink(duration_ms=0)


@pytest.fixture
def tracker(notifier) -> TransferOperationTracker:
    return TransferOperationTracker(notifier)


def test_lifecycle(tracker) -> None:
    op_id = tracker.begin(OperationKind.COPY, 3)
    op = tracker.get(op_id)
    assert op.status == OperationStatus.PENDING
    assert op.processed_items == 0

    tracker.advance(op_id, 1, "b.txt")
    op = tracker.get(op_id)
    assert op.status == OperationStatus.IN_PROGRESS
    assert op.current_file == "b.txt"
    assert op.progress == pytest.approx(100 / 3)

    tracker.complete(op_id)
    op = tracker.get(op_id)
    assert op.status == OperationStatus.COMPLETED
    assert op.processed_items == 3
    assert op.finished_at is not None


def test_advance_outside_total_is_rejected(tracker) -> None:
    op_id = tracker.begin(OperationKind.DELETE, 2)
    with pytest.raises(ValueError):
        tracker.advance(op_id, 3, "x")
    with pytest.raises(ValueError):
        tracker.advance(op_id, -1, "x")


def test_terminal_records_ignore_updates(tracker) -> None:
    op_id = tracker.begin(OperationKind.COPY, 2)
    tracker.fail(op_id, "a.txt: Permission denied")

    tracker.advance(op_id, 1, "b.txt")
    tracker.complete(op_id)

    op = tracker.get(op_id)
    assert op.status == OperationStatus.ERROR
    assert op.error == "a.txt: Permission denied"
    assert op.processed_items == 0


def test_cancel_sets_token_and_error(tracker) -> None:
    op_id = tracker.begin(OperationKind.MOVE, 2)
    token = tracker.cancel_token(op_id)

    assert tracker.cancel(op_id) is True
    assert token.cancelled
    op = tracker.get(op_id)
    assert op.status == OperationStatus.ERROR
    assert op.error == CANCELLED_MESSAGE

    # already terminal
    assert tracker.cancel(op_id) is False
    assert tracker.cancel("missing") is False


def test_acknowledge_waits_for_active_operations(tracker, notifier) -> None:
    done = tracker.begin(OperationKind.COPY, 1)
    running = tracker.begin(OperationKind.DELETE, 1)
    tracker.complete(done)

    assert tracker.has_active
    assert tracker.acknowledge() is False
    assert len(tracker.operations()) == 2

    tracker.fail(running, "boom")
    assert tracker.acknowledge() is True
    assert tracker.operations() == []

    assert notifier.current.status == NotificationStatus.SUCCESS
    assert notifier.current.title == "Operation Complete"
    assert notifier.current.message == "Successfully completed 1 file operation"


def test_acknowledge_without_completed_operations_is_silent(tracker, notifier) -> None:
    op_id = tracker.begin(OperationKind.COPY, 1)
    tracker.cancel(op_id)

    assert tracker.acknowledge() is True
    assert notifier.history == []


def test_listeners_receive_snapshots(tracker) -> None:
    seen = []
    tracker.add_listener(seen.append)

    op_id = tracker.begin(OperationKind.COPY, 2)
    tracker.advance(op_id, 0, "a.txt")
    tracker.advance(op_id, 1, "b.txt")
    tracker.complete(op_id)

    assert [ops[0].processed_items for ops in seen] == [0, 0, 1, 2]
    seen[0][0].processed_items = 99
    assert tracker.get(op_id).processed_items == 2


def test_finished_operations_go_to_history(notifier, tmp_path) -> None:
    path = tmp_path / "history.json"
    tracker = TransferOperationTracker(notifier, history_path=path, history_enabled=True)

    first = tracker.begin(OperationKind.COPY, 1)
    tracker.complete(first)
    second = tracker.begin(OperationKind.DELETE, 2)
    tracker.fail(second, "b.txt: Permission denied")

    events = load_events(path)
    assert [e["id"] for e in events] == [second, first]
    assert events[0]["status"] == "error"
    assert events[0]["error"] == "b.txt: Permission denied"
    assert events[1]["kind"] == "copy"


def test_plural() -> None:
    assert plural(1, "item") == "1 item"
    assert plural(0, "item") == "0 items"
    assert plural(2, "file operation") == "2 file operations"
