"""Tests for progress events and dispatch."""

import io, threading

import pytest

from srtile.progress import (
    LoggingObserver,
    ProgressDispatcher,
    ProgressEvent,
    RunComplete,
    TqdmObserver,
    estimate_remaining_ms,
)


pytestmark = pytest.mark.unit


def _event(columns_done: int, columns_total: int = 10) -> ProgressEvent:
    return ProgressEvent(
        columns_done=columns_done,
        columns_total=columns_total,
        elapsed_ms=100.0 * columns_done,
        estimated_remaining_ms=estimate_remaining_ms(100.0 * columns_done, columns_done, columns_total),
    )


def test_estimate_remaining_is_linear_extrapolation():
    """Ensure the estimate scales mean column time by remaining columns."""
    assert estimate_remaining_ms(300.0, 3, 5) == pytest.approx(200.0)
    assert estimate_remaining_ms(300.0, 5, 5) == 0.0


def test_event_messages():
    """Ensure events render the progress and timing text."""
    assert _event(1, 3).message() == "progress: 1/3, need 200ms"
    assert RunComplete(total_elapsed_ms=360.4, columns_total=3, tiles_total=6).message() == "Inference time: 360ms"


def test_dispatcher_delivers_in_order_with_terminal_last():
    """Ensure delivered events keep emission order and end with the terminal event."""
    received = []
    dispatcher = ProgressDispatcher(received.append, maxsize=32)
    for columns_done in range(1, 10):
        dispatcher.emit(_event(columns_done))
    dispatcher.emit(RunComplete(total_elapsed_ms=1000.0, columns_total=10, tiles_total=20))
    dispatcher.close()
    assert [event.columns_done for event in received[:-1]] == list(range(1, 10))
    assert isinstance(received[-1], RunComplete)


def test_dispatcher_does_not_block_on_slow_observer():
    """Ensure a stalled observer drops progress events instead of blocking emit."""
    release = threading.Event()
    received = []

    def slow_observer(event):
        release.wait(timeout=5)
        received.append(event)

    dispatcher = ProgressDispatcher(slow_observer, maxsize=2)
    emitted = threading.Event()

    def producer():
        for columns_done in range(1, 50):
            dispatcher.emit(_event(columns_done, 50))
        emitted.set()

    thread = threading.Thread(target=producer)
    thread.start()
    assert emitted.wait(timeout=5)
    release.set()
    dispatcher.emit(RunComplete(total_elapsed_ms=1.0, columns_total=50, tiles_total=50))
    dispatcher.close(timeout=5)
    thread.join(timeout=5)

    assert dispatcher.dropped > 0
    steps = [event.columns_done for event in received[:-1]]
    assert steps == sorted(set(steps))
    assert isinstance(received[-1], RunComplete)


def test_dispatcher_terminal_and_close_do_not_wait_on_stuck_observer():
    """Ensure the terminal event and close return while the observer is still blocked."""
    release = threading.Event()
    received = []

    def stuck_observer(event):
        release.wait(timeout=10)
        received.append(event)

    dispatcher = ProgressDispatcher(stuck_observer, maxsize=1)
    try:
        for columns_done in range(1, 6):
            dispatcher.emit(_event(columns_done, 6))
        dispatcher.emit(RunComplete(total_elapsed_ms=1.0, columns_total=6, tiles_total=6))
        assert dispatcher.close(timeout=0.1) is False
        assert not release.is_set()
    finally:
        release.set()
    dispatcher._thread.join(timeout=5)

    assert not dispatcher._thread.is_alive()
    steps = [event.columns_done for event in received[:-1]]
    assert steps == sorted(set(steps))
    assert isinstance(received[-1], RunComplete)


def test_dispatcher_survives_observer_error(logger):
    """Ensure an observer exception does not reach the emitting thread."""
    calls = []

    def broken_observer(event):
        calls.append(event)
        raise RuntimeError("observer failure")

    dispatcher = ProgressDispatcher(broken_observer, logger=logger)
    dispatcher.emit(_event(1))
    dispatcher.emit(RunComplete(total_elapsed_ms=1.0, columns_total=10, tiles_total=10))
    dispatcher.close()
    assert len(calls) == 2


def test_dispatcher_without_observer_is_noop():
    """Ensure emit is accepted when nobody observes."""
    with ProgressDispatcher(None) as dispatcher:
        dispatcher.emit(_event(1))
    assert dispatcher.dropped == 0


def test_tqdm_observer_completes_bar():
    """Ensure the tqdm observer advances to the column total."""
    observer = TqdmObserver(file=io.StringIO())
    observer(_event(1, 3))
    observer(_event(2, 3))
    observer(RunComplete(total_elapsed_ms=10.0, columns_total=3, tiles_total=6))
    assert observer._bar.n == 3


def test_logging_observer_writes_message(caplog, logger):
    """Ensure the logging observer emits the event text."""
    observer = LoggingObserver(logger=logger)
    with caplog.at_level("INFO", logger="pytest"):
        observer(_event(1, 3))
    assert "progress: 1/3" in caplog.text
