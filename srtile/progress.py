"""Progress events and non-blocking delivery to observers."""

import logging, queue, threading
from dataclasses import dataclass
from typing import Callable, Union

from tqdm import tqdm


@dataclass(frozen=True)
class ProgressEvent:
    """Progress after `columns_done` tile columns finished."""

    columns_done: int
    columns_total: int
    elapsed_ms: float
    estimated_remaining_ms: float

    def message(self) -> str:
        return f"progress: {self.columns_done}/{self.columns_total}, need {int(self.estimated_remaining_ms)}ms"


@dataclass(frozen=True)
class RunComplete:
    """Terminal event for a successful run."""

    total_elapsed_ms: float
    columns_total: int
    tiles_total: int

    def message(self) -> str:
        return f"Inference time: {int(self.total_elapsed_ms)}ms"


Event = Union[ProgressEvent, RunComplete]
Observer = Callable[[Event], None]


def estimate_remaining_ms(elapsed_ms: float, columns_done: int, columns_total: int) -> float:
    """Extrapolate remaining time linearly from the mean time per finished column."""
    assert columns_done > 0, f"columns_done must be > 0; got {columns_done}"
    assert columns_total >= columns_done, f"columns_total {columns_total} < columns_done {columns_done}"
    return (elapsed_ms / columns_done) * (columns_total - columns_done)


class ProgressDispatcher:
    """
    Deliver events to an observer from a background thread.

    `emit` never waits on the observer and `close` waits at most its timeout.
    When the bounded queue is full a progress event is dropped, which keeps
    `columns_done` strictly increasing for what the observer does see. A terminal event evicts the
    oldest queued progress event if it must, so it is always queued and is
    always the last event delivered.
    """

    poll_interval_s = 0.05

    def __init__(self, observer: Observer | None, maxsize: int = 64, logger=None):
        assert maxsize > 0, f"maxsize must be > 0; got {maxsize}"
        self.observer = observer
        self.log = logger or logging.getLogger(__name__)
        self.dropped = 0
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None
        if observer is not None:
            self._thread = threading.Thread(target=self._deliver, name="srtile-progress", daemon=True)
            self._thread.start()

    def __call__(self, event: Event) -> None:
        self.emit(event)

    def emit(self, event: Event) -> None:
        """Queue one event for delivery."""
        assert not self._closed.is_set(), "cannot emit on a closed dispatcher"
        if self._thread is None:
            return
        if isinstance(event, RunComplete):
            self._put_terminal(event)
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            self.log.debug(f"progress queue full; dropped event columns_done={event.columns_done}")

    def _put_terminal(self, event: RunComplete) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                pass
            try:
                evicted = self._queue.get_nowait()
            except queue.Empty:
                continue
            self.dropped += 1
            self.log.debug(f"progress queue full; evicted event columns_done={evicted.columns_done}")

    def _deliver(self) -> None:
        # Drains whatever is queued, then exits once the dispatcher is closed.
        while True:
            try:
                event = self._queue.get(timeout=self.poll_interval_s)
            except queue.Empty:
                if self._closed.is_set():
                    return
                continue
            try:
                self.observer(event)
            except Exception:
                self.log.exception("progress observer raised")

    def close(self, timeout: float | None = None) -> bool:
        """
        Stop accepting events and wait up to `timeout` seconds for delivery.

        Returns True when every queued event was delivered. A stuck observer
        leaves the daemon delivery thread running; the caller is released
        once `timeout` expires.
        """
        self._closed.set()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        flushed = not self._thread.is_alive()
        if not flushed:
            self.log.warning(
                f"progress observer still busy after {timeout}s; "
                f"{self._queue.qsize()} event(s) left for background delivery"
            )
        return flushed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class TqdmObserver:
    """Render column progress with tqdm."""

    def __init__(self, desc: str = "upscaling", **tqdm_kwargs):
        self.desc = desc
        self.tqdm_kwargs = tqdm_kwargs
        self._bar: tqdm | None = None

    def __call__(self, event: Event) -> None:
        if self._bar is None:
            self._bar = tqdm(total=event.columns_total, desc=self.desc, unit="column", **self.tqdm_kwargs)
        if isinstance(event, RunComplete):
            self._bar.update(event.columns_total - self._bar.n)
            self._bar.set_postfix_str(event.message())
            self._bar.close()
            return
        self._bar.update(event.columns_done - self._bar.n)


class LoggingObserver:
    """Write each event message to a logger."""

    def __init__(self, logger=None, level: int = logging.INFO):
        self.log = logger or logging.getLogger(__name__)
        self.level = level

    def __call__(self, event: Event) -> None:
        self.log.log(self.level, event.message())
