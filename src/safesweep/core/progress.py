"""Thread-safe progress delivery and cooperative cancellation."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

from safesweep.models.progress import ScanProgress

log = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal shared between the caller and workers."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()


class ProgressSink(Generic[T]):
    """Best-effort, latest-wins progress delivery.

    Any thread may call :meth:`emit`. Only one thread runs the consumer
    callback at a time; snapshots emitted while it is busy overwrite each
    other, and the busy thread delivers the newest one once the callback
    returns. The last snapshot emitted is therefore always delivered.
    """

    def __init__(self, callback: Callable[[T], None] | None = None) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._pending: T | None = None
        self._latest: T | None = None
        self._delivering = False

    @property
    def latest(self) -> T | None:
        """Most recent snapshot emitted, for consumers that poll."""
        with self._lock:
            return self._latest

    def emit(self, snapshot: T) -> None:
        with self._lock:
            self._latest = snapshot
            if self._callback is None:
                return
            self._pending = snapshot
            if self._delivering:
                return
            self._delivering = True

        while True:
            with self._lock:
                current = self._pending
                self._pending = None
                if current is None:
                    self._delivering = False
                    return
            try:
                self._callback(current)
            except Exception:
                log.exception("Progress callback raised")


class ProviderProgress:
    """Progress handle given to a single provider during a scan.

    ``tick()`` counts enumerated items and only emits every
    ``batch_size`` items to bound callback overhead.
    """

    def __init__(
        self,
        sink: ProgressSink[ScanProgress],
        provider_id: str,
        step: int,
        total_steps: int,
        batch_size: int = 500,
    ) -> None:
        self._sink = sink
        self._provider_id = provider_id
        self._step = step
        self._total_steps = total_steps
        self._batch_size = max(1, batch_size)
        self._operation = f"Scanning {provider_id}"
        self.processed = 0

    def note(self, operation: str) -> None:
        self._operation = operation
        self._emit()

    def tick(self, count: int = 1) -> None:
        before = self.processed // self._batch_size
        self.processed += count
        if self.processed // self._batch_size != before:
            self._emit()

    def _emit(self) -> None:
        self._sink.emit(
            ScanProgress(
                current_step=self._step,
                total_steps=self._total_steps,
                operation=self._operation,
                provider_id=self._provider_id,
                processed_items=self.processed,
            )
        )
