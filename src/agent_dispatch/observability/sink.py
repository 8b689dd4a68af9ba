"""Fire-and-forget delivery of engine events to observability sinks.

The engine must never block on a slow or absent sink. ``EventPublisher``
puts events on a bounded queue and a single daemon thread drains it,
calling each registered sink in turn. When the queue is full the event is
dropped and a warning is logged; sink exceptions are logged and swallowed
so one broken subscriber cannot stall routing.

Usage:
    publisher = EventPublisher([audit_sink.emit, print])
    publisher.publish(create_routing_decided_event(...))
    ...
    publisher.close()
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import queue
import threading
from typing import Protocol, runtime_checkable

from agent_dispatch.events.base import BaseEvent
from agent_dispatch.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_QUEUE = 1000

_STOP = object()


@runtime_checkable
class EventSink(Protocol):
    """Anything that accepts engine events."""

    def emit(self, event: BaseEvent) -> None:
        """Receive one event. May be slow; runs on the publisher thread."""
        ...


SinkCallable = Callable[[BaseEvent], object]


def _as_callable(sink: EventSink | SinkCallable) -> SinkCallable:
    if isinstance(sink, EventSink):
        return sink.emit
    return sink


class EventPublisher:
    """Bounded, non-blocking event fan-out.

    Attributes:
        max_queue: Capacity of the pending-event queue.
        dropped: Number of events dropped because the queue was full.
    """

    def __init__(
        self,
        sinks: Iterable[EventSink | SinkCallable] = (),
        max_queue: int = DEFAULT_MAX_QUEUE,
    ) -> None:
        self.max_queue = max_queue
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._sinks: list[SinkCallable] = [_as_callable(s) for s in sinks]
        self._sinks_lock = threading.Lock()
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max_queue)
        self._closed = False
        self._thread: threading.Thread | None = None
        if self._sinks:
            self._start()

    def _start(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._drain, name="agent-dispatch-events", daemon=True
            )
            self._thread.start()

    def subscribe(self, sink: EventSink | SinkCallable) -> None:
        """Add a sink. Events published before subscription are not replayed."""
        with self._sinks_lock:
            self._sinks.append(_as_callable(sink))
        if not self._closed:
            self._start()

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    @property
    def has_sinks(self) -> bool:
        with self._sinks_lock:
            return bool(self._sinks)

    def publish(self, event: BaseEvent) -> None:
        """Queue an event for delivery. Never blocks and never raises."""
        if self._closed or not self.has_sinks:
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
                dropped = self._dropped
            log.warning(
                "observability.event.dropped",
                event_type=event.type,
                dropped=dropped,
            )

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if isinstance(item, BaseEvent):
                    self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, event: BaseEvent) -> None:
        with self._sinks_lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(event)
            except Exception as exc:
                log.warning(
                    "observability.sink.failed",
                    event_type=event.type,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until queued events are delivered.

        Args:
            timeout: Seconds to wait; None waits indefinitely.

        Returns:
            True if the queue drained within the timeout.
        """
        if self._thread is None:
            return True
        if timeout is None:
            self._queue.join()
            return True
        done = threading.Event()

        def _join() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_join, daemon=True).start()
        return done.wait(timeout)

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting events and stop the worker after pending ones drain."""
        if self._closed:
            return
        self._closed = True
        if self._thread is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            log.warning("observability.publisher.close_timed_out", pending=self._queue.qsize())
            return
        self._thread.join(timeout)
