"""Event sinks: where records and diagnostics are pushed.

The core treats a sink as fire-and-forget. ``push`` returns nothing and the
core never waits for an acknowledgement; it only guarantees that pushes for one
source are issued in sequence order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Protocol, TextIO, runtime_checkable

from .record import TelemetryEvent, encode_event

logger = logging.getLogger("groundlink.sink")


@runtime_checkable
class EventSink(Protocol):
    def push(self, event: TelemetryEvent) -> None: ...


class QueueSink:
    """Buffer events in a bounded asyncio queue for an async consumer.

    When the queue is full the oldest event is dropped so the producer never
    blocks.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[TelemetryEvent] = asyncio.Queue(maxsize)
        self.dropped = 0

    def push(self, event: TelemetryEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
            logger.warning("Sink queue full; dropped oldest event (total=%d)", self.dropped)
        self.queue.put_nowait(event)

    async def get(self) -> TelemetryEvent:
        return await self.queue.get()

    def drain(self) -> list[TelemetryEvent]:
        events: list[TelemetryEvent] = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class CallbackSink:
    def __init__(self, callback: Callable[[TelemetryEvent], None]) -> None:
        self._callback = callback

    def push(self, event: TelemetryEvent) -> None:
        self._callback(event)


class JsonLinesSink:
    """Write every event as one JSON document per line."""

    def __init__(self, stream: TextIO, *, flush: bool = True) -> None:
        self._stream = stream
        self._flush = flush

    def push(self, event: TelemetryEvent) -> None:
        self._stream.write(encode_event(event).decode("utf-8") + "\n")
        if self._flush:
            self._stream.flush()


class FanoutSink:
    """Forward each event to several sinks; one failing sink does not starve the others."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = tuple(sinks)

    def push(self, event: TelemetryEvent) -> None:
        for sink in self._sinks:
            try:
                sink.push(event)
            except Exception:
                logger.exception("Sink %s failed", type(sink).__name__)


__all__ = [
    "CallbackSink",
    "EventSink",
    "FanoutSink",
    "JsonLinesSink",
    "QueueSink",
]
