"""Monitor engine: turn device bytes into telemetry records."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..const import (
    DEFAULT_MAX_FRAME_BYTES,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_READ_TIMEOUT,
    SOURCE_SERIAL,
)
from ..errors import AlreadyMonitoringError, DeviceLostError, FrameParseError, NotOpenError
from ..metrics import TelemetryMetrics
from ..state.registry import PortRegistry
from ..telemetry.framing import FrameParser, KeyValueFrameParser, LineFramer, OversizedFrame, recover_frame
from ..telemetry.record import DeviceLost
from ..telemetry.sink import EventSink
from ..transport.serial import PortHandle, format_hexdump
from .stream import CancellationToken, LoopOutcome, TelemetryStream

DeviceLostCallback = Callable[[PortHandle, str], Awaitable[None]]


class MonitorEngine(TelemetryStream):
    """Read loop over the handle currently held by the registry.

    The engine borrows the handle for the duration of one session. It never
    closes the device; on disconnection it hands the handle back through
    ``on_device_lost`` and reports a :class:`DeviceLost` event.
    """

    source = SOURCE_SERIAL
    busy_error = AlreadyMonitoringError
    idle_error = NotOpenError

    def __init__(
        self,
        registry: PortRegistry,
        sink: EventSink,
        *,
        parser: FrameParser | None = None,
        delimiter: bytes = b"\n",
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        on_device_lost: DeviceLostCallback | None = None,
        metrics: TelemetryMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(sink, metrics=metrics, logger=logger or logging.getLogger("groundlink.monitor"))
        self._registry = registry
        self._parser = parser or KeyValueFrameParser()
        self._delimiter = delimiter
        self._max_frame_bytes = max_frame_bytes
        self._read_timeout = read_timeout
        self._read_chunk_size = read_chunk_size
        self._on_device_lost = on_device_lost
        self._handle: PortHandle | None = None

    @property
    def handle(self) -> PortHandle | None:
        return self._handle

    def _prepare(self) -> None:
        self._handle = self._registry.take_reference()

    async def _loop(self, token: CancellationToken) -> LoopOutcome:
        handle = self._handle
        if handle is None:
            raise NotOpenError("monitor started without a port")
        framer = LineFramer(self._delimiter, self._max_frame_bytes)
        self._logger.info("Monitoring %s at %d baud", handle.path, handle.baud_rate)

        try:
            while not token.cancelled:
                try:
                    chunk = await self._read(handle)
                except TimeoutError:
                    continue
                except DeviceLostError as exc:
                    return await self._device_lost(handle, exc.message)

                if self._logger.isEnabledFor(logging.DEBUG):
                    self._logger.debug(
                        "DEVICE < len=%d\n%s", len(chunk), format_hexdump(chunk, prefix="       ")
                    )

                for frame in framer.feed(chunk):
                    self._handle_frame(frame)

            if framer.pending:
                self._logger.debug("Discarding %d unterminated bytes on stop", framer.pending)
            return LoopOutcome.CANCELLED
        finally:
            self._handle = None

    async def _read(self, handle: PortHandle) -> bytes:
        """Read one chunk; raises TimeoutError when idle and DeviceLostError on disconnection."""
        try:
            chunk = await asyncio.wait_for(handle.read(self._read_chunk_size), timeout=self._read_timeout)
        except TimeoutError:
            # TimeoutError is an OSError subclass; an idle device is not a lost one.
            raise
        except OSError as exc:
            raise DeviceLostError(str(exc) or type(exc).__name__, path=handle.path) from exc
        if not chunk:
            raise DeviceLostError("end of stream", path=handle.path)
        return chunk

    def _handle_frame(self, frame: bytes | OversizedFrame) -> None:
        if isinstance(frame, OversizedFrame):
            self._warn(f"frame exceeds {self._max_frame_bytes} bytes", frame.excerpt)
            return
        try:
            fields = self._parser.parse(frame)
        except FrameParseError as exc:
            recovered = recover_frame(self._parser, frame)
            if recovered is None:
                self._warn(str(exc), frame)
                return
            offset, fields = recovered
            self._warn("frame missing terminator", frame[:offset])
        self._publish(fields)

    async def _device_lost(self, handle: PortHandle, reason: str) -> LoopOutcome:
        self._logger.warning("Device %s lost: %s", handle.path, reason)
        self._metrics.device_lost.inc()
        if self._on_device_lost is not None:
            try:
                await self._on_device_lost(handle, reason)
            except Exception:
                self._logger.exception("Device-lost handler failed for %s", handle.path)
        self._deliver(DeviceLost(path=handle.path, reason=reason))
        return LoopOutcome.DEVICE_LOST


__all__ = ["DeviceLostCallback", "MonitorEngine"]
