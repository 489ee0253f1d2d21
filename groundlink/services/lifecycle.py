"""Port lifecycle: open, monitor and close one serial device at a time."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from serial import SerialException
from transitions import Machine

from ..config.model import RuntimeConfig
from ..const import SUPPORTED_BAUD_RATES
from ..errors import (
    AlreadyMonitoringError,
    AlreadyOpenError,
    DeviceUnavailableError,
    EnumerationFailedError,
    InvalidParameterError,
    NotOpenError,
    ShutdownTimeoutError,
)
from ..metrics import TelemetryMetrics
from ..state.registry import PortRegistry
from ..telemetry.framing import FrameParser, build_frame_parser
from ..telemetry.sink import EventSink
from ..transport.directory import PortDescriptor, PortEnumerator, find_port
from ..transport.serial import PortHandle, SerialOpener, open_serial_stream
from .monitor import MonitorEngine
from .stream import LoopOutcome

logger = logging.getLogger("groundlink.lifecycle")


def validate_open_parameters(path: object, baud_rate: object) -> tuple[str, int]:
    if not isinstance(path, str) or not path.strip():
        raise InvalidParameterError("port path must be a non-empty string", path=path)
    if isinstance(baud_rate, bool) or not isinstance(baud_rate, int) or baud_rate not in SUPPORTED_BAUD_RATES:
        raise InvalidParameterError(
            f"unsupported baud rate {baud_rate!r}",
            baud_rate=baud_rate,
            supported=list(SUPPORTED_BAUD_RATES),
        )
    return path.strip(), baud_rate


class LifecycleManager:
    """Own the open/monitor/close sequence for the single port slot.

    Operations are serialized by one asyncio lock. The monitor loop never
    takes that lock: on device loss it calls back into
    :meth:`_on_device_lost`, which only touches the registry and the handle.
    """

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        trigger: Callable[[str], bool]

    # FSM States
    STATE_CLOSED = "closed"
    STATE_OPENING = "opening"
    STATE_OPEN = "open"
    STATE_MONITORING = "monitoring"
    STATE_CLOSING = "closing"

    def __init__(
        self,
        sink: EventSink,
        config: RuntimeConfig | None = None,
        *,
        registry: PortRegistry | None = None,
        opener: SerialOpener | None = None,
        port_lister: PortEnumerator | None = None,
        parser: FrameParser | None = None,
        metrics: TelemetryMetrics | None = None,
    ) -> None:
        self.config = config or RuntimeConfig()
        self.registry = registry or PortRegistry()
        self._opener = opener or open_serial_stream
        self._port_lister = port_lister
        self._metrics = metrics or TelemetryMetrics()
        self._lock = asyncio.Lock()
        self._descriptor: PortDescriptor | None = None
        self._state_before_close = self.STATE_OPEN

        self.engine = MonitorEngine(
            self.registry,
            sink,
            parser=parser or build_frame_parser(self.config.frame_format),
            delimiter=self.config.delimiter_bytes,
            max_frame_bytes=self.config.max_frame_bytes,
            read_timeout=self.config.read_timeout,
            read_chunk_size=self.config.read_chunk_size,
            on_device_lost=self._on_device_lost,
            metrics=self._metrics,
        )

        self.state_machine = Machine(
            model=self,
            states=[
                self.STATE_CLOSED,
                self.STATE_OPENING,
                self.STATE_OPEN,
                self.STATE_MONITORING,
                self.STATE_CLOSING,
            ],
            initial=self.STATE_CLOSED,
            model_attribute="fsm_state",
            auto_transitions=False,
            ignore_invalid_triggers=True,
        )
        self.state_machine.add_transition("begin_open", self.STATE_CLOSED, self.STATE_OPENING)
        self.state_machine.add_transition("open_succeeded", self.STATE_OPENING, self.STATE_OPEN)
        self.state_machine.add_transition("open_failed", self.STATE_OPENING, self.STATE_CLOSED)
        self.state_machine.add_transition("start_monitor", self.STATE_OPEN, self.STATE_MONITORING)
        self.state_machine.add_transition("monitor_ended", self.STATE_MONITORING, self.STATE_OPEN)
        self.state_machine.add_transition(
            "begin_close", [self.STATE_OPEN, self.STATE_MONITORING], self.STATE_CLOSING
        )
        self.state_machine.add_transition("close_succeeded", self.STATE_CLOSING, self.STATE_CLOSED)
        self.state_machine.add_transition("close_timed_out", self.STATE_CLOSING, self.STATE_MONITORING)
        self.state_machine.add_transition("device_lost", self.STATE_MONITORING, self.STATE_CLOSED)

    @property
    def state(self) -> str:
        """Externally visible state: closed, open or monitoring."""
        if self.fsm_state == self.STATE_OPENING:
            return self.STATE_CLOSED
        if self.fsm_state == self.STATE_CLOSING:
            return self._state_before_close
        return self.fsm_state

    @property
    def descriptor(self) -> PortDescriptor | None:
        return self._descriptor

    async def open(self, path: str, baud_rate: int) -> PortDescriptor:
        path, baud_rate = validate_open_parameters(path, baud_rate)

        async with self._lock:
            current = self.registry.peek()
            if current is not None:
                raise AlreadyOpenError(f"{current.path} is already open", path=current.path)

            self.trigger("begin_open")
            try:
                reader, writer = await self._opener(path, baud_rate, exclusive=self.config.serial_exclusive)
            except (OSError, SerialException, ValueError) as exc:
                self.trigger("open_failed")
                logger.error("Failed to open %s: %s", path, exc)
                raise DeviceUnavailableError(f"cannot open {path}: {exc}", path=path, os_error=str(exc)) from exc
            except BaseException:
                self.trigger("open_failed")
                raise

            handle = PortHandle(path, baud_rate, reader, writer, PortDescriptor(path=path))
            try:
                handle.descriptor = await self._describe(path)
                self.registry.install(handle)
            except BaseException:
                await handle.close()
                self.trigger("open_failed")
                raise

            descriptor = handle.descriptor
            self._descriptor = descriptor
            self._metrics.port_open.set(1)
            self.trigger("open_succeeded")
            logger.info("Opened %s at %d baud", path, baud_rate)
            return descriptor

    async def monitor(self) -> None:
        async with self._lock:
            if not self.registry.is_open:
                raise NotOpenError("no port is open")
            if self.engine.active:
                raise AlreadyMonitoringError("a monitor loop is already running")
            task = self.engine.start()
            task.add_done_callback(self._on_monitor_exit)
            self.trigger("start_monitor")

    async def close(self) -> None:
        async with self._lock:
            handle = self.registry.peek()
            if handle is None:
                raise NotOpenError("no port is open")

            self._state_before_close = self.state
            self.trigger("begin_close")
            if self.engine.active:
                try:
                    await self.engine.stop(self.config.shutdown_timeout)
                except ShutdownTimeoutError:
                    self.trigger("close_timed_out")
                    raise

            if self.registry.clear_if(handle):
                await handle.close()
            else:
                logger.info("Device %s was lost while closing", handle.path)
            self._descriptor = None
            self._metrics.port_open.set(0)
            self.trigger("close_succeeded")

    async def shutdown(self) -> None:
        """Close the port if one is open; used when the owning service exits."""
        if self.registry.is_open:
            await self.close()

    def _on_monitor_exit(self, task: asyncio.Task[LoopOutcome]) -> None:
        if task.cancelled() or task.result() is not LoopOutcome.FAILED:
            return
        logger.warning("Monitor loop ended unexpectedly; port stays open")
        self.trigger("monitor_ended")

    async def _on_device_lost(self, handle: PortHandle, reason: str) -> None:
        if not self.registry.clear_if(handle):
            return
        await handle.close()
        self._descriptor = None
        self._metrics.port_open.set(0)
        self.trigger("device_lost")
        logger.warning("Port %s closed after device loss (%s)", handle.path, reason)

    async def _describe(self, path: str) -> PortDescriptor:
        try:
            descriptor = await asyncio.to_thread(find_port, path, self._port_lister)
        except EnumerationFailedError:
            descriptor = None
        return descriptor or PortDescriptor(path=path)


__all__ = ["LifecycleManager", "validate_open_parameters"]
