"""High-level facade used by the CLI and by embedding applications."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any

from ..config.model import RuntimeConfig, StreamConfig
from ..config.settings import parse_stream_config
from ..const import SOURCE_SERIAL, SOURCE_SIMULATOR
from ..errors import NotOpenError, NotStreamingError, ShutdownTimeoutError
from ..metrics import TelemetryMetrics
from ..telemetry.record import DEFAULT_SCHEMA, TelemetryRecord, TelemetrySchema
from ..telemetry.sink import EventSink, QueueSink
from ..transport.directory import PortDescriptor, PortEnumerator, list_ports
from ..transport.serial import SerialOpener
from .lifecycle import LifecycleManager
from .simulator import TelemetrySimulator
from .stream import LoopOutcome

logger = logging.getLogger("groundlink.service")


def _outcome(outcome: LoopOutcome | None) -> str | None:
    return outcome.value if outcome is not None else None


class TelemetryService:
    """Port directory, lifecycle manager and simulator behind one object.

    Records from both the monitor and the simulator go to the same sink and
    are tagged by ``source``. Leaving the ``async with`` block stops every
    loop and closes the port.
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        sink: EventSink | None = None,
        *,
        opener: SerialOpener | None = None,
        port_lister: PortEnumerator | None = None,
        schema: TelemetrySchema = DEFAULT_SCHEMA,
        metrics: TelemetryMetrics | None = None,
    ) -> None:
        self.config = config or RuntimeConfig()
        self.sink: EventSink = sink if sink is not None else QueueSink(self.config.sink_queue_limit)
        self.metrics = metrics or TelemetryMetrics()
        self._port_lister = port_lister
        self.lifecycle = LifecycleManager(
            self.sink,
            self.config,
            opener=opener,
            port_lister=port_lister,
            metrics=self.metrics,
        )
        self.simulator = TelemetrySimulator(
            self.sink,
            config=parse_stream_config(None, self.config),
            schema=schema,
            metrics=self.metrics,
        )

    async def __aenter__(self) -> TelemetryService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            await self.shutdown()
            return
        try:
            await self.shutdown()
        except ShutdownTimeoutError as shutdown_exc:
            logger.error("Shutdown failed while handling %s: %s", type(exc).__name__, shutdown_exc)

    async def list_ports(self) -> list[PortDescriptor]:
        return await asyncio.to_thread(list_ports, self._port_lister)

    async def open_port(self, path: str, baud_rate: int) -> PortDescriptor:
        return await self.lifecycle.open(path, baud_rate)

    async def close_port(self) -> None:
        await self.lifecycle.close()

    async def monitor_port(self) -> None:
        await self.lifecycle.monitor()

    def mockdata(self) -> TelemetryRecord:
        return self.simulator.mockdata()

    async def stream_telemetry(self, config: StreamConfig | Mapping[str, Any] | None = None) -> None:
        stream_config = parse_stream_config(config, self.config)
        self.simulator.configure(stream_config)
        self.simulator.start()

    async def stop_telemetry(self) -> None:
        if not self.simulator.active:
            raise NotStreamingError("simulator is not streaming")
        await self.simulator.stop(self.config.shutdown_timeout)

    async def shutdown(self) -> None:
        """Stop the simulator and close the port.

        Both are attempted even if one of them times out; the first
        :class:`ShutdownTimeoutError` is raised once both have been tried.
        """
        failure: ShutdownTimeoutError | None = None
        if self.simulator.active:
            try:
                await self.simulator.stop(self.config.shutdown_timeout)
            except ShutdownTimeoutError as exc:
                failure = exc
        try:
            await self.lifecycle.shutdown()
        except ShutdownTimeoutError as exc:
            failure = failure or exc
        except NotOpenError:
            logger.debug("Port was already gone at shutdown")
        if failure is not None:
            raise failure

    def status(self) -> dict[str, Any]:
        descriptor = self.lifecycle.descriptor
        engine = self.lifecycle.engine
        return {
            "port": {
                "state": self.lifecycle.state,
                "path": descriptor.path if descriptor is not None else None,
                "monitoring": engine.active,
                "loop": engine.fsm_state,
                "last_outcome": _outcome(engine.last_outcome),
                "records": engine.records_emitted,
            },
            "simulator": {
                "streaming": self.simulator.active,
                "loop": self.simulator.fsm_state,
                "last_outcome": _outcome(self.simulator.last_outcome),
                "records": self.simulator.records_emitted,
            },
            "counters": {
                "records_serial": self.metrics.value("groundlink_records_total", {"source": SOURCE_SERIAL}),
                "records_simulator": self.metrics.value("groundlink_records_total", {"source": SOURCE_SIMULATOR}),
                "frame_warnings": self.metrics.value("groundlink_frame_warnings_total", {"source": SOURCE_SERIAL}),
                "device_lost": self.metrics.value("groundlink_device_lost_total"),
                "sink_errors": self.metrics.value("groundlink_sink_errors_total"),
            },
        }

    def render_metrics(self) -> bytes:
        return self.metrics.render()


__all__ = ["TelemetryService"]
