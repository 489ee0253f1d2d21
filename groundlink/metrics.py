"""Prometheus counters and exporter for GroundLink."""

from __future__ import annotations

import asyncio
import logging
from typing import cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest

logger = logging.getLogger("groundlink.metrics")


class TelemetryMetrics:
    """Counters shared by the lifecycle manager and the telemetry streams."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.records = Counter(
            "groundlink_records",
            "Telemetry records pushed to the sink",
            ["source"],
            registry=self.registry,
        )
        self.frame_warnings = Counter(
            "groundlink_frame_warnings",
            "Frames skipped because they could not be parsed",
            ["source"],
            registry=self.registry,
        )
        self.sessions = Counter(
            "groundlink_sessions",
            "Telemetry loops started",
            ["source"],
            registry=self.registry,
        )
        self.device_lost = Counter(
            "groundlink_device_lost",
            "Monitor sessions ended by a lost device",
            registry=self.registry,
        )
        self.sink_errors = Counter(
            "groundlink_sink_errors",
            "Exceptions raised by the event sink",
            registry=self.registry,
        )
        self.port_open = Gauge(
            "groundlink_port_open",
            "1 while a serial port is open",
            registry=self.registry,
        )

    def value(self, name: str, labels: dict[str, str] | None = None) -> float:
        sample = self.registry.get_sample_value(name, labels or {})
        return sample or 0.0

    def render(self) -> bytes:
        return generate_latest(self.registry)


class PrometheusExporter:
    """Expose :class:`TelemetryMetrics` via the Prometheus text format."""

    def __init__(self, metrics: TelemetryMetrics, host: str, port: int) -> None:
        self._metrics = metrics
        self._host = host
        self._port = port
        self._server: asyncio.AbstractServer | None = None
        self._resolved_port: int | None = None

    @property
    def port(self) -> int:
        return self._resolved_port or self._port

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle_client,
            host=self._host,
            port=self._port,
        )
        sockets = self._server.sockets or []
        if sockets:
            sockname = sockets[0].getsockname()
            if isinstance(sockname, tuple) and len(sockname) >= 2:
                self._resolved_port = cast(int, sockname[1])
        logger.info(
            "Prometheus exporter listening",
            extra={"host": self._host, "port": self.port},
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Prometheus exporter stopped")

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            request_line = await reader.readline()
            if not request_line:
                return
            parts = request_line.decode("ascii", errors="ignore").split()
            if len(parts) < 2:
                await self._write_response(writer, 400, b"")
                return
            method, path = parts[0], parts[1]
            while True:
                line = await reader.readline()
                if not line or line in {b"\r\n", b"\n"}:
                    break
            if method != "GET" or path not in {"/metrics", "/"}:
                await self._write_response(writer, 404, b"")
                return
            await self._write_response(
                writer,
                200,
                self._metrics.render(),
                content_type=CONTENT_TYPE_LATEST,
            )
        except (OSError, ValueError) as exc:
            logger.warning("Prometheus client request error: %s", exc)
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (OSError, RuntimeError):
                logger.debug("Error closing metrics client connection", exc_info=True)

    async def _write_response(
        self,
        writer: asyncio.StreamWriter,
        status: int,
        body: bytes,
        *,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        phrases = {
            200: "OK",
            400: "Bad Request",
            404: "Not Found",
        }
        status_line = f"HTTP/1.1 {status} {phrases.get(status, 'Error')}\r\n"
        headers = f"Content-Type: {content_type}\r\n" f"Content-Length: {len(body)}\r\n" "Connection: close\r\n\r\n"
        writer.write(status_line.encode("ascii") + headers.encode("ascii") + body)
        await writer.drain()


__all__ = ["PrometheusExporter", "TelemetryMetrics"]
