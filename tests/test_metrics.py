"""Tests for Prometheus metrics and the exporter."""

from __future__ import annotations

import asyncio

import pytest

from groundlink.metrics import PrometheusExporter, TelemetryMetrics


def test_counters_render_in_text_format() -> None:
    metrics = TelemetryMetrics()
    metrics.records.labels(source="simulator").inc(3)
    metrics.device_lost.inc()
    metrics.port_open.set(1)

    text = metrics.render().decode("utf-8")

    assert 'groundlink_records_total{source="simulator"} 3.0' in text
    assert "groundlink_device_lost_total 1.0" in text
    assert "groundlink_port_open 1.0" in text
    assert metrics.value("groundlink_records_total", {"source": "simulator"}) == 3
    assert metrics.value("groundlink_records_total", {"source": "serial"}) == 0


def test_each_instance_owns_its_registry() -> None:
    first = TelemetryMetrics()
    second = TelemetryMetrics()
    first.sink_errors.inc()

    assert first.value("groundlink_sink_errors_total") == 1
    assert second.value("groundlink_sink_errors_total") == 0


async def _http_get(port: int, path: str) -> bytes:
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(f"GET {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("ascii"))
    await writer.drain()
    response = await reader.read()
    writer.close()
    await writer.wait_closed()
    return response


@pytest.mark.asyncio
async def test_exporter_serves_metrics() -> None:
    metrics = TelemetryMetrics()
    metrics.sessions.labels(source="serial").inc()
    exporter = PrometheusExporter(metrics, "127.0.0.1", 0)

    await exporter.start()
    try:
        assert exporter.port != 0
        ok = await _http_get(exporter.port, "/metrics")
        missing = await _http_get(exporter.port, "/nope")
    finally:
        await exporter.stop()

    assert ok.startswith(b"HTTP/1.1 200 OK")
    assert b'groundlink_sessions_total{source="serial"} 1.0' in ok
    assert missing.startswith(b"HTTP/1.1 404")


@pytest.mark.asyncio
async def test_exporter_start_and_stop_are_idempotent() -> None:
    exporter = PrometheusExporter(TelemetryMetrics(), "127.0.0.1", 0)

    await exporter.stop()
    await exporter.start()
    await exporter.start()
    await exporter.stop()
    await exporter.stop()
