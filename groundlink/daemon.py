#!/usr/bin/env python3
"""Command-line entry point for GroundLink.

Telemetry events are written to stdout as JSON lines; logs go to stderr (or
syslog). Subcommands:

    groundlink ports [--json]
    groundlink monitor PATH [--baud N] [--duration S] [--format kv|json]
    groundlink simulate [--interval S] [--jitter F] [--seed N] [--duration S]
    groundlink mock
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, TextIO

import msgspec

# uvloop is a hard dependency of the CLI.
import uvloop

from groundlink.config.logging import configure_logging
from groundlink.config.settings import RuntimeConfig, get_config_source, load_runtime_config
from groundlink.const import FRAME_FORMATS, SUPPORTED_BAUD_RATES
from groundlink.errors import GroundLinkError
from groundlink.metrics import PrometheusExporter
from groundlink.services.runtime import TelemetryService
from groundlink.telemetry.sink import JsonLinesSink

logger = logging.getLogger("groundlink.daemon")


def _positive_float(value: str) -> float:
    candidate = float(value)
    if candidate <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return candidate


def _fraction(value: str) -> float:
    candidate = float(value)
    if not 0.0 <= candidate <= 1.0:
        raise argparse.ArgumentTypeError("value must be between 0 and 1")
    return candidate


def _port_number(value: str) -> int:
    candidate = int(value)
    if not 0 <= candidate <= 65535:
        raise argparse.ArgumentTypeError("port must be between 0 and 65535")
    return candidate


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="groundlink",
        description="Serial telemetry monitor and simulator. Events are printed as JSON lines.",
    )
    parser.add_argument("--config", help="TOML configuration file ([groundlink] section).")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--metrics-port",
        type=_port_number,
        help="Serve Prometheus metrics on this port while the command runs.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ports = commands.add_parser("ports", help="List serial ports.")
    ports.add_argument("--json", action="store_true", help="Print one JSON object per port.")

    monitor = commands.add_parser("monitor", help="Open a port and stream its telemetry.")
    monitor.add_argument("path", help="Serial device, e.g. /dev/ttyUSB0 or COM7.")
    monitor.add_argument(
        "--baud",
        type=int,
        choices=SUPPORTED_BAUD_RATES,
        metavar="N",
        help="Baud rate (default: from configuration).",
    )
    monitor.add_argument("--duration", type=_positive_float, help="Stop after this many seconds.")
    monitor.add_argument("--format", choices=FRAME_FORMATS, help="Frame format (default: kv).")

    simulate = commands.add_parser("simulate", help="Stream synthetic telemetry.")
    simulate.add_argument("--interval", type=_positive_float, help="Seconds between records.")
    simulate.add_argument("--jitter", type=_fraction, help="Pacing jitter as a fraction of the interval.")
    simulate.add_argument("--seed", type=int, help="Seed for reproducible values.")
    simulate.add_argument("--duration", type=_positive_float, help="Stop after this many seconds.")

    commands.add_parser("mock", help="Print one synthetic telemetry snapshot.")
    return parser


def _config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "debug_logging": True if args.debug else None,
        "metrics_enabled": True if args.metrics_port is not None else None,
        "metrics_port": args.metrics_port,
        "frame_format": getattr(args, "format", None),
    }


async def _wait_for(task: asyncio.Task[Any] | None, duration: float | None) -> None:
    if task is None:
        return
    if duration is None:
        await asyncio.wait({task})
    else:
        await asyncio.wait({task}, timeout=duration)


async def _cmd_ports(service: TelemetryService, args: argparse.Namespace, stream: TextIO) -> None:
    for descriptor in await service.list_ports():
        if args.json:
            stream.write(msgspec.json.encode(descriptor).decode("utf-8") + "\n")
        else:
            stream.write(f"{descriptor.path}\t{descriptor.port_type}\t{descriptor.description}\n")


async def _cmd_monitor(service: TelemetryService, args: argparse.Namespace, stream: TextIO) -> None:
    await service.open_port(args.path, args.baud or service.config.baud_rate)
    await service.monitor_port()
    await _wait_for(service.lifecycle.engine.task, args.duration)
    if service.lifecycle.registry.is_open:
        await service.close_port()


async def _cmd_simulate(service: TelemetryService, args: argparse.Namespace, stream: TextIO) -> None:
    request = {
        key: value
        for key, value in (("interval", args.interval), ("jitter", args.jitter), ("seed", args.seed))
        if value is not None
    }
    await service.stream_telemetry(request)
    await _wait_for(service.simulator.task, args.duration)
    if service.simulator.active:
        await service.stop_telemetry()


async def _cmd_mock(service: TelemetryService, args: argparse.Namespace, stream: TextIO) -> None:
    service.sink.push(service.mockdata())


_COMMANDS = {
    "ports": _cmd_ports,
    "monitor": _cmd_monitor,
    "simulate": _cmd_simulate,
    "mock": _cmd_mock,
}


async def run_command(
    args: argparse.Namespace,
    config: RuntimeConfig,
    stream: TextIO,
    *,
    service: TelemetryService | None = None,
) -> None:
    """Run one subcommand against *service* (built from *config* if omitted)."""
    service = service or TelemetryService(config, JsonLinesSink(stream))
    exporter: PrometheusExporter | None = None
    if config.metrics_enabled:
        exporter = PrometheusExporter(service.metrics, config.metrics_host, config.metrics_port)

    async with service:
        if exporter is not None:
            await exporter.start()
        try:
            await _COMMANDS[args.command](service, args, stream)
        finally:
            if exporter is not None:
                await exporter.stop()


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = load_runtime_config(args.config, _config_overrides(args))
    except ValueError as exc:
        sys.stderr.write(f"groundlink: {exc}\n")
        return 1
    configure_logging(config)
    logger.debug("Configuration loaded from %s", get_config_source())

    try:
        asyncio.run(run_command(args, config, sys.stdout), loop_factory=uvloop.new_event_loop)
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 0
    except GroundLinkError as exc:
        logger.error("%s failed: %s", args.command, exc.message, extra={"code": exc.code})
        sys.stderr.write(msgspec.json.encode(exc.to_dict()).decode("utf-8") + "\n")
        return 1
    except OSError as exc:
        logger.critical("System error: %s", exc, exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
