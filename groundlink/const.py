"""Shared constants and defaults for GroundLink."""

from __future__ import annotations

from typing import Final

# Standard UART rates accepted by open_port.
SUPPORTED_BAUD_RATES: Final[tuple[int, ...]] = (
    300,
    600,
    1200,
    2400,
    4800,
    9600,
    14400,
    19200,
    38400,
    57600,
    115200,
    230400,
    460800,
    921600,
)

DEFAULT_BAUD_RATE: Final[int] = 115200
DEFAULT_READ_TIMEOUT: Final[float] = 0.1
DEFAULT_READ_CHUNK_SIZE: Final[int] = 256
DEFAULT_SHUTDOWN_TIMEOUT: Final[float] = 2.0
DEFAULT_FRAME_DELIMITER: Final[str] = "\n"
DEFAULT_MAX_FRAME_BYTES: Final[int] = 1024
DEFAULT_FRAME_FORMAT: Final[str] = "kv"
DEFAULT_SERIAL_EXCLUSIVE: Final[bool] = True
DEFAULT_SINK_QUEUE_LIMIT: Final[int] = 1024

DEFAULT_SIMULATOR_INTERVAL: Final[float] = 0.1
DEFAULT_SIMULATOR_JITTER: Final[float] = 0.0
MIN_SIMULATOR_INTERVAL: Final[float] = 0.001

DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_LOG_SYSLOG: Final[bool] = False
DEFAULT_METRICS_ENABLED: Final[bool] = False
DEFAULT_METRICS_HOST: Final[str] = "127.0.0.1"
DEFAULT_METRICS_PORT: Final[int] = 9140

FRAME_FORMATS: Final[tuple[str, ...]] = ("kv", "json")

SOURCE_SERIAL: Final[str] = "serial"
SOURCE_SIMULATOR: Final[str] = "simulator"

# Longest frame excerpt carried in a FrameParseWarning.
WARNING_EXCERPT_BYTES: Final[int] = 64

CONFIG_SECTION: Final[str] = "groundlink"
