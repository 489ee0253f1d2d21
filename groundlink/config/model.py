"""Data model for GroundLink configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..const import (
    DEFAULT_BAUD_RATE,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_FRAME_DELIMITER,
    DEFAULT_FRAME_FORMAT,
    DEFAULT_LOG_SYSLOG,
    DEFAULT_MAX_FRAME_BYTES,
    DEFAULT_METRICS_ENABLED,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SERIAL_EXCLUSIVE,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_SIMULATOR_INTERVAL,
    DEFAULT_SIMULATOR_JITTER,
    DEFAULT_SINK_QUEUE_LIMIT,
    FRAME_FORMATS,
)


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the telemetry service."""

    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    frame_delimiter: str = DEFAULT_FRAME_DELIMITER
    max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES
    frame_format: str = DEFAULT_FRAME_FORMAT
    serial_exclusive: bool = DEFAULT_SERIAL_EXCLUSIVE
    sink_queue_limit: int = DEFAULT_SINK_QUEUE_LIMIT
    simulator_interval: float = DEFAULT_SIMULATOR_INTERVAL
    simulator_jitter: float = DEFAULT_SIMULATOR_JITTER
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    log_syslog: bool = DEFAULT_LOG_SYSLOG
    metrics_enabled: bool = DEFAULT_METRICS_ENABLED
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT

    def __post_init__(self) -> None:
        if not self.frame_delimiter:
            raise ValueError("frame_delimiter must not be empty")
        if self.frame_format not in FRAME_FORMATS:
            raise ValueError(
                f"frame_format must be one of {', '.join(FRAME_FORMATS)}"
            )
        for name in ("read_timeout", "shutdown_timeout", "simulator_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        self.read_chunk_size = self._require_positive("read_chunk_size", self.read_chunk_size)
        self.max_frame_bytes = self._require_positive("max_frame_bytes", self.max_frame_bytes)
        self.sink_queue_limit = self._require_positive("sink_queue_limit", self.sink_queue_limit)

    @staticmethod
    def _require_positive(name: str, value: int) -> int:
        if value <= 0:
            raise ValueError(f"{name} must be a positive integer")
        return value

    @property
    def delimiter_bytes(self) -> bytes:
        return self.frame_delimiter.encode("utf-8")


@dataclass(slots=True)
class StreamConfig:
    """Settings for one simulated telemetry stream."""

    interval: float = DEFAULT_SIMULATOR_INTERVAL
    jitter: float = DEFAULT_SIMULATOR_JITTER
    field_ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    seed: int | None = None
