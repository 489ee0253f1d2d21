"""Marshmallow schemas for runtime and stream configuration."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import Schema, ValidationError, fields, post_load, pre_load, validate, validates_schema

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
    MIN_SIMULATOR_INTERVAL,
    SUPPORTED_BAUD_RATES,
)
from ..telemetry.record import DEFAULT_SCHEMA
from .model import RuntimeConfig, StreamConfig


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for GroundLink configuration."""

    # Serial
    baud_rate = fields.Int(load_default=DEFAULT_BAUD_RATE, validate=validate.OneOf(SUPPORTED_BAUD_RATES))
    read_timeout = fields.Float(load_default=DEFAULT_READ_TIMEOUT, validate=validate.Range(min=0.001, max=10.0))
    read_chunk_size = fields.Int(load_default=DEFAULT_READ_CHUNK_SIZE, validate=validate.Range(min=1, max=65536))
    shutdown_timeout = fields.Float(load_default=DEFAULT_SHUTDOWN_TIMEOUT, validate=validate.Range(min=0.01))
    serial_exclusive = fields.Bool(load_default=DEFAULT_SERIAL_EXCLUSIVE)

    # Framing
    frame_delimiter = fields.Str(load_default=DEFAULT_FRAME_DELIMITER, validate=validate.Length(min=1, max=4))
    max_frame_bytes = fields.Int(load_default=DEFAULT_MAX_FRAME_BYTES, validate=validate.Range(min=16))
    frame_format = fields.Str(load_default=DEFAULT_FRAME_FORMAT, validate=validate.OneOf(FRAME_FORMATS))

    # Delivery
    sink_queue_limit = fields.Int(load_default=DEFAULT_SINK_QUEUE_LIMIT, validate=validate.Range(min=1))

    # Simulator
    simulator_interval = fields.Float(
        load_default=DEFAULT_SIMULATOR_INTERVAL, validate=validate.Range(min=MIN_SIMULATOR_INTERVAL)
    )
    simulator_jitter = fields.Float(load_default=DEFAULT_SIMULATOR_JITTER, validate=validate.Range(min=0.0, max=1.0))

    # System
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    log_syslog = fields.Bool(load_default=DEFAULT_LOG_SYSLOG)
    metrics_enabled = fields.Bool(load_default=DEFAULT_METRICS_ENABLED)
    metrics_host = fields.Str(load_default=DEFAULT_METRICS_HOST, validate=validate.Length(min=1))
    metrics_port = fields.Int(load_default=DEFAULT_METRICS_PORT, validate=validate.Range(min=0, max=65535))

    @pre_load
    def unescape_delimiter(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        # Accept escaped delimiters such as "\\r\\n".
        delimiter = data.get("frame_delimiter")
        if isinstance(delimiter, str) and "\\" in delimiter:
            data = dict(data)
            data["frame_delimiter"] = delimiter.encode("utf-8").decode("unicode_escape")
        return data

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)


class StreamConfigSchema(Schema):
    """Validate the settings of one simulated telemetry stream."""

    interval = fields.Float(load_default=DEFAULT_SIMULATOR_INTERVAL, validate=validate.Range(min=MIN_SIMULATOR_INTERVAL))
    jitter = fields.Float(load_default=DEFAULT_SIMULATOR_JITTER, validate=validate.Range(min=0.0, max=1.0))
    field_ranges = fields.Dict(
        keys=fields.Str(),
        values=fields.List(fields.Float(allow_nan=False), validate=validate.Length(equal=2)),
        load_default=dict,
    )
    seed = fields.Int(load_default=None, allow_none=True)

    @validates_schema
    def validate_field_ranges(self, data: Dict[str, Any], **kwargs: Any) -> None:
        ranges = data.get("field_ranges") or {}
        unknown = sorted(name for name in ranges if name not in DEFAULT_SCHEMA)
        if unknown:
            raise ValidationError(f"unknown telemetry fields: {', '.join(unknown)}", field_name="field_ranges")
        for name, bounds in ranges.items():
            low, high = bounds
            if low > high:
                raise ValidationError(f"{name}: low bound exceeds high bound", field_name="field_ranges")

    @post_load
    def make_stream_config(self, data: Dict[str, Any], **kwargs: Any) -> StreamConfig:
        ranges = {name: (float(bounds[0]), float(bounds[1])) for name, bounds in data["field_ranges"].items()}
        return StreamConfig(
            interval=data["interval"],
            jitter=data["jitter"],
            field_ranges=ranges,
            seed=data["seed"],
        )
