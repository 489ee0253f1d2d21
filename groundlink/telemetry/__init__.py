"""Telemetry records, framing and sinks."""

from .framing import (
    JsonFrameParser,
    KeyValueFrameParser,
    LineFramer,
    build_frame_parser,
)
from .record import (
    DEFAULT_SCHEMA,
    DeviceLost,
    FieldSpec,
    FrameParseWarning,
    TelemetryEvent,
    TelemetryRecord,
    TelemetrySchema,
)
from .sink import CallbackSink, EventSink, FanoutSink, JsonLinesSink, QueueSink

__all__ = [
    "CallbackSink",
    "DEFAULT_SCHEMA",
    "DeviceLost",
    "EventSink",
    "FanoutSink",
    "FieldSpec",
    "FrameParseWarning",
    "JsonFrameParser",
    "JsonLinesSink",
    "KeyValueFrameParser",
    "LineFramer",
    "QueueSink",
    "TelemetryEvent",
    "TelemetryRecord",
    "TelemetrySchema",
    "build_frame_parser",
]
