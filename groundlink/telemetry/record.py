"""Telemetry record types and the field schema shared by every source."""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator, Mapping
from typing import Final

import msgspec

FieldValue = float | int | str


class FieldSpec(msgspec.Struct, frozen=True):
    """Bounds and unit for one named telemetry field."""

    name: str
    low: float
    high: float
    unit: str = ""
    integer: bool = False

    def clamp(self, value: float) -> float:
        return min(self.high, max(self.low, value))


class TelemetrySchema:
    """Ordered, immutable set of field specifications."""

    def __init__(self, specs: Iterable[FieldSpec]) -> None:
        self._specs: dict[str, FieldSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ValueError(f"duplicate telemetry field {spec.name!r}")
            if spec.low > spec.high:
                raise ValueError(f"field {spec.name!r} has low > high")
            self._specs[spec.name] = spec

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def __getitem__(self, name: str) -> FieldSpec:
        return self._specs[name]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def with_ranges(self, ranges: Mapping[str, tuple[float, float]]) -> TelemetrySchema:
        """Return a copy with overridden bounds for the named fields."""
        unknown = [name for name in ranges if name not in self._specs]
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        specs: list[FieldSpec] = []
        for spec in self._specs.values():
            if spec.name in ranges:
                low, high = ranges[spec.name]
                spec = msgspec.structs.replace(spec, low=float(low), high=float(high))
            specs.append(spec)
        return TelemetrySchema(specs)


DEFAULT_SCHEMA: Final[TelemetrySchema] = TelemetrySchema(
    (
        FieldSpec("mission_time", 0.0, 86400.0, "s"),
        FieldSpec("altitude", 0.0, 3000.0, "m"),
        FieldSpec("velocity", -50.0, 300.0, "m/s"),
        FieldSpec("accel_x", -20.0, 20.0, "m/s^2"),
        FieldSpec("accel_y", -20.0, 20.0, "m/s^2"),
        FieldSpec("accel_z", -20.0, 20.0, "m/s^2"),
        FieldSpec("temp", -10.0, 45.0, "degC"),
        FieldSpec("pressure", 700.0, 1030.0, "hPa"),
        FieldSpec("latitude", 32.93, 32.96, "deg"),
        FieldSpec("longitude", -106.93, -106.90, "deg"),
        FieldSpec("satellites", 0.0, 12.0, integer=True),
        FieldSpec("rssi", -120.0, -30.0, "dBm"),
        FieldSpec("battery", 0.0, 100.0, "%"),
    )
)


class TelemetryRecord(msgspec.Struct, frozen=True, tag="record"):
    """One reading, regardless of whether it came from a device or the simulator."""

    source: str
    sequence: int
    timestamp: float
    fields: dict[str, FieldValue]


class FrameParseWarning(msgspec.Struct, frozen=True, tag="frame_warning"):
    source: str
    reason: str
    frame: str
    timestamp: float = msgspec.field(default_factory=time.time)


class DeviceLost(msgspec.Struct, frozen=True, tag="device_lost"):
    path: str
    reason: str
    timestamp: float = msgspec.field(default_factory=time.time)


TelemetryEvent = TelemetryRecord | FrameParseWarning | DeviceLost

_ENCODER = msgspec.json.Encoder()
_DECODER = msgspec.json.Decoder(TelemetryEvent)


def encode_event(event: TelemetryEvent) -> bytes:
    return _ENCODER.encode(event)


def decode_event(payload: bytes | str) -> TelemetryEvent:
    return _DECODER.decode(payload)


__all__ = [
    "DEFAULT_SCHEMA",
    "DeviceLost",
    "FieldSpec",
    "FieldValue",
    "FrameParseWarning",
    "TelemetryEvent",
    "TelemetryRecord",
    "TelemetrySchema",
    "decode_event",
    "encode_event",
]
