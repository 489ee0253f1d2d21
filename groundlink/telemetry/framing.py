"""Line framing and frame parsers for device telemetry.

Device bytes are split into frames at a delimiter (newline by default). Each
frame is then handed to a parser that turns it into a mapping of schema fields.
Two parsers are provided:

``kv``
    ``temp=22.0,altitude=120.5`` style frames.
``json``
    one JSON object per frame, e.g. ``{"temp": 22.0}``.

Both parsers reject keys outside the telemetry schema and non-numeric values,
raising :class:`~groundlink.errors.FrameParseError`.
"""

from __future__ import annotations

import math
from typing import Any, Protocol

import msgspec

from ..const import DEFAULT_MAX_FRAME_BYTES, WARNING_EXCERPT_BYTES
from ..errors import FrameParseError
from .record import DEFAULT_SCHEMA, FieldValue, TelemetrySchema


class OversizedFrame(msgspec.Struct, frozen=True):
    """Marker emitted by the framer when a frame exceeds the size limit."""

    excerpt: bytes


class LineFramer:
    """Accumulate raw bytes and split them into delimiter-terminated frames."""

    def __init__(
        self,
        delimiter: bytes = b"\n",
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._delimiter = delimiter
        self._max_frame_bytes = max_frame_bytes
        self._buffer = bytearray()
        self._discarding = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes still waiting for a delimiter."""
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()
        self._discarding = False

    def feed(self, data: bytes) -> list[bytes | OversizedFrame]:
        frames: list[bytes | OversizedFrame] = []
        self._buffer.extend(data)
        delimiter_len = len(self._delimiter)

        while True:
            index = self._buffer.find(self._delimiter)
            if index < 0:
                if len(self._buffer) > self._max_frame_bytes:
                    if not self._discarding:
                        frames.append(OversizedFrame(bytes(self._buffer[:WARNING_EXCERPT_BYTES])))
                        self._discarding = True
                    # Keep a partial delimiter so it can still complete on the next read.
                    del self._buffer[: len(self._buffer) - (delimiter_len - 1)]
                break

            raw = bytes(self._buffer[:index])
            del self._buffer[: index + delimiter_len]

            if self._discarding:
                self._discarding = False
                continue
            if len(raw) > self._max_frame_bytes:
                frames.append(OversizedFrame(raw[:WARNING_EXCERPT_BYTES]))
                continue
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            if not raw.strip():
                continue
            frames.append(raw)

        return frames


class FrameParser(Protocol):
    def parse(self, frame: bytes) -> dict[str, FieldValue]: ...

    def frame_starts(self, frame: bytes) -> list[int]:
        """Offsets after 0 where a new frame appears to begin inside *frame*."""
        ...


def recover_frame(parser: FrameParser, frame: bytes) -> tuple[int, dict[str, FieldValue]] | None:
    """Find a complete frame glued onto one that lost its terminator.

    Returns the offset where the trailing frame starts and its parsed fields,
    or None when no suffix of *frame* parses.
    """
    for offset in parser.frame_starts(frame):
        try:
            return offset, parser.parse(frame[offset:])
        except FrameParseError:
            continue
    return None


def _decode_text(frame: bytes) -> str:
    try:
        return frame.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FrameParseError(f"frame is not valid UTF-8 ({exc.reason})") from exc


def _coerce_number(schema: TelemetrySchema, key: str, value: Any) -> FieldValue:
    if key not in schema:
        raise FrameParseError(f"unknown field {key!r}")
    if isinstance(value, bool):
        raise FrameParseError(f"field {key!r} is not numeric: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError as exc:
            raise FrameParseError(f"field {key!r} is not numeric: {value!r}") from exc
    if not math.isfinite(number):
        raise FrameParseError(f"field {key!r} is not finite")
    if schema[key].integer:
        if not number.is_integer():
            raise FrameParseError(f"field {key!r} must be an integer")
        return int(number)
    return number


class KeyValueFrameParser:
    """Parse ``key=value`` pairs separated by commas."""

    def __init__(
        self,
        schema: TelemetrySchema = DEFAULT_SCHEMA,
        *,
        pair_separator: str = ",",
        key_separator: str = "=",
    ) -> None:
        self.schema = schema
        self._pair_separator = pair_separator
        self._key_separator = key_separator

    def parse(self, frame: bytes) -> dict[str, FieldValue]:
        text = _decode_text(frame).strip()
        if not text:
            raise FrameParseError("empty frame")

        fields: dict[str, FieldValue] = {}
        for pair in text.split(self._pair_separator):
            key, separator, value = pair.partition(self._key_separator)
            key = key.strip()
            if not separator or not key or not value.strip():
                raise FrameParseError(f"malformed pair {pair.strip()!r}")
            if key in fields:
                raise FrameParseError(f"duplicate field {key!r}")
            fields[key] = _coerce_number(self.schema, key, value)
        return fields

    def frame_starts(self, frame: bytes) -> list[int]:
        # A field name that does not follow a pair separator starts a new frame.
        separator = self._pair_separator.encode("utf-8")
        starts: set[int] = set()
        for name in self.schema.names:
            marker = f"{name}{self._key_separator}".encode("utf-8")
            index = frame.find(marker, 1)
            while index > 0:
                if not frame[:index].rstrip().endswith(separator):
                    starts.add(index)
                index = frame.find(marker, index + 1)
        return sorted(starts)


class JsonFrameParser:
    """Parse one JSON object per frame."""

    def __init__(self, schema: TelemetrySchema = DEFAULT_SCHEMA) -> None:
        self.schema = schema
        self._decoder = msgspec.json.Decoder()

    def parse(self, frame: bytes) -> dict[str, FieldValue]:
        try:
            payload = self._decoder.decode(frame)
        except msgspec.DecodeError as exc:
            raise FrameParseError(f"invalid JSON frame ({exc})") from exc
        if not isinstance(payload, dict) or not payload:
            raise FrameParseError("JSON frame must be a non-empty object")
        return {str(key): _coerce_number(self.schema, str(key), value) for key, value in payload.items()}

    def frame_starts(self, frame: bytes) -> list[int]:
        starts = []
        index = frame.find(b"{", 1)
        while index > 0:
            starts.append(index)
            index = frame.find(b"{", index + 1)
        return starts


def build_frame_parser(frame_format: str, schema: TelemetrySchema = DEFAULT_SCHEMA) -> FrameParser:
    if frame_format == "kv":
        return KeyValueFrameParser(schema)
    if frame_format == "json":
        return JsonFrameParser(schema)
    raise ValueError(f"unsupported frame format {frame_format!r}")


def frame_excerpt(frame: bytes) -> str:
    """Printable, bounded rendering of a frame for diagnostics."""
    return frame[:WARNING_EXCERPT_BYTES].decode("utf-8", errors="replace")


__all__ = [
    "FrameParser",
    "JsonFrameParser",
    "KeyValueFrameParser",
    "LineFramer",
    "OversizedFrame",
    "build_frame_parser",
    "frame_excerpt",
    "recover_frame",
]
