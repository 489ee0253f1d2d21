"""Tests for line framing and frame parsers."""

from __future__ import annotations

import pytest

from groundlink.errors import FrameParseError
from groundlink.telemetry.framing import (
    JsonFrameParser,
    KeyValueFrameParser,
    LineFramer,
    OversizedFrame,
    build_frame_parser,
    frame_excerpt,
    recover_frame,
)


def test_framer_buffers_partial_frames_across_reads() -> None:
    framer = LineFramer()

    assert framer.feed(b"temp=2") == []
    assert framer.pending == 6
    assert framer.feed(b"2.0\naltitude=1") == [b"temp=22.0"]
    assert framer.feed(b"20.5\n") == [b"altitude=120.5"]
    assert framer.pending == 0


def test_framer_strips_carriage_return_and_skips_blank_frames() -> None:
    framer = LineFramer()

    assert framer.feed(b"temp=1\r\n\r\n\n  \nrssi=-70\n") == [b"temp=1", b"rssi=-70"]


def test_framer_multibyte_delimiter_split_between_reads() -> None:
    framer = LineFramer(b"\r\n")

    assert framer.feed(b"temp=1\r") == []
    assert framer.feed(b"\ntemp=2\r\n") == [b"temp=1", b"temp=2"]


def test_framer_reports_oversized_frame_once_and_resynchronises() -> None:
    framer = LineFramer(max_frame_bytes=16)

    frames = framer.feed(b"x" * 40)
    assert len(frames) == 1
    assert isinstance(frames[0], OversizedFrame)
    assert frames[0].excerpt.startswith(b"xxxx")

    # Still discarding until the next delimiter.
    assert framer.feed(b"y" * 40) == []
    assert framer.feed(b"tail\ntemp=3\n") == [b"temp=3"]


def test_framer_reports_oversized_complete_frame() -> None:
    framer = LineFramer(max_frame_bytes=8)

    frames = framer.feed(b"temp=1234567890\ntemp=1\n")

    assert isinstance(frames[0], OversizedFrame)
    assert frames[1] == b"temp=1"


def test_framer_rejects_empty_delimiter() -> None:
    with pytest.raises(ValueError):
        LineFramer(b"")


def test_framer_reset_discards_buffer() -> None:
    framer = LineFramer()
    framer.feed(b"partial")
    framer.reset()

    assert framer.pending == 0
    assert framer.feed(b"temp=1\n") == [b"temp=1"]


def test_kv_parser_accepts_schema_fields() -> None:
    parser = KeyValueFrameParser()

    fields = parser.parse(b"temp=22.0, altitude = 120.5,satellites=7")

    assert fields == {"temp": 22.0, "altitude": 120.5, "satellites": 7}
    assert isinstance(fields["satellites"], int)


@pytest.mark.parametrize(
    ("frame", "message"),
    [
        (b"temp=21.5,seq=raw", "unknown field 'seq'"),
        (b"temp=warm", "not numeric"),
        (b"temp", "malformed pair"),
        (b"temp=", "malformed pair"),
        (b"=4", "malformed pair"),
        (b"temp=1,temp=2", "duplicate field"),
        (b"satellites=7.5", "must be an integer"),
        (b"temp=nan", "not finite"),
        (b"temp=inf", "not finite"),
        (b"   ", "empty frame"),
        (b"temp=\xff", "UTF-8"),
    ],
)
def test_kv_parser_rejects_malformed_frames(frame: bytes, message: str) -> None:
    with pytest.raises(FrameParseError, match=message):
        KeyValueFrameParser().parse(frame)


def test_json_parser_accepts_object() -> None:
    parser = JsonFrameParser()

    assert parser.parse(b'{"temp": 22, "rssi": -71.5, "satellites": 9.0}') == {
        "temp": 22.0,
        "rssi": -71.5,
        "satellites": 9,
    }


@pytest.mark.parametrize(
    "frame",
    [
        b"{not json",
        b"[1, 2]",
        b"{}",
        b'{"temp": true}',
        b'{"temp": "hot"}',
        b'{"seq": 1}',
    ],
)
def test_json_parser_rejects_malformed_frames(frame: bytes) -> None:
    with pytest.raises(FrameParseError):
        JsonFrameParser().parse(frame)


def test_build_frame_parser_selects_format() -> None:
    assert isinstance(build_frame_parser("kv"), KeyValueFrameParser)
    assert isinstance(build_frame_parser("json"), JsonFrameParser)
    with pytest.raises(ValueError):
        build_frame_parser("csv")


def test_frame_excerpt_is_bounded_and_printable() -> None:
    excerpt = frame_excerpt(b"\xff" + b"a" * 200)

    assert excerpt.startswith("�")
    assert len(excerpt) == 64


def test_recover_frame_finds_frame_glued_after_missing_terminator() -> None:
    parser = KeyValueFrameParser()

    assert parser.frame_starts(b"temp=21.5temp=22.0,rssi=-70") == [9]
    assert recover_frame(parser, b"temp=21.5temp=22.0,rssi=-70") == (9, {"temp": 22.0, "rssi": -70.0})


def test_recover_frame_ignores_fields_after_pair_separator() -> None:
    parser = KeyValueFrameParser()

    assert parser.frame_starts(b"temp=abc, rssi=-70") == []
    assert recover_frame(parser, b"temp=abc, rssi=-70") is None
    assert recover_frame(parser, b"garbage") is None


def test_recover_frame_json() -> None:
    parser = JsonFrameParser()

    assert recover_frame(parser, b'{"temp": 1{"temp": 2}') == (10, {"temp": 2.0})
    assert recover_frame(parser, b'{"temp": 1}}') is None
