"""Test doubles shared across the GroundLink test-suite."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock


class FakeSerial:
    """Stand-in for ``open_serial_stream`` backed by a real StreamReader.

    Each successful open creates a fresh reader; tests feed it with
    ``feed_data``/``feed_eof``/``set_exception``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, bool]] = []
        self.error: BaseException | None = None
        self.reader: asyncio.StreamReader | None = None
        self.writer: MagicMock | None = None

    async def open(self, path: str, baud_rate: int, *, exclusive: bool = True) -> tuple[asyncio.StreamReader, Any]:
        self.calls.append((path, baud_rate, exclusive))
        if self.error is not None:
            raise self.error
        self.reader = asyncio.StreamReader()
        self.writer = MagicMock()
        self.writer.wait_closed = AsyncMock()
        return self.reader, self.writer

    def feed(self, data: bytes) -> None:
        assert self.reader is not None, "port was never opened"
        self.reader.feed_data(data)


def fake_port(device: str, **overrides: Any) -> SimpleNamespace:
    """Build an object shaped like pyserial's ListPortInfo."""
    info = {
        "device": device,
        "description": "n/a",
        "hwid": "n/a",
        "vid": None,
        "pid": None,
        "serial_number": None,
        "manufacturer": None,
        "product": None,
    }
    info.update(overrides)
    return SimpleNamespace(**info)
