"""Serial stream helpers built on pyserial-asyncio-fast.

The open device is represented by a :class:`PortHandle`, a thin wrapper around
the asyncio stream pair returned by ``serial_asyncio_fast``. The handle only
knows how to read and how to release the device; ownership and locking are the
registry's job.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

# pyserial-asyncio-fast is mandatory; no fallback transport exists.
import serial_asyncio_fast  # type: ignore
from serial import SerialException

from .directory import PortDescriptor

logger = logging.getLogger("groundlink.serial")

HANDLE_CLOSE_TIMEOUT = 1.0

SerialOpener = Callable[..., Awaitable[tuple[asyncio.StreamReader, Any]]]


async def open_serial_stream(
    path: str,
    baud_rate: int,
    *,
    exclusive: bool = True,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open *path* at *baud_rate* (8N1, no flow control)."""
    logger.info("Opening %s at %d baud...", path, baud_rate)
    reader, writer = await serial_asyncio_fast.open_serial_connection(
        url=path,
        baudrate=baud_rate,
        exclusive=exclusive,
    )
    return reader, writer


def format_hexdump(data: bytes, prefix: str = "") -> str:
    if not data:
        return f"{prefix}<empty>"
    lines: list[str] = []
    for offset in range(0, len(data), 16):
        chunk = data[offset : offset + 16]
        hex_parts = [" ".join(f"{b:02X}" for b in chunk[i : i + 4]) for i in range(0, 16, 4)]
        hex_str = "  ".join(hex_parts).ljust(47)
        ascii_str = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{prefix}{offset:04X}  {hex_str}  |{ascii_str}|")
    return "\n".join(lines)


@dataclass(slots=True, eq=False)
class PortHandle:
    """One open device connection."""

    path: str
    baud_rate: int
    reader: asyncio.StreamReader
    writer: Any
    descriptor: PortDescriptor
    opened_at: float = field(default_factory=time.time)
    closed: bool = False

    async def read(self, size: int) -> bytes:
        return await self.reader.read(size)

    async def close(self) -> None:
        """Release the device. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            self.writer.close()
            await asyncio.wait_for(self.writer.wait_closed(), timeout=HANDLE_CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for %s to close", self.path)
        except (OSError, ConnectionError, SerialException) as exc:
            logger.debug("Error while closing %s: %s", self.path, exc)
        logger.info("Closed %s", self.path)


__all__ = [
    "PortHandle",
    "SerialOpener",
    "format_hexdump",
    "open_serial_stream",
]
