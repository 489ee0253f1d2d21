"""Single-slot registry that owns the open device handle.

The registry is the only place a :class:`~groundlink.transport.serial.PortHandle`
lives while a port is open. It performs no I/O. Every operation takes the same
lock, so no two callers observe or change the slot at the same time, whether
they run on the event loop or on another thread.
"""

from __future__ import annotations

import threading

from ..errors import AlreadyOpenError, NotOpenError
from ..transport.serial import PortHandle


class PortRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handle: PortHandle | None = None

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._handle is not None

    def peek(self) -> PortHandle | None:
        with self._lock:
            return self._handle

    def install(self, handle: PortHandle) -> None:
        with self._lock:
            if self._handle is not None:
                raise AlreadyOpenError(f"{self._handle.path} is already open", path=self._handle.path)
            self._handle = handle

    def take_reference(self) -> PortHandle:
        """Borrow the current handle; the registry keeps ownership."""
        with self._lock:
            if self._handle is None:
                raise NotOpenError("no port is open")
            return self._handle

    def clear(self) -> PortHandle:
        """Remove and return the handle so the caller can dispose of it."""
        with self._lock:
            if self._handle is None:
                raise NotOpenError("no port is open")
            handle, self._handle = self._handle, None
            return handle

    def clear_if(self, handle: PortHandle) -> bool:
        """Clear the slot only if it still holds *handle*."""
        with self._lock:
            if self._handle is not handle:
                return False
            self._handle = None
            return True


__all__ = ["PortRegistry"]
