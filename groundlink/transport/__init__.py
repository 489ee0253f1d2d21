"""Serial transport helpers for GroundLink."""

from .directory import PortDescriptor, find_port, list_ports
from .serial import PortHandle, SerialOpener, open_serial_stream

__all__ = [
    "PortDescriptor",
    "PortHandle",
    "SerialOpener",
    "find_port",
    "list_ports",
    "open_serial_stream",
]
