"""Serial port discovery."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

import msgspec
from serial import SerialException
from serial.tools import list_ports as _list_ports

from ..errors import EnumerationFailedError

logger = logging.getLogger("groundlink.directory")

PortEnumerator = Callable[[], Iterable[Any]]


class PortDescriptor(msgspec.Struct, frozen=True, omit_defaults=True):
    """Identifying information for one discoverable serial device."""

    path: str
    description: str = ""
    hwid: str = ""
    vid: int | None = None
    pid: int | None = None
    serial_number: str | None = None
    manufacturer: str | None = None
    product: str | None = None
    port_type: str = "unknown"


def _classify(info: Any) -> str:
    hwid = (getattr(info, "hwid", "") or "").upper()
    if getattr(info, "vid", None) is not None or hwid.startswith("USB"):
        return "usb"
    if hwid.startswith("PCI"):
        return "pci"
    device = getattr(info, "device", "") or ""
    if "/pts/" in device or "tnt" in device:
        return "virtual"
    if hwid and hwid != "N/A":
        return "platform"
    return "unknown"


def describe_port(info: Any) -> PortDescriptor:
    """Convert a pyserial ``ListPortInfo`` into a :class:`PortDescriptor`."""
    description = getattr(info, "description", "") or ""
    hwid = getattr(info, "hwid", "") or ""
    return PortDescriptor(
        path=info.device,
        description="" if description == "n/a" else description,
        hwid="" if hwid == "n/a" else hwid,
        vid=getattr(info, "vid", None),
        pid=getattr(info, "pid", None),
        serial_number=getattr(info, "serial_number", None),
        manufacturer=getattr(info, "manufacturer", None),
        product=getattr(info, "product", None),
        port_type=_classify(info),
    )


def list_ports(enumerate_ports: PortEnumerator | None = None) -> list[PortDescriptor]:
    """Return the serial devices currently present, ordered by path.

    An empty list means no devices were found. A failure of the underlying
    OS enumeration raises :class:`EnumerationFailedError`.
    """

    enumerate_ports = enumerate_ports or _list_ports.comports
    try:
        found = list(enumerate_ports())
    except (OSError, SerialException) as exc:
        logger.error("Serial port enumeration failed: %s", exc)
        raise EnumerationFailedError(f"serial port enumeration failed: {exc}", os_error=str(exc)) from exc

    descriptors: dict[str, PortDescriptor] = {}
    for info in found:
        if not getattr(info, "device", None):
            continue
        descriptor = describe_port(info)
        descriptors.setdefault(descriptor.path, descriptor)
        logger.debug("Found port %s (%s)", descriptor.path, descriptor.description)

    return [descriptors[path] for path in sorted(descriptors)]


def find_port(path: str, enumerate_ports: PortEnumerator | None = None) -> PortDescriptor | None:
    for descriptor in list_ports(enumerate_ports):
        if descriptor.path == path:
            return descriptor
    return None


__all__ = ["PortDescriptor", "describe_port", "find_port", "list_ports"]
