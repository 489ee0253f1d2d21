"""Tests for serial port discovery."""

from __future__ import annotations

import pytest
from serial import SerialException

from groundlink.errors import EnumerationFailedError
from groundlink.transport import directory
from groundlink.transport.directory import PortDescriptor, describe_port, find_port, list_ports

from tests.mocks import fake_port


def test_list_ports_empty() -> None:
    assert list_ports(lambda: []) == []


def test_list_ports_sorted_and_deduplicated() -> None:
    infos = [
        fake_port("/dev/ttyUSB1", hwid="USB VID:PID=0403:6001", vid=0x0403, pid=0x6001),
        fake_port("/dev/ttyACM0", hwid="USB VID:PID=2341:0043", vid=0x2341, pid=0x0043),
        fake_port("/dev/ttyUSB1", description="duplicate"),
        fake_port(""),
    ]

    ports = list_ports(lambda: infos)

    assert [p.path for p in ports] == ["/dev/ttyACM0", "/dev/ttyUSB1"]
    assert ports[1].description == ""
    assert ports[1].vid == 0x0403


@pytest.mark.parametrize("error", [OSError("udev gone"), SerialException("enumeration failed")])
def test_list_ports_wraps_enumeration_failures(error: Exception) -> None:
    def _broken():
        raise error

    with pytest.raises(EnumerationFailedError) as excinfo:
        list_ports(_broken)

    assert excinfo.value.code == "EnumerationFailed"
    assert excinfo.value.details["os_error"] == str(error)


def test_list_ports_defaults_to_pyserial(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(directory._list_ports, "comports", lambda: [fake_port("COM3")])

    assert [p.path for p in list_ports()] == ["COM3"]


@pytest.mark.parametrize(
    ("info", "expected"),
    [
        (fake_port("COM7", hwid="USB VID:PID=2341:0043", vid=0x2341), "usb"),
        (fake_port("/dev/ttyS4", hwid="PCI\\VEN_8086"), "pci"),
        (fake_port("/dev/pts/3"), "virtual"),
        (fake_port("/dev/tnt0"), "virtual"),
        (fake_port("/dev/ttyAMA0", hwid="3f201000.serial"), "platform"),
        (fake_port("/dev/ttyS0"), "unknown"),
    ],
)
def test_describe_port_classifies(info, expected: str) -> None:
    assert describe_port(info).port_type == expected


def test_describe_port_maps_metadata() -> None:
    info = fake_port(
        "COM7",
        description="Arduino Uno (COM7)",
        hwid="USB VID:PID=2341:0043 SER=7573",
        vid=0x2341,
        pid=0x0043,
        serial_number="7573",
        manufacturer="Arduino",
        product="Uno",
    )

    assert describe_port(info) == PortDescriptor(
        path="COM7",
        description="Arduino Uno (COM7)",
        hwid="USB VID:PID=2341:0043 SER=7573",
        vid=0x2341,
        pid=0x0043,
        serial_number="7573",
        manufacturer="Arduino",
        product="Uno",
        port_type="usb",
    )


def test_find_port() -> None:
    infos = [fake_port("COM7"), fake_port("COM8")]

    assert find_port("COM8", lambda: infos) == PortDescriptor(path="COM8")
    assert find_port("COM9", lambda: infos) is None
