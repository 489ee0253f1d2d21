"""Pytest configuration for GroundLink tests."""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import SimpleNamespace

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

import pytest

from groundlink.config.model import RuntimeConfig
from groundlink.services.runtime import TelemetryService
from groundlink.telemetry.sink import QueueSink
from tests.mocks import FakeSerial, fake_port

_HAS_PYTEST_ASYNCIO = importlib.util.find_spec("pytest_asyncio") is not None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test to run on asyncio loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Fallback asyncio runner when pytest-asyncio is unavailable."""
    if _HAS_PYTEST_ASYNCIO:
        return None
    if "asyncio" not in pyfuncitem.keywords:
        return None
    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
    asyncio.run(test_function(**kwargs))
    return True


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        read_timeout=0.02,
        shutdown_timeout=1.0,
        simulator_interval=0.02,
    )


@pytest.fixture()
def fake_serial() -> FakeSerial:
    return FakeSerial()


@pytest.fixture()
def port_infos() -> list[SimpleNamespace]:
    return [
        fake_port(
            "COM7",
            description="USB Serial Device (COM7)",
            hwid="USB VID:PID=2341:0043 SER=7573",
            vid=0x2341,
            pid=0x0043,
            serial_number="7573",
            manufacturer="Arduino",
        ),
    ]


@pytest.fixture()
def service_factory(runtime_config: RuntimeConfig, fake_serial: FakeSerial, port_infos: list[SimpleNamespace]):
    """Build a TelemetryService wired to a QueueSink and the fake serial opener.

    Call it from inside the running event loop.
    """

    def _build(config: RuntimeConfig | None = None) -> tuple[TelemetryService, QueueSink]:
        sink = QueueSink()
        service = TelemetryService(
            config or runtime_config,
            sink,
            opener=fake_serial.open,
            port_lister=lambda: list(port_infos),
        )
        return service, sink

    return _build
