"""Error taxonomy for GroundLink operations.

Every error a caller can receive from the public operations derives from
:class:`GroundLinkError`. Each class carries a stable ``code`` so a shell can
report the failure without depending on Python class names.
"""

from __future__ import annotations

from typing import Any, ClassVar


class GroundLinkError(Exception):
    """Base class for all GroundLink operation failures."""

    code: ClassVar[str] = "GroundLinkError"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# Parameter errors


class InvalidParameterError(GroundLinkError):
    code = "InvalidParameter"


# Contention errors


class AlreadyOpenError(GroundLinkError):
    code = "AlreadyOpen"


class NotOpenError(GroundLinkError):
    code = "NotOpen"


class AlreadyMonitoringError(GroundLinkError):
    code = "AlreadyMonitoring"


class AlreadyStreamingError(GroundLinkError):
    code = "AlreadyStreaming"


class NotStreamingError(GroundLinkError):
    code = "NotStreaming"


# Device errors


class EnumerationFailedError(GroundLinkError):
    code = "EnumerationFailed"


class DeviceUnavailableError(GroundLinkError):
    code = "DeviceUnavailable"


class DeviceLostError(GroundLinkError):
    """Raised inside the read step when the device stops answering."""

    code = "DeviceLost"


# Shutdown errors


class ShutdownTimeoutError(GroundLinkError):
    code = "ShutdownTimeout"


class FrameParseError(ValueError):
    """A single frame could not be turned into telemetry fields."""


__all__ = [
    "AlreadyMonitoringError",
    "AlreadyOpenError",
    "AlreadyStreamingError",
    "DeviceLostError",
    "DeviceUnavailableError",
    "EnumerationFailedError",
    "FrameParseError",
    "GroundLinkError",
    "InvalidParameterError",
    "NotOpenError",
    "NotStreamingError",
    "ShutdownTimeoutError",
]
