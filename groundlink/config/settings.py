"""Settings loader for GroundLink.

Configuration comes from an optional TOML file (section ``[groundlink]``)
merged over built-in defaults, then explicit overrides (usually command-line
flags). Everything is validated through :class:`RuntimeConfigSchema`.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from marshmallow import ValidationError

from ..const import CONFIG_SECTION
from ..errors import InvalidParameterError
from .model import RuntimeConfig, StreamConfig
from .schema import RuntimeConfigSchema, StreamConfigSchema

logger = logging.getLogger(__name__)

_CONFIG_SOURCE = "defaults"


def get_config_source() -> str:
    return _CONFIG_SOURCE


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except OSError as exc:
        raise ValueError(f"cannot read configuration file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"invalid TOML in {path}: {exc}") from exc

    section = document.get(CONFIG_SECTION, document)
    if not isinstance(section, dict):
        raise ValueError(f"[{CONFIG_SECTION}] in {path} must be a table")
    return dict(section)


def load_runtime_config(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RuntimeConfig:
    """Load, merge and validate the runtime configuration."""

    global _CONFIG_SOURCE

    raw: dict[str, Any] = {}
    if path is not None:
        raw.update(_read_config_file(Path(path)))
        _CONFIG_SOURCE = str(path)
    else:
        _CONFIG_SOURCE = "defaults"

    if overrides:
        raw.update({key: value for key, value in overrides.items() if value is not None})

    try:
        config = RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        logger.error("Configuration rejected: %s", exc.messages)
        raise ValueError(f"invalid configuration: {exc.messages}") from exc
    return config


def parse_stream_config(
    raw: StreamConfig | Mapping[str, Any] | None,
    defaults: RuntimeConfig | None = None,
) -> StreamConfig:
    """Validate a simulator stream request.

    Missing keys fall back to the simulator defaults of *defaults*.
    """

    if isinstance(raw, StreamConfig):
        raw = {
            "interval": raw.interval,
            "jitter": raw.jitter,
            "field_ranges": {name: list(bounds) for name, bounds in raw.field_ranges.items()},
            "seed": raw.seed,
        }
    payload: dict[str, Any] = {}
    if defaults is not None:
        payload["interval"] = defaults.simulator_interval
        payload["jitter"] = defaults.simulator_jitter
    payload.update(raw or {})

    try:
        return StreamConfigSchema().load(payload)
    except ValidationError as exc:
        raise InvalidParameterError("invalid stream configuration", errors=exc.messages) from exc


__all__ = [
    "RuntimeConfig",
    "StreamConfig",
    "get_config_source",
    "load_runtime_config",
    "parse_stream_config",
]
