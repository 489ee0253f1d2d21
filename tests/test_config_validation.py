"""Tests for runtime and stream configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from groundlink.config import settings
from groundlink.config.model import RuntimeConfig, StreamConfig
from groundlink.config.settings import load_runtime_config, parse_stream_config
from groundlink.errors import InvalidParameterError


def test_defaults() -> None:
    config = load_runtime_config()

    assert config == RuntimeConfig()
    assert config.baud_rate == 115200
    assert config.frame_delimiter == "\n"
    assert config.delimiter_bytes == b"\n"
    assert settings.get_config_source() == "defaults"


def test_toml_section_is_merged_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "groundlink.toml"
    path.write_text(
        '[groundlink]\nbaud_rate = 9600\nframe_format = "json"\nframe_delimiter = "\\\\r\\\\n"\n',
        encoding="utf-8",
    )

    config = load_runtime_config(path)

    assert config.baud_rate == 9600
    assert config.frame_format == "json"
    assert config.delimiter_bytes == b"\r\n"
    assert config.read_timeout == RuntimeConfig().read_timeout
    assert settings.get_config_source() == str(path)


def test_toml_without_section_uses_top_level(tmp_path: Path) -> None:
    path = tmp_path / "flat.toml"
    path.write_text("read_chunk_size = 64\n", encoding="utf-8")

    assert load_runtime_config(path).read_chunk_size == 64


def test_overrides_win_and_none_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "groundlink.toml"
    path.write_text("[groundlink]\ndebug_logging = false\nmetrics_port = 9000\n", encoding="utf-8")

    config = load_runtime_config(path, {"debug_logging": True, "metrics_port": None})

    assert config.debug_logging is True
    assert config.metrics_port == 9000


@pytest.mark.parametrize(
    "overrides",
    [
        {"baud_rate": 12345},
        {"read_timeout": 0},
        {"frame_format": "csv"},
        {"frame_delimiter": ""},
        {"simulator_jitter": 1.5},
        {"metrics_port": 70000},
        {"unexpected": 1},
    ],
)
def test_invalid_values_raise_value_error(overrides: dict) -> None:
    with pytest.raises(ValueError, match="invalid configuration"):
        load_runtime_config(overrides=overrides)


def test_missing_and_malformed_files(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="cannot read"):
        load_runtime_config(tmp_path / "missing.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("baud_rate = = 1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="invalid TOML"):
        load_runtime_config(broken)


def test_runtime_config_post_init_validation() -> None:
    with pytest.raises(ValueError):
        RuntimeConfig(frame_delimiter="")
    with pytest.raises(ValueError):
        RuntimeConfig(shutdown_timeout=0)
    with pytest.raises(ValueError):
        RuntimeConfig(read_chunk_size=0)


def test_parse_stream_config_defaults_from_runtime() -> None:
    runtime = RuntimeConfig(simulator_interval=0.5, simulator_jitter=0.2)

    config = parse_stream_config(None, runtime)

    assert config == StreamConfig(interval=0.5, jitter=0.2, field_ranges={}, seed=None)


def test_parse_stream_config_converts_ranges() -> None:
    config = parse_stream_config({"interval": 0.25, "field_ranges": {"temp": [10, 20]}, "seed": 4})

    assert config.interval == 0.25
    assert config.field_ranges == {"temp": (10.0, 20.0)}
    assert config.seed == 4


def test_parse_stream_config_accepts_existing_instance() -> None:
    original = StreamConfig(interval=0.3, field_ranges={"rssi": (-90.0, -60.0)})

    assert parse_stream_config(original) == original


@pytest.mark.parametrize(
    "raw",
    [
        {"interval": 0},
        {"interval": -1},
        {"jitter": 2},
        {"field_ranges": {"warp": [0, 1]}},
        {"field_ranges": {"temp": [5, 1]}},
        {"field_ranges": {"temp": [1]}},
        {"seed": "abc"},
    ],
)
def test_parse_stream_config_rejects(raw: dict) -> None:
    with pytest.raises(InvalidParameterError) as excinfo:
        parse_stream_config(raw)

    assert excinfo.value.code == "InvalidParameter"
    assert excinfo.value.details["errors"]
