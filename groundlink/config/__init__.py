"""Configuration helpers for GroundLink."""

from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]
from .model import RuntimeConfig, StreamConfig  # noqa: F401
