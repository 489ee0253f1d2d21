"""Shared runtime state for GroundLink."""

from .registry import PortRegistry

__all__ = ["PortRegistry"]
