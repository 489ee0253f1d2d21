"""GroundLink serial telemetry backend."""

__version__ = "1.0.0"
