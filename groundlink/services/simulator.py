"""Synthetic telemetry for running the pipeline without hardware."""

from __future__ import annotations

import asyncio
import logging
import random
import time

from ..config.model import StreamConfig
from ..const import SOURCE_SIMULATOR
from ..errors import AlreadyStreamingError, NotStreamingError
from ..metrics import TelemetryMetrics
from ..telemetry.record import DEFAULT_SCHEMA, FieldValue, TelemetryRecord, TelemetrySchema
from ..telemetry.sink import EventSink
from .stream import CancellationToken, LoopOutcome, TelemetryStream

# Largest per-step move of a random walk, as a fraction of the field span.
WALK_STEP = 0.05

MISSION_TIME_FIELD = "mission_time"


class TelemetryGenerator:
    """Bounded random walk over every field of a schema."""

    def __init__(self, schema: TelemetrySchema = DEFAULT_SCHEMA, *, seed: int | None = None) -> None:
        self.schema = schema
        self.rng = random.Random(seed)
        self._values = {spec.name: (spec.low + spec.high) / 2.0 for spec in schema}

    def step(self, elapsed: float) -> dict[str, FieldValue]:
        fields: dict[str, FieldValue] = {}
        for spec in self.schema:
            if spec.name == MISSION_TIME_FIELD:
                value = spec.clamp(elapsed)
            else:
                span = spec.high - spec.low
                value = spec.clamp(self._values[spec.name] + self.rng.uniform(-span, span) * WALK_STEP)
                self._values[spec.name] = value
            fields[spec.name] = int(round(value)) if spec.integer else value
        return fields

    def sample(self) -> dict[str, FieldValue]:
        """Independent uniform draw for every field."""
        fields: dict[str, FieldValue] = {}
        for spec in self.schema:
            value = self.rng.uniform(spec.low, spec.high)
            fields[spec.name] = int(round(value)) if spec.integer else value
        return fields


class TelemetrySimulator(TelemetryStream):
    """Emit synthetic records at a fixed or jittered interval."""

    source = SOURCE_SIMULATOR
    busy_error = AlreadyStreamingError
    idle_error = NotStreamingError

    def __init__(
        self,
        sink: EventSink,
        *,
        config: StreamConfig | None = None,
        schema: TelemetrySchema = DEFAULT_SCHEMA,
        metrics: TelemetryMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(sink, metrics=metrics, logger=logger or logging.getLogger("groundlink.simulator"))
        self._schema = schema
        self.config = config or StreamConfig()

    def configure(self, config: StreamConfig) -> None:
        if self.active:
            raise AlreadyStreamingError("simulator is already streaming")
        self.config = config

    def mockdata(self, seed: int | None = None) -> TelemetryRecord:
        """Return one synthetic snapshot. Snapshots are sessionless: sequence is always 0."""
        generator = TelemetryGenerator(self._schema, seed=seed)
        return TelemetryRecord(
            source=self.source,
            sequence=0,
            timestamp=time.time(),
            fields=generator.sample(),
        )

    async def _loop(self, token: CancellationToken) -> LoopOutcome:
        config = self.config
        generator = TelemetryGenerator(self._schema.with_ranges(config.field_ranges), seed=config.seed)
        loop = asyncio.get_running_loop()
        started = loop.time()
        next_due = started
        self._logger.info(
            "Streaming synthetic telemetry every %.3fs (jitter=%.2f)",
            config.interval,
            config.jitter,
        )

        while not token.cancelled:
            self._publish(generator.step(loop.time() - started))
            next_due += config.interval
            delay = next_due - loop.time()
            if config.jitter:
                delay += generator.rng.uniform(-config.jitter, config.jitter) * config.interval
            if await token.wait(max(0.0, delay)):
                break
        return LoopOutcome.CANCELLED


__all__ = ["TelemetryGenerator", "TelemetrySimulator"]
