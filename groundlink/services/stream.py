"""Loop control shared by every telemetry producer.

A :class:`TelemetryStream` owns one background task at a time. The task runs
the subclass' ``_loop`` until its :class:`CancellationToken` is set or the
source ends on its own. Stopping is cooperative: :meth:`TelemetryStream.stop`
sets the token and waits, bounded, for the task to acknowledge by exiting. The
task is never cancelled from outside.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar

from transitions import Machine

from ..errors import GroundLinkError, NotStreamingError, ShutdownTimeoutError
from ..metrics import TelemetryMetrics
from ..telemetry.framing import frame_excerpt
from ..telemetry.record import FieldValue, FrameParseWarning, TelemetryEvent, TelemetryRecord
from ..telemetry.sink import EventSink


class LoopOutcome(str, enum.Enum):
    CANCELLED = "cancelled"
    DEVICE_LOST = "device_lost"
    FAILED = "failed"


class CancellationToken:
    """Cooperative stop signal for one running loop."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Sleep until cancelled or until *timeout* elapses.

        Returns True when the token was cancelled.
        """
        if self._event.is_set():
            return True
        if timeout is not None and timeout <= 0:
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class TelemetryStream(ABC):
    """Produce an ordered, cancellable sequence of records into a sink."""

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        trigger: Callable[[str], bool]

    source: ClassVar[str]
    busy_error: ClassVar[type[GroundLinkError]] = GroundLinkError
    idle_error: ClassVar[type[GroundLinkError]] = NotStreamingError

    # FSM States
    STATE_IDLE = "idle"
    STATE_RUNNING = "running"
    STATE_STOPPING = "stopping"

    def __init__(
        self,
        sink: EventSink,
        *,
        metrics: TelemetryMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self._metrics = metrics or TelemetryMetrics()
        self._logger = logger or logging.getLogger(f"groundlink.{self.source}")
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[LoopOutcome] | None = None
        self._sequence = 0
        self.last_outcome: LoopOutcome | None = None

        self.state_machine = Machine(
            model=self,
            states=[self.STATE_IDLE, self.STATE_RUNNING, self.STATE_STOPPING],
            initial=self.STATE_IDLE,
            model_attribute="fsm_state",
            auto_transitions=False,
            ignore_invalid_triggers=True,
        )
        self.state_machine.add_transition("begin", self.STATE_IDLE, self.STATE_RUNNING)
        self.state_machine.add_transition("request_stop", self.STATE_RUNNING, self.STATE_STOPPING)
        self.state_machine.add_transition("finish", [self.STATE_RUNNING, self.STATE_STOPPING], self.STATE_IDLE)

    @property
    def active(self) -> bool:
        """True from :meth:`start` until the loop has exited."""
        return self.fsm_state != self.STATE_IDLE

    @property
    def records_emitted(self) -> int:
        """Records pushed during the current (or last) session."""
        return self._sequence

    @property
    def task(self) -> asyncio.Task[LoopOutcome] | None:
        return self._task

    def start(self) -> asyncio.Task[LoopOutcome]:
        """Spawn the loop and return immediately."""
        if self.active:
            raise self.busy_error(f"{self.source} loop is already running")
        self._prepare()
        token = CancellationToken()
        self._token = token
        self._sequence = 0
        self.last_outcome = None
        self.trigger("begin")
        self._metrics.sessions.labels(source=self.source).inc()
        self._task = asyncio.create_task(self._run(token), name=f"groundlink-{self.source}")
        self._task.add_done_callback(self._on_task_done)
        self._logger.info("%s loop started", self.source)
        return self._task

    async def stop(self, timeout: float) -> LoopOutcome:
        """Request a stop and wait up to *timeout* seconds for the loop to exit."""
        task = self._task
        if task is None:
            raise self.idle_error(f"{self.source} loop is not running")
        if self._token is not None:
            self._token.cancel()
        self.trigger("request_stop")

        if not task.done():
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                self._logger.error("%s loop did not stop within %.2fs", self.source, timeout)
                raise ShutdownTimeoutError(
                    f"{self.source} loop did not stop within {timeout:.2f}s",
                    source=self.source,
                    timeout=timeout,
                )
        if task.cancelled():
            return LoopOutcome.CANCELLED
        return task.result()

    def _on_task_done(self, task: asyncio.Task[LoopOutcome]) -> None:
        # A task cancelled before its first step never reaches _run's finally.
        if task is self._task:
            self.trigger("finish")

    def _prepare(self) -> None:
        """Hook run by :meth:`start` before the task is spawned."""

    @abstractmethod
    async def _loop(self, token: CancellationToken) -> LoopOutcome:
        """Produce records until *token* is cancelled or the source ends."""

    async def _run(self, token: CancellationToken) -> LoopOutcome:
        outcome = LoopOutcome.FAILED
        try:
            outcome = await self._loop(token)
        except asyncio.CancelledError:
            outcome = LoopOutcome.CANCELLED
            raise
        except Exception:
            self._logger.exception("%s loop crashed", self.source)
        finally:
            self.last_outcome = outcome
            if self._token is token:
                self._token = None
            self.trigger("finish")
            self._logger.info(
                "%s loop exited (%s) after %d records",
                self.source,
                outcome.value,
                self._sequence,
            )
        return outcome

    def _deliver(self, event: TelemetryEvent) -> None:
        try:
            self._sink.push(event)
        except Exception:
            self._metrics.sink_errors.inc()
            self._logger.exception("Event sink rejected %s", type(event).__name__)

    def _publish(self, fields: dict[str, FieldValue], timestamp: float | None = None) -> TelemetryRecord:
        record = TelemetryRecord(
            source=self.source,
            sequence=self._sequence,
            timestamp=time.time() if timestamp is None else timestamp,
            fields=fields,
        )
        self._sequence += 1
        self._deliver(record)
        self._metrics.records.labels(source=self.source).inc()
        return record

    def _warn(self, reason: str, frame: bytes) -> None:
        warning = FrameParseWarning(source=self.source, reason=reason, frame=frame_excerpt(frame))
        self._logger.warning("Skipping malformed frame: %s", reason, extra={"frame": frame})
        self._metrics.frame_warnings.labels(source=self.source).inc()
        self._deliver(warning)


__all__ = ["CancellationToken", "LoopOutcome", "TelemetryStream"]
