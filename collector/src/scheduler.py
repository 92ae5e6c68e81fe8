"""
Cycle scheduler: the collector's run-forever polling loop.

Modelled as a two-state machine:

- **RUNNING_CYCLE**: one pass over the fixed tuple of session outcomes
  established at startup. Each device runs sample -> resolve ->
  ensure_record -> write in sequence. A failure is logged and counted for
  that device only. The whole pass is bounded by a single cycle timeout;
  when it elapses, writes already committed stand and the remaining devices
  are skipped until the next cycle.
- **IDLE**: a fixed delay, after which the scheduler always returns to
  RUNNING_CYCLE. A cycle is never retried immediately.

There is no terminal state. run_forever() only returns once the shutdown
event is set by a signal handler.

Each device's work is additionally nested in a per-device timeout inside
the cycle budget, so one hung plug cannot consume the whole cycle.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from collector.src.errors import CollectorError, DeviceError
from collector.src.identity import resolve
from collector.src.sampler import sample

if TYPE_CHECKING:
    from collector.src.device import DeviceSession
    from collector.src.health import HealthWriter
    from collector.src.identity import IdentityResolver
    from collector.src.sessions import SessionOutcome
    from collector.src.writer import TelemetryWriter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CYCLE_TIMEOUT_S: float = 30.0
"""Budget for one pass over every device."""

CYCLE_DELAY_S: float = 5.0
"""Idle time between cycles."""

DEVICE_TIMEOUT_S: float = 10.0
"""Budget for one device, nested inside the cycle budget."""


class SchedulerState(enum.Enum):
    """States of the polling loop."""

    RUNNING_CYCLE = "running_cycle"
    IDLE = "idle"


@dataclass
class CycleReport:
    """Per-cycle outcome counts.

    Attributes:
        total: Number of session outcomes the cycle covers.
        written: Devices whose telemetry record was committed.
        failed: Devices that raised a DeviceError or StoreError this cycle.
        unavailable: Devices whose session creation failed at startup.
        skipped: Devices not reached (or cut off) because the cycle timed out.
        timed_out: Whether the cycle budget elapsed.
    """

    total: int
    written: int = 0
    failed: int = 0
    unavailable: int = 0
    skipped: int = 0
    timed_out: bool = False

    @property
    def attempted(self) -> int:
        return self.written + self.failed + self.unavailable


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class CycleScheduler:
    """Drives the sampler, resolver, and writer over all sessions.

    Args:
        sessions: Immutable session outcomes established at startup.
        resolver: Durable record resolution for parsed identities.
        writer: Telemetry persistence.
        cycle_timeout_s: Budget for a whole cycle.
        cycle_delay_s: Idle delay between cycles.
        device_timeout_s: Budget per device; 0 disables it.
        synthetic: Flag written records as synthetic.
        health: Health file writer, or None to skip health writes.
        clock: Source of capture timestamps, injectable for tests.
    """

    def __init__(
        self,
        sessions: Sequence[SessionOutcome],
        resolver: IdentityResolver,
        writer: TelemetryWriter,
        *,
        cycle_timeout_s: float = CYCLE_TIMEOUT_S,
        cycle_delay_s: float = CYCLE_DELAY_S,
        device_timeout_s: float = DEVICE_TIMEOUT_S,
        synthetic: bool = False,
        health: HealthWriter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sessions = tuple(sessions)
        self._resolver = resolver
        self._writer = writer
        self._cycle_timeout_s = cycle_timeout_s
        self._cycle_delay_s = cycle_delay_s
        self._device_timeout_s = device_timeout_s
        self._synthetic = synthetic
        self._health = health
        self._clock = clock
        self._state = SchedulerState.RUNNING_CYCLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    def _transition(self, state: SchedulerState) -> None:
        logger.debug("Scheduler %s -> %s", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------
    # RUNNING_CYCLE
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """Run one bounded pass over every session.

        Never raises for device- or store-level failures; they are logged
        and counted in the returned report.

        Returns:
            The cycle's outcome counts.
        """
        report = CycleReport(total=len(self._sessions))
        logger.info("Starting cycle over %d device(s)", report.total)
        try:
            await asyncio.wait_for(
                self._cycle_body(report),
                timeout=self._cycle_timeout_s,
            )
        except TimeoutError:
            report.timed_out = True
            report.skipped = report.total - report.attempted
            logger.warning(
                "Cycle timed out after %.1fs, %d device(s) deferred to next cycle",
                self._cycle_timeout_s,
                report.skipped,
            )

        logger.info(
            "Cycle finished: written=%d failed=%d unavailable=%d skipped=%d",
            report.written,
            report.failed,
            report.unavailable,
            report.skipped,
        )
        return report

    async def _cycle_body(self, report: CycleReport) -> None:
        for outcome in self._sessions:
            if outcome.session is None:
                logger.warning(
                    "Skipping %s: session unavailable (%s)",
                    outcome.address,
                    outcome.error,
                )
                report.unavailable += 1
                continue

            try:
                await self._process_with_timeout(outcome.session)
            except CollectorError as exc:
                logger.warning("Device %s skipped this cycle: %s", outcome.address, exc)
                report.failed += 1
            except Exception:
                logger.error(
                    "Unexpected error processing %s", outcome.address, exc_info=True
                )
                report.failed += 1
            else:
                report.written += 1

    async def _process_with_timeout(self, session: DeviceSession) -> None:
        if self._device_timeout_s <= 0:
            await self._process_device(session)
            return
        try:
            await asyncio.wait_for(
                self._process_device(session),
                timeout=self._device_timeout_s,
            )
        except TimeoutError as exc:
            raise DeviceError(
                f"{session.address} did not respond within {self._device_timeout_s:.1f}s"
            ) from exc

    async def _process_device(self, session: DeviceSession) -> None:
        """Sample one device and persist its reading."""
        captured_at = self._clock()
        result = await sample(session)

        identity = resolve(result.metadata.label)
        if not identity.is_complete:
            logger.warning(
                "Label %r on %s does not have exactly 4 parts, using empty identity",
                result.metadata.label,
                session.address,
            )

        record = await self._resolver.ensure_record(identity)
        logger.debug("Working with device ID: %s", record.id)

        await self._writer.write(
            record.id,
            status=result.metadata.device_on,
            power=result.telemetry.current_power,
            timestamp=captured_at,
            synthetic=self._synthetic,
        )
        logger.info(
            "Recorded power=%d status=%s for %s/%s/%s",
            result.telemetry.current_power,
            result.metadata.device_on,
            identity.user,
            identity.room,
            identity.appliance,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _record_health(self, report: CycleReport) -> None:
        if self._health is None:
            return
        try:
            self._health.record_cycle(report)
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        """Alternate RUNNING_CYCLE and IDLE until shutdown_event is set.

        Args:
            shutdown_event: Set by the signal handler for a clean exit.
        """
        logger.info(
            "Polling loop started (timeout=%ss, delay=%ss)",
            self._cycle_timeout_s,
            self._cycle_delay_s,
        )
        while not shutdown_event.is_set():
            self._transition(SchedulerState.RUNNING_CYCLE)
            report = await self.run_cycle()
            self._record_health(report)

            self._transition(SchedulerState.IDLE)
            # Use wait with timeout so we can check shutdown between sleeps
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self._cycle_delay_s,
                )
        logger.info("Polling loop stopped")
