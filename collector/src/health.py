"""
Health file writer for the collector.

Writes a JSON health file after every cycle with the cycle's outcome counts,
the timestamp of the last cycle, and the timestamp of the last cycle that
persisted at least one reading. Docker HEALTHCHECK or external monitoring
can inspect it as a liveness signal.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collector.src.scheduler import CycleReport


class HealthWriter:
    """Writes collector health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
        sessions_active: Number of usable device sessions.
    """

    def __init__(self, path: str | Path, sessions_active: int = 0) -> None:
        self.path = Path(path)
        self._sessions_active = sessions_active
        self._last_cycle_ts: str | None = None
        self._last_success_ts: str | None = None
        self._report: CycleReport | None = None

    def record_cycle(self, report: CycleReport) -> None:
        """Record a finished cycle and write the health file.

        Args:
            report: Outcome counts of the cycle that just ended.
        """
        now = datetime.now(tz=UTC).isoformat()
        self._last_cycle_ts = now
        if report.written > 0:
            self._last_success_ts = now
        self._report = report
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        report = self._report
        data = {
            "last_cycle_ts": self._last_cycle_ts,
            "last_success_ts": self._last_success_ts,
            "sessions_active": self._sessions_active,
            "devices_written": report.written if report else 0,
            "devices_failed": report.failed if report else 0,
            "devices_unavailable": report.unavailable if report else 0,
            "devices_skipped": report.skipped if report else 0,
            "cycle_timed_out": report.timed_out if report else False,
        }
        self.path.write_text(json.dumps(data))
