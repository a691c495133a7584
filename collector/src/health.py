"""
Health file writer for the collector daemon.

Writes a JSON health file at a configurable path with five fields:
- last_cycle_ts: ISO timestamp of the most recent completed sample cycle.
- last_delivery_ts: ISO timestamp of the most recent accepted write.
- last_outcome: ``"success"``, ``"rejected"``, ``"local_failure"`` or
  ``"skipped"`` (nothing to send) for the most recent cycle.
- last_status_code: HTTP status of the most recent rejected write, else null.
- lines_sent: Number of lines in the most recent accepted write.

The file is rewritten after every cycle, providing a simple liveness signal
for a supervisor or container HEALTHCHECK.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from collector.src.delivery import DeliveryOutcome, LocalFailure, Rejected, Success


class HealthWriter:
    """Writes collector health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_cycle_ts: str | None = None
        self._last_delivery_ts: str | None = None
        self._last_outcome: str | None = None
        self._last_status_code: int | None = None
        self._lines_sent: int = 0

    def record_cycle(self, outcome: DeliveryOutcome | None, lines: int) -> None:
        """Record a finished cycle and write the health file.

        Args:
            outcome: Delivery outcome, or ``None`` when nothing was sent.
            lines: Number of lines in the cycle's payload.
        """
        now = datetime.now(tz=UTC).isoformat()
        self._last_cycle_ts = now
        self._last_status_code = None

        if outcome is None:
            self._last_outcome = "skipped"
        elif isinstance(outcome, Success):
            self._last_outcome = "success"
            self._last_delivery_ts = now
            self._lines_sent = lines
        elif isinstance(outcome, Rejected):
            self._last_outcome = "rejected"
            self._last_status_code = outcome.status_code
        elif isinstance(outcome, LocalFailure):
            self._last_outcome = "local_failure"

        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_cycle_ts": self._last_cycle_ts,
            "last_delivery_ts": self._last_delivery_ts,
            "last_outcome": self._last_outcome,
            "last_status_code": self._last_status_code,
            "lines_sent": self._lines_sent,
        }
        self.path.write_text(json.dumps(data))
