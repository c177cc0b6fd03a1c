# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Phase timer for one browse invocation.

Created before the session launches so it survives an idle timeout and can
still say which phase was running when the bound expired.
"""

from __future__ import annotations

import time

_PHASE_HINTS = {
    "launch": "Chromium is slow to start. Check system load.",
    "navigation": "Page may be slow to load or the host is unreachable.",
    "idle": "Page keeps issuing network requests (polling or long-lived loops).",
    "content": "Document serialization is stalling. The page may be very large.",
}


def hint_for_phase(phase: str) -> str:
    return _PHASE_HINTS.get(phase, f"Timed out during '{phase}' phase.")


def _ms(seconds: float) -> float:
    return round(seconds * 1000, 1)


class PipelineTimer:
    """Wall-clock time spent in each lifecycle phase (launch, navigation, idle, ...).

    A phase runs from its ``stage()`` call until the next one, or until
    ``finalize()``.
    """

    def __init__(self) -> None:
        self._origin = time.monotonic()
        self._marks: list[tuple[str, float]] = []  # (phase, started at)
        self._ended_at: float | None = None

    def stage(self, name: str) -> None:
        """Start phase *name*, ending the running one."""
        self._marks.append((name, time.monotonic()))
        self._ended_at = None

    def finalize(self) -> None:
        """End the running phase. Later calls keep the first end time."""
        if self._marks and self._ended_at is None:
            self._ended_at = time.monotonic()

    @property
    def current_stage(self) -> str | None:
        if not self._marks or self._ended_at is not None:
            return None
        return self._marks[-1][0]

    def _durations(self) -> list[tuple[str, float]]:
        end = self._ended_at if self._ended_at is not None else time.monotonic()
        bounds = [started for _, started in self._marks[1:]] + [end]
        return [(name, _ms(stop - started)) for (name, started), stop in zip(self._marks, bounds)]

    def elapsed_per_stage(self) -> dict[str, float]:
        """Return {phase: elapsed_ms}, including a still-running phase."""
        return dict(self._durations())

    def total_ms(self) -> float:
        return _ms(time.monotonic() - self._origin)

    def timeout_report(self) -> dict:
        """Which phase was running when a bound expired, and where time went."""
        durations = self._durations()
        running = self.current_stage
        completed = durations[:-1] if running is not None else durations
        return {
            "timed_out_at": running or "unknown",
            "timed_out_stage_ms": durations[-1][1] if running is not None else 0.0,
            "completed_stages": [{"stage": name, "ms": ms} for name, ms in completed],
            "total_ms": self.total_ms(),
            "hint": hint_for_phase(running or "unknown"),
        }
