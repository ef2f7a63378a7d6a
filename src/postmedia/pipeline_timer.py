# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage timer for one resolution: fetch -> extract -> browser.

The merge runs inside the browser stage and is timed as part of it.

Created before the first suspension point so a timeout can still report
which stage was running and how long each completed stage took.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

_STAGE_HINTS = {
    "fetch": "The source site is slow or blocking requests. Retry later.",
    "extract": "Page markup is unusually large.",
    "browser": "Reel page did not settle. Retry later.",
}


@dataclass(slots=True)
class StageRecord:
    name: str
    start_ns: int
    end_ns: int = 0

    @property
    def elapsed_ms(self) -> float:
        return round((self.end_ns - self.start_ns) / 1e6, 1)


class PipelineTimer:
    """Track stage transitions for latency logging and timeout diagnostics."""

    __slots__ = ("_stages", "_current", "_start_ns")

    def __init__(self) -> None:
        self._stages: list[StageRecord] = []
        self._current: StageRecord | None = None
        self._start_ns: int = time.monotonic_ns()

    def stage(self, name: str) -> None:
        """End previous stage + start new stage."""
        now = time.monotonic_ns()
        if self._current is not None:
            self._current.end_ns = now
            self._stages.append(self._current)
        self._current = StageRecord(name=name, start_ns=now)

    def finalize(self) -> None:
        if self._current is not None:
            self._current.end_ns = time.monotonic_ns()
            self._stages.append(self._current)
            self._current = None

    @property
    def current_stage(self) -> str | None:
        return self._current.name if self._current else None

    def elapsed_per_stage(self) -> dict[str, float]:
        """{stage: ms}; repeated stage names accumulate."""
        now = time.monotonic_ns()
        result: dict[str, float] = {}
        for s in self._stages:
            result[s.name] = round(result.get(s.name, 0.0) + s.elapsed_ms, 1)
        if self._current is not None:
            ms = round((now - self._current.start_ns) / 1e6, 1)
            result[self._current.name] = round(result.get(self._current.name, 0.0) + ms, 1)
        return result

    def total_ms(self) -> float:
        return round((time.monotonic_ns() - self._start_ns) / 1e6, 1)

    def timeout_report(self) -> dict:
        current = self.current_stage or "unknown"
        return {
            "timed_out_at": current,
            "stages": self.elapsed_per_stage(),
            "total_ms": self.total_ms(),
            "hint": _STAGE_HINTS.get(current, f"Timed out during '{current}' stage."),
        }
