from __future__ import annotations

"""
Clocks for the time-dependent components (ledger rebase, distributor accrual).

Components accept `clock: Callable[[], float] | None` and fall back to
`time.time`; timestamps are truncated to whole seconds. `ManualClock` is a
deterministic drop-in for simulations and tests.
"""

from typing import Callable

Clock = Callable[[], float]

class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: int = 1_600_000_000) -> None:
        self._now = int(start)

    def __call__(self) -> float:
        return float(self._now)

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("a manual clock cannot go backwards")
        self._now += int(seconds)
        return self._now

    def advance_hours(self, hours: int) -> int:
        return self.advance(int(hours) * 3_600)

__all__ = ["Clock", "ManualClock"]
