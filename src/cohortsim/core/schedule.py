"""Time schedules for time-inhomogeneous models.

A schedule partitions the simulated horizon into intervals. Transition
probabilities and state values may change only at interval boundaries, so a
model with a single interval is time-homogeneous.

Examples:
    >>> schedule = TimeSchedule(starts=[0, 2])
    >>> schedule.interval_index(1.5)
    0
    >>> schedule.interval_index(2.0)
    1
"""

from __future__ import annotations

import bisect
import math
from typing import Iterator

import numpy as np
from pydantic import BaseModel, Field, model_validator

from cohortsim.exceptions import NoApplicableIntervalError


class TimeSchedule(BaseModel):
    """Ordered interval start times, optionally ending at a finite stop.

    Interval ``k`` covers ``[starts[k], starts[k + 1])``; the last interval
    runs up to ``stop``.
    """

    starts: list[float] = Field(..., min_length=1)
    stop: float = math.inf

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_boundaries(self) -> "TimeSchedule":
        """Ensure starts are finite and strictly increasing, and stop comes last."""
        for t in self.starts:
            if not math.isfinite(t):
                raise ValueError(f"Interval starts must be finite, got {t}")
        for a, b in zip(self.starts, self.starts[1:]):
            if b <= a:
                raise ValueError(f"Interval starts must be strictly increasing: {a} >= {b}")
        if self.stop <= self.starts[-1]:
            raise ValueError(
                f"Schedule stop {self.stop} must exceed the last start {self.starts[-1]}"
            )
        return self

    @classmethod
    def single(cls) -> TimeSchedule:
        """One interval covering [0, inf)."""
        return cls(starts=[0.0])

    @property
    def n_intervals(self) -> int:
        return len(self.starts)

    def __len__(self) -> int:
        return self.n_intervals

    def __iter__(self) -> Iterator[tuple[float, float]]:
        for k in range(self.n_intervals):
            yield self.bounds(k)

    def bounds(self, k: int) -> tuple[float, float]:
        """(start, end) of interval k."""
        end = self.starts[k + 1] if k + 1 < self.n_intervals else self.stop
        return self.starts[k], end

    def interval_index(self, t: float) -> int:
        """Index of the latest interval whose start is <= t."""
        if t < self.starts[0] or t >= self.stop:
            raise NoApplicableIntervalError(
                f"Time {t} is outside the schedule [{self.starts[0]}, {self.stop})",
                details={"time": t, "first_start": self.starts[0], "stop": self.stop},
            )
        return bisect.bisect_right(self.starts, t) - 1

    @staticmethod
    def cycle_time(cycle: int, cycle_length: float) -> float:
        """Evaluation time of a cycle (cycles are numbered from 1).

        A cycle is evaluated at its start, so cycle 1 uses the parameters in
        force at time 0.
        """
        return (cycle - 1) * cycle_length

    def cycle_intervals(self, n_cycles: int, cycle_length: float) -> np.ndarray:
        """Interval index for each of cycles 1..n_cycles."""
        return np.array(
            [
                self.interval_index(self.cycle_time(cycle, cycle_length))
                for cycle in range(1, n_cycles + 1)
            ],
            dtype=np.intp,
        )

    def __repr__(self) -> str:
        return f"TimeSchedule(starts={self.starts!r}, stop={self.stop!r})"
