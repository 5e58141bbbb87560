"""
Outcome integration: discounted QALYs and costs from occupancy trajectories.

For a trajectory p, per-cycle state values v and a discount rate r, the
outcome is

    sum_{i=1..n} cycle_length * (1 + r) ** (-i * cycle_length) * (v_i . q_i)

where q_i depends on the quadrature method:
- riemann_left:  q_i = p[i - 1]   (occupancy at the start of cycle i)
- riemann_right: q_i = p[i]       (occupancy at the end of cycle i)
- trapezoidal:   q_i = (p[i - 1] + p[i]) / 2

The method changes results materially, so it is always passed explicitly.
A discount rate of zero goes through the same code path as any other rate.

Example:
    >>> costs = ValueFunction([100.0, 0.0])
    >>> integrate(trajectory, costs, method="riemann_right", discount_rate=0.03)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from cohortsim.core.parameters import ParameterStore
from cohortsim.core.schedule import TimeSchedule
from cohortsim.exceptions import MismatchedLengthError, NoApplicableIntervalError
from cohortsim.trajectory import Trajectory
from cohortsim.transitions.expressions import Cell, Complement, as_cell, evaluate


class QuadratureMethod(Enum):
    """Rule for approximating the time integral from cycle boundaries."""

    RIEMANN_LEFT = "riemann_left"
    RIEMANN_RIGHT = "riemann_right"
    TRAPEZOIDAL = "trapezoidal"

    def occupancy(self, probs: np.ndarray) -> np.ndarray:
        """Occupancy used for each cycle, shape [n_cycles, S]."""
        if self is QuadratureMethod.RIEMANN_LEFT:
            return probs[:-1]
        if self is QuadratureMethod.RIEMANN_RIGHT:
            return probs[1:]
        return 0.5 * (probs[:-1] + probs[1:])


def discount_factors(n_cycles: int, cycle_length: float, rate: float) -> np.ndarray:
    """(1 + rate) ** (-i * cycle_length) for cycles i = 1..n_cycles."""
    if rate < 0:
        raise ValueError(f"Discount rate must be non-negative, got {rate}")
    times = np.arange(1, n_cycles + 1) * cycle_length
    return (1.0 + rate) ** (-times)


@dataclass(frozen=True, eq=False)
class ValueFunction:
    """
    Per-state values (utilities or cost rates per year).

    Attributes:
        values: [S] for constant values, [n_intervals, S] together with a
            schedule, or [n_cycles, S] without one (row i - 1 is cycle i)
        schedule: Intervals the rows of ``values`` belong to
        terminal: Optional one-time value per state, applied to the
            occupancy at the end of the horizon
    """

    values: np.ndarray
    schedule: Optional[TimeSchedule] = None
    terminal: Optional[np.ndarray] = None

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim not in (1, 2):
            raise ValueError(f"Values must be 1-D or 2-D, got shape {values.shape}")
        if not np.all(np.isfinite(values)):
            raise ValueError(f"State values must be finite, got {values.tolist()}")
        if self.schedule is not None:
            if values.ndim == 1:
                values = np.tile(values, (self.schedule.n_intervals, 1))
            if values.shape[0] != self.schedule.n_intervals:
                raise MismatchedLengthError(
                    f"Got {values.shape[0]} value rows for {self.schedule.n_intervals} intervals",
                )
        values.flags.writeable = False
        object.__setattr__(self, "values", values)

        if self.terminal is not None:
            terminal = np.array(self.terminal, dtype=float)
            if terminal.shape != (values.shape[-1],):
                raise MismatchedLengthError(
                    f"Terminal values have shape {terminal.shape}, expected ({values.shape[-1]},)"
                )
            if not np.all(np.isfinite(terminal)):
                raise ValueError(f"Terminal values must be finite, got {terminal.tolist()}")
            terminal.flags.writeable = False
            object.__setattr__(self, "terminal", terminal)

    @property
    def n_states(self) -> int:
        return self.values.shape[-1]

    def per_cycle(self, n_cycles: int, cycle_length: float, n_states: int) -> np.ndarray:
        """Expand to one row of state values per cycle, shape [n_cycles, S]."""
        if self.n_states != n_states:
            raise MismatchedLengthError(
                f"Value function has {self.n_states} states, trajectory has {n_states}",
                details={"value_states": self.n_states, "trajectory_states": n_states},
            )

        if self.values.ndim == 1:
            return np.broadcast_to(self.values, (n_cycles, n_states))

        if self.schedule is not None:
            try:
                intervals = self.schedule.cycle_intervals(n_cycles, cycle_length)
            except NoApplicableIntervalError as e:
                raise MismatchedLengthError(
                    f"Value schedule does not cover all {n_cycles} cycles: {e.message}",
                    details=e.details,
                ) from e
            return self.values[intervals]

        if self.values.shape[0] < n_cycles:
            raise MismatchedLengthError(
                f"Got values for {self.values.shape[0]} cycles, trajectory has {n_cycles}",
                details={"value_cycles": self.values.shape[0], "n_cycles": n_cycles},
            )
        return self.values[:n_cycles]


def integrate(
    trajectory: Trajectory,
    value_function: ValueFunction,
    *,
    method: Union[str, QuadratureMethod],
    discount_rate: float,
) -> float:
    """
    Discounted outcome of one trajectory for one value category.

    Args:
        trajectory: Occupancy probabilities (not modified)
        value_function: Per-state values
        method: "riemann_left", "riemann_right" or "trapezoidal"
        discount_rate: Annual discount rate (0 for no discounting)

    Returns:
        Total discounted outcome
    """
    method = QuadratureMethod(method)
    n_cycles = trajectory.n_cycles
    cycle_length = trajectory.cycle_length

    values = value_function.per_cycle(n_cycles, cycle_length, trajectory.n_states)
    occupancy = method.occupancy(trajectory.probs)
    discounts = discount_factors(n_cycles, cycle_length, discount_rate)

    per_cycle = np.einsum("ij,ij->i", values, occupancy)
    total = cycle_length * float(np.dot(discounts, per_cycle))

    if value_function.terminal is not None:
        final_discount = discounts[-1] if n_cycles > 0 else 1.0
        total += final_discount * float(np.dot(value_function.terminal, trajectory.probs[-1]))

    return total


@dataclass(frozen=True)
class ValueTemplate:
    """
    Per-state value cells resolved against a parameter store.

    Cells are numbers or parameter names; parameters bound to specific time
    intervals give values that change over time.

    Example:
        >>> qalys = ValueTemplate(("pre", "symp", "death"), ("u_pre", "u_symp", 0))
        >>> qalys.resolve(store, sample=3, stratum=0)
    """

    state_names: Tuple[str, ...]
    cells: Tuple[Cell, ...]
    terminal: Optional[Tuple[Cell, ...]] = None

    def __post_init__(self):
        state_names = tuple(self.state_names)
        cells = tuple(as_cell(c) for c in self.cells)
        if len(cells) != len(state_names):
            raise ValueError(f"Got {len(cells)} value cells for {len(state_names)} states")
        if any(isinstance(c, Complement) for c in cells):
            raise ValueError("State values cannot use complement cells")
        object.__setattr__(self, "state_names", state_names)
        object.__setattr__(self, "cells", cells)

        if self.terminal is not None:
            terminal = tuple(as_cell(c) for c in self.terminal)
            if len(terminal) != len(state_names) or any(isinstance(c, Complement) for c in terminal):
                raise ValueError("Terminal values need one non-complement cell per state")
            object.__setattr__(self, "terminal", terminal)

    @classmethod
    def from_mapping(
        cls,
        state_names: Sequence[str],
        values: dict,
        terminal: Optional[dict] = None,
    ) -> ValueTemplate:
        """State name -> cell mapping; states left out are worth zero."""
        unknown = [s for s in list(values) + list(terminal or {}) if s not in state_names]
        if unknown:
            raise ValueError(f"Values given for unknown states: {unknown}")
        return cls(
            state_names=tuple(state_names),
            cells=tuple(values.get(s, 0.0) for s in state_names),
            terminal=tuple(terminal.get(s, 0.0) for s in state_names) if terminal else None,
        )

    def resolve(
        self,
        store: Optional[ParameterStore] = None,
        sample: int = 0,
        stratum: int = 0,
    ) -> ValueFunction:
        """Values for one (sample, stratum), one row per schedule interval."""
        schedule = store.schedule if store is not None else TimeSchedule.single()
        values = np.array([
            [evaluate(c, store, sample, stratum, k) for c in self.cells]
            for k in range(schedule.n_intervals)
        ])
        terminal = None
        if self.terminal is not None:
            last = schedule.n_intervals - 1
            terminal = np.array([evaluate(c, store, sample, stratum, last) for c in self.terminal])
        return ValueFunction(values, schedule=schedule, terminal=terminal)
