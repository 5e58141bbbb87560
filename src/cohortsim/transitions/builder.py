"""
Transition matrix builder.

Turns a template of cell expressions into concrete, validated transition
probability matrices, one per (sample, stratum, time interval).

A template row may contain at most one complement cell. After every other
cell of the row has been resolved, the complement takes the remaining mass,
so each built row sums to one.

Example:
    >>> template = TransitionTemplate.from_rows(
    ...     ["pre", "symp", "death"],
    ...     [
    ...         ["C", "p_disease", "p_death_all"],
    ...         [0.0, "C", "p_death_symp"],
    ...         [0.0, 0.0, 1.0],
    ...     ],
    ...     absorbing=["death"],
    ... )
    >>> matrix = template.build(store, sample=0, stratum=0, time_interval=0)
    >>> matrix.values.sum(axis=1)
    array([1., 1., 1.])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cohortsim.config import COMPLEMENT_ATOL, ROW_ATOL
from cohortsim.core.parameters import ParameterStore
from cohortsim.exceptions import InvalidRowError
from cohortsim.transitions.expressions import (
    Cell,
    Complement,
    ParameterRef,
    as_cell,
    evaluate,
)


def validate_matrix(
    values,
    absorbing_index: Sequence[int] = (),
    atol: float = ROW_ATOL,
    state_names: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """
    Check that an array is a valid transition probability matrix.

    Args:
        values: Square array [S, S]
        absorbing_index: Rows that must be identity rows
        atol: Tolerance for entries and row sums
        state_names: Optional names used in error messages

    Returns:
        The matrix as a float array

    Raises:
        InvalidRowError: If an entry is outside [0, 1], a row does not sum
            to one, or an absorbing row is not an identity row
    """
    values = np.asarray(values, dtype=float)
    if values.ndim != 2 or values.shape[0] != values.shape[1]:
        raise ValueError(f"Transition matrix must be square, got shape {values.shape}")

    def label(i: int) -> str:
        return state_names[i] if state_names is not None else str(i)

    if not np.all(np.isfinite(values)):
        rows = np.where(~np.all(np.isfinite(values), axis=1))[0]
        raise InvalidRowError(
            f"Transition matrix has non-finite entries in row {label(int(rows[0]))}",
            details={"row": int(rows[0])},
        )

    out_of_range = (values < -atol) | (values > 1 + atol)
    if out_of_range.any():
        i, j = np.argwhere(out_of_range)[0]
        raise InvalidRowError(
            f"Transition probability {label(i)} -> {label(j)} is {values[i, j]}, "
            f"outside [0, 1]",
            details={"row": int(i), "col": int(j), "value": float(values[i, j])},
        )

    row_sums = values.sum(axis=1)
    bad = np.abs(row_sums - 1.0) > atol
    if bad.any():
        i = int(np.where(bad)[0][0])
        raise InvalidRowError(
            f"Row {label(i)} sums to {row_sums[i]!r}, expected 1",
            details={"row": i, "row_sum": float(row_sums[i])},
        )

    n = values.shape[0]
    for i in absorbing_index:
        identity = np.zeros(n)
        identity[i] = 1.0
        if not np.allclose(values[i], identity, rtol=0, atol=atol):
            raise InvalidRowError(
                f"Absorbing state {label(i)} must have an identity row, got {values[i].tolist()}",
                details={"row": int(i)},
            )

    return values


@dataclass(frozen=True, eq=False)
class TransitionMatrix:
    """A validated S x S transition probability matrix (read-only)."""

    values: np.ndarray
    state_names: Tuple[str, ...]
    absorbing: Tuple[str, ...] = ()

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        values.flags.writeable = False
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "state_names", tuple(self.state_names))
        object.__setattr__(self, "absorbing", tuple(self.absorbing))

    @property
    def n_states(self) -> int:
        return len(self.state_names)

    def row_sums(self) -> np.ndarray:
        return self.values.sum(axis=1)

    def is_absorbing(self, state: str) -> bool:
        """Whether a state only transitions to itself."""
        i = self.state_names.index(state)
        return bool(self.values[i, i] == 1.0)

    def to_frame(self) -> pd.DataFrame:
        """Matrix as a DataFrame with from-states as index and to-states as columns."""
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.state_names, name="from"),
            columns=pd.Index(self.state_names, name="to"),
        )

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.values, dtype=dtype)


@dataclass(frozen=True)
class TransitionTemplate:
    """
    S x S template of cell expressions.

    Attributes:
        state_names: Names of the S states, in matrix order
        cells: S rows of S cells (Constant, ParameterRef or Complement)
        absorbing: States declared absorbing; their built rows must be
            identity rows
        row_atol: Tolerance for rows without a complement cell
        complement_atol: How far below zero a complement may fall before
            it is an error (smaller shortfalls are clipped to zero)
    """

    state_names: Tuple[str, ...]
    cells: Tuple[Tuple[Cell, ...], ...]
    absorbing: Tuple[str, ...] = ()
    row_atol: float = ROW_ATOL
    complement_atol: float = COMPLEMENT_ATOL
    _complement_cols: Tuple[Optional[int], ...] = field(default=(), init=False, repr=False)

    def __post_init__(self):
        state_names = tuple(self.state_names)
        if len(set(state_names)) != len(state_names):
            raise ValueError(f"State names must be unique: {state_names}")
        n = len(state_names)
        if n < 1:
            raise ValueError("A transition template needs at least one state")

        cells = tuple(tuple(as_cell(c) for c in row) for row in self.cells)
        if len(cells) != n or any(len(row) != n for row in cells):
            raise ValueError(
                f"Template must be {n} x {n} to match the state names, "
                f"got rows of lengths {[len(row) for row in cells]}"
            )

        complement_cols: List[Optional[int]] = []
        for i, row in enumerate(cells):
            cols = [j for j, c in enumerate(row) if isinstance(c, Complement)]
            if len(cols) > 1:
                raise InvalidRowError(
                    f"Row {state_names[i]} has {len(cols)} complement cells, at most one is allowed",
                    details={"row": i, "columns": cols},
                )
            complement_cols.append(cols[0] if cols else None)

        absorbing = tuple(self.absorbing)
        unknown = [s for s in absorbing if s not in state_names]
        if unknown:
            raise ValueError(f"Absorbing states not in state names: {unknown}")

        object.__setattr__(self, "state_names", state_names)
        object.__setattr__(self, "cells", cells)
        object.__setattr__(self, "absorbing", absorbing)
        object.__setattr__(self, "_complement_cols", tuple(complement_cols))

    @classmethod
    def from_rows(
        cls,
        state_names: Sequence[str],
        rows: Sequence[Sequence],
        absorbing: Sequence[str] = (),
        **kwargs,
    ) -> TransitionTemplate:
        """Build a template from nested lists of numbers, names and ``"C"``."""
        return cls(
            state_names=tuple(state_names),
            cells=tuple(tuple(row) for row in rows),
            absorbing=tuple(absorbing),
            **kwargs,
        )

    @property
    def n_states(self) -> int:
        return len(self.state_names)

    @property
    def absorbing_index(self) -> Tuple[int, ...]:
        return tuple(self.state_names.index(s) for s in self.absorbing)

    @property
    def parameter_names(self) -> List[str]:
        """Parameters referenced by the template, in first-use order."""
        names = []
        for row in self.cells:
            for c in row:
                if isinstance(c, ParameterRef) and c.name not in names:
                    names.append(c.name)
        return names

    def _row_label(self, i: int) -> str:
        return self.state_names[i]

    def _resolve(
        self,
        store: Optional[ParameterStore],
        sample: int,
        stratum: int,
        time_interval: int,
    ) -> np.ndarray:
        n = self.n_states
        values = np.zeros((n, n))

        # Pass 1: every explicit cell
        for i, row in enumerate(self.cells):
            for j, cell in enumerate(row):
                if isinstance(cell, Complement):
                    continue
                v = evaluate(cell, store, sample, stratum, time_interval)
                if not np.isfinite(v) or v < -self.row_atol or v > 1 + self.row_atol:
                    raise InvalidRowError(
                        f"Transition probability {self.state_names[i]} -> "
                        f"{self.state_names[j]} is {v}, outside [0, 1]",
                        details={
                            "row": i,
                            "col": j,
                            "value": v,
                            "sample": sample,
                            "stratum": stratum,
                            "time_interval": time_interval,
                        },
                    )
                values[i, j] = min(max(v, 0.0), 1.0)

        # Pass 2: complements take the remaining mass of their row
        for i, j in enumerate(self._complement_cols):
            if j is None:
                continue
            remaining = 1.0 - (values[i].sum() - values[i, j])
            if remaining < -self.complement_atol:
                raise InvalidRowError(
                    f"Complement in row {self._row_label(i)} is {remaining!r}: "
                    f"the other cells already exceed 1",
                    details={
                        "row": i,
                        "remaining": remaining,
                        "sample": sample,
                        "stratum": stratum,
                        "time_interval": time_interval,
                    },
                )
            values[i, j] = max(remaining, 0.0)

        return values

    def build(
        self,
        store: Optional[ParameterStore] = None,
        sample: int = 0,
        stratum: int = 0,
        time_interval: int = 0,
    ) -> TransitionMatrix:
        """Resolve the template into one validated matrix."""
        values = self._resolve(store, sample, stratum, time_interval)
        validate_matrix(
            values,
            absorbing_index=self.absorbing_index,
            atol=self.row_atol,
            state_names=self.state_names,
        )
        return TransitionMatrix(values, self.state_names, self.absorbing)

    def build_intervals(
        self,
        store: Optional[ParameterStore] = None,
        sample: int = 0,
        stratum: int = 0,
        n_intervals: Optional[int] = None,
    ) -> np.ndarray:
        """One matrix per time interval, stacked into [n_intervals, S, S]."""
        if n_intervals is None:
            n_intervals = store.n_intervals if store is not None else 1
        return np.stack(
            [
                self.build(store, sample, stratum, k).values
                for k in range(n_intervals)
            ]
        )

    def __repr__(self) -> str:
        width = max(len(repr(c)) for row in self.cells for c in row)
        lines = [f"TransitionTemplate({self.n_states} states)"]
        for name, row in zip(self.state_names, self.cells):
            lines.append(f"  {name}: " + "  ".join(repr(c).ljust(width) for c in row))
        return "\n".join(lines)
