"""
State occupancy trajectories.

A trajectory is the output of one Markov forward pass: the probability of
being in each state at cycles 0..n_cycles. It is read-only, so the same
trajectory can be integrated against any number of value functions.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cohortsim.utils import rowmax_index


@dataclass(frozen=True, eq=False)
class Trajectory:
    """
    Occupancy probabilities, shape [n_cycles + 1, n_states].

    Row 0 is the initial distribution; row i is the distribution at the end
    of cycle i, i.e. at time i * cycle_length.
    """

    probs: np.ndarray
    cycle_length: float = 1.0
    state_names: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        probs = np.array(self.probs, dtype=float)
        if probs.ndim != 2:
            raise ValueError(f"Trajectory must be 2-D [cycles, states], got shape {probs.shape}")
        probs.flags.writeable = False
        object.__setattr__(self, "probs", probs)

        names = self.state_names
        if names is None:
            names = tuple(f"state_{k}" for k in range(probs.shape[1]))
        names = tuple(names)
        if len(names) != probs.shape[1]:
            raise ValueError(
                f"Got {len(names)} state names for {probs.shape[1]} states"
            )
        object.__setattr__(self, "state_names", names)

    @property
    def n_cycles(self) -> int:
        return self.probs.shape[0] - 1

    @property
    def n_states(self) -> int:
        return self.probs.shape[1]

    @property
    def times(self) -> np.ndarray:
        """Time at each row, in years."""
        return np.arange(self.n_cycles + 1) * self.cycle_length

    def __len__(self) -> int:
        return self.probs.shape[0]

    def __getitem__(self, cycle) -> np.ndarray:
        return self.probs[cycle]

    def __iter__(self):
        return iter(self.probs)

    def state(self, name: str) -> np.ndarray:
        """Occupancy of one state over time."""
        return self.probs[:, self.state_names.index(name)]

    def modal_states(self) -> np.ndarray:
        """Most likely state index at each cycle."""
        return rowmax_index(self.probs)

    def allclose(self, other: "Trajectory", atol: float = 1e-12) -> bool:
        return (
            self.probs.shape == other.probs.shape
            and np.allclose(self.probs, other.probs, rtol=0, atol=atol)
        )

    def to_frame(self, state_ids: Optional[Sequence[int]] = None) -> pd.DataFrame:
        """Long table with one row per (cycle, state)."""
        n_rows, n_states = self.probs.shape
        state_ids = np.arange(n_states) if state_ids is None else np.asarray(state_ids)
        return pd.DataFrame({
            "cycle": np.repeat(np.arange(n_rows), n_states),
            "t": np.repeat(self.times, n_states),
            "state_id": np.tile(state_ids, n_rows),
            "state": np.tile(np.array(self.state_names, dtype=object), n_rows),
            "prob": self.probs.ravel(),
        })
