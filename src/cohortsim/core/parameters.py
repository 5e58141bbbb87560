"""Parameter-sample store.

Holds the parameter draws for one model run, indexed by PSA sample,
population stratum and time interval. Values are registered once, copied,
and made read-only, so a store can be shared by worker processes without
locking.

Supported shapes:
    - scalar: constant across samples and strata
    - 1-D of length n_strata (``register``): varies by stratum
    - 1-D of length n_samples (``register_draws``): PSA draws shared by strata
    - 2-D of shape (n_samples, n_strata): varies by both

Example:
    >>> store = ParameterStore(n_samples=1000, n_strata=2)
    >>> store.register("p_death", 0.02)
    >>> store.register_draws("p_progress", rng.beta(20, 80, size=1000))
    >>> store.get("p_progress", sample=10, stratum=1)
"""

from __future__ import annotations

from typing import Any, Mapping

import numpy as np

from cohortsim.core.schedule import TimeSchedule
from cohortsim.exceptions import IndexOutOfRangeError, UnknownParameterError

# Binding key for values that apply to every time interval
ALL_INTERVALS = None


class ParameterStore:
    """Named parameter values per (sample, stratum, time interval)."""

    def __init__(
        self,
        n_samples: int = 1,
        n_strata: int = 1,
        schedule: TimeSchedule | None = None,
    ) -> None:
        if n_samples < 1:
            raise ValueError(f"n_samples must be at least 1, got {n_samples}")
        if n_strata < 1:
            raise ValueError(f"n_strata must be at least 1, got {n_strata}")

        self.n_samples = n_samples
        self.n_strata = n_strata
        self.schedule = schedule or TimeSchedule.single()
        # name -> {interval (or None) -> array of shape (1|n_samples, 1|n_strata)}
        self._values: dict[str, dict[int | None, np.ndarray]] = {}

    @property
    def n_intervals(self) -> int:
        return self.schedule.n_intervals

    @property
    def names(self) -> list[str]:
        return list(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return (
            f"ParameterStore(n_samples={self.n_samples}, n_strata={self.n_strata}, "
            f"n_intervals={self.n_intervals}, parameters={len(self)})"
        )

    # Registration
    def register(self, name: str, value: Any, interval: int | None = ALL_INTERVALS) -> None:
        """Register a scalar, per-stratum vector or (sample, stratum) array."""
        arr = np.asarray(value, dtype=float)

        if arr.ndim == 0:
            stored = arr.reshape(1, 1)
        elif arr.ndim == 1:
            if len(arr) != self.n_strata:
                raise ValueError(
                    f"Parameter {name!r}: vector has length {len(arr)}, "
                    f"expected one value per stratum ({self.n_strata})"
                )
            stored = arr.reshape(1, self.n_strata)
        elif arr.ndim == 2:
            if arr.shape != (self.n_samples, self.n_strata):
                raise ValueError(
                    f"Parameter {name!r}: array has shape {arr.shape}, "
                    f"expected ({self.n_samples}, {self.n_strata})"
                )
            stored = arr
        else:
            raise ValueError(f"Parameter {name!r}: expected at most 2 dimensions, got {arr.ndim}")

        self._bind(name, stored, interval)

    def register_draws(self, name: str, draws: Any, interval: int | None = ALL_INTERVALS) -> None:
        """Register one draw per sample, shared by every stratum."""
        arr = np.asarray(draws, dtype=float)
        if arr.ndim != 1 or len(arr) != self.n_samples:
            raise ValueError(
                f"Parameter {name!r}: draws have shape {arr.shape}, "
                f"expected ({self.n_samples},)"
            )
        self._bind(name, arr.reshape(self.n_samples, 1), interval)

    def _bind(self, name: str, arr: np.ndarray, interval: int | None) -> None:
        if interval is not ALL_INTERVALS:
            self._check_index("time_interval", interval, self.n_intervals)
        stored = arr.copy()
        stored.flags.writeable = False
        self._values.setdefault(name, {})[interval] = stored

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        n_samples: int = 1,
        n_strata: int = 1,
        schedule: TimeSchedule | None = None,
    ) -> ParameterStore:
        """Build a store from a name -> value mapping.

        1-D values of length n_samples are treated as PSA draws; other
        values go through ``register``, so an ambiguous vector (n_samples ==
        n_strata) is read as one value per stratum.
        """
        store = cls(n_samples=n_samples, n_strata=n_strata, schedule=schedule)
        for name, value in values.items():
            arr = np.asarray(value, dtype=float)
            if arr.ndim == 1 and len(arr) == n_samples and len(arr) != n_strata:
                store.register_draws(name, arr)
            else:
                store.register(name, arr)
        return store

    # Lookup
    def get(
        self,
        name: str,
        sample: int = 0,
        stratum: int = 0,
        time_interval: int = 0,
    ) -> float:
        """Value of a parameter for one (sample, stratum, time interval)."""
        arr = self._lookup(name, time_interval)
        self._check_index("sample", sample, self.n_samples)
        self._check_index("stratum", stratum, self.n_strata)

        i = sample if arr.shape[0] > 1 else 0
        j = stratum if arr.shape[1] > 1 else 0
        return float(arr[i, j])

    def values(self, name: str, time_interval: int = 0) -> np.ndarray:
        """All values of a parameter broadcast to (n_samples, n_strata)."""
        arr = self._lookup(name, time_interval)
        return np.broadcast_to(arr, (self.n_samples, self.n_strata))

    def interval_at(self, time: float) -> int:
        """Interval in force at a given time."""
        return self.schedule.interval_index(time)

    def get_at(self, name: str, sample: int = 0, stratum: int = 0, time: float = 0.0) -> float:
        """Value of a parameter at an evaluation time."""
        return self.get(name, sample, stratum, self.interval_at(time))

    def _lookup(self, name: str, time_interval: int) -> np.ndarray:
        bindings = self._values.get(name)
        if bindings is None:
            raise UnknownParameterError(
                f"Unknown parameter: {name!r}",
                details={"name": name, "registered": self.names},
            )
        self._check_index("time_interval", time_interval, self.n_intervals)

        if time_interval in bindings:
            return bindings[time_interval]
        if ALL_INTERVALS in bindings:
            return bindings[ALL_INTERVALS]
        raise UnknownParameterError(
            f"Parameter {name!r} has no value for time interval {time_interval}",
            details={"name": name, "time_interval": time_interval},
        )

    @staticmethod
    def _check_index(label: str, index: int, bound: int) -> None:
        if not 0 <= index < bound:
            raise IndexOutOfRangeError(
                f"{label} {index} out of range [0, {bound})",
                details={label: index, "bound": bound},
            )

