"""
Markov cohort propagation engine.

Computes state occupancy probabilities over time for a discrete-time Markov
chain:

    trajectory[0] = initial distribution
    trajectory[i] = trajectory[i - 1] @ P(i),   i = 1..n_cycles

where P(i) is the transition matrix in force during cycle i. Matrices may
change between time intervals of a ``TimeSchedule`` (time-inhomogeneous
models) but never within one.

Numerical policy:
- Every matrix is validated before use (``InvalidRowError``).
- After each step, if the occupancy sum has drifted from 1 by more than
  ``drift_atol`` but less than ``simplex_atol`` the vector is renormalised
  and a warning is logged.
- Larger drift, or a negative occupancy, raises ``InvalidDistributionError``.

Example:
    >>> P = np.array([[0.9, 0.1], [0.0, 1.0]])
    >>> trajectory = propagate([1.0, 0.0], P, n_cycles=3)
    >>> trajectory[3]
    array([0.729, 0.271])
"""

import logging
from typing import Callable, Optional, Sequence, Union

import numpy as np

from cohortsim.config import DRIFT_ATOL, ROW_ATOL, SIMPLEX_ATOL
from cohortsim.core.schedule import TimeSchedule
from cohortsim.exceptions import InvalidDistributionError, MismatchedLengthError
from cohortsim.trajectory import Trajectory
from cohortsim.transitions.builder import TransitionMatrix, validate_matrix

logger = logging.getLogger(__name__)

MatrixSource = Union[Callable[[int], np.ndarray], np.ndarray, TransitionMatrix]


def check_distribution(
    dist,
    n_states: Optional[int] = None,
    atol: float = SIMPLEX_ATOL,
    label: str = "Initial distribution",
) -> np.ndarray:
    """Validate that a vector lies on the probability simplex.

    Returns the vector clipped to [0, 1] and rescaled to sum to one.
    """
    dist = np.asarray(dist, dtype=float)
    if dist.ndim != 1:
        raise InvalidDistributionError(
            f"{label} must be a vector, got shape {dist.shape}"
        )
    if n_states is not None and len(dist) != n_states:
        raise InvalidDistributionError(
            f"{label} has {len(dist)} states, expected {n_states}",
            details={"n_states": len(dist), "expected": n_states},
        )
    if not np.all(np.isfinite(dist)) or np.any(dist < -atol) or np.any(dist > 1 + atol):
        raise InvalidDistributionError(
            f"{label} has entries outside [0, 1]: {dist.tolist()}",
        )
    total = dist.sum()
    if abs(total - 1.0) > atol:
        raise InvalidDistributionError(
            f"{label} sums to {total!r}, expected 1",
            details={"sum": float(total)},
        )
    # Entries within tolerance of the simplex are pulled onto it
    dist = np.clip(dist, 0.0, 1.0)
    return dist / dist.sum()


def scheduled_matrices(
    matrices,
    schedule: TimeSchedule,
    cycle_length: float = 1.0,
) -> Callable[[int], np.ndarray]:
    """
    Matrix lookup for a time-inhomogeneous model.

    Args:
        matrices: One matrix per schedule interval [n_intervals, S, S]
        schedule: Interval boundaries
        cycle_length: Cycle length in the schedule's time unit

    Returns:
        Function mapping a cycle number (1-based) to the matrix of the
        interval containing that cycle's start time
    """
    stack = np.asarray(matrices, dtype=float)
    if stack.ndim != 3 or stack.shape[0] != schedule.n_intervals:
        raise MismatchedLengthError(
            f"Expected {schedule.n_intervals} matrices for the schedule, "
            f"got array of shape {stack.shape}",
        )

    def transition_matrix_for(cycle: int) -> np.ndarray:
        return stack[schedule.interval_index(schedule.cycle_time(cycle, cycle_length))]

    return transition_matrix_for


def _matrix_lookup(source: MatrixSource, n_cycles: int) -> Callable[[int], np.ndarray]:
    if callable(source):
        return source

    arr = np.asarray(source, dtype=float)
    if arr.ndim == 2:
        return lambda cycle: arr
    if arr.ndim == 3:
        if arr.shape[0] < n_cycles:
            raise MismatchedLengthError(
                f"Got {arr.shape[0]} matrices for {n_cycles} cycles",
                details={"n_matrices": arr.shape[0], "n_cycles": n_cycles},
            )
        return lambda cycle: arr[cycle - 1]
    raise ValueError(f"Expected a matrix, a stack of matrices or a callable, got shape {arr.shape}")


def propagate(
    initial_distribution,
    transition_matrix_for: MatrixSource,
    n_cycles: int,
    *,
    cycle_length: float = 1.0,
    state_names: Optional[Sequence[str]] = None,
    simplex_atol: float = SIMPLEX_ATOL,
    drift_atol: float = DRIFT_ATOL,
    row_atol: float = ROW_ATOL,
) -> Trajectory:
    """
    Run a Markov cohort forward pass.

    Args:
        initial_distribution: Occupancy at time 0 [S]
        transition_matrix_for: A function cycle -> matrix (cycles are
            numbered 1..n_cycles), a single matrix [S, S], or one matrix
            per cycle [n_cycles, S, S]
        n_cycles: Number of cycles to simulate
        cycle_length: Cycle length in years
        state_names: Optional state names for the trajectory
        simplex_atol: Largest tolerated deviation of a row sum from 1
        drift_atol: Deviation above which a row is renormalised
        row_atol: Tolerance for matrix validation

    Returns:
        Trajectory with n_cycles + 1 rows
    """
    if n_cycles < 0:
        raise ValueError(f"n_cycles must be non-negative, got {n_cycles}")

    current = check_distribution(initial_distribution, atol=simplex_atol)
    n_states = len(current)
    lookup = _matrix_lookup(transition_matrix_for, n_cycles)

    probs = np.empty((n_cycles + 1, n_states))
    probs[0] = current

    for cycle in range(1, n_cycles + 1):
        matrix = np.asarray(lookup(cycle), dtype=float)
        if matrix.shape != (n_states, n_states):
            raise MismatchedLengthError(
                f"Cycle {cycle}: matrix has shape {matrix.shape}, expected ({n_states}, {n_states})",
                details={"cycle": cycle},
            )
        validate_matrix(matrix, atol=row_atol, state_names=state_names)

        step = probs[cycle - 1] @ matrix

        if np.any(step < -simplex_atol):
            raise InvalidDistributionError(
                f"Cycle {cycle}: negative occupancy {step.min()!r}",
                details={"cycle": cycle},
            )
        step = np.clip(step, 0.0, None)
        total = step.sum()
        drift = abs(total - 1.0)
        if drift > simplex_atol:
            raise InvalidDistributionError(
                f"Cycle {cycle}: occupancy sums to {total!r}, expected 1",
                details={"cycle": cycle, "sum": float(total)},
            )
        if drift > drift_atol:
            logger.warning(
                f"Cycle {cycle}: occupancy sum drifted to {total!r}, renormalising"
            )
            step = step / total

        probs[cycle] = step

    return Trajectory(probs, cycle_length=cycle_length, state_names=state_names)
