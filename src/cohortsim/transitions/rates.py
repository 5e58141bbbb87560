"""
Conversions between rates and probabilities.

Evidence is often reported as rates (events per person-year) or as a
transition intensity matrix, while the cohort engine needs per-cycle
probabilities. These helpers prepare parameters before they are registered
in a ``ParameterStore``.
"""

from typing import Union

import numpy as np
from scipy.linalg import expm

from cohortsim.config import ROW_ATOL
from cohortsim.transitions.builder import validate_matrix

ArrayLike = Union[float, np.ndarray]


def rate_to_prob(rate: ArrayLike, time: float = 1.0) -> ArrayLike:
    """Probability of at least one event in ``time`` under a constant rate."""
    rate = np.asarray(rate, dtype=float)
    if np.any(rate < 0):
        raise ValueError("Rates must be non-negative")
    result = -np.expm1(-rate * time)
    return float(result) if result.ndim == 0 else result


def prob_to_rate(prob: ArrayLike, time: float = 1.0) -> ArrayLike:
    """Constant rate that gives probability ``prob`` over ``time``."""
    prob = np.asarray(prob, dtype=float)
    if np.any((prob < 0) | (prob >= 1)):
        raise ValueError("Probabilities must be in [0, 1) to convert to a rate")
    if time <= 0:
        raise ValueError(f"time must be positive, got {time}")
    result = -np.log1p(-prob) / time
    return float(result) if result.ndim == 0 else result


def intensity_to_tpmatrix(intensity: np.ndarray, time: float = 1.0, atol: float = ROW_ATOL) -> np.ndarray:
    """
    Transition probability matrix P(t) = expm(Q t) of a continuous-time chain.

    Args:
        intensity: Transition intensity matrix Q [S, S]; off-diagonal
            entries are non-negative and rows sum to zero
        time: Length of the interval (one cycle)
        atol: Tolerance for the zero row sums of Q and the unit row sums of P

    Returns:
        Transition probability matrix [S, S]
    """
    q = np.asarray(intensity, dtype=float)
    if q.ndim != 2 or q.shape[0] != q.shape[1]:
        raise ValueError(f"Intensity matrix must be square, got shape {q.shape}")

    off_diagonal = q[~np.eye(len(q), dtype=bool)]
    if np.any(off_diagonal < 0):
        raise ValueError("Off-diagonal transition intensities must be non-negative")
    if not np.allclose(q.sum(axis=1), 0.0, rtol=0, atol=atol):
        raise ValueError(f"Intensity matrix rows must sum to 0, got {q.sum(axis=1)}")

    p = expm(q * time)
    # Round-off from expm can leave entries a hair outside [0, 1]
    p = np.clip(p, 0.0, 1.0)
    p = p / p.sum(axis=1, keepdims=True)
    return validate_matrix(p, atol=atol)
