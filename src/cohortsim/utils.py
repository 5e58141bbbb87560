"""Small array helpers."""

import numpy as np


def rowmax(x: np.ndarray) -> np.ndarray:
    """Maximum value of each row of a 2-D array."""
    x = np.asarray(x)
    if x.ndim != 2:
        raise ValueError(f"Expected a 2-D array, got {x.ndim} dimensions")
    return x.max(axis=1)


def rowmax_index(x: np.ndarray) -> np.ndarray:
    """Column index of the maximum of each row (first one on ties)."""
    x = np.asarray(x)
    if x.ndim != 2:
        raise ValueError(f"Expected a 2-D array, got {x.ndim} dimensions")
    return x.argmax(axis=1)
