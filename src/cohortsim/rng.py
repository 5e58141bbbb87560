"""
Random draws of model parameters for probabilistic sensitivity analysis.

Each helper returns ``n_samples`` draws from a distribution parameterised the
way health-economic evidence is usually reported (mean and standard error
rather than shape and scale). The draws feed a ``ParameterStore``.

Example:
    >>> rng = np.random.default_rng(42)
    >>> p_progress = beta_rng(0.25, 0.05, n_samples=1000, rng=rng)
    >>> cost_hospital = gamma_rng(11000, 1500, n_samples=1000, rng=rng)
    >>> row = dirichlet_rng([800, 150, 50], n_samples=1000, rng=rng)  # (1000, 3)
"""

from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np


def _generator(rng: Optional[np.random.Generator], seed: Optional[int] = None) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng(seed)


def fixed(value: float, n_samples: int) -> np.ndarray:
    """Same value in every sample."""
    return np.full(n_samples, float(value))


def normal_rng(
    mean: float,
    sd: float,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Normal draws."""
    if sd < 0:
        raise ValueError(f"sd must be non-negative, got {sd}")
    return _generator(rng).normal(mean, sd, size=n_samples)


def lognormal_rng(
    meanlog: float,
    sdlog: float,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Lognormal draws on the log scale (e.g. relative risks, hazard ratios)."""
    if sdlog < 0:
        raise ValueError(f"sdlog must be non-negative, got {sdlog}")
    return _generator(rng).lognormal(meanlog, sdlog, size=n_samples)


def gamma_rng(
    mean: float,
    sd: float,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Gamma draws from a mean and standard deviation (method of moments).

    shape = mean^2 / sd^2 and scale = sd^2 / mean. Used for costs, which are
    non-negative and right-skewed.
    """
    if mean <= 0 or sd <= 0:
        raise ValueError(f"gamma_rng requires mean > 0 and sd > 0, got mean={mean}, sd={sd}")
    shape = mean ** 2 / sd ** 2
    scale = sd ** 2 / mean
    return _generator(rng).gamma(shape, scale, size=n_samples)


def beta_rng(
    mean: float,
    sd: float,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Beta draws from a mean and standard deviation (method of moments).

    Used for probabilities and utilities bounded by [0, 1].
    """
    if not 0 < mean < 1:
        raise ValueError(f"beta_rng requires 0 < mean < 1, got {mean}")
    if sd <= 0 or sd ** 2 >= mean * (1 - mean):
        raise ValueError(
            f"beta_rng requires 0 < sd^2 < mean * (1 - mean), got mean={mean}, sd={sd}"
        )
    common = mean * (1 - mean) / sd ** 2 - 1
    alpha = mean * common
    beta = (1 - mean) * common
    return _generator(rng).beta(alpha, beta, size=n_samples)


def uniform_rng(
    lower: float,
    upper: float,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Uniform draws on [lower, upper)."""
    if upper < lower:
        raise ValueError(f"upper ({upper}) must not be below lower ({lower})")
    return _generator(rng).uniform(lower, upper, size=n_samples)


def dirichlet_rng(
    alpha: Sequence[float],
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Dirichlet draws, shape (n_samples, len(alpha)).

    Each draw is a full row of transition probabilities, typically with
    alpha set to the observed transition counts out of one state.
    """
    alpha = np.asarray(alpha, dtype=float)
    if alpha.ndim != 1 or len(alpha) < 2 or np.any(alpha <= 0):
        raise ValueError(f"dirichlet_rng requires at least two positive concentrations, got {alpha}")
    return _generator(rng).dirichlet(alpha, size=n_samples)


# Distribution name -> (function, required keyword arguments)
DISTRIBUTIONS = {
    "fixed": (fixed, ("value",)),
    "normal": (normal_rng, ("mean", "sd")),
    "lognormal": (lognormal_rng, ("meanlog", "sdlog")),
    "gamma": (gamma_rng, ("mean", "sd")),
    "beta": (beta_rng, ("mean", "sd")),
    "uniform": (uniform_rng, ("lower", "upper")),
}


def draw_parameters(
    spec: Mapping[str, Any],
    n_samples: int,
    seed: Optional[int] = None,
) -> Dict[str, np.ndarray]:
    """
    Draw named parameters from a declarative specification.

    Args:
        spec: Mapping of name -> number (fixed) or a mapping with a
            ``distribution`` key and the distribution's arguments. A
            ``dirichlet`` entry takes ``alpha`` and ``names`` and produces
            one parameter per name.
        n_samples: Number of PSA samples
        seed: Random seed for reproducibility

    Returns:
        Dict of parameter name -> array of shape (n_samples,)

    Example:
        >>> draw_parameters({
        ...     "p_disease": {"distribution": "beta", "mean": 0.25, "sd": 0.05},
        ...     "cost_drug": 5000,
        ...     "row_symp": {"distribution": "dirichlet", "alpha": [80, 15, 5],
        ...                  "names": ["p_cured", "p_stay_symp", "p_death_symp"]},
        ... }, n_samples=100, seed=1)
    """
    rng = np.random.default_rng(seed)
    draws: Dict[str, np.ndarray] = {}

    for name, entry in spec.items():
        if not isinstance(entry, Mapping):
            draws[name] = fixed(entry, n_samples)
            continue

        dist = str(entry.get("distribution", "")).lower()
        if dist == "dirichlet":
            names = entry.get("names")
            alpha = entry.get("alpha")
            if names is None or alpha is None or len(names) != len(alpha):
                raise ValueError(
                    f"Dirichlet parameter {name!r} needs 'alpha' and 'names' of equal length"
                )
            rows = dirichlet_rng(alpha, n_samples, rng=rng)
            for k, component in enumerate(names):
                draws[component] = rows[:, k]
            continue

        if dist not in DISTRIBUTIONS:
            raise ValueError(
                f"Unknown distribution {dist!r} for parameter {name!r}. "
                f"Valid distributions: {', '.join(sorted(DISTRIBUTIONS) + ['dirichlet'])}"
            )
        func, required = DISTRIBUTIONS[dist]
        missing = [arg for arg in required if arg not in entry]
        if missing:
            raise ValueError(f"Parameter {name!r} ({dist}) is missing {', '.join(missing)}")

        kwargs = {arg: entry[arg] for arg in required}
        if dist == "fixed":
            draws[name] = func(n_samples=n_samples, **kwargs)
        else:
            draws[name] = func(n_samples=n_samples, rng=rng, **kwargs)

    return draws
