"""
cohortsim: Markov cohort state-transition models for health economics.

A library for simulating discrete-time Markov cohort models through:
- Parameter draws for probabilistic sensitivity analysis
- Transition matrices built from templates with complement cells
- Time-inhomogeneous propagation of state occupancy
- Discounted QALYs and costs by Riemann or trapezoidal quadrature

Example:
    >>> import numpy as np
    >>> from cohortsim import (
    ...     CohortModel, ParameterStore, SimulationSettings,
    ...     TransitionTemplate, ValueTemplate,
    ... )
    >>> rng = np.random.default_rng(42)
    >>> store = ParameterStore(n_samples=100)
    >>> store.register_draws("p_death", rng.beta(10, 90, size=100))
    >>> template = TransitionTemplate.from_rows(
    ...     ["alive", "dead"], [["C", "p_death"], [0, 1]], absorbing=["dead"]
    ... )
    >>> model = CohortModel(
    ...     ["alive", "dead"], {"soc": template}, store, [1, 0],
    ...     settings=SimulationSettings(n_cycles=30),
    ...     values={"qalys": ValueTemplate(("alive", "dead"), (1.0, 0.0))},
    ... )
    >>> results = model.run(method="trapezoidal")
"""

from cohortsim.exceptions import (
    CohortSimError,
    IndexOutOfRangeError,
    InvalidDistributionError,
    InvalidRowError,
    MismatchedLengthError,
    NoApplicableIntervalError,
    UnknownParameterError,
)
from cohortsim.config import SimulationSettings
from cohortsim.core import ALL_INTERVALS, ParameterStore, TimeSchedule
from cohortsim.transitions import (
    C,
    Complement,
    Constant,
    ParameterRef,
    TransitionMatrix,
    TransitionTemplate,
    intensity_to_tpmatrix,
    prob_to_rate,
    rate_to_prob,
    validate_matrix,
)
from cohortsim.trajectory import Trajectory
from cohortsim.engine import check_distribution, propagate, scheduled_matrices
from cohortsim.outcomes import (
    QuadratureMethod,
    ValueFunction,
    ValueTemplate,
    discount_factors,
    integrate,
)
from cohortsim.cohort import CohortModel, CohortResults, SimulationIndex
from cohortsim.io import build_model, load_model
from cohortsim.rng import (
    beta_rng,
    dirichlet_rng,
    draw_parameters,
    fixed,
    gamma_rng,
    lognormal_rng,
    normal_rng,
    uniform_rng,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "CohortSimError",
    "IndexOutOfRangeError",
    "InvalidDistributionError",
    "InvalidRowError",
    "MismatchedLengthError",
    "NoApplicableIntervalError",
    "UnknownParameterError",
    # Settings
    "SimulationSettings",
    # Parameters and schedules
    "ALL_INTERVALS",
    "ParameterStore",
    "TimeSchedule",
    # Transition matrices
    "C",
    "Complement",
    "Constant",
    "ParameterRef",
    "TransitionMatrix",
    "TransitionTemplate",
    "intensity_to_tpmatrix",
    "prob_to_rate",
    "rate_to_prob",
    "validate_matrix",
    # Propagation
    "Trajectory",
    "check_distribution",
    "propagate",
    "scheduled_matrices",
    # Outcomes
    "QuadratureMethod",
    "ValueFunction",
    "ValueTemplate",
    "discount_factors",
    "integrate",
    # Cohort runner
    "CohortModel",
    "CohortResults",
    "SimulationIndex",
    "build_model",
    "load_model",
    # Parameter draws
    "beta_rng",
    "dirichlet_rng",
    "draw_parameters",
    "fixed",
    "gamma_rng",
    "lognormal_rng",
    "normal_rng",
    "uniform_rng",
]
