"""Transition probability matrices for cohort models.

This module turns parameter draws into validated transition matrices:

- Expressions: Constant, ParameterRef and Complement template cells
- Builder: TransitionTemplate resolves cells into TransitionMatrix objects
- Rates: rate/probability conversion and intensity matrices

Example:
    >>> from cohortsim.transitions import TransitionTemplate
    >>> template = TransitionTemplate.from_rows(
    ...     ["alive", "dead"], [["C", "p_death"], [0, 1]], absorbing=["dead"]
    ... )
    >>> matrix = template.build(store, sample=0)
"""

from .expressions import (
    C,
    Cell,
    Complement,
    Constant,
    ParameterRef,
    as_cell,
)
from .builder import (
    TransitionMatrix,
    TransitionTemplate,
    validate_matrix,
)
from .rates import (
    intensity_to_tpmatrix,
    prob_to_rate,
    rate_to_prob,
)

__all__ = [
    # Expressions
    "C",
    "Cell",
    "Complement",
    "Constant",
    "ParameterRef",
    "as_cell",
    # Builder
    "TransitionMatrix",
    "TransitionTemplate",
    "validate_matrix",
    # Rates
    "intensity_to_tpmatrix",
    "prob_to_rate",
    "rate_to_prob",
]
