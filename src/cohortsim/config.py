"""Simulation settings.

Settings are a frozen pydantic model so that one run cannot change them
halfway through. They can be written by hand or loaded from the
``settings`` block of a YAML model file.

Example:
    >>> settings = SimulationSettings(n_cycles=40, cycle_length=1.0)
    >>> settings.discount_rate_for("costs")
    0.03
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

# Tolerances. Matrix rows are checked tighter than occupancy vectors because
# matrices are built once, while vectors accumulate round-off over many cycles.
ROW_ATOL = 1e-8
COMPLEMENT_ATOL = 1e-8
SIMPLEX_ATOL = 1e-6
DRIFT_ATOL = 1e-10

QUADRATURE_METHODS = ("riemann_left", "riemann_right", "trapezoidal")


class SimulationSettings(BaseModel):
    """Run-level settings shared by every (sample, strategy, stratum)."""

    n_cycles: int = Field(..., ge=1, description="Number of Markov cycles")
    cycle_length: float = Field(default=1.0, gt=0, description="Cycle length in years")

    # Discounting
    discount_rates: dict[str, float] = Field(
        default_factory=dict,
        description="Annual discount rate per outcome category",
    )
    default_discount_rate: float = Field(default=0.03, ge=0)

    # Quadrature; None means every run call must name one
    method: str | None = None

    # Parallelism
    n_jobs: int = Field(default=1, ge=1)

    # Numerical tolerances
    row_atol: float = Field(default=ROW_ATOL, gt=0)
    complement_atol: float = Field(default=COMPLEMENT_ATOL, gt=0)
    simplex_atol: float = Field(default=SIMPLEX_ATOL, gt=0)
    drift_atol: float = Field(default=DRIFT_ATOL, gt=0)

    model_config = {"frozen": True}

    @field_validator("discount_rates")
    @classmethod
    def validate_discount_rates(cls, v: dict[str, float]) -> dict[str, float]:
        for category, rate in v.items():
            if rate < 0:
                raise ValueError(f"Discount rate for {category!r} must be >= 0, got {rate}")
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str | None) -> str | None:
        if v is not None and v not in QUADRATURE_METHODS:
            raise ValueError(
                f"Unknown quadrature method {v!r}. "
                f"Valid methods: {', '.join(QUADRATURE_METHODS)}"
            )
        return v

    def discount_rate_for(self, category: str) -> float:
        """Annual discount rate for an outcome category."""
        return self.discount_rates.get(category, self.default_discount_rate)

    @property
    def horizon(self) -> float:
        """Length of the simulated horizon in years."""
        return self.n_cycles * self.cycle_length

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationSettings:
        """Load settings from a YAML file.

        The file may either hold the settings mapping directly or a model
        definition with a top-level ``settings`` key.
        """
        with open(Path(path)) as f:
            data = yaml.safe_load(f) or {}

        if "settings" in data:
            data = data["settings"]
        return cls(**data)
