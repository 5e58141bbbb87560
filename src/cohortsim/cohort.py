"""
Markov cohort model runner.

A cohort model is simulated once per (sample, strategy, stratum) index. Each
simulation builds the strategy's transition matrices for that sample and
stratum, propagates the cohort, and integrates every value category against
the resulting trajectory. Simulations share only read-only inputs (the
parameter store, templates and settings), so the index space can be mapped
over a process pool; results are placed by index, not by completion order.

Example:
    >>> model = CohortModel(
    ...     state_names=["pre", "symp", "death"],
    ...     strategies={"base": base_template, "med": med_template},
    ...     parameters=store,
    ...     initial=[1.0, 0.0, 0.0],
    ...     values={"qalys": qaly_template, "costs": cost_template},
    ...     settings=SimulationSettings(n_cycles=40, discount_rates={"qalys": 0.015}),
    ... )
    >>> results = model.run(method="trapezoidal", n_jobs=4)
    >>> results.summarize()
"""

import logging
import time
from dataclasses import dataclass
from multiprocessing import Pool
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

import pandas as pd

from cohortsim.config import SimulationSettings
from cohortsim.core.parameters import ParameterStore
from cohortsim.engine import check_distribution, propagate, scheduled_matrices
from cohortsim.exceptions import UnknownParameterError
from cohortsim.outcomes import QuadratureMethod, ValueTemplate, integrate
from cohortsim.trajectory import Trajectory
from cohortsim.transitions.builder import TransitionTemplate
from cohortsim.transitions.expressions import ParameterRef

logger = logging.getLogger(__name__)

ValueSpec = Union[ValueTemplate, Mapping[str, ValueTemplate]]


class SimulationIndex(NamedTuple):
    """One point of the (sample, strategy, stratum) index space."""

    sample: int
    strategy: str
    stratum: int


@dataclass
class CohortResults:
    """
    Results of a cohort model run.

    Attributes:
        stateprobs: Long table (sample, strategy, stratum, cycle, t,
            state_id, state, prob)
        outcomes: Long table (sample, strategy, stratum, category,
            discount_rate, value)
        method: Quadrature method used for the outcomes
    """

    stateprobs: pd.DataFrame
    outcomes: pd.DataFrame
    method: str

    def summarize(self) -> pd.DataFrame:
        """Mean and standard deviation of each outcome across samples."""
        return (
            self.outcomes
            .groupby(["strategy", "stratum", "category"], sort=False)["value"]
            .agg(mean="mean", sd="std", n_samples="count")
            .reset_index()
        )

    def outcome_matrix(self, category: str, stratum: int = 0) -> pd.DataFrame:
        """Outcome values as a [sample x strategy] table for one category."""
        sub = self.outcomes[
            (self.outcomes["category"] == category) & (self.outcomes["stratum"] == stratum)
        ]
        return sub.pivot(index="sample", columns="strategy", values="value")


class CohortModel:
    """
    A discrete-time Markov cohort model with one or more strategies.

    Args:
        state_names: Names of the model's health states
        strategies: Strategy name -> transition template
        parameters: Parameter draws (its schedule defines the time intervals)
        initial: Initial occupancy [S], or strategy name -> [S]
        settings: Run settings (number of cycles, discounting, tolerances)
        values: Category name -> value template, or category name ->
            (strategy name -> value template) for strategy-specific values
    """

    def __init__(
        self,
        state_names: Sequence[str],
        strategies: Mapping[str, TransitionTemplate],
        parameters: ParameterStore,
        initial,
        settings: SimulationSettings,
        values: Optional[Mapping[str, ValueSpec]] = None,
    ):
        self.state_names = tuple(state_names)
        self.strategies = dict(strategies)
        self.parameters = parameters
        self.settings = settings
        self.values = dict(values or {})

        if not self.strategies:
            raise ValueError("A cohort model needs at least one strategy")

        for name, template in self.strategies.items():
            if template.state_names != self.state_names:
                raise ValueError(
                    f"Strategy {name!r} has states {template.state_names}, "
                    f"expected {self.state_names}"
                )

        if isinstance(initial, Mapping):
            missing = [s for s in self.strategies if s not in initial]
            if missing:
                raise ValueError(f"No initial distribution for strategies: {missing}")
            self.initial = {
                s: check_distribution(initial[s], len(self.state_names), self.settings.simplex_atol)
                for s in self.strategies
            }
        else:
            dist = check_distribution(initial, len(self.state_names), self.settings.simplex_atol)
            self.initial = {s: dist for s in self.strategies}

        for category in self.values:
            for strategy in self.strategies:
                template = self._value_template(category, strategy)
                if template.state_names != self.state_names:
                    raise ValueError(
                        f"Values {category!r} have states {template.state_names}, "
                        f"expected {self.state_names}"
                    )

        self._check_parameters()

    def __repr__(self) -> str:
        return (
            f"CohortModel(states={len(self.state_names)}, "
            f"strategies={list(self.strategies)}, "
            f"samples={self.parameters.n_samples}, strata={self.parameters.n_strata}, "
            f"categories={list(self.values)})"
        )

    def _value_template(self, category: str, strategy: str) -> ValueTemplate:
        spec = self.values[category]
        if isinstance(spec, ValueTemplate):
            return spec
        if strategy not in spec:
            raise ValueError(f"Values {category!r} have no template for strategy {strategy!r}")
        return spec[strategy]

    def _check_parameters(self) -> None:
        """Fail fast on parameters referenced by a template but never registered."""
        referenced = []
        for template in self.strategies.values():
            referenced.extend(template.parameter_names)
        for category in self.values:
            for strategy in self.strategies:
                template = self._value_template(category, strategy)
                cells = template.cells + (template.terminal or ())
                referenced.extend(c.name for c in cells if isinstance(c, ParameterRef))

        missing = sorted({name for name in referenced if name not in self.parameters})
        if missing:
            raise UnknownParameterError(
                f"Parameters referenced but not registered: {', '.join(missing)}",
                details={"missing": missing},
            )

    @property
    def n_states(self) -> int:
        return len(self.state_names)

    def index_space(self) -> List[SimulationIndex]:
        """Every (sample, strategy, stratum) to simulate, in output order."""
        return [
            SimulationIndex(sample, strategy, stratum)
            for sample in range(self.parameters.n_samples)
            for strategy in self.strategies
            for stratum in range(self.parameters.n_strata)
        ]

    def simulate_index(
        self,
        index: SimulationIndex,
        method: Union[str, QuadratureMethod],
    ) -> Tuple[Trajectory, Dict[str, float]]:
        """Trajectory and outcomes for one (sample, strategy, stratum)."""
        settings = self.settings
        schedule = self.parameters.schedule
        template = self.strategies[index.strategy]

        matrices = template.build_intervals(
            self.parameters, index.sample, index.stratum, schedule.n_intervals
        )
        trajectory = propagate(
            self.initial[index.strategy],
            scheduled_matrices(matrices, schedule, settings.cycle_length),
            settings.n_cycles,
            cycle_length=settings.cycle_length,
            state_names=self.state_names,
            simplex_atol=settings.simplex_atol,
            drift_atol=settings.drift_atol,
            row_atol=settings.row_atol,
        )

        outcomes = {}
        for category in self.values:
            value_function = self._value_template(category, index.strategy).resolve(
                self.parameters, index.sample, index.stratum
            )
            outcomes[category] = integrate(
                trajectory,
                value_function,
                method=method,
                discount_rate=settings.discount_rate_for(category),
            )
        return trajectory, outcomes

    def _resolve_method(self, method) -> QuadratureMethod:
        method = method if method is not None else self.settings.method
        if method is None:
            raise ValueError(
                "No quadrature method given: pass method= or set it in the settings"
            )
        return QuadratureMethod(method)

    def run(
        self,
        method: Union[str, QuadratureMethod, None] = None,
        n_jobs: Optional[int] = None,
        keep_stateprobs: bool = True,
    ) -> CohortResults:
        """
        Simulate every index and collect the results.

        Args:
            method: Quadrature method; falls back to ``settings.method``
            n_jobs: Worker processes; falls back to ``settings.n_jobs``
            keep_stateprobs: Whether to build the state probability table

        Returns:
            CohortResults sorted by (sample, strategy, stratum)
        """
        method = self._resolve_method(method)
        n_jobs = n_jobs or self.settings.n_jobs
        indices = self.index_space()

        logger.info(
            f"Simulating {len(indices)} cohorts ({self.parameters.n_samples} samples x "
            f"{len(self.strategies)} strategies x {self.parameters.n_strata} strata), "
            f"{self.settings.n_cycles} cycles, method={method.value}, n_jobs={n_jobs}"
        )
        start = time.time()

        results: List[Optional[Tuple[Trajectory, Dict[str, float]]]] = [None] * len(indices)
        tasks = [(position, index, method) for position, index in enumerate(indices)]

        if n_jobs > 1 and len(indices) > 1:
            chunksize = max(1, len(tasks) // (n_jobs * 4))
            with Pool(n_jobs, initializer=_init_worker, initargs=(self,)) as pool:
                for position, result in pool.imap_unordered(_simulate_task, tasks, chunksize=chunksize):
                    results[position] = result
        else:
            for position, index, task_method in tasks:
                results[position] = self.simulate_index(index, task_method)

        logger.info(f"Simulated {len(indices)} cohorts in {time.time() - start:.2f}s")
        return self._collect(indices, results, method, keep_stateprobs)

    def _collect(self, indices, results, method, keep_stateprobs) -> CohortResults:
        frames = []
        rows = []
        for index, (trajectory, outcomes) in zip(indices, results):
            if keep_stateprobs:
                frame = trajectory.to_frame()
                frame.insert(0, "stratum", index.stratum)
                frame.insert(0, "strategy", index.strategy)
                frame.insert(0, "sample", index.sample)
                frames.append(frame)
            for category, value in outcomes.items():
                rows.append({
                    "sample": index.sample,
                    "strategy": index.strategy,
                    "stratum": index.stratum,
                    "category": category,
                    "discount_rate": self.settings.discount_rate_for(category),
                    "value": value,
                })

        stateprobs = (
            pd.concat(frames, ignore_index=True)
            if frames
            else pd.DataFrame(columns=["sample", "strategy", "stratum", "cycle", "t", "state_id", "state", "prob"])
        )
        outcomes = pd.DataFrame(
            rows,
            columns=["sample", "strategy", "stratum", "category", "discount_rate", "value"],
        )
        return CohortResults(stateprobs=stateprobs, outcomes=outcomes, method=method.value)


# Worker-process state: each worker receives its own copy of the model once
_worker_model: Optional[CohortModel] = None


def _init_worker(model: CohortModel) -> None:
    global _worker_model
    _worker_model = model


def _simulate_task(task):
    position, index, method = task
    return position, _worker_model.simulate_index(index, method)
