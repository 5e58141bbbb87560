"""Loading cohort models from YAML.

Model file layout::

    settings:
      n_cycles: 20
      cycle_length: 1.0
      discount_rates: {qalys: 0.015, costs: 0.03}
      method: trapezoidal
    states: [pre, symp, death]
    absorbing: [death]
    initial: [1, 0, 0]
    n_samples: 500
    n_strata: 1
    seed: 42
    schedule: {starts: [0, 10]}
    parameters:
      p_disease_base: {distribution: beta, mean: 0.25, sd: 0.05}
      p_death_all: 0.01
    interval_parameters:
      1: {p_death_all: 0.03}
    strategies:
      base:
        - [C, p_disease_base, p_death_all]
        - [0, C, p_death_symp]
        - [0, 0, 1]
    values:
      qalys: {pre: u_pre, symp: u_symp}
      costs:
        base: {symp: cost_hospit}
    terminal_values:
      costs: {death: cost_death}

Parameters are numbers (constant), lists (one value per stratum) or
distribution mappings (one draw per sample, see ``cohortsim.rng``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from cohortsim.cohort import CohortModel
from cohortsim.config import SimulationSettings
from cohortsim.core.parameters import ALL_INTERVALS, ParameterStore
from cohortsim.core.schedule import TimeSchedule
from cohortsim.outcomes import ValueTemplate
from cohortsim.rng import draw_parameters
from cohortsim.transitions.builder import TransitionTemplate


def _register_block(
    store: ParameterStore,
    block: Mapping[str, Any],
    interval: int | None,
    seed: int | None,
) -> None:
    """Register constants, stratum vectors and distribution draws."""
    random_spec = {}
    for name, entry in block.items():
        if isinstance(entry, Mapping):
            random_spec[name] = entry
        elif isinstance(entry, (list, tuple)):
            store.register(name, entry, interval=interval)
        else:
            store.register(name, float(entry), interval=interval)

    if random_spec:
        draws = draw_parameters(random_spec, store.n_samples, seed=seed)
        for name, values in draws.items():
            store.register_draws(name, values, interval=interval)


def _value_spec(
    states: list[str],
    strategies: list[str],
    values: Mapping[str, Any],
    terminal: Mapping[str, Any] | None,
):
    """A single template, or one per strategy when keyed by strategy name."""
    keys = set(values) | set(terminal or {})
    if keys and keys <= set(strategies) and not keys & set(states):
        return {
            strategy: ValueTemplate.from_mapping(
                states,
                values.get(strategy, {}),
                (terminal or {}).get(strategy),
            )
            for strategy in strategies
        }
    return ValueTemplate.from_mapping(states, values, terminal)


def build_model(data: Mapping[str, Any]) -> CohortModel:
    """Build a cohort model from a parsed model definition."""
    for key in ("settings", "states", "initial", "strategies"):
        if key not in data:
            raise ValueError(f"Model definition is missing required key {key!r}")

    settings = SimulationSettings(**data["settings"])
    states = list(data["states"])
    absorbing = list(data.get("absorbing", []))
    schedule = TimeSchedule(**data["schedule"]) if "schedule" in data else TimeSchedule.single()
    seed = data.get("seed")

    store = ParameterStore(
        n_samples=int(data.get("n_samples", 1)),
        n_strata=int(data.get("n_strata", 1)),
        schedule=schedule,
    )
    _register_block(store, data.get("parameters", {}), ALL_INTERVALS, seed)
    for interval, block in (data.get("interval_parameters") or {}).items():
        # Offset the seed so interval-specific draws are not copies of the base draws
        interval_seed = None if seed is None else seed + int(interval) + 1
        _register_block(store, block, int(interval), interval_seed)

    strategies = {
        name: TransitionTemplate.from_rows(states, rows, absorbing=absorbing)
        for name, rows in data["strategies"].items()
    }

    value_specs = data.get("values") or {}
    terminal = data.get("terminal_values") or {}
    # A category may have only terminal values (e.g. a one-time cost of death)
    categories = list(value_specs) + [c for c in terminal if c not in value_specs]
    values = {
        category: _value_spec(
            states, list(strategies), value_specs.get(category) or {}, terminal.get(category)
        )
        for category in categories
    }

    return CohortModel(
        state_names=states,
        strategies=strategies,
        parameters=store,
        initial=data["initial"],
        settings=settings,
        values=values,
    )


def load_model(path: str | Path) -> CohortModel:
    """Load a cohort model from a YAML file."""
    with open(Path(path)) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, Mapping):
        raise ValueError(f"Model file {path} must contain a mapping")
    return build_model(data)
