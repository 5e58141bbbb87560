"""
Tests for loading cohort models from YAML.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pytest


MODEL_YAML = """
settings:
  n_cycles: 8
  discount_rates: {qalys: 0.0, costs: 0.0}
states: [alive, dead]
absorbing: [dead]
initial: [1, 0]
n_samples: 5
n_strata: 2
seed: 3
schedule:
  starts: [0, 4]
parameters:
  p_die: [0.1, 0.2]
  u_alive: {distribution: beta, mean: 0.8, sd: 0.05}
  cost_death: 1000
interval_parameters:
  1:
    p_die: 0.5
strategies:
  soc:
    - [C, p_die]
    - [0, 1]
values:
  qalys: {alive: u_alive}
terminal_values:
  costs: {dead: cost_death}
"""


@pytest.fixture
def model_path(tmp_path):
    """Write the model definition to a temporary file."""
    path = tmp_path / "model.yaml"
    path.write_text(MODEL_YAML)
    return path


class TestLoadModel:
    """Test model files."""

    def test_structure(self, model_path):
        """Should build states, strategies, store and value categories."""
        from cohortsim.io import load_model

        model = load_model(model_path)

        assert model.state_names == ("alive", "dead")
        assert list(model.strategies) == ["soc"]
        assert model.parameters.n_samples == 5
        assert model.parameters.n_strata == 2
        assert model.parameters.n_intervals == 2
        assert set(model.values) == {"qalys", "costs"}

    def test_parameter_blocks(self, model_path):
        """Should register stratum vectors, interval overrides and draws."""
        from cohortsim.io import load_model

        store = load_model(model_path).parameters

        assert store.get("p_die", stratum=1, time_interval=0) == 0.2
        assert store.get("p_die", stratum=1, time_interval=1) == 0.5
        draws = store.values("u_alive")[:, 0]
        assert len(np.unique(draws)) == 5

    def test_run(self, model_path):
        """Should run a loaded model end to end."""
        from cohortsim.io import load_model

        results = load_model(model_path).run(method="riemann_left")

        assert len(results.outcomes) == 5 * 2 * 2
        assert (results.outcomes["value"] > 0).all()

    def test_same_seed_same_draws(self, model_path):
        """Should draw the same values for the same seed."""
        from cohortsim.io import load_model

        first = load_model(model_path).parameters.values("u_alive")
        second = load_model(model_path).parameters.values("u_alive")

        np.testing.assert_array_equal(first, second)

    def test_terminal_only_category(self, model_path):
        """Should create a category from terminal values alone."""
        from cohortsim.io import load_model

        results = load_model(model_path).run(method="riemann_right")
        costs = results.outcomes[results.outcomes["category"] == "costs"]

        assert len(costs) == 10
        assert (costs["value"] > 0).all()
        assert (costs["value"] <= 1000.0).all()

    def test_missing_key(self):
        """Should name the missing required key."""
        from cohortsim.io import build_model

        with pytest.raises(ValueError, match="initial"):
            build_model({"settings": {"n_cycles": 1}, "states": ["a"], "strategies": {}})

    def test_unknown_distribution(self, tmp_path):
        """Should reject unknown distributions."""
        from cohortsim.io import load_model

        path = tmp_path / "bad.yaml"
        path.write_text(MODEL_YAML.replace("distribution: beta", "distribution: cauchy"))
        with pytest.raises(ValueError):
            load_model(path)

    def test_not_a_mapping(self, tmp_path):
        """Should reject a file that is not a mapping."""
        from cohortsim.io import load_model

        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_model(path)


class TestExampleModel:
    """The shipped example model loads and runs."""

    def test_example_runs(self):
        """Should load and run the shipped example model."""
        from cohortsim.io import load_model

        path = Path(__file__).parent.parent / "examples" / "three_state_model.yaml"
        model = load_model(path)
        results = model.run(keep_stateprobs=False)
        summary = results.summarize()

        assert results.method == "trapezoidal"
        assert len(summary) == 2 * 2 * 2
        qalys = summary[summary["category"] == "qalys"].set_index(["strategy", "stratum"])["mean"]
        assert qalys[("med", 0)] > qalys[("base", 0)]
