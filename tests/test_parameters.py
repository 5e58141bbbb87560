"""
Tests for the parameter-sample store.

Verifies:
1. Scalars broadcast across samples and strata
2. Stratum vectors, per-sample draws and (sample, stratum) arrays
3. Interval-specific bindings and time lookup through the schedule
4. Lookup failures: unknown names and out-of-range indices
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pytest


@pytest.fixture
def store():
    """Create a store with four samples, three strata and two intervals."""
    from cohortsim.core.parameters import ParameterStore
    from cohortsim.core.schedule import TimeSchedule

    return ParameterStore(n_samples=4, n_strata=3, schedule=TimeSchedule(starts=[0, 5]))


class TestRegistration:
    """Test registering values of each supported shape."""

    def test_scalar_broadcast(self, store):
        """Should broadcast a scalar to every sample and stratum."""
        store.register("p_death", 0.02)

        for sample in range(4):
            for stratum in range(3):
                assert store.get("p_death", sample, stratum) == 0.02

    def test_stratum_vector(self, store):
        """Should read a 1-D vector as one value per stratum."""
        store.register("p_death", [0.01, 0.02, 0.03])

        assert store.get("p_death", sample=0, stratum=1) == 0.02
        assert store.get("p_death", sample=3, stratum=2) == 0.03

    def test_sample_draws(self, store):
        """Should share per-sample draws across strata."""
        store.register_draws("u_symp", [0.6, 0.65, 0.7, 0.75])

        assert store.get("u_symp", sample=2, stratum=0) == 0.7
        assert store.get("u_symp", sample=2, stratum=2) == 0.7

    def test_sample_by_stratum_array(self, store):
        """Should accept a full (sample, stratum) array."""
        values = np.arange(12, dtype=float).reshape(4, 3)
        store.register("cost", values)

        assert store.get("cost", sample=1, stratum=2) == 5.0
        np.testing.assert_array_equal(store.values("cost"), values)

    def test_wrong_vector_length_raises(self, store):
        """Should reject a stratum vector of the wrong length."""
        with pytest.raises(ValueError, match="one value per stratum"):
            store.register("p", [0.1, 0.2])

    def test_wrong_draw_length_raises(self, store):
        """Should reject draws of the wrong length."""
        with pytest.raises(ValueError):
            store.register_draws("p", [0.1, 0.2, 0.3])

    def test_wrong_array_shape_raises(self, store):
        """Should reject a 2-D array of the wrong shape."""
        with pytest.raises(ValueError):
            store.register("p", np.zeros((3, 4)))

    def test_three_dimensional_raises(self, store):
        """Should reject arrays with more than two dimensions."""
        with pytest.raises(ValueError):
            store.register("p", np.zeros((4, 3, 2)))

    def test_values_are_copied_and_read_only(self, store):
        """Should copy registered values and make them read-only."""
        draws = np.array([0.1, 0.2, 0.3, 0.4])
        store.register_draws("p", draws)
        draws[0] = 0.9

        assert store.get("p", sample=0) == 0.1
        with pytest.raises(ValueError):
            store.values("p")[0, 0] = 0.5

    def test_names_and_contains(self, store):
        """Should list registered names."""
        store.register("a", 1.0)
        store.register("b", 2.0)

        assert store.names == ["a", "b"]
        assert "a" in store
        assert "c" not in store
        assert len(store) == 2

    def test_invalid_dimensions(self):
        """Should reject non-positive sample and stratum counts."""
        from cohortsim.core.parameters import ParameterStore

        with pytest.raises(ValueError):
            ParameterStore(n_samples=0)
        with pytest.raises(ValueError):
            ParameterStore(n_strata=0)


class TestLookupErrors:
    """Test lookup failures."""

    def test_unknown_parameter(self, store):
        """Should raise for an unregistered name."""
        from cohortsim.exceptions import UnknownParameterError

        with pytest.raises(UnknownParameterError):
            store.get("never_registered")

    def test_unknown_parameter_is_key_error(self, store):
        """Should be catchable as a KeyError."""
        with pytest.raises(KeyError):
            store.get("never_registered")

    def test_sample_out_of_range(self, store):
        """Should reject a sample index past the end."""
        from cohortsim.exceptions import IndexOutOfRangeError

        store.register("p", 0.5)
        with pytest.raises(IndexOutOfRangeError):
            store.get("p", sample=4)

    def test_stratum_out_of_range(self, store):
        """Should reject a stratum index past the end."""
        from cohortsim.exceptions import IndexOutOfRangeError

        store.register("p", 0.5)
        with pytest.raises(IndexOutOfRangeError):
            store.get("p", stratum=3)

    def test_negative_index(self, store):
        """Should reject negative indices."""
        from cohortsim.exceptions import IndexOutOfRangeError

        store.register("p", 0.5)
        with pytest.raises(IndexOutOfRangeError):
            store.get("p", sample=-1)

    def test_scalar_still_checks_bounds(self, store):
        """Broadcasting does not relax the configured bounds."""
        from cohortsim.exceptions import IndexOutOfRangeError

        store.register("p", 0.5)
        with pytest.raises(IndexOutOfRangeError):
            store.get("p", sample=100, stratum=0)

    def test_interval_out_of_range(self, store):
        """Should reject an interval index past the schedule."""
        from cohortsim.exceptions import IndexOutOfRangeError

        store.register("p", 0.5)
        with pytest.raises(IndexOutOfRangeError):
            store.get("p", time_interval=2)

    def test_register_unknown_interval(self, store):
        """Should reject registration for an unknown interval."""
        from cohortsim.exceptions import IndexOutOfRangeError

        with pytest.raises(IndexOutOfRangeError):
            store.register("p", 0.5, interval=5)


class TestTimeIntervals:
    """Interval-specific bindings and time lookup."""

    def test_interval_binding_overrides_default(self, store):
        """Should prefer an interval binding over the default."""
        store.register("p_death", 0.01)
        store.register("p_death", 0.05, interval=1)

        assert store.get("p_death", time_interval=0) == 0.01
        assert store.get("p_death", time_interval=1) == 0.05

    def test_missing_interval_binding(self, store):
        """Should raise when no binding covers an interval."""
        from cohortsim.exceptions import UnknownParameterError

        store.register("p_late", 0.05, interval=1)
        with pytest.raises(UnknownParameterError):
            store.get("p_late", time_interval=0)

    def test_get_at_time(self, store):
        """Should look up values by evaluation time."""
        store.register("p_death", 0.01, interval=0)
        store.register("p_death", 0.05, interval=1)

        assert store.get_at("p_death", time=4.99) == 0.01
        assert store.get_at("p_death", time=5.0) == 0.05
        assert store.get_at("p_death", time=30.0) == 0.05

    def test_time_before_first_interval(self, store):
        """Should raise for a time before the schedule."""
        from cohortsim.exceptions import NoApplicableIntervalError

        store.register("p_death", 0.01)
        with pytest.raises(NoApplicableIntervalError):
            store.get_at("p_death", time=-1.0)


class TestFromMapping:
    """Build a store from a mapping."""

    def test_mixed_mapping(self):
        """Should sort mapping values into draws and stratum vectors."""
        from cohortsim.core.parameters import ParameterStore

        store = ParameterStore.from_mapping(
            {"a": 1.0, "b": [0.1, 0.2], "c": [1.0, 2.0, 3.0]},
            n_samples=3,
            n_strata=2,
        )

        assert store.get("a", 2, 1) == 1.0
        assert store.get("b", 2, 1) == 0.2
        assert store.get("c", 2, 1) == 3.0
