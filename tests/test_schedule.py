"""
Tests for time schedules.

A schedule partitions the horizon into intervals [start_k, start_k+1);
the last interval runs to the stop time (infinity by default).
"""

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pytest


class TestTimeScheduleInit:
    """Test schedule construction and validation."""

    def test_single_interval(self):
        """Should cover [0, inf) with one interval."""
        from cohortsim.core.schedule import TimeSchedule

        schedule = TimeSchedule.single()

        assert schedule.n_intervals == 1
        assert schedule.starts == [0.0]
        assert math.isinf(schedule.stop)

    def test_multiple_intervals(self):
        """Should bound each interval by the next start."""
        from cohortsim.core.schedule import TimeSchedule

        schedule = TimeSchedule(starts=[0, 2, 5])

        assert len(schedule) == 3
        assert schedule.bounds(0) == (0, 2)
        assert schedule.bounds(2) == (5, math.inf)

    def test_rejects_non_increasing_starts(self):
        """Should reject starts that do not increase."""
        from cohortsim.core.schedule import TimeSchedule

        with pytest.raises(ValueError):
            TimeSchedule(starts=[0, 2, 2])
        with pytest.raises(ValueError):
            TimeSchedule(starts=[0, 3, 1])

    def test_rejects_empty_starts(self):
        """Should require at least one start."""
        from cohortsim.core.schedule import TimeSchedule

        with pytest.raises(ValueError):
            TimeSchedule(starts=[])

    def test_rejects_infinite_start(self):
        """Should reject infinite starts."""
        from cohortsim.core.schedule import TimeSchedule

        with pytest.raises(ValueError):
            TimeSchedule(starts=[0, math.inf])

    def test_rejects_stop_before_last_start(self):
        """Should require the stop to follow the last start."""
        from cohortsim.core.schedule import TimeSchedule

        with pytest.raises(ValueError):
            TimeSchedule(starts=[0, 5], stop=5)

    def test_is_frozen(self):
        """Should not allow the schedule to change."""
        from cohortsim.core.schedule import TimeSchedule

        schedule = TimeSchedule(starts=[0, 2])
        with pytest.raises(Exception):
            schedule.stop = 10


class TestIntervalLookup:
    """Test time -> interval resolution."""

    @pytest.fixture
    def schedule(self):
        """Create a three-interval schedule ending at t=20."""
        from cohortsim.core.schedule import TimeSchedule

        return TimeSchedule(starts=[0, 2, 5], stop=20)

    def test_latest_start_at_or_before_time(self, schedule):
        """Should pick the latest start at or before the time."""
        assert schedule.interval_index(0) == 0
        assert schedule.interval_index(1.999) == 0
        assert schedule.interval_index(2) == 1
        assert schedule.interval_index(4.5) == 1
        assert schedule.interval_index(5) == 2
        assert schedule.interval_index(19.9) == 2

    def test_time_before_first_interval_raises(self, schedule):
        """Should raise for a time before the first start."""
        from cohortsim.exceptions import NoApplicableIntervalError

        with pytest.raises(NoApplicableIntervalError):
            schedule.interval_index(-0.5)

    def test_time_at_stop_raises(self, schedule):
        """Should raise for a time at the stop."""
        from cohortsim.exceptions import NoApplicableIntervalError

        with pytest.raises(NoApplicableIntervalError):
            schedule.interval_index(20)

    def test_schedule_starting_later(self):
        """Should handle schedules that start after zero."""
        from cohortsim.core.schedule import TimeSchedule
        from cohortsim.exceptions import NoApplicableIntervalError

        schedule = TimeSchedule(starts=[1, 3])
        with pytest.raises(NoApplicableIntervalError):
            schedule.interval_index(0.5)


class TestCycleIntervals:
    """Cycles are evaluated at their start time."""

    def test_cycle_time(self):
        """Should evaluate cycle i at (i - 1) * cycle_length."""
        from cohortsim.core.schedule import TimeSchedule

        assert TimeSchedule.cycle_time(1, 1.0) == 0.0
        assert TimeSchedule.cycle_time(3, 0.5) == 1.0

    def test_change_at_boundary_two(self):
        """Should switch at the third cycle for a change at t=2."""
        from cohortsim.core.schedule import TimeSchedule

        schedule = TimeSchedule(starts=[0, 2])
        intervals = schedule.cycle_intervals(5, cycle_length=1.0)

        np.testing.assert_array_equal(intervals, [0, 0, 1, 1, 1])

    def test_half_year_cycles(self):
        """Should map half-year cycles to intervals."""
        from cohortsim.core.schedule import TimeSchedule

        schedule = TimeSchedule(starts=[0, 1])
        intervals = schedule.cycle_intervals(4, cycle_length=0.5)

        np.testing.assert_array_equal(intervals, [0, 0, 1, 1])
