"""
Core data structures shared by the builder, engine and integrator:
- Time schedules (interval boundaries for time-inhomogeneous models)
- The parameter-sample store
"""

from cohortsim.core.schedule import TimeSchedule
from cohortsim.core.parameters import ALL_INTERVALS, ParameterStore

__all__ = [
    # Schedules
    "TimeSchedule",
    # Parameters
    "ParameterStore",
    "ALL_INTERVALS",
]
