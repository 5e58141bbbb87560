"""
Exception classes for cohort model construction and simulation.

Every error here signals a model-construction bug rather than a transient
condition, so none of them is retried or downgraded to a warning.
"""


class CohortSimError(Exception):
    """Base exception for all cohortsim errors"""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        return self.message

    def to_dict(self):
        return {
            "error": self.message,
            "details": self.details,
            "error_type": self.__class__.__name__,
        }


class InvalidRowError(CohortSimError, ValueError):
    """Transition matrix row is not a probability distribution"""


class InvalidDistributionError(CohortSimError, ValueError):
    """Occupancy vector left the probability simplex"""


class UnknownParameterError(CohortSimError, KeyError):
    """Parameter name was never registered"""


class IndexOutOfRangeError(CohortSimError, IndexError):
    """Sample, stratum or interval index exceeds configured bounds"""


class NoApplicableIntervalError(CohortSimError, ValueError):
    """Requested time is not covered by the time schedule"""


class MismatchedLengthError(CohortSimError, ValueError):
    """Value schedule does not line up with the trajectory"""
