"""
Errors raised for caller bugs.

Sparse or missing data never raises: those paths return documented defaults
(At Risk, uniform matrix, identity row, empty forecast). Everything below means
the caller passed something the core cannot interpret.
"""
from __future__ import annotations


class SprintMarkovError(ValueError):
    """Base class; never raised directly."""


class InvalidMatrixError(SprintMarkovError):
    """Matrix is not 3x3, or holds negative / non-finite entries."""


class UnknownStateError(SprintMarkovError):
    """Value does not name one of the three unified states."""


class InvalidLevelError(SprintMarkovError):
    """Graded level outside 0..4."""


class InvalidRubricError(SprintMarkovError):
    """Rubric criterion cannot be built from the supplied record."""


class InvalidPowerError(SprintMarkovError):
    """Matrix power must be a non-negative integer."""


class InvalidWindowError(SprintMarkovError):
    """Sliding window size must be a non-negative integer."""
