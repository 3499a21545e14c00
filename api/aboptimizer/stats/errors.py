"""Domain errors raised by the winner-determination engine.

Bad inputs subclass ``ValueError`` so callers that only care about
"the caller handed us garbage" can keep catching that.  Every error is
deterministic for a given input and is never retried internally.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for all engine errors."""


class InvalidObservationError(AnalysisError, ValueError):
    """Arm counts are negative, non-integer, or successes exceed visits."""


class InvalidSampleCountError(AnalysisError, ValueError):
    """Monte Carlo sample count is not a positive integer."""


class InvalidParameterError(AnalysisError, ValueError):
    """A numeric argument is outside its domain (gamma shape, days, MDE)."""


class UnknownModeError(AnalysisError, ValueError):
    """The requested analysis mode is not in the configured mode table."""


class InvalidModeConfigError(AnalysisError, ValueError):
    """The mode table failed validation when it was loaded."""


class SamplingError(AnalysisError, RuntimeError):
    """A sampler could not produce a finite draw within its iteration cap."""
