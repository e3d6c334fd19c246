"""Exception types raised by the sampler and estimators."""
from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "NumericFailure",
]


class ConfigurationError(ValueError):
    """Invalid sizes, schedules, local states or mismatched collaborators."""


class NumericFailure(FloatingPointError):
    """A model or operator produced NaN amplitudes or local values."""
