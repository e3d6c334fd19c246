"""Core APIs for VMC."""
from __future__ import annotations

from vmc_mh.core.estimators import expectation, gradient, local_values
from vmc_mh.core.eval import (
    jacobian_log_derivative,
    log_amplitude,
    log_amplitude_delta,
    log_derivative,
)
from vmc_mh.core.suggestion import Suggestion, apply_suggestion

__all__ = [
    "Suggestion",
    "apply_suggestion",
    "expectation",
    "gradient",
    "jacobian_log_derivative",
    "local_values",
    "log_amplitude",
    "log_amplitude_delta",
    "log_derivative",
]
