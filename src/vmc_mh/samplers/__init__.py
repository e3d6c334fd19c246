"""Sampling utilities."""
from __future__ import annotations

from vmc_mh.samplers.flipper import Flipper  # noqa: F401
from vmc_mh.samplers.metropolis import (  # noqa: F401
    MetropolisLocal,
    Samples,
    StepsRange,
    compute_samples,
)

__all__ = [
    "Flipper",
    "MetropolisLocal",
    "Samples",
    "StepsRange",
    "compute_samples",
]
