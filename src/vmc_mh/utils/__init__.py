"""Utility helpers for VMC workflows."""
from __future__ import annotations

from vmc_mh.utils.utils import (
    check_local_states,
    random_tensor,
    spin_to_occupancy,
    states_to_indices,
)
from vmc_mh.utils.vmc_utils import batched_eval, ensure_finite, flatten_samples

__all__ = [
    "batched_eval",
    "check_local_states",
    "ensure_finite",
    "flatten_samples",
    "random_tensor",
    "spin_to_occupancy",
    "states_to_indices",
]
