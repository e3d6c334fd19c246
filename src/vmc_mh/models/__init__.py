"""Variational models used in VMC workflows."""
from __future__ import annotations

from vmc_mh.models.mps import MPS
from vmc_mh.models.rbm import RBM

__all__ = [
    "MPS",
    "RBM",
]
