"""Operator definitions and the connections capability."""
from __future__ import annotations

from vmc_mh.operators.local_operators import (
    Identity,
    LocalOperator,
    TransverseFieldIsing,
    connections,
)

__all__ = [
    "Identity",
    "LocalOperator",
    "TransverseFieldIsing",
    "connections",
]
