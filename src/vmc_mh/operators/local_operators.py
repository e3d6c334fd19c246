"""Operators as seen by the local-value estimator.

An operator only has to enumerate, for a configuration ``c``, the connected
configurations ``c'`` and matrix elements ``O(c, c')``. `connections` is
dispatched on the operator type so NetKet operators can be used directly.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import abc
from dataclasses import dataclass

import numpy as np
from netket.operator import DiscreteOperator
from plum import dispatch

__all__ = [
    "LocalOperator",
    "Identity",
    "TransverseFieldIsing",
    "connections",
]


class LocalOperator(abc.ABC):
    """Abstract base class for operators with host-side connections."""

    n_sites: int

    @abc.abstractmethod
    def connections(self, configuration: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return connected configurations (K, n_sites) and matrix elements (K,)."""


@dataclass(frozen=True)
class Identity(LocalOperator):
    """Identity operator: one diagonal term with matrix element 1."""

    n_sites: int

    def connections(self, configuration: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return configuration[None, :].copy(), np.ones((1,), dtype=np.complex128)


@dataclass(frozen=True)
class TransverseFieldIsing(LocalOperator):
    """H = -J sum_i s_i s_{i+1} - h sum_i X_i on a chain of +/-1 spins."""

    n_sites: int
    J: float = 1.0
    h: float = 1.0
    pbc: bool = True

    def _bonds(self) -> np.ndarray:
        left = np.arange(self.n_sites if self.pbc else self.n_sites - 1)
        return np.stack([left, (left + 1) % self.n_sites], axis=1)

    def connections(self, configuration: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        bonds = self._bonds()
        diag = -self.J * np.sum(configuration[bonds[:, 0]] * configuration[bonds[:, 1]])
        if self.h == 0.0:
            return configuration[None, :].copy(), np.asarray([diag], dtype=np.complex128)
        flipped = np.repeat(configuration[None, :], self.n_sites, axis=0)
        sites = np.arange(self.n_sites)
        flipped[sites, sites] *= -1
        conn = np.concatenate([configuration[None, :], flipped], axis=0)
        mels = np.concatenate([[diag], np.full((self.n_sites,), -self.h)])
        return conn, mels.astype(np.complex128)


@dispatch
def connections(operator: LocalOperator, configuration) -> tuple[np.ndarray, np.ndarray]:
    """Connected configurations and matrix elements of ``operator`` at ``configuration``."""
    return operator.connections(np.asarray(configuration))


@dispatch
def connections(operator: DiscreteOperator, configuration) -> tuple[np.ndarray, np.ndarray]:
    conn, mels = operator.get_conn(np.asarray(configuration))
    return np.asarray(conn), np.asarray(mels)


@dispatch
def connections(operator: object, configuration) -> tuple[np.ndarray, np.ndarray]:
    method = getattr(operator, "connections", None)
    if method is None:
        raise TypeError(f"Unsupported operator type: {type(operator)!r}")
    conn, mels = method(np.asarray(configuration))
    return np.asarray(conn), np.asarray(mels)
