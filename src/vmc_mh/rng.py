"""Injectable pseudo-random sources for the Metropolis sampler.

Every draw is a batched vector whose entries are consumed in chain-index
order. A sampler step draws the acceptance randoms first, then the new
sites, then the new values; a reset draws the state, then sites, then
values.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import abc
import numbers

import jax
import jax.numpy as jnp

__all__ = [
    "RandomSource",
    "JaxRandomSource",
]


class RandomSource(abc.ABC):
    """Abstract base class for seedable random sources."""

    @abc.abstractmethod
    def uniform_int(self, n: int, size: int) -> jax.Array:
        """Return ``size`` integers drawn uniformly from ``[0, n)``."""

    @abc.abstractmethod
    def uniform_real(self, size: int) -> jax.Array:
        """Return ``size`` floats drawn uniformly from ``[0, 1)``."""


class JaxRandomSource(RandomSource):
    """Random source backed by a JAX PRNG key, split once per draw."""

    def __init__(self, seed: int | jax.Array = 0):
        if isinstance(seed, numbers.Integral):
            seed = jax.random.key(int(seed))
        self._key = seed

    @property
    def key(self) -> jax.Array:
        return self._key

    def _next_key(self) -> jax.Array:
        self._key, subkey = jax.random.split(self._key)
        return subkey

    def uniform_int(self, n: int, size: int) -> jax.Array:
        return jax.random.randint(
            self._next_key(), (size,), 0, n, dtype=jnp.int32
        )

    def uniform_real(self, size: int) -> jax.Array:
        return jax.random.uniform(self._next_key(), (size,), dtype=jnp.float64)
