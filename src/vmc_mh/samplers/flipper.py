"""Single-site proposal generator for batched Metropolis chains."""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import logging
from typing import Sequence

import jax
import jax.numpy as jnp

from vmc_mh.core.suggestion import Suggestion, apply_suggestion
from vmc_mh.errors import ConfigurationError
from vmc_mh.rng import RandomSource
from vmc_mh.utils.utils import check_local_states, states_to_indices

__all__ = ["Flipper"]

logger = logging.getLogger(__name__)


@jax.jit
def _commit(state: jax.Array, suggestion: Suggestion, accept: jax.Array) -> jax.Array:
    proposed = apply_suggestion(state, suggestion)
    return jnp.where(accept[:, None], proposed, state)


@jax.jit
def _exclusive_values(
    local_states: jax.Array,
    state: jax.Array,
    sites: jax.Array,
    draws: jax.Array,
) -> jax.Array:
    """Map draws in [0, K-1) onto local states, skipping each chain's current value."""
    current = state[jnp.arange(state.shape[0]), sites]
    current_idx = states_to_indices(current, local_states)
    idx = draws + (draws >= current_idx).astype(draws.dtype)
    return local_states[idx]


class Flipper:
    """Suggests which site to change next, and to which value, for every chain.

    Owns the ``(batch_size, n_sites)`` state of all chains. A staged
    suggestion never proposes the value a site already holds.
    """

    def __init__(
        self,
        shape: tuple[int, int],
        local_states: Sequence[float],
        random_source: RandomSource,
    ):
        """Create the flipper and randomize its state.

        Args:
            shape: ``(batch_size, n_sites)``.
            local_states: Values any single site may hold.
            random_source: Source of all random draws.
        """
        batch_size, n_sites = (int(n) for n in shape)
        if batch_size <= 0 or n_sites <= 0:
            raise ConfigurationError(
                f"batch_size and n_sites must be positive, got {shape}."
            )
        self._local_states = check_local_states(local_states)
        self._shape = (batch_size, n_sites)
        self._random_source = random_source
        self._state = jnp.zeros(self._shape, dtype=jnp.float64)
        self._sites = jnp.zeros((batch_size,), dtype=jnp.int32)
        self._values = jnp.zeros((batch_size,), dtype=jnp.float64)
        self.reset()

    @property
    def batch_size(self) -> int:
        return self._shape[0]

    @property
    def system_size(self) -> int:
        return self._shape[1]

    @property
    def local_states(self) -> jax.Array:
        return self._local_states

    @property
    def random_source(self) -> RandomSource:
        return self._random_source

    @property
    def current(self) -> jax.Array:
        """Current state, one row per chain."""
        return self._state

    def reset(self) -> None:
        """Draw every site of every chain uniformly from the local states."""
        n_states = self._local_states.shape[0]
        draws = jnp.asarray(
            self._random_source.uniform_int(n_states, self.batch_size * self.system_size),
            dtype=jnp.int32,
        )
        self._state = self._local_states[draws.reshape(self._shape)]
        self._random_sites()
        self._random_values()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Flipper reset: %d chains x %d sites", *self._shape)

    def read(self) -> Suggestion:
        """Return the staged per-chain suggestion."""
        return Suggestion(sites=self._sites, values=self._values)

    def proposed_batch(self) -> jax.Array:
        """Return a new array holding every chain's state with its suggestion applied."""
        return apply_suggestion(self._state, self.read())

    def advance(self, accept: jax.Array) -> None:
        """Commit accepted suggestions and stage fresh ones for every chain.

        Args:
            accept: Boolean array of length ``batch_size``; ``accept[i]`` means
                chain ``i`` takes its staged suggestion.
        """
        accept = jnp.asarray(accept, dtype=bool)
        if accept.shape != (self.batch_size,):
            raise ConfigurationError(
                f"accept must have shape ({self.batch_size},), got {accept.shape}."
            )
        self._state = _commit(self._state, self.read(), accept)
        self._random_sites()
        self._random_values()

    def _random_sites(self) -> None:
        self._sites = jnp.asarray(
            self._random_source.uniform_int(self.system_size, self.batch_size),
            dtype=jnp.int32,
        )

    def _random_values(self) -> None:
        draws = jnp.asarray(
            self._random_source.uniform_int(
                self._local_states.shape[0] - 1, self.batch_size
            ),
            dtype=jnp.int32,
        )
        self._values = _exclusive_values(
            self._local_states, self._state, self._sites, draws
        )
