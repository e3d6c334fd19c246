"""General-purpose utility functions."""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

from typing import TYPE_CHECKING, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from vmc_mh.errors import ConfigurationError

if TYPE_CHECKING:
    from jax.typing import DTypeLike

__all__ = [
    "check_local_states",
    "random_tensor",
    "spin_to_occupancy",
    "states_to_indices",
]


def check_local_states(local_states: Sequence[float]) -> jax.Array:
    """Validate a local-state set and return it as a sorted float array."""
    states = np.asarray(local_states, dtype=np.float64).reshape(-1)
    if states.size == 0:
        raise ConfigurationError("local_states must not be empty.")
    if np.unique(states).size != states.size:
        raise ConfigurationError(f"local_states contains duplicates: {states.tolist()}")
    if states.size < 2:
        raise ConfigurationError(
            "local_states needs at least two values to propose a change, "
            f"got {states.tolist()}."
        )
    return jnp.asarray(np.sort(states))


def states_to_indices(samples: jax.Array, local_states: jax.Array) -> jax.Array:
    """Map entries of ``samples`` onto indices into sorted ``local_states``."""
    return jnp.searchsorted(local_states, samples).astype(jnp.int32)


def spin_to_occupancy(spins: jax.Array) -> jax.Array:
    """Convert -1/+1 spins into 0/1 occupancy variables."""
    return ((spins + 1) // 2).astype(jnp.int32)


def random_tensor(
    rngs,
    shape: tuple[int, ...],
    dtype: "DTypeLike",
    *,
    scale: float = 1.0,
) -> jax.Array:
    """Create a normally distributed tensor with proper complex dtype handling.

    Args:
        rngs: Flax NNX random key generator.
        shape: Shape of the tensor.
        dtype: Target dtype (can be real or complex).
        scale: Standard deviation of the real and imaginary parts.

    Returns:
        Random tensor with the specified shape and dtype.
    """
    dtype = jnp.dtype(dtype)
    if jnp.issubdtype(dtype, jnp.complexfloating):
        real_dtype = jnp.real(jnp.zeros((), dtype=dtype)).dtype
        complex_unit = jnp.array(1j, dtype=dtype)
        key_re, key_im = rngs.params(), rngs.params()
        return scale * (
            jax.random.normal(key_re, shape, dtype=real_dtype)
            + complex_unit * jax.random.normal(key_im, shape, dtype=real_dtype)
        )
    return scale * jax.random.normal(rngs.params(), shape, dtype=dtype)
