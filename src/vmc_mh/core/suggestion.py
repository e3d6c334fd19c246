"""Staged single-site moves shared by the flipper and the model capability."""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

from dataclasses import dataclass

import jax
import jax.numpy as jnp

__all__ = [
    "Suggestion",
    "apply_suggestion",
]


@jax.tree_util.register_pytree_node_class
@dataclass(frozen=True)
class Suggestion:
    """Per-chain proposed change: chain ``i`` sets ``sites[i]`` to ``values[i]``."""

    sites: jax.Array
    values: jax.Array

    def __len__(self) -> int:
        return int(self.sites.shape[0])

    def at(self, chain: int) -> tuple[int, float]:
        return int(self.sites[chain]), float(self.values[chain])

    def tree_flatten(self):
        return (self.sites, self.values), None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        del aux_data
        sites, values = children
        return cls(sites=sites, values=values)


@jax.jit
def apply_suggestion(batch: jax.Array, suggestion: Suggestion) -> jax.Array:
    """Return ``batch`` with each row's staged site replaced by its value."""
    rows = jnp.arange(batch.shape[0])
    values = suggestion.values.astype(batch.dtype)
    return batch.at[rows, suggestion.sites].set(values)
