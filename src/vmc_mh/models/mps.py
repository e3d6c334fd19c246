"""Matrix Product State (MPS) model for variational wavefunctions.

The physical dimension equals the number of local states, so the same
model serves spin-1/2 and larger local Hilbert spaces.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

from typing import TYPE_CHECKING, Sequence

import jax
import jax.numpy as jnp
from flax import nnx

from vmc_mh.utils.utils import check_local_states, states_to_indices

if TYPE_CHECKING:
    from jax.typing import DTypeLike

__all__ = ["MPS"]


class MPS(nnx.Module):
    """Open-boundary MPS producing log-psi values.

    tensors: list of site tensors with shape (phys_dim, D_left, D_right).
    The boundary bond dimensions are fixed to 1 on the first/last site.

    Attributes:
        n_sites: Number of lattice sites.
        bond_dim: Virtual bond dimension.
        local_states: Sorted values a single site may take.
        phys_dim: Physical dimension, ``len(local_states)``.
        dtype: Data type for tensors (default complex128).
    """

    def __init__(
        self,
        *,
        rngs: nnx.Rngs,
        n_sites: int,
        bond_dim: int,
        local_states: Sequence[float] = (-1.0, 1.0),
        dtype: "DTypeLike" = jnp.complex128,
    ):
        self.n_sites = n_sites
        self.bond_dim = bond_dim
        self.local_states = tuple(float(s) for s in check_local_states(local_states))
        self.phys_dim = len(self.local_states)
        self.dtype = jnp.dtype(dtype)

        is_complex = jnp.issubdtype(self.dtype, jnp.complexfloating)
        if is_complex:
            real_dtype = jnp.real(jnp.zeros((), dtype=self.dtype)).dtype
            complex_unit = jnp.array(1j, dtype=self.dtype)
        else:
            real_dtype = self.dtype
            complex_unit = None

        tensors = []
        for site in range(n_sites):
            left_dim, right_dim = self.site_dims(site, n_sites, bond_dim)
            shape_t = (self.phys_dim, left_dim, right_dim)
            if is_complex:
                key_re, key_im = rngs.params(), rngs.params()
                tensor_val = (
                    1/2 * jax.random.uniform(key_re, shape_t, dtype=real_dtype)
                    + 1/2 * complex_unit
                    * jax.random.uniform(key_im, shape_t, dtype=real_dtype)
                )
            else:
                tensor_val = jax.random.uniform(
                    rngs.params(), shape_t, dtype=real_dtype
                )
            tensors.append(nnx.Param(tensor_val))
        self.tensors = nnx.List(tensors)

    @staticmethod
    def site_dims(site: int, n_sites: int, bond_dim: int) -> tuple[int, int]:
        left_dim = 1 if site == 0 else bond_dim
        right_dim = 1 if site == n_sites - 1 else bond_dim
        return left_dim, right_dim

    @staticmethod
    def _batch_amplitudes(tensors, indices: jax.Array) -> jax.Array:
        """Contract the chain for a batch of local-state indices (batch, n_sites).

        Uses a Python loop because boundary tensors have different shapes.
        """
        state = jnp.ones((indices.shape[0], 1), dtype=tensors[0].dtype)
        for site, tensor in enumerate(tensors):
            mats = tensor[indices[:, site]]  # (batch, D_left, D_right)
            state = jnp.einsum("bi,bij->bj", state, mats)
        return state.squeeze(-1)

    def __call__(self, x: jax.Array) -> jax.Array:
        """Compute log-amplitudes for configuration(s) of shape (n_sites,) or (batch, n_sites)."""
        x = jnp.asarray(x)
        samples = x if x.ndim == 2 else x[None, :]
        indices = states_to_indices(samples, jnp.asarray(self.local_states))
        tensors = [t.value for t in self.tensors]
        log_amps = jnp.log(self._batch_amplitudes(tensors, indices))
        return log_amps if x.ndim == 2 else log_amps[0]
