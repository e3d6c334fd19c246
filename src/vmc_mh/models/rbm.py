"""Restricted Boltzmann machine ansatz for spin-1/2 systems.

The RBM is the reference model for the local Metropolis sampler: besides
the log-amplitude it provides a single-site update and an analytic
log-derivative, so the sampler never needs full recomputation or
autodiff for it.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
from flax import nnx
from netket.nn.activation import log_cosh

from vmc_mh.utils.utils import random_tensor

if TYPE_CHECKING:
    from jax.typing import DTypeLike

__all__ = ["RBM"]


@jax.jit
def _rbm_log_value(
    visible_bias: jax.Array,
    hidden_bias: jax.Array,
    weights: jax.Array,
    batch: jax.Array,
) -> jax.Array:
    x = batch.astype(weights.dtype)
    theta = hidden_bias + x @ weights
    return x @ visible_bias + jnp.sum(log_cosh(theta), axis=-1)


@jax.jit
def _rbm_log_value_delta(
    visible_bias: jax.Array,
    hidden_bias: jax.Array,
    weights: jax.Array,
    batch: jax.Array,
    sites: jax.Array,
    values: jax.Array,
) -> jax.Array:
    x = batch.astype(weights.dtype)
    rows = jnp.arange(x.shape[0])
    change = values.astype(weights.dtype) - x[rows, sites]
    theta = hidden_bias + x @ weights
    theta_new = theta + change[:, None] * weights[sites]
    return change * visible_bias[sites] + jnp.sum(
        log_cosh(theta_new) - log_cosh(theta), axis=-1
    )


@jax.jit
def _rbm_log_derivative(
    hidden_bias: jax.Array,
    weights: jax.Array,
    batch: jax.Array,
) -> jax.Array:
    # Column order follows ravel_pytree over the parameter dict:
    # hidden_bias, visible_bias, weights (row-major).
    x = batch.astype(weights.dtype)
    tanh = jnp.tanh(hidden_bias + x @ weights)
    weights_grad = (x[:, :, None] * tanh[:, None, :]).reshape(x.shape[0], -1)
    return jnp.concatenate([tanh, x, weights_grad], axis=1)


class RBM(nnx.Module):
    """RBM producing log-psi values for +/-1 spin configurations.

    log psi(s) = sum_i a_i s_i + sum_j log cosh(b_j + sum_i s_i W_ij)

    Attributes:
        n_sites: Number of visible units (lattice sites).
        n_hidden: Number of hidden units, ``alpha * n_sites``.
        local_states: Values a single site may take.
        dtype: Parameter dtype (default complex128).
    """

    def __init__(
        self,
        n_sites: int,
        alpha: int = 1,
        *,
        rngs: nnx.Rngs,
        dtype: "DTypeLike" = jnp.complex128,
        param_scale: float = 0.1,
    ):
        """Initialize RBM parameters with small Gaussian noise.

        Args:
            n_sites: Number of visible units.
            alpha: Hidden-unit density.
            rngs: Flax NNX random key generator.
            dtype: Data type for parameters (default: complex128).
            param_scale: Standard deviation of the initial parameters.
        """
        self.n_sites = n_sites
        self.n_hidden = int(alpha * n_sites)
        self.local_states = (-1.0, 1.0)
        self.dtype = jnp.dtype(dtype)

        self.hidden_bias = nnx.Param(
            random_tensor(rngs, (self.n_hidden,), self.dtype, scale=param_scale)
        )
        self.visible_bias = nnx.Param(
            random_tensor(rngs, (n_sites,), self.dtype, scale=param_scale)
        )
        self.weights = nnx.Param(
            random_tensor(
                rngs, (n_sites, self.n_hidden), self.dtype, scale=param_scale
            )
        )

    @property
    def n_parameters(self) -> int:
        return self.n_hidden + self.n_sites + self.n_sites * self.n_hidden

    def __call__(self, x: jax.Array) -> jax.Array:
        """Compute log-amplitudes.

        Args:
            x: Spin configuration(s). Shape (n_sites,) for single sample,
               or (batch, n_sites) for batch.

        Returns:
            Log-amplitude(s). Scalar for single sample, shape (batch,) for batch.
        """
        x = jnp.asarray(x)
        samples = x if x.ndim == 2 else x[None, :]
        log_amps = _rbm_log_value(
            self.visible_bias.value,
            self.hidden_bias.value,
            self.weights.value,
            samples,
        )
        return log_amps if x.ndim == 2 else log_amps[0]

    def log_value_delta(
        self, batch: jax.Array, sites: jax.Array, values: jax.Array
    ) -> jax.Array:
        """Change of log psi when each row's ``sites[i]`` is set to ``values[i]``."""
        return _rbm_log_value_delta(
            self.visible_bias.value,
            self.hidden_bias.value,
            self.weights.value,
            jnp.asarray(batch),
            sites,
            values,
        )

    def log_derivative(self, batch: jax.Array) -> jax.Array:
        """Per-sample d log psi / d theta, shape (batch, n_parameters)."""
        return _rbm_log_derivative(
            self.hidden_bias.value, self.weights.value, jnp.asarray(batch)
        )
