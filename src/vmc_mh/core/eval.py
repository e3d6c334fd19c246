"""Core wavefunction evaluation APIs.

The sampler and estimators only talk to a variational model through
`log_amplitude`, `log_amplitude_delta`, and `log_derivative`. Models with a
faster route register their own methods on the dispatched functions.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import jax
import jax.numpy as jnp
from flax import nnx
from jax.flatten_util import ravel_pytree
from plum import dispatch

from vmc_mh.core.suggestion import Suggestion, apply_suggestion
from vmc_mh.models.rbm import RBM

__all__ = [
    "log_amplitude",
    "log_amplitude_delta",
    "log_derivative",
    "jacobian_log_derivative",
]


def log_amplitude(model, batch: jax.Array) -> jax.Array:
    """Compute log psi for a batch of configurations, shape (batch, n_sites)."""
    return jnp.asarray(model(jnp.asarray(batch)))


@dispatch
def log_amplitude_delta(
    model: RBM,
    batch,
    suggestion: Suggestion,
) -> jax.Array:
    """Single-site RBM update: log psi(modified) - log psi(batch)."""
    return model.log_value_delta(batch, suggestion.sites, suggestion.values)


@dispatch
def log_amplitude_delta(
    model: object,
    batch,
    suggestion: Suggestion,
) -> jax.Array:
    """Generic update by evaluating both the modified and the current batch."""
    batch = jnp.asarray(batch)
    proposed = apply_suggestion(batch, suggestion)
    return log_amplitude(model, proposed) - log_amplitude(model, batch)


def jacobian_log_derivative(model: nnx.Module, batch: jax.Array) -> jax.Array:
    """Per-sample d log psi / d theta for any NNX model via ``jax.jacrev``.

    Columns follow ``ravel_pytree`` over the model's ``nnx.Param`` state.
    Complex parameters use holomorphic differentiation; real parameters get
    d Re(log psi) + 1j * d Im(log psi).
    """
    batch = jnp.asarray(batch)
    graphdef, params, rest = nnx.split(model, nnx.Param, ...)
    rest = nnx.to_pure_dict(rest)
    flat_params, unravel = ravel_pytree(nnx.to_pure_dict(params))

    def log_psi(flat, sample):
        module = nnx.merge(graphdef, unravel(flat), rest)
        return module(sample[None, :])[0]

    if jnp.iscomplexobj(flat_params):
        jac_fun = jax.jacrev(log_psi, holomorphic=True)
        return jax.vmap(jac_fun, in_axes=(None, 0))(flat_params, batch)

    jac_re = jax.jacrev(lambda p, s: jnp.real(log_psi(p, s)))
    jac_im = jax.jacrev(lambda p, s: jnp.imag(log_psi(p, s)))
    re = jax.vmap(jac_re, in_axes=(None, 0))(flat_params, batch)
    im = jax.vmap(jac_im, in_axes=(None, 0))(flat_params, batch)
    return re + 1j * im


@dispatch
def log_derivative(model: RBM, batch) -> jax.Array:
    """Analytic RBM log-derivative, same column order as the NNX Jacobian."""
    return model.log_derivative(batch)


@dispatch
def log_derivative(model: nnx.Module, batch) -> jax.Array:
    return jacobian_log_derivative(model, batch)


@dispatch
def log_derivative(model: object, batch) -> jax.Array:
    """Fallback for models that are not NNX modules."""
    method = getattr(model, "log_derivative", None)
    if method is None:
        raise TypeError(
            f"Model {type(model).__name__!r} provides no log_derivative(batch)."
        )
    return jnp.asarray(method(jnp.asarray(batch)))
