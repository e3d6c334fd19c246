"""Variational Monte Carlo utility functions.

This module provides helper functions for VMC calculations, including
sample manipulation, chunked evaluation and finiteness checks.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

from collections.abc import Callable

import jax
import jax.numpy as jnp

from vmc_mh.errors import NumericFailure

__all__ = [
    "flatten_samples",
    "batched_eval",
    "ensure_finite",
]


def flatten_samples(samples: jax.Array) -> jax.Array:
    """Flatten all leading dimensions, keep the site dimension intact."""
    samples = jnp.asarray(samples)
    return samples.reshape(-1, samples.shape[-1])


def batched_eval(
    eval_fn: Callable[[jax.Array], jax.Array],
    samples: jax.Array,
    *,
    batch_size: int,
) -> jax.Array:
    """Evaluate eval_fn in fixed-size chunks of batch_size using jax.lax.scan.

    The last chunk is padded with copies of the final sample; padded outputs
    are dropped.
    """
    n_samples = int(samples.shape[0])
    trailing_shape = samples.shape[1:]
    pad = (-n_samples) % batch_size
    if pad:
        padding = jnp.repeat(samples[-1:], pad, axis=0)
        samples = jnp.concatenate([samples, padding], axis=0)
    num_batches = samples.shape[0] // batch_size
    batches = samples.reshape(num_batches, batch_size, *trailing_shape)

    def scan_fn(_, batch):
        return None, eval_fn(batch)

    _, output_batches = jax.lax.scan(scan_fn, None, batches)
    output_shape = output_batches.shape
    outputs = output_batches.reshape(
        output_shape[0] * output_shape[1], *output_shape[2:]
    )[:n_samples]
    return outputs


def ensure_finite(values: jax.Array, what: str) -> jax.Array:
    """Raise NumericFailure on NaN entries or on a real part of +inf.

    A real part of -inf is a log-amplitude of zero and passes.
    """
    real = jnp.real(values)
    bad = jnp.isnan(values) | jnp.isposinf(real) | jnp.isinf(jnp.imag(values))
    n_bad = int(jnp.sum(bad))
    if n_bad:
        raise NumericFailure(
            f"{what}: {n_bad} of {values.size} entries are not finite."
        )
    return values
