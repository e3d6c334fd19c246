"""Local operator values, expectation statistics and covariance gradients."""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import logging

import jax
import jax.numpy as jnp
import numpy as np
from netket import stats as nkstats

from vmc_mh.core.eval import log_amplitude
from vmc_mh.errors import ConfigurationError
from vmc_mh.operators.local_operators import connections
from vmc_mh.utils.vmc_utils import batched_eval, ensure_finite, flatten_samples

__all__ = [
    "local_values",
    "gradient",
    "expectation",
]

logger = logging.getLogger(__name__)


def _gather_connections(operator, samples: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    conn_parts, mel_parts, owner_parts = [], [], []
    for index, sample in enumerate(samples):
        conn, mels = connections(operator, sample)
        conn = np.asarray(conn, dtype=samples.dtype).reshape(-1, samples.shape[-1])
        mels = np.asarray(mels).reshape(-1)
        conn_parts.append(conn)
        mel_parts.append(mels)
        owner_parts.append(np.full((mels.shape[0],), index, dtype=np.int32))
    return (
        np.concatenate(conn_parts, axis=0),
        np.concatenate(mel_parts).astype(np.complex128),
        np.concatenate(owner_parts),
    )


def local_values(
    samples: jax.Array,
    log_values: jax.Array,
    model,
    operator,
    batch_size: int,
) -> jax.Array:
    """Compute local estimators E(c) = sum_c' O(c, c') psi(c') / psi(c).

    Args:
        samples: Configurations with shape (n_samples, n_sites).
        log_values: log psi of ``samples``, shape (n_samples,).
        model: Variational model, evaluated with `log_amplitude`.
        operator: Anything `connections` accepts.
        batch_size: Number of connected configurations evaluated at once.

    Returns:
        Local values with shape (n_samples,).
    """
    if batch_size <= 0:
        raise ConfigurationError(f"batch_size must be positive, got {batch_size}.")
    samples = np.asarray(flatten_samples(samples))
    log_values = jnp.asarray(log_values, dtype=jnp.complex128).reshape(-1)
    n_samples = samples.shape[0]
    if log_values.shape[0] != n_samples:
        raise ConfigurationError(
            f"Got {n_samples} samples but {log_values.shape[0]} log-amplitudes."
        )

    conn, mels, owners = _gather_connections(operator, samples)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "local_values: %d samples, %d connected configurations",
            n_samples,
            conn.shape[0],
        )
    log_conn = batched_eval(
        lambda batch: log_amplitude(model, batch),
        jnp.asarray(conn),
        batch_size=batch_size,
    ).astype(jnp.complex128)
    owners = jnp.asarray(owners)
    terms = jnp.asarray(mels) * jnp.exp(log_conn - log_values[owners])
    values = jax.ops.segment_sum(terms, owners, num_segments=n_samples)
    return ensure_finite(values, "local values")


@jax.jit
def _covariance_gradient(values: jax.Array, log_derivatives: jax.Array) -> jax.Array:
    # cov(O, E) is shift invariant; shifting E by its first entry keeps a
    # constant E exactly zero.
    centered_o = log_derivatives - jnp.mean(log_derivatives, axis=0)
    shifted_e = values - values[0]
    return jnp.mean(jnp.conj(centered_o) * shifted_e[:, None], axis=0)


def gradient(local_values: jax.Array, log_derivatives: jax.Array) -> jax.Array:
    """Covariance gradient mean(conj(O_k) E) - conj(mean(O_k)) mean(E).

    Args:
        local_values: Local values E, shape (n_samples,).
        log_derivatives: d log psi / d theta, shape (n_samples, n_params).

    Returns:
        Gradient with shape (n_params,).
    """
    values = jnp.asarray(local_values, dtype=jnp.complex128).reshape(-1)
    log_derivatives = jnp.asarray(log_derivatives, dtype=jnp.complex128)
    if log_derivatives.ndim != 2 or log_derivatives.shape[0] != values.shape[0]:
        raise ConfigurationError(
            f"log_derivatives must have shape ({values.shape[0]}, n_params), "
            f"got {log_derivatives.shape}."
        )
    return _covariance_gradient(values, log_derivatives)


def expectation(local_values: jax.Array, n_chains: int | None = None) -> nkstats.Stats:
    """Monte Carlo statistics (mean, error, variance, tau) of local values.

    With ``n_chains`` the flat step-major sample set is reshaped to
    (n_chains, n_steps) so autocorrelation is estimated per chain.
    """
    values = jnp.asarray(local_values).reshape(-1)
    if n_chains is not None:
        if values.shape[0] % n_chains:
            raise ConfigurationError(
                f"{values.shape[0]} local values do not split into {n_chains} chains."
            )
        values = values.reshape(-1, n_chains).T
    return nkstats.statistics(values)
