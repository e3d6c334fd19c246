"""Model capability checks: fast updates and log-derivatives."""
from __future__ import annotations

import unittest

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import jax.numpy as jnp
import numpy as np
from flax import nnx
from jax.flatten_util import ravel_pytree
from netket.nn import activation

from vmc_mh.core import (
    Suggestion,
    apply_suggestion,
    jacobian_log_derivative,
    log_amplitude,
    log_amplitude_delta,
    log_derivative,
)
from vmc_mh.models import MPS, RBM
from vmc_mh.models import rbm as rbm_module


def _random_batch(n_chains: int, n_sites: int, seed: int, local_states=(-1.0, 1.0)):
    rng = np.random.default_rng(seed)
    batch = jnp.asarray(rng.choice(local_states, size=(n_chains, n_sites)))
    sites = jnp.asarray(rng.integers(0, n_sites, size=n_chains), dtype=jnp.int32)
    current = np.asarray(batch)[np.arange(n_chains), np.asarray(sites)]
    values = jnp.asarray(
        [rng.choice([s for s in local_states if s != c]) for c in current]
    )
    return batch, Suggestion(sites=sites, values=values)


class ModelCapabilityTest(unittest.TestCase):
    N_SITES = 7
    CHAINS = 11

    def test_rbm_delta_matches_full_evaluation(self) -> None:
        for dtype in [jnp.complex128, jnp.float64]:
            with self.subTest(dtype=dtype):
                model = RBM(self.N_SITES, alpha=2, rngs=nnx.Rngs(0), dtype=dtype, param_scale=0.4)
                batch, suggestion = _random_batch(self.CHAINS, self.N_SITES, 1)
                delta = log_amplitude_delta(model, batch, suggestion)
                proposed = apply_suggestion(batch, suggestion)
                expected = log_amplitude(model, proposed) - log_amplitude(model, batch)
                np.testing.assert_allclose(np.asarray(delta), np.asarray(expected), atol=1e-12)

    def test_generic_delta_for_mps(self) -> None:
        local_states = (-1.0, 0.0, 1.0)
        model = MPS(rngs=nnx.Rngs(0), n_sites=self.N_SITES, bond_dim=3, local_states=local_states)
        batch, suggestion = _random_batch(self.CHAINS, self.N_SITES, 2, local_states)
        delta = log_amplitude_delta(model, batch, suggestion)
        proposed = np.asarray(batch).copy()
        proposed[np.arange(self.CHAINS), np.asarray(suggestion.sites)] = np.asarray(suggestion.values)
        ratio = jnp.exp(log_amplitude(model, jnp.asarray(proposed)) - log_amplitude(model, batch))
        np.testing.assert_allclose(np.exp(np.asarray(delta)), np.asarray(ratio), rtol=1e-10)

    def test_rbm_analytic_derivative_matches_jacobian(self) -> None:
        for dtype in [jnp.complex128, jnp.float64]:
            with self.subTest(dtype=dtype):
                model = RBM(self.N_SITES, alpha=2, rngs=nnx.Rngs(3), dtype=dtype)
                batch, _ = _random_batch(self.CHAINS, self.N_SITES, 3)
                analytic = log_derivative(model, batch)
                autodiff = jacobian_log_derivative(model, batch)
                self.assertEqual(analytic.shape, (self.CHAINS, model.n_parameters))
                np.testing.assert_allclose(
                    np.asarray(analytic), np.asarray(autodiff), atol=1e-10
                )

    def test_mps_derivative_matches_finite_difference(self) -> None:
        model = MPS(rngs=nnx.Rngs(4), n_sites=4, bond_dim=2)
        batch, _ = _random_batch(5, 4, 4)
        jac = log_derivative(model, batch)
        graphdef, params, rest = nnx.split(model, nnx.Param, ...)
        flat, unravel = ravel_pytree(nnx.to_pure_dict(params))
        rest = nnx.to_pure_dict(rest)
        self.assertEqual(jac.shape, (5, flat.shape[0]))

        eps = 1e-7
        base = log_amplitude(model, batch)
        for k in [0, 3, flat.shape[0] - 1]:
            with self.subTest(param=k):
                shifted = nnx.merge(graphdef, unravel(flat.at[k].add(eps)), rest)
                fd = (log_amplitude(shifted, batch) - base) / eps
                np.testing.assert_allclose(np.asarray(jac[:, k]), np.asarray(fd), atol=1e-5)

    def test_object_without_derivative_rejected(self) -> None:
        class Plain:
            n_sites = 3

            def __call__(self, x):
                return jnp.zeros(x.shape[:-1], dtype=jnp.complex128)

        with self.assertRaises(TypeError):
            log_derivative(Plain(), jnp.ones((2, 3)))

    def test_rbm_single_sample_call(self) -> None:
        model = RBM(self.N_SITES, rngs=nnx.Rngs(5))
        batch, _ = _random_batch(3, self.N_SITES, 5)
        single = jnp.stack([model(x) for x in batch])
        np.testing.assert_allclose(np.asarray(single), np.asarray(model(batch)), atol=1e-12)

    def test_rbm_uses_non_deprecated_log_cosh(self) -> None:
        self.assertIs(rbm_module.log_cosh, activation.log_cosh)


if __name__ == "__main__":
    unittest.main()
