"""Unit tests for the single-site proposal generator."""
from __future__ import annotations

import unittest

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import jax.numpy as jnp
import numpy as np

from vmc_mh.errors import ConfigurationError
from vmc_mh.rng import JaxRandomSource, RandomSource
from vmc_mh.samplers import Flipper


class RecordingSource(RandomSource):
    """Numpy-backed source that records every draw request."""

    def __init__(self, seed: int = 0):
        self.calls = []
        self._rng = np.random.default_rng(seed)

    def uniform_int(self, n, size):
        self.calls.append(("int", n, size))
        return self._rng.integers(0, n, size=size)

    def uniform_real(self, size):
        self.calls.append(("real", size))
        return self._rng.random(size)


class FlipperTest(unittest.TestCase):
    LOCAL_STATES = (-1.0, 0.0, 1.0)
    SHAPE = (16, 7)

    def _make(self, seed: int = 0, local_states=LOCAL_STATES) -> Flipper:
        return Flipper(self.SHAPE, local_states, JaxRandomSource(seed))

    def _assert_valid(self, flipper: Flipper) -> None:
        state = np.asarray(flipper.current)
        self.assertEqual(state.shape, self.SHAPE)
        self.assertTrue(np.all(np.isin(state, np.asarray(flipper.local_states))))

    def test_reset_draws_from_local_states(self) -> None:
        for seed in [0, 1, 2]:
            with self.subTest(seed=seed):
                flipper = self._make(seed)
                self._assert_valid(flipper)
                flipper.reset()
                self._assert_valid(flipper)

    def test_reset_uses_every_local_state(self) -> None:
        flipper = self._make()
        values = set(np.asarray(flipper.current).ravel().tolist())
        self.assertEqual(values, set(self.LOCAL_STATES))

    def test_suggestion_never_repeats_current_value(self) -> None:
        flipper = self._make(3)
        rng = np.random.default_rng(0)
        for _ in range(200):
            suggestion = flipper.read()
            state = np.asarray(flipper.current)
            sites = np.asarray(suggestion.sites)
            values = np.asarray(suggestion.values)
            current = state[np.arange(self.SHAPE[0]), sites]
            self.assertTrue(np.all(values != current))
            self.assertTrue(np.all((sites >= 0) & (sites < self.SHAPE[1])))
            self.assertTrue(np.all(np.isin(values, self.LOCAL_STATES)))
            flipper.advance(rng.random(self.SHAPE[0]) < 0.5)
            self._assert_valid(flipper)

    def test_read_and_proposed_batch_do_not_mutate(self) -> None:
        flipper = self._make(4)
        before = np.asarray(flipper.current).copy()
        suggestion = flipper.read()
        first = np.asarray(flipper.proposed_batch())
        second = np.asarray(flipper.proposed_batch())
        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(np.asarray(flipper.current), before)
        np.testing.assert_array_equal(
            np.asarray(flipper.read().sites), np.asarray(suggestion.sites)
        )
        diff = first != before
        self.assertTrue(np.all(diff.sum(axis=1) == 1))
        site, value = suggestion.at(0)
        self.assertEqual(first[0, site], value)
        self.assertEqual(len(suggestion), self.SHAPE[0])

    def test_advance_reject_all_keeps_state(self) -> None:
        flipper = self._make(5)
        before = np.asarray(flipper.current).copy()
        flipper.advance(jnp.zeros((self.SHAPE[0],), dtype=bool))
        np.testing.assert_array_equal(np.asarray(flipper.current), before)

    def test_advance_accept_all_commits_proposal(self) -> None:
        flipper = self._make(6)
        before = np.asarray(flipper.current).copy()
        proposed = np.asarray(flipper.proposed_batch())
        flipper.advance(jnp.ones((self.SHAPE[0],), dtype=bool))
        after = np.asarray(flipper.current)
        np.testing.assert_array_equal(after, proposed)
        self.assertTrue(np.all((after != before).sum(axis=1) == 1))

    def test_advance_mixed_acceptance(self) -> None:
        flipper = self._make(7)
        before = np.asarray(flipper.current).copy()
        proposed = np.asarray(flipper.proposed_batch())
        accept = np.arange(self.SHAPE[0]) % 2 == 0
        flipper.advance(accept)
        after = np.asarray(flipper.current)
        np.testing.assert_array_equal(after[accept], proposed[accept])
        np.testing.assert_array_equal(after[~accept], before[~accept])

    def test_draw_order(self) -> None:
        batch_size, n_sites = self.SHAPE
        n_states = len(self.LOCAL_STATES)
        source = RecordingSource()
        flipper = Flipper(self.SHAPE, self.LOCAL_STATES, source)
        self.assertEqual(
            source.calls,
            [
                ("int", n_states, batch_size * n_sites),
                ("int", n_sites, batch_size),
                ("int", n_states - 1, batch_size),
            ],
        )
        source.calls.clear()
        flipper.advance(np.zeros((batch_size,), dtype=bool))
        self.assertEqual(
            source.calls,
            [("int", n_sites, batch_size), ("int", n_states - 1, batch_size)],
        )

    def test_same_seed_same_state(self) -> None:
        first, second = self._make(11), self._make(11)
        for _ in range(5):
            accept = np.ones((self.SHAPE[0],), dtype=bool)
            first.advance(accept)
            second.advance(accept)
        np.testing.assert_array_equal(np.asarray(first.current), np.asarray(second.current))

    def test_invalid_construction(self) -> None:
        cases = [
            ((0, 4), self.LOCAL_STATES),
            ((4, 0), self.LOCAL_STATES),
            ((-1, 4), self.LOCAL_STATES),
            ((4, 4), ()),
            ((4, 4), (1.0,)),
            ((4, 4), (1.0, 1.0)),
        ]
        for shape, local_states in cases:
            with self.subTest(shape=shape, local_states=local_states):
                with self.assertRaises(ConfigurationError):
                    Flipper(shape, local_states, JaxRandomSource(0))

    def test_accept_shape_checked(self) -> None:
        flipper = self._make()
        with self.assertRaises(ConfigurationError):
            flipper.advance(np.ones((self.SHAPE[0] + 1,), dtype=bool))


if __name__ == "__main__":
    unittest.main()
