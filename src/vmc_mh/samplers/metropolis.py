"""Batched local Metropolis-Hastings sampler and sample collection.

`MetropolisLocal` advances a batch of independent chains with single-site
moves proposed by `Flipper`; `compute_samples` runs it over a `StepsRange`
schedule (burn-in and thinning) and returns the recorded configurations,
log-amplitudes and optionally per-sample log-derivatives.
"""
from __future__ import annotations

from vmc_mh import config  # noqa: F401 - JAX config must be imported first

import logging
from dataclasses import dataclass
from typing import Any, NamedTuple, Sequence

import jax
import jax.numpy as jnp
from tqdm.auto import tqdm

from vmc_mh.core.eval import log_amplitude, log_amplitude_delta, log_derivative
from vmc_mh.errors import ConfigurationError
from vmc_mh.rng import JaxRandomSource, RandomSource
from vmc_mh.samplers.flipper import Flipper
from vmc_mh.utils.vmc_utils import ensure_finite

__all__ = [
    "MetropolisLocal",
    "Samples",
    "StepsRange",
    "compute_samples",
]

logger = logging.getLogger(__name__)

_SPIN_STATES = (-1.0, 1.0)


@jax.jit
def _metropolis_update(
    log_values: jax.Array,
    delta: jax.Array,
    randoms: jax.Array,
) -> tuple[jax.Array, jax.Array]:
    """Accept with probability min(1, |psi'/psi|^2); accepted chains take log psi'."""
    prob = jnp.minimum(1.0, jnp.exp(2.0 * jnp.real(delta)))
    accept = randoms < prob
    return accept, jnp.where(accept, log_values + delta, log_values)


class MetropolisLocal:
    """Local Metropolis sampler driving ``batch_size`` chains in lockstep."""

    def __init__(
        self,
        model: Any,
        batch_size: int,
        *,
        local_states: Sequence[float] | None = None,
        random_source: RandomSource | None = None,
        seed: int = 0,
    ):
        """Create the sampler and draw random initial chains.

        Args:
            model: Variational model exposing ``n_sites``; evaluated through
                `vmc_mh.core.eval`.
            batch_size: Number of independent chains.
            local_states: Values a site may hold. Defaults to
                ``model.local_states`` or +/-1 spins.
            random_source: Source of all random draws. Defaults to a
                `JaxRandomSource` seeded with ``seed``.
            seed: Seed used when ``random_source`` is not given.
        """
        n_sites = getattr(model, "n_sites", None)
        if n_sites is None or int(n_sites) <= 0:
            raise ConfigurationError(
                f"Model {type(model).__name__!r} must expose a positive n_sites."
            )
        model_batch_size = getattr(model, "batch_size", None)
        if model_batch_size is not None and int(model_batch_size) != int(batch_size):
            raise ConfigurationError(
                f"Sampler batch_size={batch_size} does not match "
                f"model batch_size={model_batch_size}."
            )
        if local_states is None:
            local_states = getattr(model, "local_states", _SPIN_STATES)
        if random_source is None:
            random_source = JaxRandomSource(seed)

        self._model = model
        self._random_source = random_source
        self._flipper = Flipper((batch_size, int(n_sites)), local_states, random_source)
        self._log_values = self._evaluate_current()
        self._accept = jnp.zeros((self.batch_size,), dtype=bool)
        self._n_accepted = jnp.zeros((), dtype=jnp.int64)
        self._n_steps = 0

    @property
    def batch_size(self) -> int:
        return self._flipper.batch_size

    @property
    def system_size(self) -> int:
        return self._flipper.system_size

    @property
    def model(self) -> Any:
        return self._model

    @property
    def flipper(self) -> Flipper:
        return self._flipper

    @property
    def last_accept(self) -> jax.Array:
        """Acceptance mask of the most recent step."""
        return self._accept

    @property
    def n_proposed(self) -> int:
        return self._n_steps * self.batch_size

    @property
    def n_accepted(self) -> int:
        return int(self._n_accepted)

    @property
    def acceptance(self) -> float:
        """Fraction of proposals accepted since the last reset."""
        if self._n_steps == 0:
            return float("nan")
        return self.n_accepted / self.n_proposed

    def _evaluate_current(self) -> jax.Array:
        log_values = jnp.asarray(
            log_amplitude(self._model, self._flipper.current), dtype=jnp.complex128
        )
        if log_values.shape != (self.batch_size,):
            raise ConfigurationError(
                f"Model returned log-amplitudes of shape {log_values.shape}, "
                f"expected ({self.batch_size},)."
            )
        return ensure_finite(log_values, "log-amplitudes after reset")

    def reset(self) -> None:
        """Randomize all chains and recompute their log-amplitudes."""
        self._flipper.reset()
        self._log_values = self._evaluate_current()
        self._accept = jnp.zeros((self.batch_size,), dtype=bool)
        self._n_accepted = jnp.zeros((), dtype=jnp.int64)
        self._n_steps = 0

    def next(self) -> None:
        """Make one Metropolis step on every chain."""
        suggestion = self._flipper.read()
        delta = jnp.asarray(
            log_amplitude_delta(self._model, self._flipper.current, suggestion),
            dtype=jnp.complex128,
        )
        ensure_finite(delta, "proposed log-amplitude changes")
        randoms = jnp.asarray(
            self._random_source.uniform_real(self.batch_size), dtype=jnp.float64
        )
        self._accept, self._log_values = _metropolis_update(
            self._log_values, delta, randoms
        )
        self._flipper.advance(self._accept)
        self._n_accepted = self._n_accepted + jnp.sum(self._accept)
        self._n_steps += 1

    def read(self) -> tuple[jax.Array, jax.Array]:
        """Return the current configurations and their log-amplitudes."""
        return self._flipper.current, self._log_values


@dataclass(frozen=True)
class StepsRange:
    """Sampling schedule: record step ``i`` if ``start <= i < end`` and
    ``(i - start) % step == 0``.

    ``start`` sets the burn-in, ``step`` the thinning.
    """

    start: int
    end: int
    step: int = 1

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ConfigurationError(
                f"Invalid steps range: start={self.start} must be less than end={self.end}."
            )
        if self.step <= 0:
            raise ConfigurationError(f"step must be positive, got {self.step}.")

    @classmethod
    def from_tuple(cls, steps: tuple[int, int, int]) -> "StepsRange":
        start, end, step = steps
        return cls(int(start), int(end), int(step))

    @property
    def size(self) -> int:
        """Number of recorded steps, ceil((end - start) / step)."""
        return (self.end - self.start - 1) // self.step + 1

    def indices(self) -> range:
        return range(self.start, self.end, self.step)


class Samples(NamedTuple):
    """Recorded samples, rows ordered step-major then chain-minor."""

    configurations: jax.Array
    log_values: jax.Array
    gradients: jax.Array | None


def compute_samples(
    sampler: MetropolisLocal,
    steps: StepsRange | tuple[int, int, int],
    compute_gradients: bool = False,
    *,
    show_progress: bool = False,
) -> Samples:
    """Run ``steps.end`` sampler steps and record the scheduled ones.

    Args:
        sampler: Sampler to advance; it is not reset first.
        steps: Schedule, or a ``(start, end, step)`` tuple.
        compute_gradients: Also record per-sample log-derivatives.
        show_progress: Show a tqdm progress bar.

    Returns:
        `Samples` with ``steps.size * batch_size`` rows; ``gradients`` is
        None unless requested.
    """
    if not isinstance(steps, StepsRange):
        steps = StepsRange.from_tuple(steps)
    if steps.start < 0:
        raise ConfigurationError(
            f"Cannot record from step {steps.start}; step indices start at 0."
        )
    configurations, log_values, gradients = [], [], []
    if logger.isEnabledFor(logging.INFO):
        logger.info(
            "Metropolis sampling: %d steps, recording %d x %d samples",
            steps.end,
            steps.size,
            sampler.batch_size,
        )
    for i in tqdm(range(steps.end), disable=not show_progress, unit="step"):
        sampler.next()
        if i < steps.start or (i - steps.start) % steps.step:
            continue
        x, y = sampler.read()
        configurations.append(x)
        log_values.append(y)
        if compute_gradients:
            gradients.append(log_derivative(sampler.model, x))

    log_values = ensure_finite(
        jnp.concatenate(log_values), "log-amplitudes of recorded samples"
    )
    result = Samples(
        configurations=jnp.concatenate(configurations, axis=0),
        log_values=log_values,
        gradients=jnp.concatenate(gradients, axis=0) if compute_gradients else None,
    )
    if logger.isEnabledFor(logging.INFO):
        logger.info(
            "Metropolis sampling: done, acceptance %.3f", sampler.acceptance
        )
    return result
