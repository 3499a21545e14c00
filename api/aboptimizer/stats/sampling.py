"""Gamma, Beta and paired-posterior samplers.

All draws are built from uniforms pulled off an injected
``RandomVariateSource``, so a seeded source reproduces a run exactly.

Gamma draws use the Marsaglia--Tsang squeeze/rejection method with
Box--Muller normals; Beta draws are ``X / (X + Y)`` for two Gamma draws;
posterior draws apply a uniform Beta(1, 1) prior to each arm.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass

import numpy as np

from aboptimizer.stats.errors import InvalidParameterError, InvalidSampleCountError, SamplingError
from aboptimizer.stats.observations import validate_counts
from aboptimizer.stats.random_source import NumpyRandomSource, RandomVariateSource

DEFAULT_SAMPLE_COUNT = 10_000
DEFAULT_MAX_ITERATIONS = 10_000

_SQUEEZE = 0.0331
_TWO_PI = 2.0 * math.pi


def validate_sample_count(sample_count: int) -> None:
    if isinstance(sample_count, bool) or not isinstance(sample_count, numbers.Integral):
        raise InvalidSampleCountError(f"sample_count must be an integer, got {sample_count!r}")
    if sample_count <= 0:
        raise InvalidSampleCountError(f"sample_count must be positive, got {sample_count}")


class GammaSampler:
    """Draws from Gamma(shape, scale=1).

    Parameters
    ----------
    source : RandomVariateSource
        Uniform variate source.
    max_iterations : int
        Cap on rejection-loop iterations per draw.  Acceptance probability is
        above 0.95 for every shape >= 1, so hitting the cap means the source
        is broken rather than unlucky.
    """

    __slots__ = ("source", "max_iterations")

    def __init__(
        self,
        source: RandomVariateSource,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        self.source = source
        self.max_iterations = max_iterations

    def sample(self, shape: float) -> float:
        """Draw one Gamma(shape, 1) variate.

        Shapes below 1 are boosted: draw from Gamma(shape + 1) and scale by
        ``U ** (1 / shape)``.  The boosted shape is always >= 1 so the boost
        runs at most once.
        """
        if not math.isfinite(shape) or shape <= 0:
            raise InvalidParameterError(f"gamma shape must be finite and positive, got {shape!r}")

        if shape >= 1.0:
            return self._marsaglia_tsang(shape)

        boosted = self._marsaglia_tsang(shape + 1.0)
        u = self.source.next_uniform()
        return boosted * u ** (1.0 / shape)

    def _marsaglia_tsang(self, shape: float) -> float:
        d = shape - 1.0 / 3.0
        c = 1.0 / math.sqrt(9.0 * d)
        for _ in range(self.max_iterations):
            # 1 - u1 lies in (0, 1] so the log is always finite
            u1 = self.source.next_uniform()
            u2 = self.source.next_uniform()
            x = math.sqrt(-2.0 * math.log(1.0 - u1)) * math.cos(_TWO_PI * u2)
            v = 1.0 + c * x
            if v <= 0.0:
                continue
            v3 = v * v * v
            u = self.source.next_uniform()
            x2 = x * x
            if u < 1.0 - _SQUEEZE * x2 * x2:
                return d * v3
            if u > 0.0 and math.log(u) < 0.5 * x2 + d * (1.0 - v3 + math.log(v3)):
                return d * v3
        raise SamplingError(
            f"gamma rejection loop did not accept within {self.max_iterations} iterations "
            f"(shape={shape})"
        )


class BetaSampler:
    """Draws from Beta(alpha, beta) as ``X / (X + Y)``.

    Callers are expected to pass ``alpha >= 1`` and ``beta >= 1`` (the
    posterior sampler guarantees this through its +1 prior); it is not
    re-checked here.
    """

    __slots__ = ("gamma",)

    def __init__(self, gamma: GammaSampler) -> None:
        self.gamma = gamma

    def sample(self, alpha: float, beta: float) -> float:
        x = self.gamma.sample(alpha)
        y = self.gamma.sample(beta)
        total = x + y
        if total <= 0.0:
            raise SamplingError(f"beta draw degenerate (alpha={alpha}, beta={beta})")
        return x / total


@dataclass(frozen=True)
class SampleSet:
    """Paired posterior draws for one metric: ``p_a[i]`` and ``p_b[i]``."""

    p_a: np.ndarray
    p_b: np.ndarray

    def __post_init__(self) -> None:
        if self.p_a.shape != self.p_b.shape or self.p_a.ndim != 1:
            raise ValueError("p_a and p_b must be 1-D arrays of equal length")

    def __len__(self) -> int:
        return int(self.p_a.shape[0])

    @property
    def differences(self) -> np.ndarray:
        """Absolute lift per draw, ``p_b - p_a``."""
        return self.p_b - self.p_a


class PosteriorSampler:
    """Draws paired (pA, pB) conversion rates from Beta-Binomial posteriors.

    Each arm with ``s`` successes in ``n`` trials has posterior
    ``Beta(s + 1, n - s + 1)`` under a uniform prior.  The two arms are
    drawn independently.

    Parameters
    ----------
    source : RandomVariateSource | None
        Uniform source; an unseeded ``NumpyRandomSource`` when omitted.
    """

    def __init__(self, source: RandomVariateSource | None = None) -> None:
        self.source = source if source is not None else NumpyRandomSource()
        self.beta = BetaSampler(GammaSampler(self.source))

    def sample_posteriors(
        self,
        success_a: int,
        trials_a: int,
        success_b: int,
        trials_b: int,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
    ) -> SampleSet:
        """Draw ``sample_count`` independent (pA, pB) pairs.

        Parameters
        ----------
        success_a, trials_a : int
            Control successes and trials.
        success_b, trials_b : int
            Variant successes and trials.
        sample_count : int
            Number of pairs to draw.

        Returns
        -------
        SampleSet
            Arrays of shape ``(sample_count,)``.
        """
        validate_counts(success_a, trials_a, label="control")
        validate_counts(success_b, trials_b, label="variant")
        validate_sample_count(sample_count)

        alpha_a, beta_a = success_a + 1, trials_a - success_a + 1
        alpha_b, beta_b = success_b + 1, trials_b - success_b + 1

        p_a = np.empty(sample_count, dtype=float)
        p_b = np.empty(sample_count, dtype=float)
        draw = self.beta.sample
        for i in range(sample_count):
            p_a[i] = draw(alpha_a, beta_a)
            p_b[i] = draw(alpha_b, beta_b)
        return SampleSet(p_a=p_a, p_b=p_b)
