"""Reduce a ``SampleSet`` into win probabilities, lifts and a credible interval."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from aboptimizer.stats.errors import InvalidSampleCountError
from aboptimizer.stats.sampling import SampleSet

CI_LOWER_PERCENTILE = 0.025
CI_UPPER_PERCENTILE = 0.975


@dataclass(frozen=True)
class MetricSummary:
    """Posterior comparison of the two arms on a single metric."""

    prob_b_wins: float
    prob_a_wins: float
    expected_absolute_lift: float
    expected_relative_lift: float
    credible_interval_95: tuple[float, float]

    def to_dict(self) -> dict:
        return {
            "prob_b_wins": self.prob_b_wins,
            "prob_a_wins": self.prob_a_wins,
            "expected_absolute_lift": self.expected_absolute_lift,
            "expected_relative_lift": self.expected_relative_lift,
            "credible_interval_95": list(self.credible_interval_95),
        }


def summarize(sample_set: SampleSet) -> MetricSummary:
    """Summarize paired posterior draws.

    - ``prob_b_wins`` / ``prob_a_wins`` count strict wins only; ties go to
      neither side.
    - ``expected_relative_lift`` averages ``(pB - pA) / pA`` and scores a
      draw as 0 whenever ``pA == 0``.
    - ``credible_interval_95`` reads the sorted ``pB - pA`` array at
      ``floor(N * 0.025)`` and ``floor(N * 0.975)``.

    Parameters
    ----------
    sample_set : SampleSet
        Paired draws from ``PosteriorSampler.sample_posteriors``.

    Returns
    -------
    MetricSummary
    """
    n = len(sample_set)
    if n == 0:
        raise InvalidSampleCountError("cannot summarize an empty sample set")

    p_a = sample_set.p_a
    p_b = sample_set.p_b
    diff = p_b - p_a

    relative = np.zeros(n, dtype=float)
    np.divide(diff, p_a, out=relative, where=p_a != 0)

    sorted_diff = np.sort(diff)
    low_idx = math.floor(n * CI_LOWER_PERCENTILE)
    high_idx = math.floor(n * CI_UPPER_PERCENTILE)

    return MetricSummary(
        prob_b_wins=float(np.count_nonzero(p_b > p_a)) / n,
        prob_a_wins=float(np.count_nonzero(p_a > p_b)) / n,
        expected_absolute_lift=float(np.mean(diff)),
        expected_relative_lift=float(np.mean(relative)),
        credible_interval_95=(float(sorted_diff[low_idx]), float(sorted_diff[high_idx])),
    )
