"""Bayesian winner-determination engine.

Public API:
- ArmObservation: Per-arm visit, add-to-cart and purchase counts
- NumpyRandomSource: Seedable uniform source injected into every sampler
- GammaSampler / BetaSampler / PosteriorSampler: Monte Carlo posterior draws
- summarize: Win probabilities, lifts and 95% credible interval for one metric
- DualMetricDecisionPolicy: Tiered add-to-cart + purchase decision policy
- Verdict: Closed set of decisions the policy can return
- load_mode_table: Validate the threshold / minimum-gate table
"""

from aboptimizer.stats.decisions import AnalysisResult, DualMetricDecisionPolicy, Verdict, analyze_dual_metric
from aboptimizer.stats.errors import (
    AnalysisError,
    InvalidModeConfigError,
    InvalidObservationError,
    InvalidParameterError,
    InvalidSampleCountError,
    SamplingError,
    UnknownModeError,
)
from aboptimizer.stats.modes import DEFAULT_MODE_TABLE, AnalysisMode, load_mode_table, resolve_mode
from aboptimizer.stats.observations import ArmObservation
from aboptimizer.stats.random_source import NumpyRandomSource, RandomVariateSource
from aboptimizer.stats.sampling import BetaSampler, GammaSampler, PosteriorSampler, SampleSet
from aboptimizer.stats.summary import MetricSummary, summarize

__all__ = [
    "ArmObservation",
    "RandomVariateSource",
    "NumpyRandomSource",
    "GammaSampler",
    "BetaSampler",
    "PosteriorSampler",
    "SampleSet",
    "MetricSummary",
    "summarize",
    "AnalysisMode",
    "DEFAULT_MODE_TABLE",
    "load_mode_table",
    "resolve_mode",
    "Verdict",
    "AnalysisResult",
    "DualMetricDecisionPolicy",
    "analyze_dual_metric",
    "AnalysisError",
    "InvalidObservationError",
    "InvalidSampleCountError",
    "InvalidParameterError",
    "UnknownModeError",
    "InvalidModeConfigError",
    "SamplingError",
]
