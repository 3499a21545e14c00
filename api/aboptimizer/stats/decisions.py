"""Dual-metric decision policy: add-to-cart and purchase posteriors to a verdict.

Both metrics are sampled from independent Beta-Binomial posteriors that share
each arm's visit count.  A mature test (enough visits and days per the mode)
is judged on purchases first, then add-to-cart; an early test can still be
called for the variant under looser, combined-evidence rules.
"""

from __future__ import annotations

import enum
import logging
import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from aboptimizer.stats.errors import InvalidParameterError
from aboptimizer.stats.modes import AnalysisMode, load_mode_table, resolve_mode
from aboptimizer.stats.observations import ArmObservation
from aboptimizer.stats.random_source import NumpyRandomSource, RandomVariateSource
from aboptimizer.stats.sampling import DEFAULT_SAMPLE_COUNT, PosteriorSampler, SampleSet, validate_sample_count
from aboptimizer.stats.summary import MetricSummary, summarize

logger = logging.getLogger(__name__)


class Verdict(str, enum.Enum):
    variant_wins_on_purchases = "variant_wins_on_purchases"
    control_wins_on_purchases = "control_wins_on_purchases"
    variant_likely_on_atc_but_purchases_inconclusive = "variant_likely_on_atc_but_purchases_inconclusive"
    variant_probable_based_on_purchases_and_strong_atc = "variant_probable_based_on_purchases_and_strong_atc"
    variant_probable_by_joint_metric = "variant_probable_by_joint_metric"
    no_clear_winner = "no_clear_winner"

    @property
    def winning_arm(self) -> str | None:
        """``"variant"``, ``"control"``, or ``None`` when nobody has won."""
        if self is Verdict.no_clear_winner:
            return None
        return "variant" if "variant" in self.value else "control"


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one ``analyze`` call produced."""

    decision: Verdict
    atc: MetricSummary
    purchases: MetricSummary
    prob_joint: float
    have_min_n: bool
    have_min_days: bool
    mode: str
    days_running: int
    business_mde: float
    control: ArmObservation
    variant: ArmObservation

    @property
    def joint(self) -> dict[str, float]:
        return {"prob_joint": self.prob_joint}

    def to_dict(self) -> dict[str, Any]:
        totals = {"control_visits": self.control.visits, "variant_visits": self.variant.visits}
        return {
            "decision": self.decision.value,
            "mode": self.mode,
            "days_running": self.days_running,
            "business_mde": self.business_mde,
            "control": self.control.to_dict(),
            "variant": self.variant.to_dict(),
            "atc": {**self.atc.to_dict(), "totals": dict(totals)},
            "purchases": {**self.purchases.to_dict(), "totals": dict(totals)},
            "joint": self.joint,
            "have_min_n": self.have_min_n,
            "have_min_days": self.have_min_days,
        }


def joint_win_probability(atc: SampleSet, purchases: SampleSet) -> float:
    """Fraction of draw indices where the variant wins on either metric.

    Index ``i`` of the add-to-cart set is paired with index ``i`` of the
    purchase set even though the two sets are independent draws.
    """
    if len(atc) != len(purchases):
        raise ValueError("sample sets must have equal length")
    wins = (purchases.p_b > purchases.p_a) | (atc.p_b > atc.p_a)
    return float(np.count_nonzero(wins)) / len(atc)


def decide(
    atc: MetricSummary,
    purchases: MetricSummary,
    prob_joint: float,
    mode: AnalysisMode,
    have_min_n: bool,
    have_min_days: bool,
    business_mde: float,
) -> Verdict:
    """Apply the tiered decision rules; the first matching branch wins."""
    t = mode.threshold

    if have_min_n and have_min_days:
        if purchases.prob_b_wins >= t and purchases.expected_relative_lift >= business_mde:
            return Verdict.variant_wins_on_purchases
        if purchases.prob_a_wins >= t:
            return Verdict.control_wins_on_purchases
        if atc.prob_b_wins >= t and atc.expected_relative_lift >= business_mde:
            return Verdict.variant_likely_on_atc_but_purchases_inconclusive
        return Verdict.no_clear_winner

    # Early data: purchases may clear a looser bar when add-to-cart is strong
    if purchases.prob_b_wins >= mode.lower_threshold and atc.prob_b_wins >= t:
        return Verdict.variant_probable_based_on_purchases_and_strong_atc
    if prob_joint >= t:
        return Verdict.variant_probable_by_joint_metric
    return Verdict.no_clear_winner


class DualMetricDecisionPolicy:
    """Decide whether control or variant has won on add-to-cart and purchases.

    Parameters
    ----------
    random_source : RandomVariateSource | None
        Uniform source shared by every draw of every ``analyze`` call on this
        instance.  When omitted, each ``analyze`` call gets a fresh unseeded
        ``NumpyRandomSource``.
    mode_table : Mapping[str, AnalysisMode] | None
        Validated mode table (see ``load_mode_table``).  Defaults to the
        shipped table.
    """

    def __init__(
        self,
        random_source: RandomVariateSource | None = None,
        mode_table: Mapping[str, AnalysisMode] | None = None,
    ) -> None:
        self.random_source = random_source
        self.mode_table = dict(mode_table) if mode_table is not None else load_mode_table()

    def analyze(
        self,
        control: ArmObservation,
        variant: ArmObservation,
        mode: str | AnalysisMode = "standard",
        days_running: int = 0,
        business_mde: float = 0.0,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
    ) -> AnalysisResult:
        """Run the full dual-metric analysis.

        Steps:
        1. Sample and summarize add-to-cart posteriors, then purchases
        2. Joint probability that the variant wins on either metric
        3. Minimum-sample and minimum-duration gates
        4. Tiered decision

        Parameters
        ----------
        control, variant : ArmObservation
            Counts for each arm.
        mode : str | AnalysisMode
            Mode name from the table, or an explicit mode.
        days_running : int
            Whole days since the test started.
        business_mde : float
            Minimum expected relative lift that counts as a practical win.
        sample_count : int
            Monte Carlo draws per metric.

        Returns
        -------
        AnalysisResult
        """
        for name, arm in (("control", control), ("variant", variant)):
            if not isinstance(arm, ArmObservation):
                raise InvalidParameterError(f"{name} must be an ArmObservation, got {type(arm).__name__}")
        analysis_mode = resolve_mode(mode, self.mode_table)
        validate_sample_count(sample_count)
        if isinstance(days_running, bool) or not isinstance(days_running, numbers.Integral) or days_running < 0:
            raise InvalidParameterError(f"days_running must be a non-negative integer, got {days_running!r}")
        if (
            isinstance(business_mde, bool)
            or not isinstance(business_mde, numbers.Real)
            or not math.isfinite(business_mde)
        ):
            raise InvalidParameterError(f"business_mde must be a finite number, got {business_mde!r}")

        source = self.random_source if self.random_source is not None else NumpyRandomSource()
        sampler = PosteriorSampler(source)

        atc_samples = sampler.sample_posteriors(
            control.atc_successes, control.visits,
            variant.atc_successes, variant.visits,
            sample_count,
        )
        purchase_samples = sampler.sample_posteriors(
            control.purchase_successes, control.visits,
            variant.purchase_successes, variant.visits,
            sample_count,
        )
        atc_summary = summarize(atc_samples)
        purchase_summary = summarize(purchase_samples)
        prob_joint = joint_win_probability(atc_samples, purchase_samples)

        have_min_n = (
            control.visits >= analysis_mode.min_sample_size
            and variant.visits >= analysis_mode.min_sample_size
        )
        have_min_days = days_running >= analysis_mode.min_days_running

        verdict = decide(
            atc_summary,
            purchase_summary,
            prob_joint,
            analysis_mode,
            have_min_n,
            have_min_days,
            business_mde,
        )
        logger.debug(
            "mode=%s decision=%s purchases.prob_b=%.4f atc.prob_b=%.4f joint=%.4f",
            analysis_mode.name,
            verdict.value,
            purchase_summary.prob_b_wins,
            atc_summary.prob_b_wins,
            prob_joint,
        )

        return AnalysisResult(
            decision=verdict,
            atc=atc_summary,
            purchases=purchase_summary,
            prob_joint=prob_joint,
            have_min_n=have_min_n,
            have_min_days=have_min_days,
            mode=analysis_mode.name,
            days_running=int(days_running),
            business_mde=float(business_mde),
            control=control,
            variant=variant,
        )


def analyze_dual_metric(
    control: ArmObservation,
    variant: ArmObservation,
    mode: str | AnalysisMode = "standard",
    days_running: int = 0,
    business_mde: float = 0.0,
    sample_count: int = DEFAULT_SAMPLE_COUNT,
    seed: int | None = None,
    mode_table: Mapping[str, AnalysisMode] | None = None,
) -> AnalysisResult:
    """One-shot analysis with its own ``NumpyRandomSource(seed)``."""
    policy = DualMetricDecisionPolicy(NumpyRandomSource(seed), mode_table=mode_table)
    return policy.analyze(control, variant, mode, days_running, business_mde, sample_count)
