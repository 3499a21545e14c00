"""Winner analysis for a persisted A/B test.

Loads the test, counts its events per arm, runs the dual-metric policy and,
when a winner emerges, completes the test and hands the product over to the
winning template.  Invoked by the analyze-winner webhook.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from aboptimizer.core.config import Settings, settings
from aboptimizer.models.ab_test import ABTest, ABTestStatus
from aboptimizer.services.event_counts import count_events_by_arm, days_running
from aboptimizer.services.template_assignment import LoggingTemplateAssigner, TemplateAssigner
from aboptimizer.stats.decisions import DualMetricDecisionPolicy, Verdict
from aboptimizer.stats.errors import InvalidObservationError
from aboptimizer.stats.random_source import NumpyRandomSource, RandomVariateSource

logger = logging.getLogger(__name__)

WINNER_LABELS = {"variant": "B", "control": "A"}


class WinnerAnalysisHandler:
    """Runs winner determination for one test per call.

    Parameters
    ----------
    db : AsyncSession
        Session used to read the test and its events and to record the winner.
    template_assigner : TemplateAssigner | None
        Called when the variant wins.  Defaults to ``LoggingTemplateAssigner``.
    random_source_factory : Callable[[], RandomVariateSource] | None
        Builds a fresh uniform source per analysis.  Defaults to an unseeded
        ``NumpyRandomSource``.
    config : Settings | None
        Analysis defaults (mode, MDE, sample count, minimum visits).
    """

    def __init__(
        self,
        db: AsyncSession,
        template_assigner: TemplateAssigner | None = None,
        random_source_factory: Callable[[], RandomVariateSource] | None = None,
        config: Settings | None = None,
    ) -> None:
        self.db = db
        self.template_assigner = template_assigner or LoggingTemplateAssigner()
        self.random_source_factory = random_source_factory or NumpyRandomSource
        self.config = config or settings
        self.mode_table = self.config.mode_table()

    async def analyze_test(self, test_id: UUID, now: datetime | None = None) -> dict[str, Any]:
        """Analyze ``test_id`` and complete it if a winner is found.

        Returns
        -------
        dict
            status: "skipped" | "no_winner" | "winner_declared"
            reason: why the test was skipped (skipped only)
            winner: "A" | "B" (winner_declared only)
            decision: verdict value (winner_declared only)
            analysis: ``AnalysisResult.to_dict()`` (when the policy ran)
        """
        now = now or datetime.now(timezone.utc)

        test = await self.db.get(ABTest, test_id)
        if test is None or test.status != ABTestStatus.active:
            logger.info("Test %s not found or not active", test_id)
            return {"status": "skipped", "reason": "test_not_active"}

        try:
            control, variant = await count_events_by_arm(self.db, test)
        except InvalidObservationError as exc:
            logger.warning("Inconsistent event counts for test %s: %s", test_id, exc)
            return {"status": "skipped", "reason": "inconsistent_counts", "detail": str(exc)}

        # Zero visits leaves a flat Beta(1, 1) posterior, so at least one is required
        min_visits = max(self.config.MIN_VISITS_PER_ARM, 1)
        if control.visits < min_visits or variant.visits < min_visits:
            logger.info(
                "Insufficient data for test %s: %d vs %d visits",
                test_id, control.visits, variant.visits,
            )
            return {"status": "skipped", "reason": "insufficient_data"}

        mode = test.mode or self.config.ANALYSIS_MODE
        business_mde = test.business_mde if test.business_mde is not None else self.config.BUSINESS_MDE

        policy = DualMetricDecisionPolicy(self.random_source_factory(), mode_table=self.mode_table)
        # Sampling is CPU-bound; keep it off the event loop
        result = await asyncio.to_thread(
            policy.analyze,
            control,
            variant,
            mode,
            days_running(test.created_at, now),
            business_mde,
            self.config.SAMPLE_COUNT,
        )
        logger.info(
            "Analysis for test %s: decision=%s purchase_prob_b=%.3f atc_prob_b=%.3f "
            "have_min_n=%s have_min_days=%s",
            test_id,
            result.decision.value,
            result.purchases.prob_b_wins,
            result.atc.prob_b_wins,
            result.have_min_n,
            result.have_min_days,
        )

        if result.decision is Verdict.no_clear_winner:
            return {"status": "no_winner", "analysis": result.to_dict()}

        winner = WINNER_LABELS[result.decision.winning_arm]
        if not await self._complete(test, winner, result.decision, now):
            logger.info("Test %s was completed by a concurrent analysis", test_id)
            return {"status": "skipped", "reason": "test_not_active"}

        logger.info(
            "Winner declared for test %s: %s (%s, purchase lift %.1f%%)",
            test_id, winner, result.decision.value, result.purchases.expected_relative_lift * 100,
        )

        # Control already owns the product page, so only a variant win reassigns
        if winner == "B":
            try:
                await self.template_assigner.assign(test)
            except Exception:
                logger.exception("Failed to assign variant template for test %s", test_id)

        return {
            "status": "winner_declared",
            "winner": winner,
            "decision": result.decision.value,
            "analysis": result.to_dict(),
        }

    async def _complete(self, test: ABTest, winner: str, decision: Verdict, now: datetime) -> bool:
        """Mark ``test`` completed unless it already left the active state."""
        result = await self.db.execute(
            update(ABTest)
            .where(ABTest.id == test.id, ABTest.status == ABTestStatus.active)
            .values(
                status=ABTestStatus.completed,
                winner=winner,
                decision=decision.value,
                completed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(test)
        return True
