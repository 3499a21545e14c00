"""Tests for WinnerAnalysisHandler against an in-memory database.

Every handler gets a seeded random source factory and a fixed ``now`` so
that verdicts are reproducible.
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timezone

import pytest

from conftest import seed_test
from aboptimizer.core.config import Settings
from aboptimizer.models import ABTest, ABTestStatus
from aboptimizer.services.template_assignment import LoggingTemplateAssigner, product_gid, template_suffix
from aboptimizer.services.winner_analysis import WinnerAnalysisHandler
from aboptimizer.stats.decisions import Verdict
from aboptimizer.stats.errors import UnknownModeError
from aboptimizer.stats.random_source import NumpyRandomSource

NOW = datetime(2026, 10, 11, tzinfo=timezone.utc)

# (impressions, add_to_carts, purchases)
STRONG_ARM = (200, 30, 20)
WEAK_ARM = (200, 10, 4)
STEADY_ARM = (100, 5, 2)


class FailingAssigner:
    def __init__(self):
        self.calls = 0

    async def assign(self, test):
        self.calls += 1
        raise RuntimeError("storefront unavailable")


class GatedSource:
    """Blocks on the first draw until the event loop sets ``gate``."""

    def __init__(self):
        self.inner = NumpyRandomSource(7)
        self.started = threading.Event()
        self.gate = threading.Event()
        self.released = None
        self.thread = None

    def next_uniform(self) -> float:
        if self.released is None:
            self.thread = threading.current_thread()
            self.started.set()
            self.released = self.gate.wait(timeout=5)
        return self.inner.next_uniform()


def make_handler(db, assigner=None, **overrides) -> WinnerAnalysisHandler:
    config = Settings(SAMPLE_COUNT=2_000, **overrides)
    return WinnerAnalysisHandler(
        db,
        template_assigner=assigner or LoggingTemplateAssigner(),
        random_source_factory=lambda: NumpyRandomSource(7),
        config=config,
    )


class TestTemplateAssignmentHelpers:
    def test_numeric_id_becomes_gid(self):
        assert product_gid("123") == "gid://shopify/Product/123"

    def test_gid_kept(self):
        assert product_gid("gid://shopify/Product/9") == "gid://shopify/Product/9"

    def test_default_template_has_no_suffix(self):
        assert template_suffix("default") is None
        assert template_suffix("variant-template") == "variant-template"


class TestSkipped:
    def test_missing_test(self, run_with_db):
        async def scenario(db):
            outcome = await make_handler(db).analyze_test(uuid.uuid4(), now=NOW)
            assert outcome == {"status": "skipped", "reason": "test_not_active"}

        run_with_db(scenario)

    @pytest.mark.parametrize("status", [ABTestStatus.draft, ABTestStatus.paused, ABTestStatus.completed])
    def test_inactive_test(self, run_with_db, status):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, status=status)
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome == {"status": "skipped", "reason": "test_not_active"}

        run_with_db(scenario)

    def test_no_visits(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, (0, 0, 0), (5, 1, 0))
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome == {"status": "skipped", "reason": "insufficient_data"}

        run_with_db(scenario)

    def test_configured_minimum_visits(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            handler = make_handler(db, MIN_VISITS_PER_ARM=500)
            outcome = await handler.analyze_test(test.id, now=NOW)
            assert outcome["reason"] == "insufficient_data"

        run_with_db(scenario)

    def test_inconsistent_counts(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, (1, 0, 3), (5, 1, 0))
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome["status"] == "skipped"
            assert outcome["reason"] == "inconsistent_counts"
            assert "cannot exceed" in outcome["detail"]
            assert test.status == ABTestStatus.active

        run_with_db(scenario)


class TestWinnerDeclared:
    def test_variant_wins(self, run_with_db):
        async def scenario(db):
            assigner = LoggingTemplateAssigner()
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            outcome = await make_handler(db, assigner).analyze_test(test.id, now=NOW)

            assert outcome["status"] == "winner_declared"
            assert outcome["winner"] == "B"
            assert outcome["decision"] == Verdict.variant_wins_on_purchases.value
            analysis = outcome["analysis"]
            assert analysis["purchases"]["prob_b_wins"] > 0.95
            assert analysis["days_running"] == 10
            assert analysis["mode"] == "standard"
            assert analysis["control"]["visits"] == 200

            stored = await db.get(ABTest, test.id)
            assert stored.status == ABTestStatus.completed
            assert stored.winner == "B"
            assert stored.decision == Verdict.variant_wins_on_purchases.value
            assert stored.completed_at is not None

            assert assigner.assigned == [("gid://shopify/Product/123", "variant-template")]

        run_with_db(scenario)

    def test_second_run_is_skipped(self, run_with_db):
        async def scenario(db):
            assigner = LoggingTemplateAssigner()
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            handler = make_handler(db, assigner)
            first = await handler.analyze_test(test.id, now=NOW)
            second = await handler.analyze_test(test.id, now=NOW)

            assert first["status"] == "winner_declared"
            assert second == {"status": "skipped", "reason": "test_not_active"}
            assert len(assigner.assigned) == 1

        run_with_db(scenario)

    def test_completion_is_conditional(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, status=ABTestStatus.paused)
            handler = make_handler(db)
            completed = await handler._complete(test, "B", Verdict.variant_wins_on_purchases, NOW)
            assert completed is False
            stored = await db.get(ABTest, test.id)
            assert stored.status == ABTestStatus.paused
            assert stored.winner is None

        run_with_db(scenario)

    def test_control_wins_without_assignment(self, run_with_db):
        async def scenario(db):
            assigner = LoggingTemplateAssigner()
            test = await seed_test(db, STRONG_ARM, WEAK_ARM)
            outcome = await make_handler(db, assigner).analyze_test(test.id, now=NOW)

            assert outcome["winner"] == "A"
            assert outcome["decision"] == Verdict.control_wins_on_purchases.value
            assert test.status == ABTestStatus.completed
            assert test.winner == "A"
            assert assigner.assigned == []

        run_with_db(scenario)

    def test_failed_assignment_still_declares(self, run_with_db, caplog):
        async def scenario(db):
            assigner = FailingAssigner()
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            with caplog.at_level(logging.ERROR, logger="aboptimizer.services.winner_analysis"):
                outcome = await make_handler(db, assigner).analyze_test(test.id, now=NOW)

            assert outcome["status"] == "winner_declared"
            assert outcome["winner"] == "B"
            assert assigner.calls == 1
            assert test.status == ABTestStatus.completed
            assert "Failed to assign variant template" in caplog.text

        run_with_db(scenario)

    def test_template_name_labels(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, labels=("default", "variant-template"))
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome["winner"] == "B"
            assert outcome["analysis"]["variant"]["purchase_successes"] == 20

        run_with_db(scenario)


class TestNoWinner:
    def test_identical_arms_stay_active(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, STEADY_ARM, STEADY_ARM)
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)

            assert outcome["status"] == "no_winner"
            assert outcome["analysis"]["decision"] == Verdict.no_clear_winner.value
            assert "winner" not in outcome
            assert test.status == ABTestStatus.active
            assert test.winner is None

        run_with_db(scenario)

    def test_per_test_mde_overrides_config(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, business_mde=50.0)
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome["status"] == "no_winner"
            assert outcome["analysis"]["business_mde"] == 50.0

        run_with_db(scenario)


class TestModes:
    def test_per_test_mode(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, mode="careful")
            outcome = await make_handler(db).analyze_test(test.id, now=NOW)
            assert outcome["analysis"]["mode"] == "careful"

        run_with_db(scenario)

    def test_configured_default_mode(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            outcome = await make_handler(db, ANALYSIS_MODE="fast").analyze_test(test.id, now=NOW)
            assert outcome["analysis"]["mode"] == "fast"

        run_with_db(scenario)

    def test_configured_mode_gates(self, run_with_db):
        """A strict configured table pushes a fresh test into the early branch."""

        async def scenario(db):
            modes = {"standard": {"threshold": 0.75, "min_sample_size": 1000, "min_days_running": 14}}
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            outcome = await make_handler(db, ANALYSIS_MODES=modes).analyze_test(test.id, now=NOW)
            assert outcome["analysis"]["have_min_n"] is False
            assert outcome["analysis"]["have_min_days"] is False
            assert outcome["decision"] == Verdict.variant_probable_based_on_purchases_and_strong_atc.value
            assert outcome["winner"] == "B"

        run_with_db(scenario)

    def test_unknown_per_test_mode(self, run_with_db):
        async def scenario(db):
            test = await seed_test(db, WEAK_ARM, STRONG_ARM, mode="turbo")
            with pytest.raises(UnknownModeError):
                await make_handler(db).analyze_test(test.id, now=NOW)
            assert test.status == ABTestStatus.active

        run_with_db(scenario)


class TestEventLoop:
    def test_sampling_runs_off_the_event_loop(self, run_with_db):
        """Another coroutine must be able to run while the posterior is sampled."""

        async def scenario(db):
            source = GatedSource()
            test = await seed_test(db, WEAK_ARM, STRONG_ARM)
            handler = WinnerAnalysisHandler(
                db,
                template_assigner=LoggingTemplateAssigner(),
                random_source_factory=lambda: source,
                config=Settings(SAMPLE_COUNT=500),
            )

            async def release():
                while not source.started.is_set():
                    await asyncio.sleep(0.005)
                source.gate.set()

            outcome, _ = await asyncio.gather(handler.analyze_test(test.id, now=NOW), release())

            assert source.released is True
            assert source.thread is not threading.main_thread()
            assert outcome["status"] == "winner_declared"

        run_with_db(scenario)
