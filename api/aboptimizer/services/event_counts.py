"""Turn a test's raw event log into the per-arm counts the policy consumes.

Events carry either the generic label (``"A"`` / ``"B"``) or the template
name the visitor was served, so both spellings are mapped onto the
control / variant arms here.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aboptimizer.models.ab_event import ABEvent, ABEventType
from aboptimizer.models.ab_test import ABTest
from aboptimizer.stats.observations import ArmObservation

logger = logging.getLogger(__name__)

CONTROL = "control"
VARIANT = "variant"

_COUNTED_EVENTS = {
    ABEventType.impression.value: "visits",
    ABEventType.add_to_cart.value: "atc_successes",
    ABEventType.purchase.value: "purchase_successes",
}


def arm_for_label(label: str, template_a: str, template_b: str) -> str | None:
    """Map an event's variant label onto ``"control"`` / ``"variant"``.

    ``"A"`` and ``"B"`` always win over template names, so a template that
    happens to be called ``"B"`` cannot flip an arm.
    """
    if label == "A":
        return CONTROL
    if label == "B":
        return VARIANT
    if label == template_a:
        return CONTROL
    if label == template_b:
        return VARIANT
    return None


def aggregate_events(
    events: Iterable[tuple[str, str, int]],
    template_a: str,
    template_b: str,
) -> tuple[ArmObservation, ArmObservation]:
    """Reduce ``(variant_label, event_type, count)`` rows to two observations.

    Unknown labels are skipped with a warning; event types other than
    impression / add_to_cart / purchase are ignored.

    Raises
    ------
    InvalidObservationError
        If an arm has more add-to-cart or purchase events than impressions.
    """
    totals: dict[str, Counter] = {CONTROL: Counter(), VARIANT: Counter()}
    unknown: Counter = Counter()

    for label, event_type, count in events:
        field = _COUNTED_EVENTS.get(event_type)
        if field is None:
            continue
        arm = arm_for_label(label, template_a, template_b)
        if arm is None:
            unknown[label] += count
            continue
        totals[arm][field] += count

    if unknown:
        logger.warning("Ignoring events with unrecognised variant labels: %s", dict(unknown))

    control, variant = (
        ArmObservation(
            visits=totals[arm]["visits"],
            atc_successes=totals[arm]["atc_successes"],
            purchase_successes=totals[arm]["purchase_successes"],
        )
        for arm in (CONTROL, VARIANT)
    )
    return control, variant


async def count_events_by_arm(db: AsyncSession, test: ABTest) -> tuple[ArmObservation, ArmObservation]:
    """Count impression / add-to-cart / purchase events per arm for ``test``."""
    result = await db.execute(
        select(ABEvent.variant, ABEvent.event_type, func.count())
        .where(
            ABEvent.test_id == test.id,
            ABEvent.event_type.in_(list(_COUNTED_EVENTS)),
        )
        .group_by(ABEvent.variant, ABEvent.event_type)
    )
    rows = [(variant, event_type, int(count)) for variant, event_type, count in result.all()]
    return aggregate_events(rows, test.template_a, test.template_b)


def days_running(created_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days elapsed since ``created_at``; naive timestamps are UTC."""
    if created_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    elapsed = (now - created_at).total_seconds() / 86400
    return max(math.floor(elapsed), 0)
