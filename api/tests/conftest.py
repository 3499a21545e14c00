"""Shared fixtures: an in-memory SQLite database driven through asyncio.run."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aboptimizer.models import ABEvent, ABTest, ABTestStatus, Base


async def _run_with_db(scenario: Callable[[AsyncSession], Awaitable[None]]) -> None:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with session_factory() as db:
            await scenario(db)
    finally:
        await engine.dispose()


@pytest.fixture
def run_with_db():
    """Run ``scenario(db)`` against a fresh schema in its own event loop."""

    def runner(scenario: Callable[[AsyncSession], Awaitable[None]]) -> None:
        asyncio.run(_run_with_db(scenario))

    return runner


async def seed_test(
    db: AsyncSession,
    control: tuple[int, int, int],
    variant: tuple[int, int, int],
    *,
    labels: tuple[str, str] = ("A", "B"),
    status: ABTestStatus = ABTestStatus.active,
    created_at: datetime | None = None,
    mode: str | None = None,
    business_mde: float | None = None,
    extra_events: tuple[tuple[str, str], ...] = (),
) -> ABTest:
    """Insert a test plus one event row per counted event.

    ``control`` / ``variant`` are ``(impressions, add_to_carts, purchases)``.
    """
    test = ABTest(
        shop="demo.myshopify.com",
        product_id="123",
        template_a="default",
        template_b="variant-template",
        status=status,
        created_at=created_at or datetime(2026, 10, 1, tzinfo=timezone.utc),
        mode=mode,
        business_mde=business_mde,
    )
    db.add(test)
    await db.flush()

    events = []
    for label, (visits, atc, purchases) in zip(labels, (control, variant)):
        for event_type, count in (("impression", visits), ("add_to_cart", atc), ("purchase", purchases)):
            events.extend(
                ABEvent(test_id=test.id, variant=label, event_type=event_type, product_id="123")
                for _ in range(count)
            )
    for label, event_type in extra_events:
        events.append(ABEvent(test_id=test.id, variant=label, event_type=event_type, product_id="123"))
    db.add_all(events)
    await db.flush()
    return test
