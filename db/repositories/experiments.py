"""A/B test repository."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ABTest, utcnow
from schemas.experiment import ABTestVariant, SignificanceResult

logger = logging.getLogger(__name__)


async def create(
    session: AsyncSession,
    name: str,
    variants: list[ABTestVariant],
    hypothesis: Optional[str] = None,
) -> ABTest:
    """Insert a test; the first variant is the control."""
    now = utcnow()
    test = ABTest(
        name=name,
        hypothesis=hypothesis,
        variants=[v.model_dump() for v in variants],
        winning_variant=None,
        confidence_level=0.0,
        statistically_significant=False,
        uplift=0.0,
        p_value=1.0,
        sample_size=sum(v.visitors for v in variants),
        created_at=now,
        updated_at=now,
    )
    session.add(test)
    await session.flush()
    logger.info("Created A/B test %s (%s)", test.id, name)
    return test


async def get(session: AsyncSession, test_id: UUID) -> Optional[ABTest]:
    return await session.get(ABTest, test_id, populate_existing=True)


async def get_for_update(session: AsyncSession, test_id: UUID) -> Optional[ABTest]:
    """Row-locked read for variant counter updates (Postgres)."""
    result = await session.execute(
        select(ABTest)
        .where(ABTest.id == test_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_tests(session: AsyncSession) -> list[ABTest]:
    result = await session.execute(select(ABTest).order_by(ABTest.created_at.desc()))
    return list(result.scalars().all())


async def save_results(
    session: AsyncSession,
    test: ABTest,
    variants: list[ABTestVariant],
    result: SignificanceResult,
) -> ABTest:
    """Store updated variant counts together with their significance result."""
    test.variants = [v.model_dump() for v in variants]
    test.sample_size = sum(v.visitors for v in variants)
    test.winning_variant = result.winning_variant
    test.confidence_level = result.confidence_level
    test.statistically_significant = result.statistically_significant
    test.uplift = result.uplift
    test.p_value = result.p_value
    test.updated_at = utcnow()
    await session.flush()
    return test
