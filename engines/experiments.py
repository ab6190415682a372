"""Persisted A/B tests: creation, result recording and significance refresh."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.connection import session_scope
from db.models import ABTest
from db.repositories import experiments as experiments_repo
from engines import significance
from engines.errors import ExperimentNotFoundError, UnsupportedExperimentError
from schemas.experiment import ABTestResults, ABTestVariant

logger = logging.getLogger(__name__)


def _variants(test: ABTest) -> list[ABTestVariant]:
    return [ABTestVariant.model_validate(v) for v in test.variants]


def _to_results(test: ABTest) -> ABTestResults:
    return ABTestResults(
        test_id=str(test.id),
        name=test.name,
        hypothesis=test.hypothesis or "",
        variants=_variants(test),
        winning_variant=test.winning_variant,
        confidence_level=test.confidence_level,
        statistically_significant=test.statistically_significant,
        uplift=test.uplift,
        p_value=test.p_value,
        sample_size=test.sample_size,
    )


async def apply_variant_delta(
    session: AsyncSession,
    test_id: UUID,
    variant_id: str,
    visitors: int = 0,
    conversions: int = 0,
    revenue: float = 0.0,
) -> Optional[ABTest]:
    """Add counts to one variant and refresh the stored significance result.

    Returns None when the test or the variant does not exist. Raises
    pydantic.ValidationError when the variant would have more conversions
    than visitors.
    """
    test = await experiments_repo.get_for_update(session, test_id)
    if test is None:
        return None
    variants = _variants(test)
    for index, variant in enumerate(variants):
        if variant.id == variant_id:
            variants[index] = ABTestVariant.model_validate(
                {
                    **variant.model_dump(),
                    "visitors": variant.visitors + visitors,
                    "conversions": variant.conversions + conversions,
                    "revenue": variant.revenue + revenue,
                }
            )
            break
    else:
        logger.warning("A/B test %s has no variant %s", test_id, variant_id)
        return None
    return await experiments_repo.save_results(
        session, test, variants, significance.evaluate(variants)
    )


class ExperimentService:
    """A/B test operations, each in its own unit of work."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self._session_factory = session_factory

    async def create_ab_test(
        self,
        name: str,
        variants: list[ABTestVariant],
        hypothesis: Optional[str] = None,
    ) -> ABTestResults:
        """Create a two-variant test; the first variant is the control."""
        if len(variants) != 2:
            raise UnsupportedExperimentError(
                f"A/B tests need exactly 2 variants, got {len(variants)}",
                {"variant_count": len(variants)},
            )
        async with session_scope(self._session_factory) as session:
            test = await experiments_repo.create(session, name, variants, hypothesis)
            test = await experiments_repo.save_results(
                session, test, variants, significance.evaluate(variants)
            )
            return _to_results(test)

    async def update_ab_test_results(
        self, test_id: UUID, variants: list[ABTestVariant]
    ) -> ABTestResults:
        """Replace the variant counts and recompute significance."""
        async with session_scope(self._session_factory) as session:
            test = await experiments_repo.get_for_update(session, test_id)
            if test is None:
                raise ExperimentNotFoundError(test_id)
            result = significance.evaluate(variants)
            test = await experiments_repo.save_results(session, test, variants, result)
            logger.info(
                "A/B test %s: p=%.4f significant=%s winner=%s",
                test_id,
                result.p_value,
                result.statistically_significant,
                result.winning_variant,
            )
            return _to_results(test)

    async def record_variant_result(
        self,
        test_id: UUID,
        variant_id: str,
        visitors: int = 0,
        conversions: int = 0,
        revenue: float = 0.0,
    ) -> ABTestResults:
        """Add observed visitors/conversions/revenue to one variant."""
        async with session_scope(self._session_factory) as session:
            test = await apply_variant_delta(
                session, test_id, variant_id, visitors, conversions, revenue
            )
            if test is None:
                raise ExperimentNotFoundError(test_id)
            return _to_results(test)

    async def get_ab_test_results(
        self, test_id: Optional[UUID] = None
    ) -> list[ABTestResults]:
        """One test's results, or every test's when test_id is None."""
        async with session_scope(self._session_factory) as session:
            if test_id is not None:
                test = await experiments_repo.get(session, test_id)
                if test is None:
                    raise ExperimentNotFoundError(test_id)
                return [_to_results(test)]
            return [_to_results(t) for t in await experiments_repo.list_tests(session)]
