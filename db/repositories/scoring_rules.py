"""Scoring rule repository: process-wide lead scoring configuration."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ScoringRule, utcnow
from schemas.lead import ScoringRuleSpec

logger = logging.getLogger(__name__)

DEFAULT_RULES: list[dict] = [
    {
        "id": "email_provided",
        "name": "Email Provided",
        "description": "Lead provided email address",
        "condition": {"field": "email", "operator": "not_equals", "value": None},
        "points": 10,
        "frequency": "once",
        "category": "demographic",
    },
    {
        "id": "page_visit_pricing",
        "name": "Visited Pricing Page",
        "description": "Lead visited pricing page",
        "condition": {"field": "page_url", "operator": "contains", "value": "/pricing"},
        "points": 15,
        "frequency": "once",
        "category": "behavioral",
    },
    {
        "id": "email_open_multiple",
        "name": "Multiple Email Opens",
        "description": "Lead opened more than 3 emails",
        "condition": {"field": "email_opens", "operator": "greater_than", "value": 3},
        "points": 20,
        "frequency": "once",
        "category": "engagement",
    },
    {
        "id": "content_download",
        "name": "Content Download",
        "description": "Lead downloaded content",
        "condition": {"field": "type", "operator": "equals", "value": "download"},
        "points": 25,
        "frequency": "multiple",
        "category": "behavioral",
    },
    {
        "id": "enterprise_email",
        "name": "Enterprise Email Domain",
        "description": "Lead uses corporate email domain",
        "condition": {
            "field": "email_domain",
            "operator": "not_in",
            "value": ["gmail.com", "yahoo.com", "hotmail.com", "outlook.com"],
        },
        "points": 15,
        "frequency": "once",
        "category": "firmographic",
    },
]


async def get_active(session: AsyncSession) -> list[ScoringRule]:
    """Return enabled rules in a stable order."""
    result = await session.execute(
        select(ScoringRule).where(ScoringRule.enabled.is_(True)).order_by(ScoringRule.id)
    )
    return list(result.scalars().all())


async def list_all(session: AsyncSession) -> list[ScoringRule]:
    result = await session.execute(select(ScoringRule).order_by(ScoringRule.id))
    return list(result.scalars().all())


async def upsert(session: AsyncSession, spec: ScoringRuleSpec) -> ScoringRule:
    """Insert or replace a rule by id."""
    data = spec.model_dump()
    data["condition"] = spec.condition.model_dump()
    rule = await session.get(ScoringRule, spec.id)
    now = utcnow()
    if rule is None:
        rule = ScoringRule(**data, created_at=now, updated_at=now)
        session.add(rule)
    else:
        for key, value in data.items():
            setattr(rule, key, value)
        rule.updated_at = now
    await session.flush()
    logger.info("Upserted scoring rule %s (%d points)", rule.id, rule.points)
    return rule


async def set_enabled(
    session: AsyncSession, rule_id: str, enabled: bool
) -> Optional[ScoringRule]:
    """Toggle a rule's active flag. Returns None when the rule does not exist."""
    rule = await session.get(ScoringRule, rule_id)
    if rule is None:
        return None
    rule.enabled = enabled
    rule.updated_at = utcnow()
    await session.flush()
    return rule


async def seed_defaults(session: AsyncSession) -> int:
    """Insert any missing default rules. Returns the number inserted."""
    existing = {rule.id for rule in await list_all(session)}
    inserted = 0
    for data in DEFAULT_RULES:
        if data["id"] in existing:
            continue
        await upsert(session, ScoringRuleSpec(**data))
        inserted += 1
    if inserted:
        logger.info("Seeded %d default scoring rules", inserted)
    return inserted
