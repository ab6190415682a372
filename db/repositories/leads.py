"""Lead repository: lookup by email, touchpoint append, filtered listing."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Lead, StageHistory, Touchpoint, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.lower().strip()


async def get(session: AsyncSession, lead_id: UUID) -> Optional[Lead]:
    """Return the Lead with this id (touchpoints and stage history loaded), or None."""
    return await session.get(Lead, lead_id)


async def get_for_update(session: AsyncSession, lead_id: UUID) -> Optional[Lead]:
    """Return the Lead row-locked for the rest of the transaction (Postgres).

    SQLite ignores FOR UPDATE; in-process serialization comes from engines.locks.
    """
    result = await session.execute(
        select(Lead)
        .where(Lead.id == lead_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> Optional[Lead]:
    """Return the Lead with this email, or None."""
    result = await session.execute(
        select(Lead).where(Lead.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def create(session: AsyncSession, email: str, data: dict) -> Lead:
    """Insert a new lead in the awareness stage with an open stage-history entry.

    data dict keys: first_name, last_name, phone, company, job_title, industry,
    company_size, source, custom_fields, tags, assigned_to
    """
    now = utcnow()
    lead = Lead(
        email=normalize_email(email),
        status="new",
        score=0,
        current_stage="awareness",
        custom_fields={},
        tags=[],
        source={},
        total_interactions=0,
        created_at=now,
        updated_at=now,
        last_activity_at=now,
        touchpoints=[],
        stage_history=[],
    )
    for key, value in data.items():
        setattr(lead, key, value)
    lead.stage_history.append(
        StageHistory(position=0, stage="awareness", entered_at=now, touchpoints=0)
    )
    session.add(lead)
    await session.flush()
    logger.info("Created lead %s (%s)", lead.id, lead.email)
    return lead


async def add_touchpoint(session: AsyncSession, lead: Lead, data: dict) -> Touchpoint:
    """Append a touchpoint to the lead's journey; position is insertion order.

    data dict keys: type, occurred_at, source, page_url, email_campaign_id,
    form_id, download_asset, value, session_id, device_info, location_info,
    engagement
    """
    touchpoint = Touchpoint(position=len(lead.touchpoints), **data)
    lead.touchpoints.append(touchpoint)
    await session.flush()
    return touchpoint


async def get_touchpoints(session: AsyncSession, lead_id: UUID) -> list[Touchpoint]:
    """Return the lead's touchpoints in insertion order."""
    result = await session.execute(
        select(Touchpoint)
        .where(Touchpoint.lead_id == lead_id)
        .order_by(Touchpoint.position)
    )
    return list(result.scalars().all())


async def list_leads(
    session: AsyncSession,
    status: Optional[str] = None,
    channel: Optional[str] = None,
    min_score: Optional[int] = None,
) -> list[Lead]:
    """Return leads matching the optional filters, highest score first."""
    stmt = select(Lead)
    if status is not None:
        stmt = stmt.where(Lead.status == status)
    if min_score is not None:
        stmt = stmt.where(Lead.score >= min_score)
    stmt = stmt.order_by(Lead.score.desc(), Lead.created_at)
    result = await session.execute(stmt)
    leads = list(result.scalars().all())
    # source is a JSON document; filter the channel in Python for portability
    if channel is not None:
        leads = [lead for lead in leads if (lead.source or {}).get("channel") == channel]
    return leads


async def list_all(
    session: AsyncSession, created_since: Optional[datetime] = None
) -> list[Lead]:
    """Return every lead, optionally only those created at or after created_since."""
    stmt = select(Lead).order_by(Lead.created_at)
    if created_since is not None:
        stmt = stmt.where(Lead.created_at >= created_since)
    result = await session.execute(stmt)
    return list(result.scalars().all())
