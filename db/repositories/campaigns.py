"""Segment and scheduled email campaign repositories."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EmailCampaign, Segment, utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


async def create_segment(
    session: AsyncSession, name: str, criteria: list[dict]
) -> Segment:
    """Insert a segment.

    criteria: list of {"field", "operator", "value"} dicts; all must match.
    """
    segment = Segment(
        name=name,
        criteria=criteria,
        is_active=True,
        estimated_size=0,
        created_at=utcnow(),
    )
    session.add(segment)
    await session.flush()
    return segment


async def get_segments(session: AsyncSession, segment_ids: list[UUID]) -> list[Segment]:
    if not segment_ids:
        return []
    result = await session.execute(select(Segment).where(Segment.id.in_(segment_ids)))
    return list(result.scalars().all())


async def list_active_segments(session: AsyncSession) -> list[Segment]:
    result = await session.execute(
        select(Segment).where(Segment.is_active.is_(True)).order_by(Segment.created_at)
    )
    return list(result.scalars().all())


async def update_segment_size(
    session: AsyncSession, segment_id: UUID, size: int, calculated_at: datetime
) -> None:
    await session.execute(
        update(Segment)
        .where(Segment.id == segment_id)
        .values(estimated_size=size, last_calculated_at=calculated_at)
        .execution_options(synchronize_session=False)
    )
    await session.flush()


# ---------------------------------------------------------------------------
# Email campaigns
# ---------------------------------------------------------------------------


async def create_campaign(
    session: AsyncSession,
    name: str,
    template_id: str,
    segment_ids: list[UUID],
    subject: Optional[str] = None,
) -> EmailCampaign:
    """Insert a draft campaign addressed to the union of the given segments."""
    campaign = EmailCampaign(
        name=name,
        template_id=template_id,
        subject=subject,
        segment_ids=[str(s) for s in segment_ids],
        status="draft",
        total_sent=0,
        total_failed=0,
        created_at=utcnow(),
    )
    session.add(campaign)
    await session.flush()
    return campaign


async def get_campaign(session: AsyncSession, campaign_id: UUID) -> Optional[EmailCampaign]:
    return await session.get(EmailCampaign, campaign_id, populate_existing=True)


async def schedule_campaign(
    session: AsyncSession, campaign_id: UUID, scheduled_at: datetime
) -> bool:
    """draft→scheduled. Returns False if the campaign is not a draft."""
    result = await session.execute(
        update(EmailCampaign)
        .where(EmailCampaign.id == campaign_id)
        .where(EmailCampaign.status == "draft")
        .values(status="scheduled", scheduled_at=scheduled_at)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount == 1


async def get_due_campaigns(session: AsyncSession, now: datetime) -> list[EmailCampaign]:
    """Scheduled campaigns whose send time has passed."""
    result = await session.execute(
        select(EmailCampaign)
        .where(EmailCampaign.status == "scheduled")
        .where(EmailCampaign.scheduled_at <= now)
        .order_by(EmailCampaign.scheduled_at)
    )
    return list(result.scalars().all())


async def claim_campaign(session: AsyncSession, campaign_id: UUID) -> bool:
    """scheduled→sending. Only one sweep can win a given campaign."""
    result = await session.execute(
        update(EmailCampaign)
        .where(EmailCampaign.id == campaign_id)
        .where(EmailCampaign.status == "scheduled")
        .values(status="sending")
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount == 1


async def mark_campaign_sent(
    session: AsyncSession,
    campaign_id: UUID,
    total_sent: int,
    total_failed: int,
    sent_at: datetime,
) -> None:
    await session.execute(
        update(EmailCampaign)
        .where(EmailCampaign.id == campaign_id)
        .values(
            status="sent",
            total_sent=total_sent,
            total_failed=total_failed,
            sent_at=sent_at,
        )
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    logger.info(
        "Campaign %s sent (%d delivered, %d failed)", campaign_id, total_sent, total_failed
    )


async def mark_campaign_failed(session: AsyncSession, campaign_id: UUID) -> bool:
    """sending→failed, for a dispatch that raised after the claim."""
    result = await session.execute(
        update(EmailCampaign)
        .where(EmailCampaign.id == campaign_id)
        .where(EmailCampaign.status == "sending")
        .values(status="failed")
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount == 1
