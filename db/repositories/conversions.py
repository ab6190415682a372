"""Conversion event repository."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ConversionEvent

logger = logging.getLogger(__name__)


async def create(
    session: AsyncSession,
    lead_id: UUID,
    event_type: str,
    value: float,
    currency: str,
    attribution: dict,
    occurred_at: datetime,
    source: Optional[dict] = None,
    product_id: Optional[str] = None,
    campaign_id: Optional[str] = None,
) -> ConversionEvent:
    """Insert an immutable conversion with its attribution snapshot."""
    event = ConversionEvent(
        lead_id=lead_id,
        event_type=event_type,
        value=value,
        currency=currency,
        attribution=attribution,
        occurred_at=occurred_at,
        source=source or {},
        product_id=product_id,
        campaign_id=campaign_id,
    )
    session.add(event)
    await session.flush()
    return event


async def list_recent(
    session: AsyncSession,
    since: Optional[datetime] = None,
    lead_id: Optional[UUID] = None,
) -> list[ConversionEvent]:
    """Return conversions newest first, optionally filtered by time and lead."""
    stmt = select(ConversionEvent).order_by(ConversionEvent.occurred_at.desc())
    if since is not None:
        stmt = stmt.where(ConversionEvent.occurred_at >= since)
    if lead_id is not None:
        stmt = stmt.where(ConversionEvent.lead_id == lead_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())
