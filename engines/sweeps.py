"""Periodic sweeps: workflow queue drain, scheduled campaign dispatch and
segment size recomputation.

Each sweep is skipped (not queued) while a previous run of the same sweep is
still in progress, and claims its rows with conditional updates so two
worker processes never handle the same continuation or campaign.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.connection import session_scope
from db.models import Lead, Segment, utcnow
from db.repositories import campaigns as campaigns_repo
from db.repositories import leads as leads_repo
from engines.conditions import matches_all
from engines.locks import SweepGuard
from engines.snapshots import lead_snapshot
from engines.workflow import WorkflowEngine
from tools import email_tools

logger = logging.getLogger(__name__)

QUEUE_DRAIN = "drain_workflow_queue"
CAMPAIGN_CHECK = "process_scheduled_campaigns"
SEGMENT_RECOMPUTE = "recompute_segment_sizes"


def lead_in_segment(lead: Lead, segment: Segment) -> bool:
    return matches_all(lead_snapshot(lead), segment.criteria or [])


class SweepRunner:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        engine: Optional[WorkflowEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.engine = engine or WorkflowEngine(session_factory, clock=clock)
        self._clock = clock
        self._guard = SweepGuard()

    def _uow(self):
        return session_scope(self._session_factory)

    async def drain_workflow_queue(self) -> Optional[int]:
        """Fire due wait continuations. None when skipped."""
        async with self._guard.try_acquire(QUEUE_DRAIN) as acquired:
            if not acquired:
                return None
            return await self.engine.resume_due()

    async def process_scheduled_campaigns(self) -> Optional[int]:
        """Send every due scheduled campaign. Returns campaigns sent, None when skipped."""
        async with self._guard.try_acquire(CAMPAIGN_CHECK) as acquired:
            if not acquired:
                return None
            now = self._clock()
            async with self._uow() as session:
                due = [c.id for c in await campaigns_repo.get_due_campaigns(session, now)]

            sent = 0
            for campaign_id in due:
                async with self._uow() as session:
                    if not await campaigns_repo.claim_campaign(session, campaign_id):
                        continue
                try:
                    await self._send_campaign(campaign_id)
                except Exception:
                    # one broken campaign must not hold up the rest of the batch
                    logger.exception("Campaign %s dispatch failed", campaign_id)
                    async with self._uow() as session:
                        await campaigns_repo.mark_campaign_failed(session, campaign_id)
                    continue
                sent += 1
            if sent:
                logger.info("Dispatched %d scheduled campaigns", sent)
            return sent

    async def _send_campaign(self, campaign_id: UUID) -> None:
        async with self._uow() as session:
            campaign = await campaigns_repo.get_campaign(session, campaign_id)
            segments = await campaigns_repo.get_segments(
                session, [UUID(s) for s in campaign.segment_ids]
            )
            leads = await leads_repo.list_all(session)
            recipients = sorted(
                {lead.email for lead in leads if any(lead_in_segment(lead, s) for s in segments)}
            )
            template_id = campaign.template_id
            subject = campaign.subject

        delivered = failed = 0
        for email in recipients:
            result = await asyncio.to_thread(
                email_tools.send_email,
                email,
                template_id,
                subject,
                None,
                str(campaign_id),
            )
            if result.get("error"):
                failed += 1
                logger.warning("Campaign %s: send to %s failed: %s", campaign_id, email, result["error"])
            else:
                delivered += 1

        async with self._uow() as session:
            await campaigns_repo.mark_campaign_sent(
                session, campaign_id, delivered, failed, self._clock()
            )

    async def recompute_segment_sizes(self) -> Optional[dict[str, int]]:
        """Recount every active segment. Returns {segment_id: size}, None when skipped."""
        async with self._guard.try_acquire(SEGMENT_RECOMPUTE) as acquired:
            if not acquired:
                return None
            now = self._clock()
            sizes: dict[str, int] = {}
            async with self._uow() as session:
                segments = await campaigns_repo.list_active_segments(session)
                leads = await leads_repo.list_all(session)
                for segment in segments:
                    size = sum(1 for lead in leads if lead_in_segment(lead, segment))
                    await campaigns_repo.update_segment_size(session, segment.id, size, now)
                    sizes[str(segment.id)] = size
            logger.info("Recomputed %d segment sizes", len(sizes))
            return sizes
