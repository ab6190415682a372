"""Lead tracking service: capture, touchpoint ingest, conversions and analytics.

Every lead mutation happens under the lead's lock inside one unit of work;
workflow triggers fire only after the lock is released, because workflow
steps take the same lock.
"""
import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.connection import session_scope
from db.models import ConversionEvent, Lead, utcnow
from db.repositories import conversions as conversions_repo
from db.repositories import leads as leads_repo
from db.repositories import scoring_rules as scoring_rules_repo
from engines import journey
from engines.attribution import compute_attribution
from engines.errors import LeadNotFoundError
from engines.scoring import compute_score
from engines.snapshots import lead_snapshot, touchpoint_snapshot
from engines.triggers import trigger_for_touchpoint
from engines.workflow import WorkflowEngine
from schemas.lead import (
    AttributionModel,
    ChannelPerformance,
    EngagementMetrics,
    JourneyStage,
    LeadAnalytics,
    LeadJourney,
    LeadSource,
    LeadStatus,
    StageEntry,
    TouchpointOut,
    TouchpointType,
)

logger = logging.getLogger(__name__)

ANALYTICS_WINDOW_DAYS = 30
QUALITY_SCORE_THRESHOLD = 50
TOP_CHANNELS = 5

LEAD_ATTRIBUTES = (
    "first_name",
    "last_name",
    "phone",
    "company",
    "job_title",
    "industry",
    "company_size",
    "assigned_to",
)

TOUCHPOINT_DETAILS = (
    "page_url",
    "email_campaign_id",
    "form_id",
    "download_asset",
    "value",
    "session_id",
    "device_info",
    "location_info",
)


def _source_dict(source: Union[LeadSource, dict, None]) -> dict:
    if source is None:
        return {}
    if isinstance(source, LeadSource):
        return source.model_dump(exclude_none=True)
    return LeadSource.model_validate(source).model_dump(exclude_none=True)


def _engagement_dict(engagement: Union[EngagementMetrics, dict, None]) -> dict:
    if engagement is None:
        return {}
    if isinstance(engagement, EngagementMetrics):
        return engagement.model_dump(exclude_none=True)
    return EngagementMetrics.model_validate(engagement).model_dump(exclude_none=True)


class LeadTracker:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        engine: Optional[WorkflowEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.engine = engine or WorkflowEngine(session_factory, clock=clock)
        self.locks = self.engine.locks
        self._clock = clock

    def _uow(self):
        return session_scope(self._session_factory)

    async def load_default_rules(self) -> int:
        """Seed the default scoring rules if they are missing."""
        async with self._uow() as session:
            return await scoring_rules_repo.seed_defaults(session)

    async def _rescore(self, session: AsyncSession, lead: Lead) -> int:
        rules = await scoring_rules_repo.get_active(session)
        touchpoints = [touchpoint_snapshot(tp) for tp in lead.touchpoints]
        lead.score = compute_score(lead_snapshot(lead), touchpoints, rules)
        lead.updated_at = self._clock()
        return lead.score

    # ------------------------------------------------------------------
    # Capture / ingest
    # ------------------------------------------------------------------

    async def capture_lead(
        self,
        email: str,
        source: Union[LeadSource, dict, None] = None,
        tags: Optional[Iterable[str]] = None,
        custom_fields: Optional[dict] = None,
        **attributes: Any,
    ) -> Lead:
        """Return the lead for this email, creating and scoring it on first touch.

        Keyword attributes that are not lead columns are stored as custom fields.
        """
        normalized = leads_repo.normalize_email(email or "")
        if "@" not in normalized:
            raise ValueError(f"Invalid email address: {email!r}")

        data: dict[str, Any] = {
            "source": _source_dict(source),
            "tags": list(dict.fromkeys(tags or [])),
            "custom_fields": dict(custom_fields or {}),
        }
        for key, value in attributes.items():
            if key in LEAD_ATTRIBUTES:
                data[key] = value
            else:
                data["custom_fields"][key] = value

        async with self.locks.hold(f"email:{normalized}"):
            async with self._uow() as session:
                existing = await leads_repo.get_by_email(session, normalized)
                if existing is not None:
                    return existing
                lead = await leads_repo.create(session, normalized, data)
                await self._rescore(session, lead)

        logger.info("Captured lead %s (score %d)", lead.id, lead.score)
        await self.engine.fire_trigger("lead_created", lead.id, {"email": normalized})
        return lead

    async def record_touchpoint(
        self,
        lead_id: UUID,
        touchpoint_type: Union[TouchpointType, str],
        source: Union[LeadSource, dict, None] = None,
        engagement: Union[EngagementMetrics, dict, None] = None,
        occurred_at: Optional[datetime] = None,
        **details: Any,
    ) -> UUID:
        """Append a touchpoint, advance the journey, rescore, then fire triggers.

        details keys: page_url, email_campaign_id, form_id, download_asset,
        value, session_id, device_info, location_info
        """
        touchpoint_type = TouchpointType(touchpoint_type).value
        unknown = set(details) - set(TOUCHPOINT_DETAILS)
        if unknown:
            raise ValueError(f"Unknown touchpoint fields: {', '.join(sorted(unknown))}")

        now = self._clock()
        occurred_at = occurred_at or now
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                lead = await leads_repo.get_for_update(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)

                touchpoint = await leads_repo.add_touchpoint(
                    session,
                    lead,
                    {
                        "type": touchpoint_type,
                        "occurred_at": occurred_at,
                        "source": _source_dict(source) if source is not None else dict(lead.source or {}),
                        "engagement": _engagement_dict(engagement),
                        **details,
                    },
                )
                lead.total_interactions = (lead.total_interactions or 0) + 1
                if lead.first_touch_at is None:
                    lead.first_touch_at = occurred_at
                lead.last_touch_at = occurred_at
                lead.last_activity_at = now

                entry = journey.open_entry(lead)
                if entry is not None:
                    entry.touchpoints = (entry.touchpoints or 0) + 1
                snapshot = touchpoint_snapshot(touchpoint)
                target = journey.next_stage(lead.current_stage, snapshot)
                if target is not None:
                    journey.move_to_stage(lead, target, now)

                previous_score = lead.score
                score = await self._rescore(session, lead)
                touchpoint_id = touchpoint.id

        logger.info(
            "Tracked %s touchpoint %s for lead %s (score %d -> %d)",
            touchpoint_type, touchpoint_id, lead_id, previous_score, score,
        )

        event = {key: value for key, value in snapshot.items() if key not in ("source", "engagement")}
        event["touchpoint_id"] = str(touchpoint_id)
        trigger_type = trigger_for_touchpoint(touchpoint_type)
        if trigger_type is not None:
            await self.engine.fire_trigger(trigger_type, lead_id, event)
        if score > previous_score:
            await self.engine.fire_trigger(
                "score_threshold", lead_id, {"previous_score": previous_score, "score": score}
            )
        return touchpoint_id

    async def record_conversion(
        self,
        lead_id: UUID,
        event_type: str,
        value: float,
        currency: str = "USD",
        product_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
    ) -> UUID:
        """Store a conversion with its attribution snapshot and close the lead as won."""
        now = self._clock()
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                lead = await leads_repo.get_for_update(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)

                touchpoints = [touchpoint_snapshot(tp) for tp in lead.touchpoints]
                attribution = compute_attribution(touchpoints, value, now).model_dump(mode="json")
                conversion = await conversions_repo.create(
                    session,
                    lead.id,
                    event_type,
                    value,
                    currency,
                    attribution,
                    now,
                    source=dict(lead.source or {}),
                    product_id=product_id,
                    campaign_id=campaign_id,
                )
                lead.attribution = attribution
                lead.conversion_value = value
                lead.status = LeadStatus.CLOSED_WON.value
                lead.time_to_conversion_days = max(int((now - lead.created_at).total_seconds() // 86400), 0)
                journey.move_to_stage(lead, JourneyStage.PURCHASE.value, now)
                lead.updated_at = now
                lead.last_activity_at = now
                conversion_id = conversion.id

        logger.info(
            "Conversion %s recorded for lead %s: %.2f %s", conversion_id, lead_id, value, currency
        )
        await self.engine.fire_trigger(
            "purchase_made",
            lead_id,
            {
                "conversion_id": str(conversion_id),
                "event_type": event_type,
                "value": value,
                "product_id": product_id,
            },
        )
        return conversion_id

    # ------------------------------------------------------------------
    # Administrative updates
    # ------------------------------------------------------------------

    async def add_tags(self, lead_id: UUID, tags: Iterable[str]) -> list[str]:
        """Add tags; fires tag_added for the ones that were new. Returns those."""
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                lead = await leads_repo.get_for_update(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)
                current = list(lead.tags or [])
                added = [t for t in dict.fromkeys(tags) if t not in current]
                if added:
                    lead.tags = current + added
                    lead.updated_at = self._clock()
        if added:
            await self.engine.fire_trigger("tag_added", lead_id, {"tags": added})
        return added

    async def update_lead_stage(self, lead_id: UUID, stage: Union[JourneyStage, str]) -> bool:
        """Move a lead to a stage by hand. False when it is already there."""
        stage = JourneyStage(stage).value
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                lead = await leads_repo.get_for_update(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)
                return journey.move_to_stage(lead, stage, self._clock())

    async def rescore_lead(self, lead_id: UUID) -> int:
        """Recompute a lead's score, e.g. after scoring rules changed."""
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                lead = await leads_repo.get_for_update(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)
                return await self._rescore(session, lead)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_lead(self, lead_id: UUID) -> Lead:
        async with self._uow() as session:
            lead = await leads_repo.get(session, lead_id)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            return lead

    async def list_leads(
        self,
        status: Union[LeadStatus, str, None] = None,
        channel: Optional[str] = None,
        min_score: Optional[int] = None,
    ) -> list[Lead]:
        """Leads matching every given filter, highest score first."""
        if status is not None:
            status = LeadStatus(status).value
        async with self._uow() as session:
            return await leads_repo.list_leads(
                session, status=status, channel=channel, min_score=min_score
            )

    async def get_touchpoints(self, lead_id: UUID) -> list[TouchpointOut]:
        async with self._uow() as session:
            if await leads_repo.get(session, lead_id) is None:
                raise LeadNotFoundError(lead_id)
            touchpoints = await leads_repo.get_touchpoints(session, lead_id)
            return [TouchpointOut(**touchpoint_snapshot(tp)) for tp in touchpoints]

    async def get_conversions(
        self, since: Optional[datetime] = None, lead_id: Optional[UUID] = None
    ) -> list[ConversionEvent]:
        """Stored conversions newest first, optionally since a time or for one lead."""
        async with self._uow() as session:
            return await conversions_repo.list_recent(session, since=since, lead_id=lead_id)

    async def get_lead_journey(self, lead_id: UUID) -> LeadJourney:
        lead = await self.get_lead(lead_id)
        return LeadJourney(
            lead_id=str(lead.id),
            current_stage=lead.current_stage,
            touchpoints=[TouchpointOut(**touchpoint_snapshot(tp)) for tp in lead.touchpoints],
            stage_history=[
                StageEntry(
                    stage=entry.stage,
                    entered_at=entry.entered_at,
                    exited_at=entry.exited_at,
                    days_in_stage=entry.days_in_stage,
                    touchpoints=entry.touchpoints,
                )
                for entry in lead.stage_history
            ],
            total_interactions=lead.total_interactions,
            time_to_conversion=lead.time_to_conversion_days,
            conversion_value=lead.conversion_value,
            attribution=AttributionModel.model_validate(lead.attribution) if lead.attribution else None,
        )

    async def get_lead_analytics(self) -> LeadAnalytics:
        """Aggregates over leads created in the last 30 days."""
        since = self._clock() - timedelta(days=ANALYTICS_WINDOW_DAYS)
        async with self._uow() as session:
            leads = await leads_repo.list_all(session, created_since=since)

        total = len(leads)
        by_source: Counter = Counter()
        by_stage: Counter = Counter()
        conversions: Counter = Counter()
        revenue: dict[str, float] = defaultdict(float)
        conversion_days = []
        for lead in leads:
            channel = (lead.source or {}).get("channel", "direct")
            by_source[channel] += 1
            by_stage[lead.current_stage] += 1
            if lead.status == LeadStatus.CLOSED_WON.value:
                conversions[channel] += 1
                revenue[channel] += lead.conversion_value or 0.0
                if lead.time_to_conversion_days is not None:
                    conversion_days.append(lead.time_to_conversion_days)

        conversion_rates = {
            channel: conversions[channel] / count * 100.0 for channel, count in by_source.items()
        }

        quality = 0
        if total:
            average_score = sum(lead.score for lead in leads) / total
            high_quality = sum(1 for lead in leads if lead.score >= QUALITY_SCORE_THRESHOLD)
            quality = round((average_score + high_quality / total * 100.0) / 2)

        channels = [
            ChannelPerformance(
                channel=channel,
                leads=count,
                conversions=conversions[channel],
                conversion_rate=conversion_rates[channel],
                revenue=revenue[channel],
            )
            for channel, count in by_source.items()
        ]
        channels.sort(key=lambda c: c.conversion_rate, reverse=True)

        return LeadAnalytics(
            total_leads=total,
            leads_by_source=dict(by_source),
            leads_by_stage=dict(by_stage),
            conversion_rates=conversion_rates,
            average_time_to_conversion=(
                sum(conversion_days) / len(conversion_days) if conversion_days else 0.0
            ),
            lead_quality_score=quality,
            top_performing_channels=channels[:TOP_CHANNELS],
        )
