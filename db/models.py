"""SQLAlchemy 2.0 ORM models for the lead tracking and automation core.

Covers 12 tables in three groups:
  - tracking: leads, touchpoints, stage_history, conversion_events, scoring_rules
  - automation: workflows, workflow_executions, workflow_continuations,
                action_performance
  - campaigns: ab_tests, segments, email_campaigns
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend.

    SQLite hands back naive values; they are re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enumerated values used in CHECK constraints
# ---------------------------------------------------------------------------

LEAD_STATUSES = (
    "new",
    "contacted",
    "qualified",
    "proposal",
    "negotiation",
    "closed_won",
    "closed_lost",
    "nurturing",
    "unqualified",
)

JOURNEY_STAGES = (
    "awareness",
    "interest",
    "consideration",
    "intent",
    "evaluation",
    "purchase",
    "onboarding",
    "retention",
    "advocacy",
)

TOUCHPOINT_TYPES = (
    "page_view",
    "email_open",
    "email_click",
    "form_fill",
    "download",
    "purchase",
    "support_ticket",
    "webinar_attendance",
)

EXECUTION_STATUSES = ("running", "completed", "failed", "paused", "cancelled")


def _in_check(column: str, values: tuple) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


# ===========================================================================
# Tracking
# ===========================================================================


class Lead(Base):
    """leads: one prospect, its firm attributes, score and journey summary."""

    __tablename__ = "leads"
    __table_args__ = (
        CheckConstraint(_in_check("status", LEAD_STATUSES), name="ck_lead_status"),
        CheckConstraint(_in_check("current_stage", JOURNEY_STAGES), name="ck_lead_stage"),
        CheckConstraint("score BETWEEN 0 AND 100", name="ck_lead_score_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company_size: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(Text, default="new", nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_stage: Mapped[str] = mapped_column(Text, default="awareness", nullable=False)
    custom_fields: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_interactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_touch_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_touch_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    time_to_conversion_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    conversion_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Attribution snapshot of the latest conversion
    attribution: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships (eager: leads are always read together with their journey)
    touchpoints: Mapped[list["Touchpoint"]] = relationship(
        "Touchpoint",
        back_populates="lead",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Touchpoint.position",
    )
    stage_history: Mapped[list["StageHistory"]] = relationship(
        "StageHistory",
        back_populates="lead",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StageHistory.position",
    )


class Touchpoint(Base):
    """touchpoints: immutable interaction record, appended in chronological order."""

    __tablename__ = "touchpoints"
    __table_args__ = (
        CheckConstraint(_in_check("type", TOUCHPOINT_TYPES), name="ck_touchpoint_type"),
        UniqueConstraint("lead_id", "position", name="uq_touchpoint_lead_position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leads.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    page_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email_campaign_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    form_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    download_asset: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    device_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    location_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    engagement: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    lead: Mapped["Lead"] = relationship("Lead", back_populates="touchpoints")


class StageHistory(Base):
    """stage_history: enter/exit timestamps for each funnel stage a lead passed."""

    __tablename__ = "stage_history"
    __table_args__ = (
        CheckConstraint(_in_check("stage", JOURNEY_STAGES), name="ck_stage_history_stage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leads.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[str] = mapped_column(Text, nullable=False)
    entered_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    exited_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    days_in_stage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    touchpoints: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    lead: Mapped["Lead"] = relationship("Lead", back_populates="stage_history")


class ConversionEvent(Base):
    """conversion_events: one per purchase/signup, with its attribution snapshot."""

    __tablename__ = "conversion_events"
    __table_args__ = (
        CheckConstraint(
            "event_type IN ('purchase', 'signup', 'trial', 'demo_request', "
            "'download', 'subscription')",
            name="ck_conversion_event_type",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leads.id"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(Text, default="USD", nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    attribution: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class ScoringRule(Base):
    """scoring_rules: process-wide lead scoring configuration."""

    __tablename__ = "scoring_rules"
    __table_args__ = (
        CheckConstraint("frequency IN ('once', 'multiple')", name="ck_scoring_rule_frequency"),
        CheckConstraint(
            "category IN ('demographic', 'behavioral', 'engagement', 'firmographic')",
            name="ck_scoring_rule_category",
        ),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # {"field": ..., "operator": ..., "value": ...}
    condition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[str] = mapped_column(Text, default="once", nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


# ===========================================================================
# Automation
# ===========================================================================


class Workflow(Base):
    """workflows: trigger → condition → action automation definition + rolling analytics."""

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    trigger_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    trigger: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    total_executions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_participants: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_participants: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_time_to_complete: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_by: Mapped[str] = mapped_column(Text, default="system", nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class WorkflowExecution(Base):
    """workflow_executions: one activation of a workflow for one lead."""

    __tablename__ = "workflow_executions"
    __table_args__ = (
        CheckConstraint(_in_check("status", EXECUTION_STATUSES), name="ck_execution_status"),
        Index("ix_execution_workflow_lead", "workflow_id", "lead_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id: Mapped[str] = mapped_column(Text, ForeignKey("workflows.id"), nullable=False)
    lead_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("leads.id"), nullable=False)
    status: Mapped[str] = mapped_column(Text, default="running", nullable=False)
    current_action_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_executed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    # Set while suspended on a wait action
    waiting_until: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    execution_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class WorkflowContinuation(Base):
    """workflow_continuations: durable resume points for executions suspended on wait."""

    __tablename__ = "workflow_continuations"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'claimed', 'cancelled')",
            name="ck_continuation_status",
        ),
        Index("ix_continuation_due", "status", "resume_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    execution_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow_executions.id"), nullable=False, index=True
    )
    action_index: Mapped[int] = mapped_column(Integer, nullable=False)
    resume_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(Text, default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class ActionPerformance(Base):
    """action_performance: running counters per (workflow, action)."""

    __tablename__ = "action_performance"
    __table_args__ = (
        UniqueConstraint("workflow_id", "action_id", name="uq_action_performance_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id: Mapped[str] = mapped_column(Text, ForeignKey("workflows.id"), nullable=False)
    action_id: Mapped[str] = mapped_column(Text, nullable=False)
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    executions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_execution_ms: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)


# ===========================================================================
# Campaigns
# ===========================================================================


class ABTest(Base):
    """ab_tests: two-variant experiment with its latest significance result."""

    __tablename__ = "ab_tests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    hypothesis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # [{"id", "name", "visitors", "conversions", "revenue"}, ...]; index 0 is the control
    variants: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    winning_variant: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confidence_level: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    statistically_significant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    uplift: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    p_value: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    sample_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class Segment(Base):
    """segments: saved lead filters used as email campaign audiences."""

    __tablename__ = "segments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # All criteria must hold: [{"field", "operator", "value"}, ...]
    criteria: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    estimated_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_calculated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class EmailCampaign(Base):
    """email_campaigns: one-off sends to segment audiences, dispatched by the sweep."""

    __tablename__ = "email_campaigns"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'scheduled', 'sending', 'sent', 'failed', 'cancelled')",
            name="ck_email_campaign_status",
        ),
        Index("ix_email_campaign_due", "status", "scheduled_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    template_id: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    segment_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(Text, default="draft", nullable=False)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    total_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    "UTCDateTime",
    "utcnow",
    # tracking
    "Lead",
    "Touchpoint",
    "StageHistory",
    "ConversionEvent",
    "ScoringRule",
    # automation
    "Workflow",
    "WorkflowExecution",
    "WorkflowContinuation",
    "ActionPerformance",
    # campaigns
    "ABTest",
    "Segment",
    "EmailCampaign",
]
