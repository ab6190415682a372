"""Initial schema: tracking, automation and campaign tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

LEAD_STATUSES = (
    "'new','contacted','qualified','proposal','negotiation',"
    "'closed_won','closed_lost','nurturing','unqualified'"
)
JOURNEY_STAGES = (
    "'awareness','interest','consideration','intent','evaluation',"
    "'purchase','onboarding','retention','advocacy'"
)
TOUCHPOINT_TYPES = (
    "'page_view','email_open','email_click','form_fill','download',"
    "'purchase','support_ticket','webinar_attendance'"
)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    # ─── Tracking ────────────────────────────────────────────────────────────

    op.create_table(
        "leads",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("company", sa.Text, nullable=True),
        sa.Column("job_title", sa.Text, nullable=True),
        sa.Column("industry", sa.Text, nullable=True),
        sa.Column("company_size", sa.Text, nullable=True),
        sa.Column("source", sa.JSON, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("current_stage", sa.Text, nullable=False),
        sa.Column("custom_fields", sa.JSON, nullable=False),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("assigned_to", sa.Text, nullable=True),
        sa.Column("total_interactions", sa.Integer, nullable=False),
        _ts("first_touch_at"),
        _ts("last_touch_at"),
        _ts("last_activity_at"),
        sa.Column("time_to_conversion_days", sa.Integer, nullable=True),
        sa.Column("conversion_value", sa.Float, nullable=True),
        sa.Column("attribution", sa.JSON, nullable=True),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.CheckConstraint(f"status IN ({LEAD_STATUSES})", name="ck_lead_status"),
        sa.CheckConstraint(f"current_stage IN ({JOURNEY_STAGES})", name="ck_lead_stage"),
        sa.CheckConstraint("score BETWEEN 0 AND 100", name="ck_lead_score_range"),
        sa.UniqueConstraint("email", name="uq_lead_email"),
    )

    op.create_table(
        "touchpoints",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("lead_id", sa.Uuid, sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        _ts("occurred_at", nullable=False),
        sa.Column("type", sa.Text, nullable=False),
        sa.Column("source", sa.JSON, nullable=False),
        sa.Column("page_url", sa.Text, nullable=True),
        sa.Column("email_campaign_id", sa.Text, nullable=True),
        sa.Column("form_id", sa.Text, nullable=True),
        sa.Column("download_asset", sa.Text, nullable=True),
        sa.Column("value", sa.Float, nullable=True),
        sa.Column("session_id", sa.Text, nullable=True),
        sa.Column("device_info", sa.JSON, nullable=True),
        sa.Column("location_info", sa.JSON, nullable=True),
        sa.Column("engagement", sa.JSON, nullable=False),
        sa.CheckConstraint(f"type IN ({TOUCHPOINT_TYPES})", name="ck_touchpoint_type"),
        sa.UniqueConstraint("lead_id", "position", name="uq_touchpoint_lead_position"),
    )
    op.create_index("ix_touchpoints_lead_id", "touchpoints", ["lead_id"])

    op.create_table(
        "stage_history",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("lead_id", sa.Uuid, sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("stage", sa.Text, nullable=False),
        _ts("entered_at", nullable=False),
        _ts("exited_at"),
        sa.Column("days_in_stage", sa.Integer, nullable=True),
        sa.Column("touchpoints", sa.Integer, nullable=False),
        sa.CheckConstraint(f"stage IN ({JOURNEY_STAGES})", name="ck_stage_history_stage"),
    )
    op.create_index("ix_stage_history_lead_id", "stage_history", ["lead_id"])

    op.create_table(
        "conversion_events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("lead_id", sa.Uuid, sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("event_type", sa.Text, nullable=False),
        sa.Column("value", sa.Float, nullable=False),
        sa.Column("currency", sa.Text, nullable=False),
        sa.Column("product_id", sa.Text, nullable=True),
        sa.Column("campaign_id", sa.Text, nullable=True),
        sa.Column("source", sa.JSON, nullable=False),
        sa.Column("attribution", sa.JSON, nullable=False),
        _ts("occurred_at", nullable=False),
        sa.CheckConstraint(
            "event_type IN ('purchase','signup','trial','demo_request','download','subscription')",
            name="ck_conversion_event_type",
        ),
    )
    op.create_index("ix_conversion_events_lead_id", "conversion_events", ["lead_id"])

    op.create_table(
        "scoring_rules",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("condition", sa.JSON, nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("frequency", sa.Text, nullable=False),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.CheckConstraint("frequency IN ('once','multiple')", name="ck_scoring_rule_frequency"),
        sa.CheckConstraint(
            "category IN ('demographic','behavioral','engagement','firmographic')",
            name="ck_scoring_rule_category",
        ),
    )

    # ─── Automation ──────────────────────────────────────────────────────────

    op.create_table(
        "workflows",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("trigger_type", sa.Text, nullable=False),
        sa.Column("trigger", sa.JSON, nullable=False),
        sa.Column("actions", sa.JSON, nullable=False),
        sa.Column("conditions", sa.JSON, nullable=False),
        sa.Column("settings", sa.JSON, nullable=False),
        sa.Column("total_executions", sa.Integer, nullable=False),
        sa.Column("active_participants", sa.Integer, nullable=False),
        sa.Column("completed_participants", sa.Integer, nullable=False),
        sa.Column("average_time_to_complete", sa.Float, nullable=False),
        sa.Column("created_by", sa.Text, nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
    )
    op.create_index("ix_workflows_trigger_type", "workflows", ["trigger_type"])

    op.create_table(
        "workflow_executions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("workflow_id", sa.Text, sa.ForeignKey("workflows.id"), nullable=False),
        sa.Column("lead_id", sa.Uuid, sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("current_action_index", sa.Integer, nullable=False),
        _ts("started_at", nullable=False),
        _ts("completed_at"),
        _ts("last_executed_at", nullable=False),
        _ts("waiting_until"),
        sa.Column("execution_data", sa.JSON, nullable=False),
        sa.Column("errors", sa.JSON, nullable=False),
        sa.CheckConstraint(
            "status IN ('running','completed','failed','paused','cancelled')",
            name="ck_execution_status",
        ),
    )
    op.create_index(
        "ix_execution_workflow_lead", "workflow_executions", ["workflow_id", "lead_id"]
    )

    op.create_table(
        "workflow_continuations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "execution_id", sa.Uuid, sa.ForeignKey("workflow_executions.id"), nullable=False
        ),
        sa.Column("action_index", sa.Integer, nullable=False),
        _ts("resume_at", nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        _ts("created_at", nullable=False),
        _ts("claimed_at"),
        sa.CheckConstraint(
            "status IN ('pending','claimed','cancelled')", name="ck_continuation_status"
        ),
    )
    op.create_index(
        "ix_workflow_continuations_execution_id", "workflow_continuations", ["execution_id"]
    )
    op.create_index("ix_continuation_due", "workflow_continuations", ["status", "resume_at"])

    op.create_table(
        "action_performance",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("workflow_id", sa.Text, sa.ForeignKey("workflows.id"), nullable=False),
        sa.Column("action_id", sa.Text, nullable=False),
        sa.Column("action_type", sa.Text, nullable=False),
        sa.Column("executions", sa.Integer, nullable=False),
        sa.Column("successes", sa.Integer, nullable=False),
        sa.Column("failures", sa.Integer, nullable=False),
        sa.Column("average_execution_ms", sa.Float, nullable=False),
        sa.UniqueConstraint("workflow_id", "action_id", name="uq_action_performance_key"),
    )

    # ─── Campaigns ───────────────────────────────────────────────────────────

    op.create_table(
        "ab_tests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("hypothesis", sa.Text, nullable=True),
        sa.Column("variants", sa.JSON, nullable=False),
        sa.Column("winning_variant", sa.Text, nullable=True),
        sa.Column("confidence_level", sa.Float, nullable=False),
        sa.Column("statistically_significant", sa.Boolean, nullable=False),
        sa.Column("uplift", sa.Float, nullable=False),
        sa.Column("p_value", sa.Float, nullable=False),
        sa.Column("sample_size", sa.Integer, nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
    )

    op.create_table(
        "segments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("criteria", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("estimated_size", sa.Integer, nullable=False),
        _ts("last_calculated_at"),
        _ts("created_at", nullable=False),
    )

    op.create_table(
        "email_campaigns",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("template_id", sa.Text, nullable=False),
        sa.Column("subject", sa.Text, nullable=True),
        sa.Column("segment_ids", sa.JSON, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        _ts("scheduled_at"),
        _ts("sent_at"),
        sa.Column("total_sent", sa.Integer, nullable=False),
        sa.Column("total_failed", sa.Integer, nullable=False),
        _ts("created_at", nullable=False),
        sa.CheckConstraint(
            "status IN ('draft','scheduled','sending','sent','failed','cancelled')",
            name="ck_email_campaign_status",
        ),
    )
    op.create_index("ix_email_campaign_due", "email_campaigns", ["status", "scheduled_at"])


def downgrade() -> None:
    op.drop_table("email_campaigns")
    op.drop_table("segments")
    op.drop_table("ab_tests")
    op.drop_table("action_performance")
    op.drop_table("workflow_continuations")
    op.drop_table("workflow_executions")
    op.drop_table("workflows")
    op.drop_table("scoring_rules")
    op.drop_table("conversion_events")
    op.drop_table("stage_history")
    op.drop_table("touchpoints")
    op.drop_table("leads")
