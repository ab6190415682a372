"""Workflow repository: definitions, rolling analytics and per-action performance."""
import logging
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ActionPerformance, Workflow, utcnow
from schemas.workflow import WorkflowDefinition

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOWS: list[dict] = [
    {
        "id": "welcome_series",
        "name": "Welcome Email Series",
        "description": "Automated welcome sequence for new foundation tier customers",
        "trigger": {
            "type": "purchase_made",
            "filters": [{"field": "data.product_id", "operator": "equals", "value": "foundation"}],
        },
        "actions": [
            {
                "id": "welcome_email_1",
                "type": "send_email",
                "order": 1,
                "template_id": "welcome_series_1",
                "personalization": {
                    "first_name": "{{lead.first_name}}",
                    "purchase_value": "{{data.trigger.value}}",
                },
            },
            {"id": "wait_3_days", "type": "wait", "order": 2, "wait_minutes": 4320},
            {
                "id": "onboarding_email",
                "type": "send_email",
                "order": 3,
                "template_id": "onboarding_tips",
                "personalization": {"first_name": "{{lead.first_name}}"},
            },
            {"id": "add_onboarded_tag", "type": "add_tag", "order": 4, "tag_name": "onboarded"},
        ],
        "settings": {"max_executions_per_contact": 1, "cooldown_hours": 168},
    },
    {
        "id": "cart_abandonment_sequence",
        "name": "Cart Abandonment Recovery",
        "description": "Automated sequence to recover abandoned carts",
        "trigger": {
            "type": "time_based",
            "delay_minutes": 60,
            "filters": [{"field": "cart_status", "operator": "equals", "value": "abandoned"}],
        },
        "actions": [
            {
                "id": "abandonment_email_1",
                "type": "send_email",
                "order": 1,
                "template_id": "cart_abandonment",
                "personalization": {
                    "first_name": "{{lead.first_name}}",
                    "cart_value": "{{lead.cart_total}}",
                },
            },
            {"id": "wait_24_hours", "type": "wait", "order": 2, "wait_minutes": 1440},
            {
                "id": "abandonment_email_2",
                "type": "send_email",
                "order": 3,
                "template_id": "cart_abandonment_discount",
                "personalization": {"first_name": "{{lead.first_name}}"},
            },
        ],
        "conditions": [
            {
                "id": "cart_still_abandoned",
                "type": "if",
                "field": "cart_status",
                "operator": "equals",
                "value": "abandoned",
            }
        ],
        "settings": {"max_executions_per_contact": 3, "cooldown_hours": 72},
    },
    {
        "id": "lead_nurturing",
        "name": "Lead Nurturing Campaign",
        "description": "Nurture qualified leads with educational content",
        "trigger": {
            "type": "score_threshold",
            "score_threshold": 50,
            "filters": [{"field": "status", "operator": "not_equals", "value": "closed_won"}],
        },
        "actions": [
            {"id": "nurture_email_1", "type": "send_email", "order": 1, "template_id": "nurture_content_1"},
            {"id": "wait_1_week", "type": "wait", "order": 2, "wait_minutes": 10080},
            {"id": "nurture_email_2", "type": "send_email", "order": 3, "template_id": "nurture_content_2"},
        ],
        "conditions": [
            {
                "id": "lead_still_qualified",
                "type": "if",
                "field": "score",
                "operator": "greater_than",
                "value": 40,
            }
        ],
        "settings": {"max_executions_per_contact": 1, "cooldown_hours": 336},
    },
]


def _insert(session: AsyncSession):
    """Dialect-specific insert supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


def _definition_columns(definition: WorkflowDefinition) -> dict:
    data = definition.model_dump(mode="json")
    return {
        "name": data["name"],
        "description": data["description"],
        "is_active": data["is_active"],
        "trigger_type": data["trigger"]["type"],
        "trigger": data["trigger"],
        "actions": data["actions"],
        "conditions": data["conditions"],
        "settings": data["settings"],
        "created_by": data["created_by"],
    }


async def get(session: AsyncSession, workflow_id: str) -> Optional[Workflow]:
    """Return the Workflow (analytics freshly loaded), or None."""
    return await session.get(Workflow, workflow_id, populate_existing=True)


async def get_active_by_trigger(session: AsyncSession, trigger_type: str) -> list[Workflow]:
    """Return active workflows listening for this trigger type."""
    result = await session.execute(
        select(Workflow)
        .where(Workflow.trigger_type == trigger_type)
        .where(Workflow.is_active.is_(True))
        .order_by(Workflow.created_at, Workflow.id)
    )
    return list(result.scalars().all())


async def list_active(session: AsyncSession) -> list[Workflow]:
    result = await session.execute(
        select(Workflow).where(Workflow.is_active.is_(True)).order_by(Workflow.created_at)
    )
    return list(result.scalars().all())


async def create(session: AsyncSession, definition: WorkflowDefinition) -> Workflow:
    """Insert a validated workflow definition with zeroed analytics."""
    now = utcnow()
    workflow = Workflow(
        id=definition.id or str(uuid.uuid4()),
        total_executions=0,
        active_participants=0,
        completed_participants=0,
        average_time_to_complete=0.0,
        created_at=now,
        updated_at=now,
        **_definition_columns(definition),
    )
    session.add(workflow)
    await session.flush()
    logger.info("Created workflow %s (%s)", workflow.id, workflow.name)
    return workflow


async def seed_defaults(session: AsyncSession) -> int:
    """Insert any missing default workflows. Returns the number inserted."""
    existing = set((await session.execute(select(Workflow.id))).scalars().all())
    inserted = 0
    for data in DEFAULT_WORKFLOWS:
        if data["id"] in existing:
            continue
        await create(session, WorkflowDefinition.model_validate(data))
        inserted += 1
    if inserted:
        logger.info("Seeded %d default workflows", inserted)
    return inserted


async def update_definition(
    session: AsyncSession, workflow_id: str, definition: WorkflowDefinition
) -> Optional[Workflow]:
    """Replace a workflow's definition, keeping its analytics. None if missing."""
    workflow = await get(session, workflow_id)
    if workflow is None:
        return None
    for key, value in _definition_columns(definition).items():
        setattr(workflow, key, value)
    workflow.updated_at = utcnow()
    await session.flush()
    return workflow


# ---------------------------------------------------------------------------
# Rolling analytics (single UPDATE statements, safe under concurrent executions)
# ---------------------------------------------------------------------------


async def record_execution_started(session: AsyncSession, workflow_id: str) -> None:
    await session.execute(
        update(Workflow)
        .where(Workflow.id == workflow_id)
        .values(
            total_executions=Workflow.total_executions + 1,
            active_participants=Workflow.active_participants + 1,
        )
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def record_execution_completed(
    session: AsyncSession, workflow_id: str, hours: float
) -> None:
    """Fold one completion into the incremental mean time-to-complete."""
    await session.execute(
        update(Workflow)
        .where(Workflow.id == workflow_id)
        .values(
            average_time_to_complete=(
                Workflow.average_time_to_complete * Workflow.completed_participants + hours
            )
            / (Workflow.completed_participants + 1),
            completed_participants=Workflow.completed_participants + 1,
            active_participants=Workflow.active_participants - 1,
        )
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def record_execution_ended(session: AsyncSession, workflow_id: str) -> None:
    """A failed or cancelled execution leaves the active set."""
    await session.execute(
        update(Workflow)
        .where(Workflow.id == workflow_id)
        .where(Workflow.active_participants > 0)
        .values(active_participants=Workflow.active_participants - 1)
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def record_action_result(
    session: AsyncSession,
    workflow_id: str,
    action_id: str,
    action_type: str,
    success: bool,
    duration_ms: float,
) -> None:
    """Count one attempt of an action and fold its duration into the running mean."""
    insert = _insert(session)
    await session.execute(
        insert(ActionPerformance)
        .values(
            id=uuid.uuid4(),
            workflow_id=workflow_id,
            action_id=action_id,
            action_type=action_type,
            executions=0,
            successes=0,
            failures=0,
            average_execution_ms=0.0,
        )
        .on_conflict_do_nothing(index_elements=["workflow_id", "action_id"])
    )
    await session.execute(
        update(ActionPerformance)
        .where(ActionPerformance.workflow_id == workflow_id)
        .where(ActionPerformance.action_id == action_id)
        .values(
            average_execution_ms=(
                ActionPerformance.average_execution_ms * ActionPerformance.executions
                + duration_ms
            )
            / (ActionPerformance.executions + 1),
            executions=ActionPerformance.executions + 1,
            successes=ActionPerformance.successes + (1 if success else 0),
            failures=ActionPerformance.failures + (0 if success else 1),
        )
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def get_action_performance(
    session: AsyncSession, workflow_id: str
) -> list[ActionPerformance]:
    result = await session.execute(
        select(ActionPerformance)
        .where(ActionPerformance.workflow_id == workflow_id)
        .order_by(ActionPerformance.action_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
