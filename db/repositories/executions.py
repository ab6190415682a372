"""Workflow execution repository: execution state and durable wait continuations."""
import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import WorkflowContinuation, WorkflowExecution

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = ("running", "paused")


async def create(
    session: AsyncSession,
    workflow_id: str,
    lead_id: UUID,
    trigger_data: dict,
    started_at: datetime,
) -> WorkflowExecution:
    """Insert a running execution positioned at action index 0."""
    execution = WorkflowExecution(
        workflow_id=workflow_id,
        lead_id=lead_id,
        status="running",
        current_action_index=0,
        started_at=started_at,
        last_executed_at=started_at,
        execution_data={"trigger": trigger_data},
        errors=[],
    )
    session.add(execution)
    await session.flush()
    return execution


async def get(session: AsyncSession, execution_id: UUID) -> Optional[WorkflowExecution]:
    """Return the execution with its current database state, or None."""
    return await session.get(WorkflowExecution, execution_id, populate_existing=True)


async def get_status(session: AsyncSession, execution_id: UUID) -> Optional[str]:
    """Read only the status column (the cooperative pause/cancel flag)."""
    result = await session.execute(
        select(WorkflowExecution.status).where(WorkflowExecution.id == execution_id)
    )
    return result.scalar_one_or_none()


async def transition(
    session: AsyncSession,
    execution_id: UUID,
    from_statuses: Sequence[str],
    to_status: str,
    **values,
) -> bool:
    """Conditionally move an execution between statuses.

    Returns False when the execution was not in one of from_statuses, so
    concurrent pause/cancel/complete calls cannot overwrite each other.
    """
    result = await session.execute(
        update(WorkflowExecution)
        .where(WorkflowExecution.id == execution_id)
        .where(WorkflowExecution.status.in_(from_statuses))
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount == 1


async def count_for(session: AsyncSession, workflow_id: str, lead_id: UUID) -> int:
    """Number of executions ever created for (workflow, lead)."""
    result = await session.execute(
        select(func.count(WorkflowExecution.id))
        .where(WorkflowExecution.workflow_id == workflow_id)
        .where(WorkflowExecution.lead_id == lead_id)
    )
    return result.scalar_one()


async def get_latest_for(
    session: AsyncSession, workflow_id: str, lead_id: UUID
) -> Optional[WorkflowExecution]:
    """Most recently started execution for (workflow, lead), or None."""
    result = await session.execute(
        select(WorkflowExecution)
        .where(WorkflowExecution.workflow_id == workflow_id)
        .where(WorkflowExecution.lead_id == lead_id)
        .order_by(WorkflowExecution.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_active(
    session: AsyncSession, workflow_id: Optional[str] = None
) -> list[WorkflowExecution]:
    """Running or paused executions, oldest first."""
    stmt = select(WorkflowExecution).where(WorkflowExecution.status.in_(_ACTIVE_STATUSES))
    if workflow_id is not None:
        stmt = stmt.where(WorkflowExecution.workflow_id == workflow_id)
    result = await session.execute(stmt.order_by(WorkflowExecution.started_at))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Continuations
# ---------------------------------------------------------------------------


async def schedule_continuation(
    session: AsyncSession,
    execution_id: UUID,
    action_index: int,
    resume_at: datetime,
) -> WorkflowContinuation:
    """Persist a resume point for an execution suspended on a wait action."""
    continuation = WorkflowContinuation(
        execution_id=execution_id,
        action_index=action_index,
        resume_at=resume_at,
        status="pending",
    )
    session.add(continuation)
    await session.flush()
    return continuation


async def get_due_continuations(
    session: AsyncSession, now: datetime, limit: int = 100
) -> list[WorkflowContinuation]:
    """Pending continuations whose resume time has passed, earliest first."""
    result = await session.execute(
        select(WorkflowContinuation)
        .where(WorkflowContinuation.status == "pending")
        .where(WorkflowContinuation.resume_at <= now)
        .order_by(WorkflowContinuation.resume_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def claim_continuation(
    session: AsyncSession, continuation_id: UUID, now: datetime
) -> bool:
    """Flip pending→claimed. Only one caller can win a given continuation."""
    result = await session.execute(
        update(WorkflowContinuation)
        .where(WorkflowContinuation.id == continuation_id)
        .where(WorkflowContinuation.status == "pending")
        .values(status="claimed", claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount == 1


async def cancel_continuations(session: AsyncSession, execution_id: UUID) -> int:
    """Cancel every pending continuation of an execution. Returns the count."""
    result = await session.execute(
        update(WorkflowContinuation)
        .where(WorkflowContinuation.execution_id == execution_id)
        .where(WorkflowContinuation.status == "pending")
        .values(status="cancelled")
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    count = result.rowcount
    if count:
        logger.info("Cancelled %d continuations for execution %s", count, execution_id)
    return count


async def has_pending_continuation(session: AsyncSession, execution_id: UUID) -> bool:
    result = await session.execute(
        select(WorkflowContinuation.id)
        .where(WorkflowContinuation.execution_id == execution_id)
        .where(WorkflowContinuation.status == "pending")
        .limit(1)
    )
    return result.scalar_one_or_none() is not None
