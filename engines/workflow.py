"""Workflow execution engine: trigger → condition → action automation runtime.

Each execution advances one action per unit of work while holding its lead's
lock, so condition checks and lead mutations never interleave with scoring
or journey updates for the same lead. A ``wait`` action persists a
continuation row and suspends; ``resume_due`` (run by the queue-drain sweep)
picks continuations up after their resume time, so waits survive restarts.

Status transitions use conditional UPDATEs:

    running → completed | failed | paused | cancelled
    paused  → running | cancelled
"""
import asyncio
import hashlib
import logging
import re
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union
from uuid import UUID

from pydantic import ValidationError
from pydantic_core import to_jsonable_python
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.connection import session_scope
from db.models import Lead, Workflow, WorkflowExecution, utcnow
from db.repositories import executions as executions_repo
from db.repositories import leads as leads_repo
from db.repositories import workflows as workflows_repo
from engines.conditions import evaluate_condition, resolve_field, MISSING
from engines.errors import (
    ActionExecutionError,
    ExecutionNotFoundError,
    InvalidWorkflowError,
    LeadNotFoundError,
    UnknownActionError,
    WorkflowNotFoundError,
)
from engines.experiments import apply_variant_delta
from engines.locks import LeadLocks
from engines.snapshots import lead_snapshot
from engines.triggers import trigger_matches
from schemas.lead import LeadStatus
from schemas.workflow import (
    ACTION_TYPES,
    ActionPerformanceOut,
    AddTagAction,
    AssignLeadAction,
    CreateTaskAction,
    ExecutionError,
    RemoveTagAction,
    SendEmailAction,
    SplitTestAction,
    UpdateFieldAction,
    WaitAction,
    WebhookAction,
    WorkflowAnalytics,
    WorkflowCondition,
    WorkflowDefinition,
    WorkflowSettings,
    WorkflowTrigger,
    action_adapter,
)
from tools import email_tools, task_tools, webhook_tools

logger = logging.getLogger(__name__)

# Lead columns an update_field action may set directly; anything else is a custom field
UPDATABLE_LEAD_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "company",
    "job_title",
    "industry",
    "company_size",
    "status",
    "assigned_to",
)

_PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


class _StepFailure(Exception):
    """An action failed for good; carries what the error log needs."""

    def __init__(self, action_id: str, action_type: str, error: Exception, attempts: int,
                 duration_ms: float) -> None:
        super().__init__(str(error))
        self.action_id = action_id
        self.action_type = action_type
        self.error = error
        self.attempts = attempts
        self.duration_ms = duration_ms


class WorkflowEngine:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        locks: Optional[LeadLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self._session_factory = session_factory
        self.locks = locks or LeadLocks()
        self._clock = clock
        self._retry_backoff_seconds = retry_backoff_seconds

    def _uow(self):
        return session_scope(self._session_factory)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(definition: Union[WorkflowDefinition, dict]) -> WorkflowDefinition:
        if isinstance(definition, WorkflowDefinition):
            return definition
        try:
            return WorkflowDefinition.model_validate(definition)
        except ValidationError as exc:
            raise InvalidWorkflowError(
                f"Invalid workflow definition: {exc.error_count()} error(s)",
                {"errors": exc.errors(include_url=False)},
            ) from exc

    async def create_workflow(self, definition: Union[WorkflowDefinition, dict]) -> str:
        """Validate and store a workflow. Returns its id."""
        definition = self._validate(definition)
        async with self._uow() as session:
            workflow = await workflows_repo.create(session, definition)
            return workflow.id

    async def update_workflow(
        self, workflow_id: str, definition: Union[WorkflowDefinition, dict]
    ) -> None:
        """Replace a workflow's definition; running executions see it from their next step."""
        definition = self._validate(definition)
        async with self._uow() as session:
            workflow = await workflows_repo.update_definition(session, workflow_id, definition)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)

    @staticmethod
    def _definition_of(workflow: Workflow) -> WorkflowDefinition:
        return WorkflowDefinition.model_validate(
            {
                "id": workflow.id,
                "name": workflow.name,
                "description": workflow.description or "",
                "is_active": workflow.is_active,
                "trigger": workflow.trigger,
                "actions": workflow.actions,
                "conditions": workflow.conditions,
                "settings": workflow.settings,
                "created_by": workflow.created_by,
            }
        )

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        async with self._uow() as session:
            workflow = await workflows_repo.get(session, workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            return self._definition_of(workflow)

    async def list_workflows(self) -> list[WorkflowDefinition]:
        """Active workflow definitions, oldest first."""
        async with self._uow() as session:
            return [self._definition_of(w) for w in await workflows_repo.list_active(session)]

    async def load_default_workflows(self) -> int:
        """Seed the built-in welcome, cart recovery and nurture workflows if missing."""
        async with self._uow() as session:
            return await workflows_repo.seed_defaults(session)

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    async def fire_trigger(
        self, trigger_type: str, lead_id: UUID, data: Optional[dict] = None
    ) -> list[UUID]:
        """Start every active workflow whose trigger matches this event."""
        data = dict(data or {})
        async with self._uow() as session:
            lead = await leads_repo.get(session, lead_id)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            snapshot = lead_snapshot(lead)
            candidates = [
                workflow.id
                for workflow in await workflows_repo.get_active_by_trigger(session, trigger_type)
                if trigger_matches(WorkflowTrigger.model_validate(workflow.trigger), data, snapshot)
            ]

        started = []
        for workflow_id in candidates:
            execution_id = await self.trigger_workflow(
                workflow_id, lead_id, {"trigger_type": trigger_type, **data}
            )
            if execution_id is not None:
                started.append(execution_id)
        return started

    async def trigger_workflow(
        self, workflow_id: str, lead_id: UUID, trigger_data: Optional[dict] = None
    ) -> Optional[UUID]:
        """Start an execution of workflow_id for lead_id.

        Returns None (no-op) when the workflow is inactive, the lead has used up
        max_executions_per_contact, or the latest execution started within the
        cooldown. Unknown workflow or lead ids raise.
        """
        now = self._clock()
        # admission is serialized per (workflow, lead) so the count check holds
        async with self.locks.hold(f"admission:{workflow_id}:{lead_id}"):
            async with self._uow() as session:
                workflow = await workflows_repo.get(session, workflow_id)
                if workflow is None:
                    raise WorkflowNotFoundError(workflow_id)
                if not workflow.is_active:
                    logger.warning("Workflow %s is inactive; trigger ignored", workflow_id)
                    return None
                lead = await leads_repo.get(session, lead_id)
                if lead is None:
                    raise LeadNotFoundError(lead_id)

                settings = WorkflowSettings.model_validate(workflow.settings or {})
                count = await executions_repo.count_for(session, workflow_id, lead.id)
                if count >= settings.max_executions_per_contact:
                    logger.warning(
                        "Lead %s reached max executions (%d) for workflow %s",
                        lead_id, settings.max_executions_per_contact, workflow_id,
                    )
                    return None

                latest = await executions_repo.get_latest_for(session, workflow_id, lead.id)
                if latest is not None and settings.cooldown_hours > 0:
                    cooldown_ends = latest.started_at + timedelta(hours=settings.cooldown_hours)
                    if now < cooldown_ends:
                        logger.warning(
                            "Lead %s is in cooldown for workflow %s until %s",
                            lead_id, workflow_id, cooldown_ends.isoformat(),
                        )
                        return None

                execution = await executions_repo.create(
                    session,
                    workflow_id,
                    lead.id,
                    to_jsonable_python(trigger_data or {}),
                    now,
                )
                await workflows_repo.record_execution_started(session, workflow_id)
                execution_id = execution.id

                trigger = WorkflowTrigger.model_validate(workflow.trigger)
                delayed = bool(trigger.delay_minutes and trigger.delay_minutes > 0)
                if delayed:
                    resume_at = now + timedelta(minutes=trigger.delay_minutes)
                    # index -1: firing leaves the cursor on the first action
                    await executions_repo.schedule_continuation(
                        session, execution_id, -1, resume_at
                    )
                    execution.waiting_until = resume_at

        logger.info(
            "Started execution %s of workflow %s for lead %s", execution_id, workflow_id, lead_id
        )
        if not delayed:
            await self._run(execution_id, lead_id)
        return execution_id

    # ------------------------------------------------------------------
    # Execution loop
    # ------------------------------------------------------------------

    async def _run(self, execution_id: UUID, lead_id: UUID) -> None:
        while True:
            try:
                proceed = await self._step(execution_id, lead_id)
            except _StepFailure as failure:
                await self._record_failure(execution_id, failure)
                return
            if not proceed:
                return

    async def _step(self, execution_id: UUID, lead_id: UUID) -> bool:
        """Run the action at the cursor. Returns False when the loop must stop."""
        async with self.locks.hold(lead_id):
            async with self._uow() as session:
                execution = await executions_repo.get(session, execution_id)
                # loop-top check of the cooperative pause/cancel flag
                if execution is None or execution.status != "running":
                    return False
                if execution.waiting_until is not None:
                    return False

                workflow = await workflows_repo.get(session, execution.workflow_id)
                if workflow is None:
                    raise WorkflowNotFoundError(execution.workflow_id)
                actions = list(workflow.actions or [])
                now = self._clock()

                index = execution.current_action_index
                while index < len(actions) and not actions[index].get("is_active", True):
                    index += 1
                execution.current_action_index = index
                if index >= len(actions):
                    await self._complete(session, execution, now)
                    return False

                lead = await leads_repo.get_for_update(session, execution.lead_id)
                if lead is None:
                    raise LeadNotFoundError(execution.lead_id)
                conditions = [WorkflowCondition.model_validate(c) for c in workflow.conditions or []]
                if conditions and not self._conditions_hold(conditions, lead, execution):
                    logger.info(
                        "Execution %s: workflow conditions no longer hold; completing",
                        execution_id,
                    )
                    await self._complete(session, execution, now)
                    return False

                suspended = await self._perform(session, workflow, execution, lead, actions[index], now)
                if suspended:
                    return False
                execution.current_action_index = index + 1
                execution.last_executed_at = self._clock()
                return True

    @staticmethod
    def _conditions_hold(
        conditions: list[WorkflowCondition], lead: Lead, execution: WorkflowExecution
    ) -> bool:
        snapshot = lead_snapshot(lead)
        record = dict(snapshot)
        record["lead"] = snapshot
        record["data"] = execution.execution_data or {}
        for condition in conditions:
            result = evaluate_condition(record, condition)
            if condition.type == "unless":
                result = not result
            if not result:
                return False
        return True

    async def _complete(self, session: AsyncSession, execution: WorkflowExecution, now: datetime) -> None:
        moved = await executions_repo.transition(
            session, execution.id, ("running",), "completed", completed_at=now, waiting_until=None
        )
        if not moved:
            return
        hours = max((now - execution.started_at).total_seconds(), 0.0) / 3600.0
        await workflows_repo.record_execution_completed(session, execution.workflow_id, hours)
        logger.info("Execution %s completed in %.2f hours", execution.id, hours)

    async def _record_failure(self, execution_id: UUID, failure: _StepFailure) -> None:
        now = self._clock()
        async with self._uow() as session:
            execution = await executions_repo.get(session, execution_id)
            if execution is None:
                return
            for _ in range(failure.attempts):
                await workflows_repo.record_action_result(
                    session,
                    execution.workflow_id,
                    failure.action_id,
                    failure.action_type,
                    success=False,
                    duration_ms=failure.duration_ms / max(failure.attempts, 1),
                )
            entry = ExecutionError(
                action_id=failure.action_id,
                action_type=failure.action_type,
                timestamp=now,
                error_message=str(failure.error),
                retry_count=failure.attempts - 1,
            )
            execution.errors = list(execution.errors or []) + [entry.model_dump(mode="json")]
            execution.last_executed_at = now
            moved = await executions_repo.transition(
                session, execution_id, ("running", "paused"), "failed", completed_at=now
            )
            if moved:
                await workflows_repo.record_execution_ended(session, execution.workflow_id)
        logger.error(
            "Execution %s failed at action %s (%s): %s",
            execution_id, failure.action_id, failure.action_type, failure.error,
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _perform(
        self,
        session: AsyncSession,
        workflow: Workflow,
        execution: WorkflowExecution,
        lead: Lead,
        raw_action: dict,
        now: datetime,
    ) -> bool:
        """Run one stored action with its retry budget. Returns True when suspended."""
        action_id = str(raw_action.get("id", ""))
        action_type = str(raw_action.get("type", ""))
        started = time.perf_counter()
        if action_type not in ACTION_TYPES:
            raise _StepFailure(
                action_id, action_type, UnknownActionError(action_type, action_id), 1,
                (time.perf_counter() - started) * 1000,
            )
        try:
            action = action_adapter.validate_python(raw_action)
        except ValidationError as exc:
            raise _StepFailure(action_id, action_type, exc, 1, 0.0) from exc

        failed_ms: list[float] = []
        while True:
            attempt_started = time.perf_counter()
            try:
                suspended = await self._dispatch(session, workflow, execution, lead, action, now)
            except Exception as exc:
                failed_ms.append((time.perf_counter() - attempt_started) * 1000)
                retryable = isinstance(exc, ActionExecutionError)
                if retryable and len(failed_ms) <= action.max_retries:
                    logger.warning(
                        "Action %s attempt %d failed (%s); retrying", action.id, len(failed_ms), exc
                    )
                    await asyncio.sleep(self._retry_backoff_seconds * 2 ** (len(failed_ms) - 1))
                    continue
                # this unit of work rolls back; the failure is recorded separately
                raise _StepFailure(
                    action.id, action.type, exc, len(failed_ms), sum(failed_ms)
                ) from exc
            for duration_ms in failed_ms:
                await workflows_repo.record_action_result(
                    session, workflow.id, action.id, action.type, success=False,
                    duration_ms=duration_ms,
                )
            await workflows_repo.record_action_result(
                session, workflow.id, action.id, action.type, success=True,
                duration_ms=(time.perf_counter() - attempt_started) * 1000,
            )
            return suspended

    async def _dispatch(
        self,
        session: AsyncSession,
        workflow: Workflow,
        execution: WorkflowExecution,
        lead: Lead,
        action: Any,
        now: datetime,
    ) -> bool:
        if isinstance(action, WaitAction):
            resume_at = now + timedelta(minutes=action.wait_minutes)
            await executions_repo.schedule_continuation(
                session, execution.id, execution.current_action_index, resume_at
            )
            execution.waiting_until = resume_at
            self._mark(execution, action, {"resume_at": resume_at.isoformat()})
            logger.info("Execution %s waiting until %s", execution.id, resume_at.isoformat())
            return True
        if isinstance(action, SplitTestAction):
            await self._split_test(session, workflow, execution, lead, action, now)
            return False
        await self._run_immediate(session, workflow, execution, lead, action, now)
        return False

    async def _run_immediate(
        self,
        session: AsyncSession,
        workflow: Workflow,
        execution: WorkflowExecution,
        lead: Lead,
        action: Any,
        now: datetime,
    ) -> None:
        if isinstance(action, SendEmailAction):
            personalization = self._personalize(action.personalization, lead, execution)
            result = await asyncio.to_thread(
                email_tools.send_email,
                lead.email,
                action.template_id,
                action.subject,
                personalization,
            )
            self._check(result, action)
            self._mark(execution, action, {"message_id": result.get("message_id")})
        elif isinstance(action, AddTagAction):
            if action.tag_name not in (lead.tags or []):
                lead.tags = list(lead.tags or []) + [action.tag_name]
                lead.updated_at = now
            self._mark(execution, action, {"tag": action.tag_name})
        elif isinstance(action, RemoveTagAction):
            lead.tags = [t for t in (lead.tags or []) if t != action.tag_name]
            lead.updated_at = now
            self._mark(execution, action, {"tag": action.tag_name})
        elif isinstance(action, UpdateFieldAction):
            self._update_field(lead, action.field_name, action.field_value, now)
            self._mark(execution, action, {"field": action.field_name})
        elif isinstance(action, AssignLeadAction):
            lead.assigned_to = action.assignee_id
            lead.updated_at = now
            self._mark(execution, action, {"assignee_id": action.assignee_id})
        elif isinstance(action, CreateTaskAction):
            result = await asyncio.to_thread(
                task_tools.create_task,
                action.title,
                str(lead.id),
                action.description,
                action.due_in_days,
                action.assignee_id or lead.assigned_to,
            )
            self._check(result, action)
            self._mark(execution, action, {"task_id": result.get("task_id")})
        elif isinstance(action, WebhookAction):
            payload = action.payload
            if payload is None:
                payload = {
                    "workflow_id": workflow.id,
                    "execution_id": str(execution.id),
                    "action_id": action.id,
                    "lead": lead_snapshot(lead),
                    "data": execution.execution_data or {},
                }
            result = await asyncio.to_thread(
                webhook_tools.call_webhook,
                action.url,
                action.method,
                action.headers,
                to_jsonable_python(payload),
            )
            self._check(result, action)
            self._mark(execution, action, {"status_code": result.get("status_code")})
        else:
            raise UnknownActionError(getattr(action, "type", None), getattr(action, "id", ""))

    async def _split_test(
        self,
        session: AsyncSession,
        workflow: Workflow,
        execution: WorkflowExecution,
        lead: Lead,
        action: SplitTestAction,
        now: datetime,
    ) -> None:
        variant = self.choose_variant(str(execution.id), action)
        self._mark(execution, action, {"variant_id": variant.id})
        logger.info("Execution %s split test %s -> variant %s", execution.id, action.id, variant.id)
        if action.experiment_id:
            await apply_variant_delta(session, UUID(action.experiment_id), variant.id, visitors=1)
        for sub_action in variant.actions:
            if sub_action.is_active:
                await self._run_immediate(session, workflow, execution, lead, sub_action, now)

    @staticmethod
    def choose_variant(execution_key: str, action: SplitTestAction):
        """Deterministic bucket in [0, 100) from the execution and action ids."""
        digest = hashlib.sha256(f"{execution_key}:{action.id}".encode()).hexdigest()
        bucket = (int(digest[:8], 16) % 10000) / 100.0
        cumulative = 0.0
        for variant in action.variants:
            cumulative += variant.percentage
            if bucket < cumulative:
                return variant
        return action.variants[-1]

    @staticmethod
    def _check(result: dict, action: Any) -> None:
        if result.get("error"):
            raise ActionExecutionError(
                f"{action.type} action {action.id} failed: {result['error']}",
                action_type=action.type,
                details=result,
            )

    @staticmethod
    def _mark(execution: WorkflowExecution, action: Any, result: dict) -> None:
        data = dict(execution.execution_data or {})
        data[action.id] = {"type": action.type, **result}
        execution.execution_data = data

    @staticmethod
    def _update_field(lead: Lead, field_name: str, value: Any, now: datetime) -> None:
        if field_name == "status":
            value = LeadStatus(value).value
        if field_name in UPDATABLE_LEAD_FIELDS:
            setattr(lead, field_name, value)
        else:
            lead.custom_fields = {**(lead.custom_fields or {}), field_name: value}
        lead.updated_at = now

    @staticmethod
    def _personalize(
        template: dict[str, str], lead: Lead, execution: WorkflowExecution
    ) -> dict[str, Any]:
        """Resolve ``{{lead.*}}`` / ``{{data.*}}`` placeholders; unknown ones render empty."""
        snapshot = lead_snapshot(lead)
        context = {"lead": snapshot, "data": execution.execution_data or {}}

        def render(match: re.Match) -> str:
            value = resolve_field(context, match.group(1))
            return "" if value is MISSING or value is None else str(value)

        variables: dict[str, Any] = {
            "first_name": lead.first_name or "",
            "last_name": lead.last_name or "",
            "email": lead.email,
            "company": lead.company or "",
        }
        for key, value in template.items():
            variables[key] = _PLACEHOLDER.sub(render, value) if isinstance(value, str) else value
        return variables

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def _lead_of(self, execution_id: UUID) -> UUID:
        async with self._uow() as session:
            execution = await executions_repo.get(session, execution_id)
            if execution is None:
                raise ExecutionNotFoundError(execution_id)
            return execution.lead_id

    async def pause_execution(self, execution_id: UUID) -> bool:
        """running → paused. Returns False for any other current status."""
        await self._lead_of(execution_id)
        async with self._uow() as session:
            moved = await executions_repo.transition(session, execution_id, ("running",), "paused")
        if moved:
            logger.info("Paused execution %s", execution_id)
        else:
            logger.warning("Execution %s is not running; pause ignored", execution_id)
        return moved

    async def resume_execution(self, execution_id: UUID) -> bool:
        """paused → running, re-entering the loop at the current index.

        If the execution is still suspended on a wait, only the status flips;
        the continuation moves it on when it fires.
        """
        lead_id = await self._lead_of(execution_id)
        async with self._uow() as session:
            moved = await executions_repo.transition(session, execution_id, ("paused",), "running")
            waiting = moved and await executions_repo.has_pending_continuation(session, execution_id)
        if not moved:
            logger.warning("Execution %s is not paused; resume ignored", execution_id)
            return False
        logger.info("Resumed execution %s", execution_id)
        if not waiting:
            await self._run(execution_id, lead_id)
        return True

    async def cancel_execution(self, execution_id: UUID) -> bool:
        """running|paused → cancelled; pending continuations are cancelled too."""
        await self._lead_of(execution_id)
        now = self._clock()
        async with self._uow() as session:
            moved = await executions_repo.transition(
                session, execution_id, ("running", "paused"), "cancelled",
                completed_at=now, waiting_until=None,
            )
            if moved:
                await executions_repo.cancel_continuations(session, execution_id)
                execution = await executions_repo.get(session, execution_id)
                await workflows_repo.record_execution_ended(session, execution.workflow_id)
        if moved:
            logger.info("Cancelled execution %s", execution_id)
        else:
            logger.warning("Execution %s already finished; cancel ignored", execution_id)
        return moved

    async def resume_due(self, limit: int = 100) -> int:
        """Fire continuations whose resume time has passed. Returns how many fired."""
        now = self._clock()
        async with self._uow() as session:
            due = [
                (c.id, c.execution_id, c.action_index)
                for c in await executions_repo.get_due_continuations(session, now, limit)
            ]

        fired = 0
        for continuation_id, execution_id, action_index in due:
            async with self._uow() as session:
                execution = await executions_repo.get(session, execution_id)
                lead_id = execution.lead_id if execution is not None else None
            if lead_id is None:
                continue
            async with self.locks.hold(lead_id):
                async with self._uow() as session:
                    if not await executions_repo.claim_continuation(session, continuation_id, now):
                        continue
                    execution = await executions_repo.get(session, execution_id)
                    execution.waiting_until = None
                    if execution.current_action_index == action_index:
                        execution.current_action_index = action_index + 1
                    execution.last_executed_at = now
                    status = execution.status
            fired += 1
            if status == "running":
                await self._run(execution_id, lead_id)
        if fired:
            logger.info("Fired %d workflow continuations", fired)
        return fired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_execution(self, execution_id: UUID) -> WorkflowExecution:
        async with self._uow() as session:
            execution = await executions_repo.get(session, execution_id)
            if execution is None:
                raise ExecutionNotFoundError(execution_id)
            return execution

    async def get_execution_status(self, execution_id: UUID) -> str:
        async with self._uow() as session:
            status = await executions_repo.get_status(session, execution_id)
            if status is None:
                raise ExecutionNotFoundError(execution_id)
            return status

    async def get_active_executions(
        self, workflow_id: Optional[str] = None
    ) -> list[WorkflowExecution]:
        """Running or paused executions, optionally for one workflow."""
        async with self._uow() as session:
            return await executions_repo.list_active(session, workflow_id)

    async def get_workflow_analytics(self, workflow_id: str) -> WorkflowAnalytics:
        async with self._uow() as session:
            workflow = await workflows_repo.get(session, workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            performance = await workflows_repo.get_action_performance(session, workflow_id)
            return WorkflowAnalytics(
                workflow_id=workflow.id,
                total_executions=workflow.total_executions,
                active_participants=workflow.active_participants,
                completed_participants=workflow.completed_participants,
                average_time_to_complete=workflow.average_time_to_complete,
                action_performance=[
                    ActionPerformanceOut(
                        action_id=p.action_id,
                        action_type=p.action_type,
                        executions=p.executions,
                        successes=p.successes,
                        failures=p.failures,
                        success_rate=(p.successes / p.executions * 100.0) if p.executions else 0.0,
                        average_execution_ms=p.average_execution_ms,
                    )
                    for p in performance
                ],
            )
