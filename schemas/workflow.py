"""Workflow definition, execution and analytics schemas.

Actions are a discriminated union on ``type``: each variant carries only the
configuration its action needs.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from schemas.lead import ConditionOperator


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (
    ExecutionStatus.COMPLETED.value,
    ExecutionStatus.FAILED.value,
    ExecutionStatus.CANCELLED.value,
)

TriggerType = Literal[
    "lead_created", "email_opened", "email_clicked", "page_visited",
    "form_submitted", "purchase_made", "time_based", "score_threshold",
    "tag_added",
]


# ---------------------------------------------------------------------------
# Trigger / conditions / settings
# ---------------------------------------------------------------------------


class WorkflowFilter(BaseModel):
    field: str
    operator: ConditionOperator
    value: Any = None


class WorkflowTrigger(BaseModel):
    type: TriggerType
    page_url: Optional[str] = None
    email_campaign_id: Optional[str] = None
    form_id: Optional[str] = None
    delay_minutes: Optional[int] = None
    score_threshold: Optional[float] = None
    tag_name: Optional[str] = None
    filters: List[WorkflowFilter] = Field(default_factory=list)


class WorkflowCondition(BaseModel):
    id: str
    type: Literal["if", "unless"] = "if"
    field: str
    operator: ConditionOperator
    value: Any = None


class WorkflowSettings(BaseModel):
    max_executions_per_contact: int = Field(default=1, ge=1)
    cooldown_hours: float = Field(default=0, ge=0)
    timezone: str = "UTC"


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class _ActionBase(BaseModel):
    id: str
    order: int = 0
    is_active: bool = True
    max_retries: int = Field(default=0, ge=0, le=5)


class SendEmailAction(_ActionBase):
    type: Literal["send_email"] = "send_email"
    template_id: str
    subject: Optional[str] = None
    personalization: Dict[str, str] = Field(default_factory=dict)


class AddTagAction(_ActionBase):
    type: Literal["add_tag"] = "add_tag"
    tag_name: str


class RemoveTagAction(_ActionBase):
    type: Literal["remove_tag"] = "remove_tag"
    tag_name: str


class UpdateFieldAction(_ActionBase):
    type: Literal["update_field"] = "update_field"
    field_name: str
    field_value: Any = None


class AssignLeadAction(_ActionBase):
    type: Literal["assign_lead"] = "assign_lead"
    assignee_id: str


class CreateTaskAction(_ActionBase):
    type: Literal["create_task"] = "create_task"
    title: str
    description: Optional[str] = None
    due_in_days: Optional[int] = Field(default=None, ge=0)
    assignee_id: Optional[str] = None


class WebhookAction(_ActionBase):
    type: Literal["webhook"] = "webhook"
    url: str
    method: Literal["GET", "POST", "PUT"] = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    payload: Optional[Dict[str, Any]] = None


class WaitAction(_ActionBase):
    type: Literal["wait"] = "wait"
    wait_minutes: int = Field(gt=0)


ImmediateAction = Annotated[
    Union[
        SendEmailAction,
        AddTagAction,
        RemoveTagAction,
        UpdateFieldAction,
        AssignLeadAction,
        CreateTaskAction,
        WebhookAction,
    ],
    Field(discriminator="type"),
]


class SplitTestVariant(BaseModel):
    id: str
    name: str = ""
    percentage: float = Field(gt=0, le=100)
    actions: List[ImmediateAction] = Field(default_factory=list)


class SplitTestAction(_ActionBase):
    type: Literal["split_test"] = "split_test"
    variants: List[SplitTestVariant] = Field(min_length=1)
    experiment_id: Optional[str] = None

    @field_validator("variants")
    @classmethod
    def _percentages_sum_to_100(cls, variants: List[SplitTestVariant]) -> List[SplitTestVariant]:
        total = sum(v.percentage for v in variants)
        if abs(total - 100) > 1e-6:
            raise ValueError(f"split_test variant percentages must sum to 100, got {total}")
        return variants


WorkflowAction = Annotated[
    Union[
        SendEmailAction,
        AddTagAction,
        RemoveTagAction,
        UpdateFieldAction,
        AssignLeadAction,
        CreateTaskAction,
        WebhookAction,
        WaitAction,
        SplitTestAction,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES = (
    "send_email", "add_tag", "remove_tag", "update_field", "assign_lead",
    "create_task", "webhook", "wait", "split_test",
)

action_adapter: TypeAdapter[WorkflowAction] = TypeAdapter(WorkflowAction)


class WorkflowDefinition(BaseModel):
    """Everything needed to create or edit a workflow."""

    id: Optional[str] = None
    name: str
    description: str = ""
    is_active: bool = True
    trigger: WorkflowTrigger
    actions: List[WorkflowAction] = Field(default_factory=list)
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    created_by: str = "system"

    @model_validator(mode="after")
    def _unique_action_ids(self) -> "WorkflowDefinition":
        ids = [a.id for a in self.actions]
        if len(ids) != len(set(ids)):
            raise ValueError("action ids must be unique within a workflow")
        return self


# ---------------------------------------------------------------------------
# Execution / analytics
# ---------------------------------------------------------------------------


class ExecutionError(BaseModel):
    action_id: str
    action_type: str
    timestamp: datetime
    error_message: str
    retry_count: int = 0


class ActionPerformanceOut(BaseModel):
    action_id: str
    action_type: str
    executions: int
    successes: int
    failures: int
    success_rate: float
    average_execution_ms: float


class WorkflowAnalytics(BaseModel):
    workflow_id: str
    total_executions: int
    active_participants: int
    completed_participants: int
    average_time_to_complete: float  # hours
    action_performance: List[ActionPerformanceOut] = Field(default_factory=list)
