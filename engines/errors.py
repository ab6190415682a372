"""Typed failures raised by the tracking and automation engines.

Everything inherits from ``MarketingError`` so callers can catch the whole
family in one clause. Scoring, attribution, journey tracking and condition
evaluation never raise; these cover lookups, definitions and actions.
"""
from typing import Any, Optional


class MarketingError(Exception):
    """Base exception for the lead tracking and automation core."""

    def __init__(self, message: str = "", details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class LeadNotFoundError(MarketingError):
    def __init__(self, lead_id: Any) -> None:
        super().__init__(f"Lead {lead_id} not found", {"lead_id": str(lead_id)})
        self.lead_id = lead_id


class WorkflowNotFoundError(MarketingError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow {workflow_id} not found", {"workflow_id": workflow_id})
        self.workflow_id = workflow_id


class ExecutionNotFoundError(MarketingError):
    def __init__(self, execution_id: Any) -> None:
        super().__init__(
            f"Workflow execution {execution_id} not found",
            {"execution_id": str(execution_id)},
        )
        self.execution_id = execution_id


class ExperimentNotFoundError(MarketingError):
    def __init__(self, test_id: Any) -> None:
        super().__init__(f"A/B test {test_id} not found", {"test_id": str(test_id)})
        self.test_id = test_id


class InvalidWorkflowError(MarketingError):
    """Raised when a workflow definition fails validation on create or update."""


class UnknownActionError(MarketingError):
    """Raised when an execution reaches an action whose type the engine cannot run."""

    def __init__(self, action_type: Any, action_id: str = "") -> None:
        super().__init__(
            f"Unknown action type: {action_type}",
            {"action_type": str(action_type), "action_id": action_id},
        )
        self.action_type = action_type
        self.action_id = action_id


class ActionExecutionError(MarketingError):
    """Raised when an outbound collaborator reports failure for an action."""

    def __init__(
        self,
        message: str,
        action_type: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.action_type = action_type


class UnsupportedExperimentError(MarketingError, ValueError):
    """Significance evaluation requires exactly two variants."""
