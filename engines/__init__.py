"""Lead scoring, journey tracking, attribution and workflow automation engines."""
from engines.attribution import compute_attribution
from engines.errors import (
    ActionExecutionError,
    ExecutionNotFoundError,
    ExperimentNotFoundError,
    InvalidWorkflowError,
    LeadNotFoundError,
    MarketingError,
    UnknownActionError,
    UnsupportedExperimentError,
    WorkflowNotFoundError,
)
from engines.experiments import ExperimentService
from engines.scoring import compute_score
from engines.sweeps import SweepRunner
from engines.tracking import LeadTracker
from engines.workflow import WorkflowEngine

__all__ = [
    "compute_attribution",
    "compute_score",
    "ExperimentService",
    "LeadTracker",
    "SweepRunner",
    "WorkflowEngine",
    "MarketingError",
    "LeadNotFoundError",
    "WorkflowNotFoundError",
    "ExecutionNotFoundError",
    "ExperimentNotFoundError",
    "InvalidWorkflowError",
    "UnknownActionError",
    "ActionExecutionError",
    "UnsupportedExperimentError",
]
