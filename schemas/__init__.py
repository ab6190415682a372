from .lead import (
    LeadStatus,
    TouchpointType,
    JourneyStage,
    LeadSource,
    EngagementMetrics,
    ScoringCondition,
    ScoringRuleSpec,
    AttributionCredit,
    AttributionModel,
    ChannelPerformance,
    LeadAnalytics,
    TouchpointOut,
    StageEntry,
    LeadJourney,
)
from .workflow import (
    ExecutionStatus,
    WorkflowTrigger,
    WorkflowCondition,
    WorkflowSettings,
    WorkflowDefinition,
    WorkflowAction,
    SplitTestVariant,
    ExecutionError,
    ActionPerformanceOut,
    WorkflowAnalytics,
)
from .experiment import ABTestVariant, SignificanceResult, ABTestResults

__all__ = [
    "LeadStatus", "TouchpointType", "JourneyStage", "LeadSource", "EngagementMetrics",
    "ScoringCondition", "ScoringRuleSpec", "AttributionCredit", "AttributionModel",
    "ChannelPerformance", "LeadAnalytics", "TouchpointOut", "StageEntry", "LeadJourney",
    "ExecutionStatus", "WorkflowTrigger", "WorkflowCondition", "WorkflowSettings",
    "WorkflowDefinition", "WorkflowAction", "SplitTestVariant", "ExecutionError",
    "ActionPerformanceOut", "WorkflowAnalytics",
    "ABTestVariant", "SignificanceResult", "ABTestResults",
]
