"""Lead, touchpoint, scoring and attribution schemas."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    NURTURING = "nurturing"
    UNQUALIFIED = "unqualified"


class TouchpointType(str, Enum):
    PAGE_VIEW = "page_view"
    EMAIL_OPEN = "email_open"
    EMAIL_CLICK = "email_click"
    FORM_FILL = "form_fill"
    DOWNLOAD = "download"
    PURCHASE = "purchase"
    SUPPORT_TICKET = "support_ticket"
    WEBINAR_ATTENDANCE = "webinar_attendance"


class JourneyStage(str, Enum):
    AWARENESS = "awareness"
    INTEREST = "interest"
    CONSIDERATION = "consideration"
    INTENT = "intent"
    EVALUATION = "evaluation"
    PURCHASE = "purchase"
    ONBOARDING = "onboarding"
    RETENTION = "retention"
    ADVOCACY = "advocacy"


Channel = Literal[
    "organic_search", "paid_search", "social_media", "email", "direct",
    "referral", "content", "webinar", "event",
]

ConversionEventType = Literal[
    "purchase", "signup", "trial", "demo_request", "download", "subscription",
]

ConditionOperator = Literal[
    "equals", "not_equals", "greater_than", "less_than", "contains",
    "starts_with", "ends_with", "in", "not_in", "exists",
]


class LeadSource(BaseModel):
    channel: Channel = "direct"
    medium: str = ""
    campaign: str = ""
    source: str = ""
    content: Optional[str] = None
    term: Optional[str] = None
    referrer: Optional[str] = None
    landing_page: str = ""
    utm: Dict[str, str] = Field(default_factory=dict)


class EngagementMetrics(BaseModel):
    time_on_page: Optional[float] = None  # seconds
    scroll_depth: Optional[float] = None  # percentage
    clicks: Optional[int] = None
    form_fields_completed: Optional[int] = None
    documents_viewed: Optional[int] = None


class ScoringCondition(BaseModel):
    field: str
    operator: str
    value: Any = None


class ScoringRuleSpec(BaseModel):
    id: str
    name: str
    description: str = ""
    condition: ScoringCondition
    points: int
    frequency: Literal["once", "multiple"] = "once"
    category: Literal["demographic", "behavioral", "engagement", "firmographic"]
    enabled: bool = True


class AttributionCredit(BaseModel):
    touchpoint_id: Optional[str] = None
    credit: float = 0.0  # percentage
    value: float = 0.0  # monetary value


class AttributionModel(BaseModel):
    first_touch: AttributionCredit = Field(default_factory=AttributionCredit)
    last_touch: AttributionCredit = Field(default_factory=AttributionCredit)
    linear: List[AttributionCredit] = Field(default_factory=list)
    time_decay: List[AttributionCredit] = Field(default_factory=list)
    position_based: List[AttributionCredit] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.linear


class ChannelPerformance(BaseModel):
    channel: str
    leads: int
    conversions: int
    conversion_rate: float
    revenue: float


class LeadAnalytics(BaseModel):
    total_leads: int
    leads_by_source: Dict[str, int]
    leads_by_stage: Dict[str, int]
    conversion_rates: Dict[str, float]
    average_time_to_conversion: float  # days
    lead_quality_score: int
    top_performing_channels: List[ChannelPerformance]


class TouchpointOut(BaseModel):
    id: str
    type: TouchpointType
    timestamp: datetime
    page_url: Optional[str] = None
    email_campaign_id: Optional[str] = None
    form_id: Optional[str] = None
    download_asset: Optional[str] = None
    value: Optional[float] = None
    source: Dict[str, Any] = Field(default_factory=dict)
    engagement: Dict[str, Any] = Field(default_factory=dict)


class StageEntry(BaseModel):
    stage: JourneyStage
    entered_at: datetime
    exited_at: Optional[datetime] = None
    days_in_stage: Optional[int] = None
    touchpoints: int = 0


class LeadJourney(BaseModel):
    lead_id: str
    current_stage: JourneyStage
    touchpoints: List[TouchpointOut]
    stage_history: List[StageEntry]
    total_interactions: int
    time_to_conversion: Optional[int] = None  # days
    conversion_value: Optional[float] = None
    attribution: Optional[AttributionModel] = None
