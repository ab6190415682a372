"""Journey stage tracking: a sparse funnel transition table keyed by
(current stage, touchpoint type, touchpoint content).

Touchpoints that match no entry leave the stage unchanged.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from db.models import Lead, StageHistory

logger = logging.getLogger(__name__)

FUNNEL = (
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

PRICING_PATTERN = "/pricing"
FEATURES_PATTERN = "/features"

# (touchpoint type, current stage) -> next stage, for content-independent moves
_SIMPLE_TRANSITIONS: dict[tuple[str, str], str] = {
    ("form_fill", "awareness"): "interest",
    ("form_fill", "consideration"): "intent",
    ("download", "interest"): "consideration",
    ("download", "consideration"): "evaluation",
}


def next_stage(current_stage: str, touchpoint: dict[str, Any]) -> Optional[str]:
    """Return the stage this touchpoint moves the lead to, or None for no change."""
    kind = touchpoint.get("type")
    target: Optional[str] = None

    if kind == "purchase":
        target = "purchase"
    elif kind == "page_view":
        page_url = (touchpoint.get("page_url") or "").lower()
        if PRICING_PATTERN in page_url and current_stage in ("awareness", "interest"):
            target = "consideration"
        elif FEATURES_PATTERN in page_url and current_stage == "interest":
            target = "consideration"
    else:
        target = _SIMPLE_TRANSITIONS.get((kind, current_stage))

    if target is None or target == current_stage:
        return None
    return target


def _days_between(start: datetime, end: datetime) -> int:
    return max(int((end - start).total_seconds() // 86400), 0)


def move_to_stage(lead: Lead, stage: str, now: datetime) -> bool:
    """Close the open stage-history entry and open one for ``stage``.

    Returns False (and changes nothing) when the lead is already there.
    """
    if stage not in FUNNEL:
        raise ValueError(f"Unknown journey stage: {stage}")
    if lead.current_stage == stage:
        return False

    for entry in lead.stage_history:
        if entry.exited_at is None:
            entry.exited_at = now
            entry.days_in_stage = _days_between(entry.entered_at, now)

    lead.stage_history.append(
        StageHistory(
            position=len(lead.stage_history),
            stage=stage,
            entered_at=now,
            touchpoints=0,
        )
    )
    previous = lead.current_stage
    lead.current_stage = stage
    lead.updated_at = now
    logger.info("Lead %s moved %s -> %s", lead.id, previous, stage)
    return True


def open_entry(lead: Lead) -> Optional[StageHistory]:
    """The stage-history entry for the current stage, if any."""
    for entry in reversed(lead.stage_history):
        if entry.exited_at is None:
            return entry
    return None
