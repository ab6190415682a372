"""Trigger matching: which workflows an event should start for a lead."""
from typing import Any, Optional

from engines.conditions import matches_all
from schemas.workflow import WorkflowTrigger

# touchpoint type -> workflow trigger type
TOUCHPOINT_TRIGGERS = {
    "page_view": "page_visited",
    "email_open": "email_opened",
    "email_click": "email_clicked",
    "form_fill": "form_submitted",
    "purchase": "purchase_made",
}


def trigger_for_touchpoint(touchpoint_type: str) -> Optional[str]:
    return TOUCHPOINT_TRIGGERS.get(touchpoint_type)


def filter_record(lead: dict[str, Any], event: dict[str, Any]) -> dict[str, Any]:
    """Lead snapshot overlaid with event data; both also reachable as ``lead.*`` / ``data.*``."""
    record = dict(lead)
    record.update(event)
    record["lead"] = lead
    record["data"] = event
    return record


def _config_matches(trigger: WorkflowTrigger, event: dict[str, Any]) -> bool:
    if trigger.type == "page_visited" and trigger.page_url:
        page_url = (event.get("page_url") or "").lower()
        return trigger.page_url.lower() in page_url
    if trigger.type in ("email_opened", "email_clicked") and trigger.email_campaign_id:
        return event.get("email_campaign_id") == trigger.email_campaign_id
    if trigger.type == "form_submitted" and trigger.form_id:
        return event.get("form_id") == trigger.form_id
    if trigger.type == "tag_added" and trigger.tag_name:
        return trigger.tag_name in (event.get("tags") or [])
    if trigger.type == "score_threshold":
        if trigger.score_threshold is None:
            return False
        previous = event.get("previous_score")
        current = event.get("score")
        if previous is None or current is None:
            return False
        # upward crossing only
        return previous < trigger.score_threshold <= current
    return True


def trigger_matches(
    trigger: WorkflowTrigger, event: dict[str, Any], lead: dict[str, Any]
) -> bool:
    """True when the event satisfies the trigger's configuration and filters."""
    if not _config_matches(trigger, event):
        return False
    return matches_all(filter_record(lead, event), trigger.filters)
