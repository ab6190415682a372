"""Plain-dict views of leads and touchpoints for rule and condition evaluation.

Conditions are evaluated over these snapshots rather than ORM instances so a
field lookup can never trigger a lazy load.
"""
from typing import Any

from db.models import Lead, Touchpoint

_LEAD_COLUMNS = (
    "email",
    "first_name",
    "last_name",
    "phone",
    "company",
    "job_title",
    "industry",
    "company_size",
    "status",
    "score",
    "current_stage",
    "assigned_to",
    "total_interactions",
    "first_touch_at",
    "last_touch_at",
    "last_activity_at",
    "conversion_value",
    "created_at",
)


def lead_snapshot(lead: Lead) -> dict[str, Any]:
    """Lead attributes plus ``email_domain``; custom fields are also lifted to the top level."""
    custom_fields = dict(lead.custom_fields or {})
    data: dict[str, Any] = {key: value for key, value in custom_fields.items()}
    data.update({column: getattr(lead, column) for column in _LEAD_COLUMNS})
    data["id"] = str(lead.id)
    email = lead.email or ""
    data["email_domain"] = email.split("@", 1)[1] if "@" in email else None
    data["tags"] = list(lead.tags or [])
    data["source"] = dict(lead.source or {})
    data["custom_fields"] = custom_fields
    return data


def touchpoint_snapshot(touchpoint: Touchpoint) -> dict[str, Any]:
    return {
        "id": str(touchpoint.id),
        "type": touchpoint.type,
        "timestamp": touchpoint.occurred_at,
        "page_url": touchpoint.page_url,
        "email_campaign_id": touchpoint.email_campaign_id,
        "form_id": touchpoint.form_id,
        "download_asset": touchpoint.download_asset,
        "value": touchpoint.value,
        "session_id": touchpoint.session_id,
        "source": dict(touchpoint.source or {}),
        "engagement": dict(touchpoint.engagement or {}),
    }
