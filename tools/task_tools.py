"""Task API client for create_task workflow actions."""
import os
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

import requests
from dateutil.relativedelta import MO, relativedelta

from app_config import get_settings


def _api_key() -> str:
    return os.environ.get("TASKS_API_KEY", "")


def due_date_for(due_in_days: int, today: date) -> date:
    """today + due_in_days, rolled forward to Monday when it lands on a weekend."""
    due = today + relativedelta(days=due_in_days)
    if due.weekday() >= 5:
        due += relativedelta(weekday=MO)
    return due


def create_task(
    title: str,
    lead_id: str,
    description: Optional[str] = None,
    due_in_days: Optional[int] = None,
    assignee_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a follow-up task for a lead.

    Args:
        title: Task title.
        lead_id: Lead the task is about.
        description: Optional body text.
        due_in_days: Due date offset from today (UTC); weekend dates move to
            the next Monday. No due date when None.
        assignee_id: Optional user to assign.

    Returns:
        Dict with 'task_id' and 'due_date'. On error, includes 'error' key.
    """
    settings = get_settings()
    if not settings.tasks_api_url:
        return {"task_id": None, "error": "TASKS_API_URL is not set"}
    try:
        due_date = None
        if due_in_days is not None:
            due_date = due_date_for(due_in_days, datetime.now(timezone.utc).date()).isoformat()
        resp = requests.post(
            f"{settings.tasks_api_url.rstrip('/')}/tasks",
            json={
                "title": title,
                "description": description or "",
                "lead_id": lead_id,
                "due_date": due_date,
                "assignee_id": assignee_id,
            },
            headers={"Authorization": f"Bearer {_api_key()}"},
            timeout=settings.http_timeout_seconds,
        )
        resp.raise_for_status()
        return {"task_id": resp.json().get("id"), "due_date": due_date}
    except Exception as exc:
        return {"task_id": None, "error": str(exc)}
