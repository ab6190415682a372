"""Transactional email API client used by send_email actions and campaign sends.

Template rendering and delivery happen in the email service; this module only
submits the send request and reports the provider message id.
"""
import logging
import os
from typing import Any, Dict, Optional

import requests

from app_config import get_settings

logger = logging.getLogger(__name__)


def _api_key() -> str:
    return os.environ.get("EMAIL_API_KEY", "")


def send_email(
    to_email: str,
    template_id: str,
    subject: Optional[str] = None,
    personalization: Optional[Dict[str, Any]] = None,
    campaign_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a templated email to one recipient.

    Args:
        to_email: Recipient address.
        template_id: Template known to the email service.
        subject: Optional subject override.
        personalization: Template variables, already resolved.
        campaign_id: Optional campaign reference for open/click tracking.

    Returns:
        Dict with 'message_id' and 'to_email'. On error, includes 'error' key.
    """
    settings = get_settings()
    if not settings.email_api_url:
        return {"message_id": None, "to_email": to_email, "error": "EMAIL_API_URL is not set"}
    try:
        payload: Dict[str, Any] = {
            "to": to_email,
            "template_id": template_id,
            "variables": personalization or {},
        }
        if subject:
            payload["subject"] = subject
        if campaign_id:
            payload["campaign_id"] = campaign_id
        resp = requests.post(
            f"{settings.email_api_url.rstrip('/')}/messages",
            json=payload,
            headers={"Authorization": f"Bearer {_api_key()}"},
            timeout=settings.http_timeout_seconds,
        )
        resp.raise_for_status()
        data = resp.json()
        return {"message_id": data.get("id") or data.get("message_id"), "to_email": to_email}
    except requests.exceptions.ConnectionError:
        logger.warning("Email service not reachable; send to %s failed", to_email)
        return {"message_id": None, "to_email": to_email, "error": "email service unavailable"}
    except Exception as exc:
        return {"message_id": None, "to_email": to_email, "error": str(exc)}
