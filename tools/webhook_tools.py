"""Outbound webhook dispatch for webhook workflow actions."""
from typing import Any, Dict, Optional

import requests

from app_config import get_settings


def call_webhook(
    url: str,
    method: str = "POST",
    headers: Optional[Dict[str, str]] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Call a webhook; any non-2xx status or transport error is a failure.

    Returns:
        Dict with 'status_code'. On error, includes 'error' key.
    """
    try:
        method = method.upper()
        kwargs: Dict[str, Any] = {
            "headers": headers or {},
            "timeout": get_settings().http_timeout_seconds,
        }
        if method == "GET":
            kwargs["params"] = payload or {}
        else:
            kwargs["json"] = payload or {}
        resp = requests.request(method, url, **kwargs)
        resp.raise_for_status()
        return {"status_code": resp.status_code, "url": url}
    except Exception as exc:
        return {"status_code": None, "url": url, "error": str(exc)}
