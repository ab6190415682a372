"""Lead scoring: configurable rules plus a bounded engagement heuristic.

Only two rule categories score:

- demographic: once, against the lead snapshot
- behavioral: per touchpoint; a ``once`` rule scores at most once across the
  whole history, a ``multiple`` rule scores once per matching touchpoint

``engagement`` and ``firmographic`` rules are stored and listed but award no
points; interaction volume is covered by the heuristic below.

The engagement heuristic adds email opens (cap 10), clicks (cap 15), page
views (cap 10), whole minutes on site (cap 15) and 10 points per download
(uncapped). The total is clamped to [0, 100].
"""
import math
from typing import Any, Iterable

from engines.conditions import evaluate_condition

MIN_SCORE = 0
MAX_SCORE = 100

SCORED_CATEGORIES = ("demographic", "behavioral")


def engagement_aggregates(touchpoints: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Interaction counts feeding the heuristic component."""
    counts = {"email_opens": 0, "email_clicks": 0, "page_views": 0, "downloads": 0}
    seconds_on_site = 0.0
    for tp in touchpoints:
        kind = tp.get("type")
        if kind == "email_open":
            counts["email_opens"] += 1
        elif kind == "email_click":
            counts["email_clicks"] += 1
        elif kind == "page_view":
            counts["page_views"] += 1
        elif kind == "download":
            counts["downloads"] += 1
        time_on_page = (tp.get("engagement") or {}).get("time_on_page")
        if isinstance(time_on_page, (int, float)) and not isinstance(time_on_page, bool):
            seconds_on_site += max(time_on_page, 0)
    counts["minutes_on_site"] = math.floor(seconds_on_site / 60)
    return counts


def engagement_points(aggregates: dict[str, int]) -> int:
    return (
        min(aggregates["email_opens"] * 2, 10)
        + min(aggregates["email_clicks"] * 5, 15)
        + min(aggregates["page_views"], 10)
        + min(aggregates["minutes_on_site"], 15)
        + aggregates["downloads"] * 10
    )


def _rule_attr(rule: Any, name: str, default: Any = None) -> Any:
    if isinstance(rule, dict):
        return rule.get(name, default)
    return getattr(rule, name, default)


def rule_points(
    rule: Any,
    lead: dict[str, Any],
    touchpoints: list[dict[str, Any]],
) -> int:
    """Points a single rule contributes (0 when it does not fire)."""
    condition = _rule_attr(rule, "condition")
    points = _rule_attr(rule, "points", 0) or 0
    category = _rule_attr(rule, "category")

    if category not in SCORED_CATEGORIES:
        return 0
    if category == "demographic":
        return points if evaluate_condition(lead, condition) else 0
    if category == "behavioral":
        matches = sum(1 for tp in touchpoints if evaluate_condition(tp, condition))
        if not matches:
            return 0
        if _rule_attr(rule, "frequency", "once") == "multiple":
            return points * matches
        return points
    return 0


def compute_score(
    lead: dict[str, Any],
    touchpoints: list[dict[str, Any]],
    rules: Iterable[Any],
) -> int:
    """Score a lead snapshot and its touchpoint snapshots; always within [0, 100]."""
    total = engagement_points(engagement_aggregates(touchpoints))
    for rule in rules:
        if not _rule_attr(rule, "enabled", True):
            continue
        total += rule_points(rule, lead, touchpoints)
    return max(MIN_SCORE, min(MAX_SCORE, int(total)))
