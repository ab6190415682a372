"""Unit tests for lead scoring."""
from db.repositories.scoring_rules import DEFAULT_RULES
from engines.scoring import compute_score, engagement_aggregates, engagement_points


def _lead(email="jane@acme.com", **extra):
    lead = {"email": email, "email_domain": email.split("@", 1)[1]}
    lead.update(extra)
    return lead


def _tp(kind, **fields):
    tp = {"type": kind, "engagement": {}}
    tp.update(fields)
    return tp


def test_score_is_clamped_to_100():
    rules = [
        {
            "id": f"r{i}",
            "condition": {"field": "email", "operator": "exists", "value": True},
            "points": 100,
            "frequency": "once",
            "category": "demographic",
        }
        for i in range(50)
    ]
    assert compute_score(_lead(), [], rules) == 100


def test_score_never_negative():
    rules = [{
        "id": "penalty",
        "condition": {"field": "email", "operator": "exists", "value": True},
        "points": -40,
        "frequency": "once",
        "category": "demographic",
    }]
    assert compute_score(_lead(), [], rules) == 0


def test_once_rule_counts_once_across_touchpoints():
    rule = {
        "id": "pricing",
        "condition": {"field": "page_url", "operator": "contains", "value": "/pricing"},
        "points": 7,
        "frequency": "once",
        "category": "behavioral",
    }
    touchpoints = [_tp("page_view", page_url="/pricing") for _ in range(5)]
    # five page views add 5 engagement points on top of the rule
    assert compute_score(_lead(), touchpoints, [rule]) == 7 + 5


def test_multiple_rule_counts_every_match():
    rule = {
        "id": "pricing",
        "condition": {"field": "page_url", "operator": "contains", "value": "/pricing"},
        "points": 7,
        "frequency": "multiple",
        "category": "behavioral",
    }
    touchpoints = [_tp("page_view", page_url="/pricing") for _ in range(5)]
    assert compute_score(_lead(), touchpoints, [rule]) == 7 * 5 + 5


def test_disabled_rules_are_skipped():
    rule = {
        "id": "email_provided",
        "condition": {"field": "email", "operator": "not_equals", "value": None},
        "points": 10,
        "frequency": "once",
        "category": "demographic",
        "enabled": False,
    }
    assert compute_score(_lead(), [], [rule]) == 0


def test_default_rules_score_email_only():
    # enterprise_email is firmographic and awards nothing
    assert compute_score(_lead("jane@acme.com"), [], DEFAULT_RULES) == 10
    assert compute_score(_lead("jane@gmail.com"), [], DEFAULT_RULES) == 10


def test_engagement_rules_award_no_points():
    touchpoints = [_tp("email_open") for _ in range(4)]
    # email_provided 10 + heuristic min(4*2, 10); email_open_multiple is ignored
    assert compute_score(_lead(), touchpoints, DEFAULT_RULES) == 10 + 8


def test_unscored_categories_are_ignored():
    rules = [
        {
            "id": category,
            "condition": {"field": "email", "operator": "exists", "value": True},
            "points": 30,
            "frequency": "once",
            "category": category,
        }
        for category in ("engagement", "firmographic", "unknown")
    ]
    assert compute_score(_lead(), [], rules) == 0


class TestEngagementHeuristic:
    def test_caps(self):
        touchpoints = (
            [_tp("email_open")] * 20
            + [_tp("email_click")] * 20
            + [_tp("page_view", engagement={"time_on_page": 600})] * 20
        )
        aggregates = engagement_aggregates(touchpoints)
        assert aggregates["minutes_on_site"] == 200
        assert engagement_points(aggregates) == 10 + 15 + 10 + 15

    def test_downloads_are_uncapped(self):
        aggregates = engagement_aggregates([_tp("download")] * 3)
        assert engagement_points(aggregates) == 30

    def test_partial_minutes_are_floored(self):
        aggregates = engagement_aggregates([_tp("page_view", engagement={"time_on_page": 119})])
        assert aggregates["minutes_on_site"] == 1
