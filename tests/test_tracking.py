"""Integration tests for lead capture, touchpoint ingest, conversions and analytics."""
import uuid

import pytest

from engines.errors import LeadNotFoundError


@pytest.mark.asyncio
async def test_capture_normalizes_and_dedupes(tracker):
    first = await tracker.capture_lead("  Jane@Acme.COM ", first_name="Jane", plan="pro")
    second = await tracker.capture_lead("jane@acme.com", first_name="Someone Else")

    assert first.id == second.id
    assert first.email == "jane@acme.com"
    assert second.first_name == "Jane"
    assert first.custom_fields == {"plan": "pro"}
    assert first.status == "new"
    assert first.current_stage == "awareness"


@pytest.mark.asyncio
async def test_capture_rejects_invalid_email(tracker):
    with pytest.raises(ValueError):
        await tracker.capture_lead("not-an-email")


@pytest.mark.asyncio
async def test_capture_scores_with_default_rules(tracker):
    assert await tracker.load_default_rules() == 5
    assert await tracker.load_default_rules() == 0

    corporate = await tracker.capture_lead("jane@acme.com")
    free = await tracker.capture_lead("joe@gmail.com")

    assert corporate.score == 10
    assert free.score == 10


@pytest.mark.asyncio
async def test_touchpoint_updates_counters_and_score(tracker):
    await tracker.load_default_rules()
    lead = await tracker.capture_lead("jane@acme.com")

    await tracker.record_touchpoint(
        lead.id, "page_view", page_url="https://acme.io/pricing",
        engagement={"time_on_page": 130},
    )

    updated = await tracker.get_lead(lead.id)
    assert updated.total_interactions == 1
    assert updated.first_touch_at is not None
    assert updated.last_touch_at == updated.first_touch_at
    # 10 email provided + 15 pricing rule + 1 page view + 2 minutes on site
    assert updated.score == 28
    assert updated.current_stage == "consideration"


@pytest.mark.asyncio
async def test_touchpoint_rejects_unknown_fields(tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    with pytest.raises(ValueError):
        await tracker.record_touchpoint(lead.id, "page_view", browser="firefox")
    with pytest.raises(ValueError):
        await tracker.record_touchpoint(lead.id, "phone_call")


@pytest.mark.asyncio
async def test_unknown_lead_raises(tracker):
    with pytest.raises(LeadNotFoundError):
        await tracker.record_touchpoint(uuid.uuid4(), "page_view")
    with pytest.raises(LeadNotFoundError):
        await tracker.record_conversion(uuid.uuid4(), "purchase", 10.0)


@pytest.mark.asyncio
async def test_journey_and_linear_attribution_scenario(tracker):
    lead = await tracker.capture_lead("jane@acme.com")

    first = await tracker.record_touchpoint(lead.id, "page_view", page_url="/")
    await tracker.record_touchpoint(lead.id, "form_fill", form_id="newsletter")
    last = await tracker.record_touchpoint(lead.id, "page_view", page_url="/pricing")

    journey = await tracker.get_lead_journey(lead.id)
    assert journey.current_stage == "consideration"
    assert [entry.stage for entry in journey.stage_history] == [
        "awareness", "interest", "consideration",
    ]
    assert [entry.touchpoints for entry in journey.stage_history] == [2, 1, 0]
    assert journey.stage_history[0].exited_at is not None
    assert journey.stage_history[-1].exited_at is None

    await tracker.record_conversion(lead.id, "purchase", 250.0)

    journey = await tracker.get_lead_journey(lead.id)
    linear = journey.attribution.linear
    assert [round(credit.value, 2) for credit in linear] == [83.33, 83.33, 83.33]
    assert sum(credit.value for credit in linear) == pytest.approx(250.0)
    assert journey.attribution.first_touch.touchpoint_id == str(first)
    assert journey.attribution.last_touch.touchpoint_id == str(last)
    assert journey.current_stage == "purchase"
    assert journey.conversion_value == 250.0
    assert journey.time_to_conversion == 0

    converted = await tracker.get_lead(lead.id)
    assert converted.status == "closed_won"


@pytest.mark.asyncio
async def test_conversion_without_touchpoints_has_empty_attribution(tracker, session_factory):
    from db.connection import session_scope
    from db.repositories import conversions as conversions_repo

    lead = await tracker.capture_lead("jane@acme.com")
    await tracker.record_conversion(lead.id, "signup", 0.0)

    async with session_scope(session_factory) as session:
        [event] = await conversions_repo.list_recent(session, lead_id=lead.id)
    assert event.event_type == "signup"
    assert event.attribution["linear"] == []


@pytest.mark.asyncio
async def test_add_tags_returns_only_new_tags(tracker):
    lead = await tracker.capture_lead("jane@acme.com", tags=["trial"])
    assert await tracker.add_tags(lead.id, ["trial", "vip", "vip"]) == ["vip"]
    assert await tracker.add_tags(lead.id, ["vip"]) == []
    assert (await tracker.get_lead(lead.id)).tags == ["trial", "vip"]


@pytest.mark.asyncio
async def test_manual_stage_update(tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    assert await tracker.update_lead_stage(lead.id, "intent") is True
    assert await tracker.update_lead_stage(lead.id, "intent") is False
    with pytest.raises(ValueError):
        await tracker.update_lead_stage(lead.id, "churned")


# ---------------------------------------------------------------------------
# Workflow triggers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_lead_created_trigger(tracker, engine):
    await engine.create_workflow({
        "id": "welcome",
        "name": "Welcome",
        "trigger": {"type": "lead_created"},
        "actions": [{"id": "a1", "type": "add_tag", "tag_name": "welcomed"}],
    })

    lead = await tracker.capture_lead("jane@acme.com")
    assert "welcomed" in (await tracker.get_lead(lead.id)).tags

    # returning an existing lead is not a new lead
    await tracker.capture_lead("jane@acme.com")
    assert (await engine.get_workflow_analytics("welcome")).total_executions == 1


@pytest.mark.asyncio
async def test_page_visited_trigger_matches_url(tracker, engine):
    await engine.create_workflow({
        "id": "pricing-interest",
        "name": "Pricing interest",
        "trigger": {"type": "page_visited", "page_url": "/pricing"},
        "actions": [{"id": "a1", "type": "add_tag", "tag_name": "pricing"}],
        "settings": {"max_executions_per_contact": 5},
    })
    lead = await tracker.capture_lead("jane@acme.com")

    await tracker.record_touchpoint(lead.id, "page_view", page_url="/blog")
    assert (await engine.get_workflow_analytics("pricing-interest")).total_executions == 0

    await tracker.record_touchpoint(lead.id, "page_view", page_url="/Pricing/enterprise")
    assert (await engine.get_workflow_analytics("pricing-interest")).total_executions == 1
    assert "pricing" in (await tracker.get_lead(lead.id)).tags


@pytest.mark.asyncio
async def test_trigger_filters_use_lead_fields(tracker, engine):
    await engine.create_workflow({
        "id": "enterprise-forms",
        "name": "Enterprise forms",
        "trigger": {
            "type": "form_submitted",
            "form_id": "demo",
            "filters": [{"field": "company_size", "operator": "equals", "value": "1000+"}],
        },
        "actions": [{"id": "a1", "type": "add_tag", "tag_name": "enterprise-demo"}],
    })
    small = await tracker.capture_lead("sam@small.io", company_size="1-10")
    large = await tracker.capture_lead("lee@big.io", company_size="1000+")

    await tracker.record_touchpoint(small.id, "form_fill", form_id="demo")
    await tracker.record_touchpoint(large.id, "form_fill", form_id="contact")
    await tracker.record_touchpoint(large.id, "form_fill", form_id="demo")

    assert "enterprise-demo" not in (await tracker.get_lead(small.id)).tags
    assert "enterprise-demo" in (await tracker.get_lead(large.id)).tags
    assert (await engine.get_workflow_analytics("enterprise-forms")).total_executions == 1


@pytest.mark.asyncio
async def test_score_threshold_fires_on_upward_crossing(tracker, engine):
    await engine.create_workflow({
        "id": "hot-lead",
        "name": "Hot lead",
        "trigger": {"type": "score_threshold", "score_threshold": 20},
        "actions": [{"id": "a1", "type": "add_tag", "tag_name": "hot"}],
        "settings": {"max_executions_per_contact": 5},
    })
    lead = await tracker.capture_lead("jane@acme.com")

    # each download adds 10 engagement points
    await tracker.record_touchpoint(lead.id, "download", download_asset="guide.pdf")
    assert "hot" not in (await tracker.get_lead(lead.id)).tags

    await tracker.record_touchpoint(lead.id, "download", download_asset="pricing.pdf")
    assert "hot" in (await tracker.get_lead(lead.id)).tags

    await tracker.record_touchpoint(lead.id, "download", download_asset="case-study.pdf")
    assert (await engine.get_workflow_analytics("hot-lead")).total_executions == 1


@pytest.mark.asyncio
async def test_tag_added_trigger(tracker, engine):
    await engine.create_workflow({
        "id": "vip",
        "name": "VIP",
        "trigger": {"type": "tag_added", "tag_name": "vip"},
        "actions": [{"id": "a1", "type": "assign_lead", "assignee_id": "vip-desk"}],
    })
    lead = await tracker.capture_lead("jane@acme.com")

    await tracker.add_tags(lead.id, ["newsletter"])
    assert (await tracker.get_lead(lead.id)).assigned_to is None

    await tracker.add_tags(lead.id, ["vip"])
    assert (await tracker.get_lead(lead.id)).assigned_to == "vip-desk"


@pytest.mark.asyncio
async def test_purchase_made_trigger_on_conversion(tracker, engine):
    await engine.create_workflow({
        "id": "onboarding",
        "name": "Onboarding",
        "trigger": {"type": "purchase_made"},
        "actions": [{"id": "a1", "type": "add_tag", "tag_name": "customer"}],
    })
    lead = await tracker.capture_lead("jane@acme.com")

    await tracker.record_conversion(lead.id, "purchase", 99.0)

    assert "customer" in (await tracker.get_lead(lead.id)).tags


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_lead_analytics(tracker):
    await tracker.load_default_rules()
    emailed = await tracker.capture_lead("jane@acme.com", source={"channel": "email"})
    await tracker.capture_lead("joe@gmail.com")
    await tracker.capture_lead("ann@gmail.com", source={"channel": "email"})
    await tracker.record_conversion(emailed.id, "purchase", 120.0)

    analytics = await tracker.get_lead_analytics()

    assert analytics.total_leads == 3
    assert analytics.leads_by_source == {"email": 2, "direct": 1}
    assert analytics.leads_by_stage == {"purchase": 1, "awareness": 2}
    assert analytics.conversion_rates == {"email": 50.0, "direct": 0.0}
    assert analytics.average_time_to_conversion == 0.0
    # scores 10, 10, 10: mean 10, none at 50 or above
    assert analytics.lead_quality_score == round((10 + 0) / 2)
    top = analytics.top_performing_channels[0]
    assert (top.channel, top.conversions, top.revenue) == ("email", 1, 120.0)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_leads_by_status_and_channel(tracker):
    jane = await tracker.capture_lead("jane@acme.com", source={"channel": "email"})
    await tracker.capture_lead("joe@acme.com", source={"channel": "referral"})
    await tracker.record_conversion(jane.id, "purchase", 50.0)

    won = await tracker.list_leads(status="closed_won")
    emailed = await tracker.list_leads(channel="email")

    assert [lead.email for lead in won] == ["jane@acme.com"]
    assert [lead.email for lead in emailed] == ["jane@acme.com"]
    assert len(await tracker.list_leads()) == 2
    with pytest.raises(ValueError):
        await tracker.list_leads(status="customer")


@pytest.mark.asyncio
async def test_get_touchpoints_in_order(tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await tracker.record_touchpoint(lead.id, "page_view", page_url="/home")
    await tracker.record_touchpoint(lead.id, "form_fill", form_id="demo")

    touchpoints = await tracker.get_touchpoints(lead.id)

    assert [(tp.type, tp.page_url, tp.form_id) for tp in touchpoints] == [
        ("page_view", "/home", None),
        ("form_fill", None, "demo"),
    ]
    with pytest.raises(LeadNotFoundError):
        await tracker.get_touchpoints(uuid.uuid4())


@pytest.mark.asyncio
async def test_get_conversions_newest_first(tracker, clock):
    jane = await tracker.capture_lead("jane@acme.com")
    joe = await tracker.capture_lead("joe@acme.com")
    await tracker.record_conversion(jane.id, "purchase", 10.0)
    clock.advance(days=2)
    cutoff = clock()
    await tracker.record_conversion(joe.id, "signup", 0.0)
    await tracker.record_conversion(jane.id, "subscription", 30.0)

    assert [c.value for c in await tracker.get_conversions()][-1] == 10.0
    assert {c.event_type for c in await tracker.get_conversions(since=cutoff)} == {"signup", "subscription"}
    assert [c.value for c in await tracker.get_conversions(lead_id=jane.id)] == [30.0, 10.0]
