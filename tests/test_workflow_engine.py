"""Integration tests for the workflow engine against a throwaway SQLite database."""
import asyncio
import uuid
from unittest.mock import patch

import pytest

from db.connection import session_scope
from db.models import Workflow
from engines.errors import (
    ExecutionNotFoundError,
    InvalidWorkflowError,
    LeadNotFoundError,
    WorkflowNotFoundError,
)
from schemas.workflow import SplitTestAction

EMAIL_SEND = "tools.email_tools.send_email"
WEBHOOK_CALL = "tools.webhook_tools.call_webhook"


def _workflow(workflow_id, actions, trigger=None, **extra):
    definition = {
        "id": workflow_id,
        "name": workflow_id.replace("-", " ").title(),
        "trigger": trigger or {"type": "time_based"},
        "actions": actions,
    }
    definition.update(extra)
    return definition


def _tag(action_id, tag_name):
    return {"id": action_id, "type": "add_tag", "tag_name": tag_name}


def _wait(action_id, minutes):
    return {"id": action_id, "type": "wait", "wait_minutes": minutes}


# ---------------------------------------------------------------------------
# Definitions and admission
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_invalid_definition_is_rejected(engine):
    with pytest.raises(InvalidWorkflowError):
        await engine.create_workflow(
            _workflow("bad", [{"id": "a1", "type": "send_sms", "to": "x"}])
        )


@pytest.mark.asyncio
async def test_duplicate_action_ids_are_rejected(engine):
    with pytest.raises(InvalidWorkflowError):
        await engine.create_workflow(_workflow("dup", [_tag("a1", "x"), _tag("a1", "y")]))


@pytest.mark.asyncio
async def test_unknown_ids_raise(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("welcome", [_tag("a1", "welcomed")]))

    with pytest.raises(WorkflowNotFoundError):
        await engine.trigger_workflow("missing", lead.id)
    with pytest.raises(LeadNotFoundError):
        await engine.trigger_workflow("welcome", uuid.uuid4())
    with pytest.raises(ExecutionNotFoundError):
        await engine.pause_execution(uuid.uuid4())


@pytest.mark.asyncio
async def test_runs_to_completion(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow("welcome", [_tag("a1", "welcomed"), _tag("a2", "nurture")])
    )

    execution_id = await engine.trigger_workflow("welcome", lead.id, {"origin": "test"})

    execution = await engine.get_execution(execution_id)
    assert execution.status == "completed"
    assert execution.current_action_index == 2
    assert execution.execution_data["trigger"] == {"origin": "test"}
    assert execution.execution_data["a1"] == {"type": "add_tag", "tag": "welcomed"}
    assert (await tracker.get_lead(lead.id)).tags == ["welcomed", "nurture"]

    analytics = await engine.get_workflow_analytics("welcome")
    assert analytics.total_executions == 1
    assert analytics.active_participants == 0
    assert analytics.completed_participants == 1
    assert {p.action_id: p.success_rate for p in analytics.action_performance} == {
        "a1": 100.0,
        "a2": 100.0,
    }


@pytest.mark.asyncio
async def test_max_executions_per_contact(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow("welcome", [_tag("a1", "welcomed")], settings={"max_executions_per_contact": 2})
    )

    assert await engine.trigger_workflow("welcome", lead.id) is not None
    assert await engine.trigger_workflow("welcome", lead.id) is not None
    assert await engine.trigger_workflow("welcome", lead.id) is None

    analytics = await engine.get_workflow_analytics("welcome")
    assert analytics.total_executions == 2


@pytest.mark.asyncio
async def test_cooldown(engine, tracker, clock):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "reminder",
            [_tag("a1", "reminded")],
            settings={"max_executions_per_contact": 5, "cooldown_hours": 24},
        )
    )

    assert await engine.trigger_workflow("reminder", lead.id) is not None
    clock.advance(hours=23)
    assert await engine.trigger_workflow("reminder", lead.id) is None
    clock.advance(hours=2)
    assert await engine.trigger_workflow("reminder", lead.id) is not None


@pytest.mark.asyncio
async def test_inactive_workflow_is_a_noop(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("paused", [_tag("a1", "x")], is_active=False))
    assert await engine.trigger_workflow("paused", lead.id) is None


@pytest.mark.asyncio
async def test_workflow_and_touchpoints_on_one_lead_are_serialized(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    tags = [f"step-{i}" for i in range(5)]
    await engine.create_workflow(
        _workflow("tagger", [_tag(f"a{i}", tag) for i, tag in enumerate(tags)])
    )

    results = await asyncio.gather(
        engine.trigger_workflow("tagger", lead.id),
        *(
            tracker.record_touchpoint(lead.id, "email_open", email_campaign_id=f"c-{i}")
            for i in range(5)
        ),
    )

    assert (await engine.get_execution(results[0])).status == "completed"
    updated = await tracker.get_lead(lead.id)
    assert set(tags) <= set(updated.tags)
    assert updated.total_interactions == 5
    assert len(updated.touchpoints) == 5

# ---------------------------------------------------------------------------
# Waits and execution control
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_wait_suspends_until_continuation_fires(engine, tracker, clock):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("drip", [_wait("w1", 60), _tag("a1", "followed-up")]))

    execution_id = await engine.trigger_workflow("drip", lead.id)

    execution = await engine.get_execution(execution_id)
    assert execution.status == "running"
    assert execution.current_action_index == 0
    assert execution.waiting_until is not None
    assert "followed-up" not in (await tracker.get_lead(lead.id)).tags

    assert await engine.resume_due() == 0

    clock.advance(minutes=61)
    assert await engine.resume_due() == 1

    execution = await engine.get_execution(execution_id)
    assert execution.status == "completed"
    assert execution.waiting_until is None
    assert "followed-up" in (await tracker.get_lead(lead.id)).tags

    # exactly once
    assert await engine.resume_due() == 0


@pytest.mark.asyncio
async def test_trigger_delay_defers_first_action(engine, tracker, clock):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "delayed",
            [_tag("a1", "delayed")],
            trigger={"type": "time_based", "delay_minutes": 30},
        )
    )

    execution_id = await engine.trigger_workflow("delayed", lead.id)
    assert "delayed" not in (await tracker.get_lead(lead.id)).tags

    clock.advance(minutes=31)
    await engine.resume_due()

    execution = await engine.get_execution(execution_id)
    assert execution.status == "completed"
    assert "delayed" in (await tracker.get_lead(lead.id)).tags


@pytest.mark.asyncio
async def test_pause_and_resume(engine, tracker, clock):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("drip", [_wait("w1", 60), _tag("a1", "followed-up")]))
    execution_id = await engine.trigger_workflow("drip", lead.id)

    assert await engine.pause_execution(execution_id) is True
    assert await engine.pause_execution(execution_id) is False

    # the continuation moves the cursor but a paused execution does not run
    clock.advance(minutes=61)
    assert await engine.resume_due() == 1
    execution = await engine.get_execution(execution_id)
    assert execution.status == "paused"
    assert execution.current_action_index == 1
    assert "followed-up" not in (await tracker.get_lead(lead.id)).tags

    assert await engine.resume_execution(execution_id) is True
    execution = await engine.get_execution(execution_id)
    assert execution.status == "completed"
    assert "followed-up" in (await tracker.get_lead(lead.id)).tags

    assert await engine.resume_execution(execution_id) is False


@pytest.mark.asyncio
async def test_resume_while_still_waiting_only_flips_status(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("drip", [_wait("w1", 60), _tag("a1", "followed-up")]))
    execution_id = await engine.trigger_workflow("drip", lead.id)

    await engine.pause_execution(execution_id)
    assert await engine.resume_execution(execution_id) is True

    execution = await engine.get_execution(execution_id)
    assert execution.status == "running"
    assert execution.current_action_index == 0
    assert execution.waiting_until is not None


@pytest.mark.asyncio
async def test_cancel_drops_pending_continuation(engine, tracker, clock):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("drip", [_wait("w1", 60), _tag("a1", "followed-up")]))
    execution_id = await engine.trigger_workflow("drip", lead.id)

    assert await engine.cancel_execution(execution_id) is True
    assert await engine.cancel_execution(execution_id) is False

    clock.advance(minutes=61)
    assert await engine.resume_due() == 0

    execution = await engine.get_execution(execution_id)
    assert execution.status == "cancelled"
    assert "followed-up" not in (await tracker.get_lead(lead.id)).tags
    analytics = await engine.get_workflow_analytics("drip")
    assert analytics.active_participants == 0
    assert analytics.completed_participants == 0


# ---------------------------------------------------------------------------
# Failures and retries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failed_action_is_terminal(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "welcome",
            [
                {"id": "email", "type": "send_email", "template_id": "welcome-1"},
                _tag("a2", "welcomed"),
            ],
        )
    )

    with patch(EMAIL_SEND, return_value={"message_id": None, "error": "mailbox full"}):
        execution_id = await engine.trigger_workflow("welcome", lead.id)

    execution = await engine.get_execution(execution_id)
    assert execution.status == "failed"
    assert len(execution.errors) == 1
    error = execution.errors[0]
    assert error["action_id"] == "email"
    assert error["action_type"] == "send_email"
    assert "mailbox full" in error["error_message"]
    assert error["retry_count"] == 0
    assert "welcomed" not in (await tracker.get_lead(lead.id)).tags

    analytics = await engine.get_workflow_analytics("welcome")
    assert analytics.active_participants == 0
    [email_stats] = analytics.action_performance
    assert (email_stats.executions, email_stats.failures) == (1, 1)


@pytest.mark.asyncio
async def test_retries_absorb_transient_failures(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "welcome",
            [{"id": "email", "type": "send_email", "template_id": "welcome-1", "max_retries": 2}],
        )
    )

    results = [
        {"message_id": None, "error": "timeout"},
        {"message_id": None, "error": "timeout"},
        {"message_id": "m-1", "to_email": "jane@acme.com"},
    ]
    with patch(EMAIL_SEND, side_effect=results) as mock_send:
        execution_id = await engine.trigger_workflow("welcome", lead.id)

    assert mock_send.call_count == 3
    execution = await engine.get_execution(execution_id)
    assert execution.status == "completed"
    assert execution.execution_data["email"]["message_id"] == "m-1"

    [email_stats] = (await engine.get_workflow_analytics("welcome")).action_performance
    assert (email_stats.executions, email_stats.successes, email_stats.failures) == (3, 1, 2)


@pytest.mark.asyncio
async def test_exhausted_retries_record_retry_count(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "welcome",
            [{"id": "email", "type": "send_email", "template_id": "welcome-1", "max_retries": 1}],
        )
    )

    with patch(EMAIL_SEND, return_value={"message_id": None, "error": "down"}) as mock_send:
        execution_id = await engine.trigger_workflow("welcome", lead.id)

    assert mock_send.call_count == 2
    execution = await engine.get_execution(execution_id)
    assert execution.status == "failed"
    assert execution.errors[0]["retry_count"] == 1


@pytest.mark.asyncio
async def test_unknown_stored_action_fails_execution(engine, tracker, session_factory):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("legacy", [_tag("a1", "x")]))
    async with session_scope(session_factory) as session:
        workflow = await session.get(Workflow, "legacy")
        workflow.actions = [{"id": "sms", "type": "send_sms"}]

    execution_id = await engine.trigger_workflow("legacy", lead.id)

    execution = await engine.get_execution(execution_id)
    assert execution.status == "failed"
    assert "send_sms" in execution.errors[0]["error_message"]


# ---------------------------------------------------------------------------
# Conditions and action effects
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unmet_conditions_complete_early(engine, tracker):
    acme = await tracker.capture_lead("jane@acme.com", company="Acme")
    other = await tracker.capture_lead("bob@globex.com", company="Globex")
    await engine.create_workflow(
        _workflow(
            "acme-only",
            [_tag("a1", "acme")],
            conditions=[{"id": "c1", "field": "company", "operator": "equals", "value": "Acme"}],
        )
    )

    await engine.trigger_workflow("acme-only", acme.id)
    skipped_id = await engine.trigger_workflow("acme-only", other.id)

    assert "acme" in (await tracker.get_lead(acme.id)).tags
    assert "acme" not in (await tracker.get_lead(other.id)).tags
    assert (await engine.get_execution(skipped_id)).status == "completed"


@pytest.mark.asyncio
async def test_unless_condition(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com", tags=["customer"])
    await engine.create_workflow(
        _workflow(
            "prospects",
            [_tag("a1", "prospect")],
            conditions=[
                {"id": "c1", "type": "unless", "field": "tags", "operator": "contains",
                 "value": "customer"},
            ],
        )
    )

    await engine.trigger_workflow("prospects", lead.id)
    assert "prospect" not in (await tracker.get_lead(lead.id)).tags


@pytest.mark.asyncio
async def test_lead_mutation_actions(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com", tags=["cold"])
    await engine.create_workflow(
        _workflow(
            "qualify",
            [
                {"id": "a1", "type": "remove_tag", "tag_name": "cold"},
                {"id": "a2", "type": "update_field", "field_name": "status",
                 "field_value": "qualified"},
                {"id": "a3", "type": "update_field", "field_name": "plan", "field_value": "pro"},
                {"id": "a4", "type": "assign_lead", "assignee_id": "rep-7"},
            ],
        )
    )

    await engine.trigger_workflow("qualify", lead.id)

    updated = await tracker.get_lead(lead.id)
    assert updated.tags == []
    assert updated.status == "qualified"
    assert updated.custom_fields["plan"] == "pro"
    assert updated.assigned_to == "rep-7"


@pytest.mark.asyncio
async def test_invalid_status_update_fails(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow(
            "bad-status",
            [{"id": "a1", "type": "update_field", "field_name": "status", "field_value": "won"}],
        )
    )

    execution_id = await engine.trigger_workflow("bad-status", lead.id)

    assert (await engine.get_execution(execution_id)).status == "failed"
    assert (await tracker.get_lead(lead.id)).status == "new"


@pytest.mark.asyncio
async def test_send_email_personalization(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com", first_name="Jane", company="Acme")
    await engine.create_workflow(
        _workflow(
            "welcome",
            [{
                "id": "email",
                "type": "send_email",
                "template_id": "welcome-1",
                "subject": "Welcome",
                "personalization": {
                    "greeting": "Hi {{lead.first_name}} from {{ lead.company }}",
                    "origin": "{{data.trigger.origin}}",
                    "unknown": "{{lead.nickname}}",
                },
            }],
        )
    )

    with patch(EMAIL_SEND, return_value={"message_id": "m-1"}) as mock_send:
        await engine.trigger_workflow("welcome", lead.id, {"origin": "webinar"})

    to_email, template_id, subject, variables = mock_send.call_args.args
    assert (to_email, template_id, subject) == ("jane@acme.com", "welcome-1", "Welcome")
    assert variables["greeting"] == "Hi Jane from Acme"
    assert variables["origin"] == "webinar"
    assert variables["unknown"] == ""
    assert variables["email"] == "jane@acme.com"


@pytest.mark.asyncio
async def test_webhook_default_payload(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(
        _workflow("notify", [{"id": "hook", "type": "webhook", "url": "https://hooks.test/lead"}])
    )

    with patch(WEBHOOK_CALL, return_value={"status_code": 200}) as mock_call:
        execution_id = await engine.trigger_workflow("notify", lead.id)

    url, method, headers, payload = mock_call.call_args.args
    assert (url, method) == ("https://hooks.test/lead", "POST")
    assert payload["workflow_id"] == "notify"
    assert payload["execution_id"] == str(execution_id)
    assert payload["lead"]["email"] == "jane@acme.com"
    execution = await engine.get_execution(execution_id)
    assert execution.execution_data["hook"]["status_code"] == 200


@pytest.mark.asyncio
async def test_create_task_defaults_to_lead_owner(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com", assigned_to="rep-3")
    await engine.create_workflow(
        _workflow(
            "follow-up",
            [{"id": "task", "type": "create_task", "title": "Call Jane", "due_in_days": 2}],
        )
    )

    with patch("tools.task_tools.create_task", return_value={"task_id": "t-9"}) as mock_task:
        await engine.trigger_workflow("follow-up", lead.id)

    title, lead_id, _description, due_in_days, assignee_id = mock_task.call_args.args
    assert (title, lead_id, due_in_days, assignee_id) == ("Call Jane", str(lead.id), 2, "rep-3")


# ---------------------------------------------------------------------------
# Split tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_split_test_runs_one_variant_and_records_exposure(engine, tracker, session_factory):
    from engines.experiments import ExperimentService
    from schemas.experiment import ABTestVariant

    experiments = ExperimentService(session_factory)
    test = await experiments.create_ab_test(
        "Subject line", [ABTestVariant(id="a"), ABTestVariant(id="b")]
    )
    split = {
        "id": "split",
        "type": "split_test",
        "experiment_id": test.test_id,
        "variants": [
            {"id": "a", "percentage": 50, "actions": [_tag("tag-a", "variant-a")]},
            {"id": "b", "percentage": 50, "actions": [_tag("tag-b", "variant-b")]},
        ],
    }
    await engine.create_workflow(_workflow("ab", [split]))
    lead = await tracker.capture_lead("jane@acme.com")

    execution_id = await engine.trigger_workflow("ab", lead.id)

    expected = engine.choose_variant(str(execution_id), SplitTestAction.model_validate(split))
    execution = await engine.get_execution(execution_id)
    assert execution.execution_data["split"]["variant_id"] == expected.id
    assert (await tracker.get_lead(lead.id)).tags == [f"variant-{expected.id}"]

    [results] = await experiments.get_ab_test_results(uuid.UUID(test.test_id))
    visitors = {v.id: v.visitors for v in results.variants}
    assert visitors[expected.id] == 1
    assert sum(visitors.values()) == 1


def test_choose_variant_is_deterministic():
    from engines.workflow import WorkflowEngine

    action = SplitTestAction.model_validate({
        "id": "split",
        "variants": [
            {"id": "a", "percentage": 10},
            {"id": "b", "percentage": 90},
        ],
    })
    picks = [WorkflowEngine.choose_variant(f"exec-{i}", action).id for i in range(200)]
    assert picks == [WorkflowEngine.choose_variant(f"exec-{i}", action).id for i in range(200)]
    assert picks.count("b") > picks.count("a")


def test_split_percentages_must_sum_to_100():
    with pytest.raises(ValueError):
        SplitTestAction.model_validate({
            "id": "split",
            "variants": [{"id": "a", "percentage": 30}, {"id": "b", "percentage": 30}],
        })


# ---------------------------------------------------------------------------
# Definition updates
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_workflow_keeps_analytics(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("welcome", [_tag("a1", "v1")]))
    await engine.trigger_workflow("welcome", lead.id)

    await engine.update_workflow("welcome", _workflow("welcome", [_tag("a1", "v2")]))

    definition = await engine.get_workflow("welcome")
    assert definition.actions[0].tag_name == "v2"
    assert (await engine.get_workflow_analytics("welcome")).total_executions == 1

    with pytest.raises(WorkflowNotFoundError):
        await engine.update_workflow("missing", _workflow("missing", []))


# ---------------------------------------------------------------------------
# Default workflows and read access
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_default_workflows_are_seeded_once(engine):
    assert await engine.load_default_workflows() == 3
    assert await engine.load_default_workflows() == 0

    workflows = {w.id: w for w in await engine.list_workflows()}
    assert set(workflows) == {"welcome_series", "cart_abandonment_sequence", "lead_nurturing"}
    welcome = workflows["welcome_series"]
    assert [a.type for a in welcome.actions] == ["send_email", "wait", "send_email", "add_tag"]
    assert welcome.actions[1].wait_minutes == 4320
    assert workflows["cart_abandonment_sequence"].settings.cooldown_hours == 72
    assert workflows["cart_abandonment_sequence"].settings.max_executions_per_contact == 3
    assert workflows["lead_nurturing"].settings.cooldown_hours == 336


@pytest.mark.asyncio
async def test_welcome_series_runs_for_foundation_purchases(engine, tracker, clock):
    await engine.load_default_workflows()
    buyer = await tracker.capture_lead("jane@acme.com", first_name="Jane")
    other = await tracker.capture_lead("li@acme.com")

    with patch(EMAIL_SEND, return_value={"message_id": "m-1"}) as mock_send:
        await tracker.record_conversion(buyer.id, "purchase", 99.0, product_id="foundation")
        await tracker.record_conversion(other.id, "purchase", 499.0, product_id="scale")

        [first] = mock_send.call_args_list
        to_email, template_id, _, variables = first.args
        assert (to_email, template_id) == ("jane@acme.com", "welcome_series_1")
        assert variables["first_name"] == "Jane"
        assert variables["purchase_value"] == "99.0"
        assert "onboarded" not in (await tracker.get_lead(buyer.id)).tags

        clock.advance(days=3, minutes=1)
        assert await engine.resume_due() == 1

    assert [c.args[1] for c in mock_send.call_args_list] == ["welcome_series_1", "onboarding_tips"]
    assert "onboarded" in (await tracker.get_lead(buyer.id)).tags
    assert "onboarded" not in (await tracker.get_lead(other.id)).tags


@pytest.mark.asyncio
async def test_cart_recovery_stops_once_cart_is_no_longer_abandoned(engine, tracker, clock):
    await engine.load_default_workflows()
    abandoned = await tracker.capture_lead("jane@acme.com", cart_status="abandoned")
    recovered = await tracker.capture_lead("li@acme.com", cart_status="recovered")

    with patch(EMAIL_SEND, return_value={"message_id": "m-1"}) as mock_send:
        waiting = await engine.trigger_workflow("cart_abandonment_sequence", abandoned.id)
        skipped = await engine.trigger_workflow("cart_abandonment_sequence", recovered.id)
        assert not mock_send.called

        clock.advance(minutes=61)
        assert await engine.resume_due() == 2

    assert [c.args[:2] for c in mock_send.call_args_list] == [("jane@acme.com", "cart_abandonment")]
    assert (await engine.get_execution(waiting)).waiting_until is not None
    assert await engine.get_execution_status(skipped) == "completed"


@pytest.mark.asyncio
async def test_active_executions_and_status(engine, tracker):
    lead = await tracker.capture_lead("jane@acme.com")
    await engine.create_workflow(_workflow("drip", [_wait("w1", 60), _tag("a1", "late")]))
    await engine.create_workflow(_workflow("quick", [_tag("a1", "now")]))

    waiting = await engine.trigger_workflow("drip", lead.id)
    done = await engine.trigger_workflow("quick", lead.id)

    assert [e.id for e in await engine.get_active_executions()] == [waiting]
    assert await engine.get_active_executions("quick") == []
    assert await engine.get_execution_status(waiting) == "running"
    assert await engine.get_execution_status(done) == "completed"
    with pytest.raises(ExecutionNotFoundError):
        await engine.get_execution_status(uuid.uuid4())
