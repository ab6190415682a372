"""Repository layer for the lead tracking and marketing automation core.

Async functions over an AsyncSession; each flushes, the caller commits.
- leads: get, get_for_update, get_by_email, create, add_touchpoint,
         get_touchpoints, list_leads, list_all
- scoring_rules: get_active, list_all, upsert, set_enabled, seed_defaults
- conversions: create, list_recent
- workflows: get, get_active_by_trigger, list_active, create, seed_defaults,
             update_definition,
             record_execution_started/completed/ended, record_action_result,
             get_action_performance
- executions: create, get, get_status, transition, count_for, get_latest_for,
              list_active, schedule_continuation, get_due_continuations,
              claim_continuation, cancel_continuations, has_pending_continuation
- experiments: create, get, get_for_update, list_tests, save_results
- campaigns: create_segment, get_segments, list_active_segments,
             update_segment_size, create_campaign, get_campaign,
             schedule_campaign, get_due_campaigns, claim_campaign,
             mark_campaign_sent, mark_campaign_failed
"""
