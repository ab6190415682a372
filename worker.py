"""Lead tracking & marketing automation worker.

Runs the periodic sweeps and a few administrative one-offs:
  queue drain          (every minute)  fires due workflow wait continuations
  campaign check       (every minute)  sends due scheduled email campaigns
  segment recompute    (hourly)        refreshes segment size estimates

Usage:
  # Run every sweep once and exit
  python worker.py sweep

  # Run one sweep once
  python worker.py sweep --only campaigns

  # Run the sweeps forever on their configured intervals
  python worker.py run

  # Seed the default lead scoring rules
  python worker.py seed-rules

  # Seed the default welcome, cart recovery and nurture workflows
  python worker.py seed-workflows

  # Start a workflow for a lead by hand
  python worker.py trigger --workflow-id welcome-series --lead-id 3f0c...

  # Check a two-variant result without storing it
  python worker.py significance --control 100/1000 --variant 130/1000
"""
import argparse
import asyncio
import json
import logging
import sys
import uuid

from app_config import get_settings
from db.connection import dispose_engine
from engines import significance
from engines.sweeps import SweepRunner
from engines.tracking import LeadTracker
from schemas.experiment import ABTestVariant

logger = logging.getLogger(__name__)

SWEEPS = ("drain", "campaigns", "segments")


async def run_sweeps_once(only: str = "") -> dict:
    runner = SweepRunner()
    results = {}
    try:
        if only in ("", "drain"):
            results["drain"] = await runner.drain_workflow_queue()
        if only in ("", "campaigns"):
            results["campaigns"] = await runner.process_scheduled_campaigns()
        if only in ("", "segments"):
            results["segments"] = await runner.recompute_segment_sizes()
    finally:
        await dispose_engine()
    print(json.dumps(results, indent=2, default=str))
    return results


async def _every(seconds: int, name: str, sweep) -> None:
    while True:
        try:
            await sweep()
        except Exception:
            # one failed pass must not stop the schedule
            logger.exception("Sweep %s failed; retrying in %ds", name, seconds)
        await asyncio.sleep(seconds)


async def run_forever() -> None:
    settings = get_settings()
    runner = SweepRunner()
    logger.info("Worker started")
    try:
        await asyncio.gather(
            _every(settings.queue_drain_interval_seconds, "drain", runner.drain_workflow_queue),
            _every(
                settings.campaign_check_interval_seconds,
                "campaigns",
                runner.process_scheduled_campaigns,
            ),
            _every(
                settings.segment_recompute_interval_seconds,
                "segments",
                runner.recompute_segment_sizes,
            ),
        )
    finally:
        await dispose_engine()


async def seed_rules() -> int:
    try:
        inserted = await LeadTracker().load_default_rules()
    finally:
        await dispose_engine()
    print(f"Seeded {inserted} scoring rules")
    return inserted


async def seed_workflows() -> int:
    try:
        inserted = await LeadTracker().engine.load_default_workflows()
    finally:
        await dispose_engine()
    print(f"Seeded {inserted} workflows")
    return inserted


async def trigger(workflow_id: str, lead_id: str) -> None:
    try:
        execution_id = await LeadTracker().engine.trigger_workflow(
            workflow_id, uuid.UUID(lead_id), {"trigger_type": "manual"}
        )
    finally:
        await dispose_engine()
    if execution_id is None:
        print("Trigger rejected (inactive workflow, execution limit or cooldown)")
    else:
        print(f"Started execution {execution_id}")


def _parse_counts(raw: str, variant_id: str) -> ABTestVariant:
    conversions, _, visitors = raw.partition("/")
    return ABTestVariant(id=variant_id, name=variant_id, conversions=int(conversions), visitors=int(visitors))


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lead tracking & marketing automation worker"
    )
    sub = parser.add_subparsers(dest="command")

    sweep = sub.add_parser("sweep", help="Run the periodic sweeps once")
    sweep.add_argument("--only", choices=SWEEPS, default="", help="Run a single sweep")

    sub.add_parser("run", help="Run the sweeps forever on their intervals")
    sub.add_parser("seed-rules", help="Insert the default lead scoring rules")
    sub.add_parser("seed-workflows", help="Insert the default automation workflows")

    trig = sub.add_parser("trigger", help="Start a workflow execution for a lead")
    trig.add_argument("--workflow-id", required=True)
    trig.add_argument("--lead-id", required=True)

    sig = sub.add_parser("significance", help="Evaluate a two-variant result")
    sig.add_argument("--control", required=True, help="conversions/visitors, e.g. 100/1000")
    sig.add_argument("--variant", required=True, help="conversions/visitors, e.g. 130/1000")

    return parser


if __name__ == "__main__":
    parser = _build_arg_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "sweep":
        asyncio.run(run_sweeps_once(only=args.only))

    elif args.command == "run":
        asyncio.run(run_forever())

    elif args.command == "seed-rules":
        asyncio.run(seed_rules())

    elif args.command == "seed-workflows":
        asyncio.run(seed_workflows())

    elif args.command == "trigger":
        asyncio.run(trigger(args.workflow_id, args.lead_id))

    elif args.command == "significance":
        result = significance.evaluate([
            _parse_counts(args.control, "control"),
            _parse_counts(args.variant, "variant"),
        ])
        print(json.dumps(result.model_dump(), indent=2))

    else:
        parser.print_help()
        sys.exit(1)
