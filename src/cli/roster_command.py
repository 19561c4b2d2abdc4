"""Roster command wiring for Skorly CLI: trigger, schedule, deactivate, limits."""

from __future__ import annotations

import argparse
from typing import Any

from cli.report_command import print_batch_status
from ingest.service import SkorlyClient


def add_roster_commands(subparsers: Any) -> None:
    """Register roster-level subcommands."""
    subparsers.add_parser("trigger", help="Re-run the active roster as a manual batch")
    schedule_parser = subparsers.add_parser(
        "schedule", help="Run the weekly roster scheduler in the foreground"
    )
    schedule_parser.add_argument(
        "--once",
        action="store_true",
        help="Exit after the next scheduled run finishes",
    )
    deactivate_parser = subparsers.add_parser(
        "deactivate", help="Exclude a student from future roster runs"
    )
    deactivate_parser.add_argument("reg_no", help="Student registration number")
    subparsers.add_parser("limits", help="Show rate limiter tokens per platform")


async def run_roster_command(client: SkorlyClient, args: argparse.Namespace) -> int:
    """Execute one roster command and print its result."""
    if args.command == "trigger":
        batch_id = await client.trigger_roster("manual")
        print(f"batch_id={batch_id}")
        await client.roster_trigger.wait_idle()
        print_batch_status(client.status(batch_id))
        return 0
    if args.command == "schedule":
        scheduler = client.scheduler()
        await scheduler.run(max_runs=1 if args.once else None)
        await client.roster_trigger.wait_idle()
        return 0
    if args.command == "deactivate":
        student = client.deactivate(args.reg_no)
        print(f"reg_no={student.reg_no}")
        print(f"is_active={str(student.is_active).lower()}")
        return 0
    for platform, values in client.rate_limiter_status().items():
        print(
            f"{platform}\tavailable={values['available_tokens']:.2f}\t"
            f"capacity={values['capacity']:.0f}\trefill_per_second={values['refill_per_second']}"
        )
    return 0
