"""Skorly CLI entry points.

This module exposes batch submission, status, and roster commands.
It maps argparse commands onto SDK calls run on one event loop.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.report_command import add_report_commands, print_batch_status, run_report_command
from cli.roster_command import add_roster_commands, run_roster_command
from core.config import SkorlyConfig
from core.errors import SkorlyError
from ingest.roster_reader import read_roster
from ingest.service import SkorlyClient

REPORT_COMMANDS = ("history", "progress", "compare")
ROSTER_COMMANDS = ("trigger", "schedule", "deactivate", "limits")


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="skorly", description="Skorly ingestion CLI")
    parser.add_argument("--data-root", help="Override SKORLY_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_submit_command(subparsers)
    _add_status_command(subparsers)
    _add_errors_command(subparsers)
    subparsers.add_parser("batches", help="List ingestion batches")
    subparsers.add_parser("next-week", help="Show the week the next batch will receive")
    add_report_commands(subparsers)
    add_roster_commands(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Skorly CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except SkorlyError as error:
        print(f"error={error}", file=sys.stderr)
        return 1


async def _run(args: argparse.Namespace) -> int:
    async with _build_client(args.data_root) as client:
        if args.command == "submit":
            return await _run_submit_command(client, args)
        if args.command == "status":
            print_batch_status(client.status(args.batch_id))
            return 0
        if args.command == "errors":
            return _run_errors_command(client, args)
        if args.command == "batches":
            return _run_batches_command(client)
        if args.command == "next-week":
            week = client.next_week()
            print(f"week_number={week.week_number}")
            print(f"week_label={week.week_label}")
            return 0
        if args.command in REPORT_COMMANDS:
            return run_report_command(client, args)
        if args.command in ROSTER_COMMANDS:
            return await run_roster_command(client, args)
    raise SkorlyError(f"Unsupported command: {args.command}")


def _build_client(data_root: str | None) -> SkorlyClient:
    """Build SDK client with optional data-root override."""
    config = SkorlyConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return SkorlyClient(config)


async def _run_submit_command(client: SkorlyClient, args: argparse.Namespace) -> int:
    records = read_roster(args.roster)
    batch_id = await client.submit(records, trigger="upload")
    print(f"batch_id={batch_id}")
    await client.wait(batch_id)
    print_batch_status(client.status(batch_id))
    return 0


def _run_errors_command(client: SkorlyClient, args: argparse.Namespace) -> int:
    for record in client.errors(args.batch_id, limit=args.limit):
        print(
            f"{record.timestamp.isoformat()}\t{record.kind}\t"
            f"{record.student_id or '-'}\t{record.platform or '-'}\t{record.message}"
        )
    return 0


def _run_batches_command(client: SkorlyClient) -> int:
    for batch in client.list_batches():
        print(
            f"{batch.batch_id}\t{batch.week_label}\t{batch.status}\t"
            f"{batch.progress.processed}/{batch.total_students}\t{batch.trigger}"
        )
    return 0


def _add_submit_command(subparsers: Any) -> None:
    """Register submit subcommand."""
    parser = subparsers.add_parser("submit", help="Submit a roster file as a new batch")
    parser.add_argument("roster", help="Roster file (.json, .jsonl, .yaml, .yml)")


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    parser = subparsers.add_parser("status", help="Show batch progress and recent errors")
    parser.add_argument("batch_id", help="Batch id")


def _add_errors_command(subparsers: Any) -> None:
    """Register errors subcommand."""
    parser = subparsers.add_parser("errors", help="Show a batch error log")
    parser.add_argument("batch_id", help="Batch id")
    parser.add_argument("--limit", type=int, help="Only show the most recent entries")
