"""Report command wiring for Skorly CLI: history, progress, and compare."""

from __future__ import annotations

import argparse
from typing import Any

from core.constants import DEFAULT_HISTORY_LIMIT
from core.types import BatchStatus, ComparisonSummary, StudentScoreChange
from ingest.service import SkorlyClient


def add_report_commands(subparsers: Any) -> None:
    """Register history, progress, and compare subcommands."""
    history_parser = subparsers.add_parser("history", help="Show a student's recent snapshots")
    history_parser.add_argument("reg_no", help="Student registration number")
    history_parser.add_argument(
        "--limit", type=int, default=DEFAULT_HISTORY_LIMIT, help="Number of weeks to show"
    )
    progress_parser = subparsers.add_parser(
        "progress", help="Analyze a student's score trend over recent weeks"
    )
    progress_parser.add_argument("reg_no", help="Student registration number")
    progress_parser.add_argument(
        "--limit", type=int, default=DEFAULT_HISTORY_LIMIT, help="Number of weeks to analyze"
    )
    compare_parser = subparsers.add_parser(
        "compare", help="Compare two batches (defaults to the two most recent)"
    )
    compare_parser.add_argument("--earlier", help="Baseline batch id")
    compare_parser.add_argument("--later", help="Current batch id")


def run_report_command(client: SkorlyClient, args: argparse.Namespace) -> int:
    """Execute one report command and print its result."""
    if args.command == "history":
        for snapshot in client.history(args.reg_no, limit=args.limit):
            print(
                f"{snapshot.week_label}\t{snapshot.batch_id}\t{snapshot.aggregate_score:.2f}\t"
                f"{snapshot.performance_tier}\t{snapshot.trend}\t"
                f"platforms={snapshot.active_platform_count}"
            )
        return 0
    if args.command == "progress":
        progress = client.progress(args.reg_no, limit=args.limit)
        print(f"student_id={progress.student_id}")
        print(f"weeks_analyzed={progress.weeks_analyzed}")
        print(f"average_score={progress.average_score:.2f}")
        print(f"overall_trend={progress.overall_trend}")
        print(f"consistent_improvement={str(progress.consistent_improvement).lower()}")
        print(f"score_variation={progress.score_variation:.2f}")
        print(f"best_week={progress.best_week or '-'}")
        print(f"worst_week={progress.worst_week or '-'}")
        return 0
    print_comparison(client.compare(args.earlier, args.later))
    return 0


def print_batch_status(status: BatchStatus) -> None:
    """Print a batch status as key=value lines."""
    batch = status.batch
    print(f"batch_id={batch.batch_id}")
    print(f"status={batch.status}")
    print(f"week={batch.week_label}")
    print(f"processed={batch.progress.processed}/{batch.total_students}")
    print(f"succeeded={batch.progress.succeeded}")
    print(f"failed={batch.progress.failed}")
    print(f"percent_complete={status.percent_complete}")
    for platform, counters in sorted(batch.platform_counters.items()):
        print(
            f"platform_{platform}=attempted:{counters.attempted} "
            f"succeeded:{counters.succeeded} failed:{counters.failed}"
        )
    if batch.failure_reason:
        print(f"failure_reason={batch.failure_reason}")
    for record in status.recent_errors:
        print(f"recent_error={record.kind}\t{record.student_id or '-'}\t{record.message}")


def print_comparison(summary: ComparisonSummary) -> None:
    """Print a comparison summary as key=value lines."""
    print(f"earlier_batch_id={summary.earlier_batch_id}")
    print(f"later_batch_id={summary.later_batch_id}")
    print(f"total_students={summary.total_students}")
    print(f"improved={summary.improved}")
    print(f"declined={summary.declined}")
    print(f"unchanged={summary.unchanged}")
    print(f"average_score_change={summary.average_score_change:.2f}")
    for tier in ("high", "medium", "low"):
        print(f"tier_{tier}={summary.tier_distribution.get(tier, 0)}")
    for change in summary.top_improvers:
        print(f"top_improver={_format_change(change)}")
    for change in summary.top_decliners:
        print(f"top_decliner={_format_change(change)}")
    for platform in summary.platform_summary:
        print(
            f"platform_{platform.platform}=students:{platform.total_students} "
            f"successful:{platform.successful_fetches} "
            f"avg_rating:{platform.average_rating:.2f} "
            f"avg_problems:{platform.average_problems:.2f}"
        )


def _format_change(change: StudentScoreChange) -> str:
    delta = "-" if change.score_change is None else f"{change.score_change:+.2f}"
    return f"{change.student_id}\t{change.current_score:.2f}\t{delta}"
