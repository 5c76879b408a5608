"""Field Plan Analyzer -- scheduled job entry points.

Pipeline: Load sheets -> Match budgets to field plans -> Cost + gap analysis
-> Email report -> Mark analyzed -> Escalate missing counterparts

Usage:
    python -m fieldplan_analyzer.main --analyze           # Analyze unanalyzed budgets (every 12h)
    python -m fieldplan_analyzer.main --check-new-plans   # Announce new field plans (every 12h)
    python -m fieldplan_analyzer.main --sweep             # Escalate missing counterparts
    python -m fieldplan_analyzer.main --weekly-summary    # Weekly status email
    python -m fieldplan_analyzer.main --org "Org Name"    # Re-analyze one organization
    python -m fieldplan_analyzer.main --status            # Print analyzed/pending counts
    python -m fieldplan_analyzer.main --analyze --dry-run # Log emails, change nothing
"""

import argparse
import logging
import sys
from pathlib import Path

from fieldplan_analyzer.config import AnalyzerConfig, ConfigurationError, load_config
from fieldplan_analyzer.notifications.notifier import LoggingNotifier, Notifier, SmtpNotifier
from fieldplan_analyzer.orchestrator import AnalysisOrchestrator
from fieldplan_analyzer.storage.properties import (
    InMemoryPropertyStore,
    JsonFilePropertyStore,
    PropertyStore,
)
from fieldplan_analyzer.storage.tabular import WorkbookTabularStore

logger = logging.getLogger(__name__)


def build_orchestrator(config: AnalyzerConfig) -> AnalysisOrchestrator:
    """Wire the file-backed stores and the configured notifier."""
    store = WorkbookTabularStore(config.workbook_path)
    properties: PropertyStore = JsonFilePropertyStore(config.properties_path)
    notifier: Notifier
    if config.dry_run:
        # Dry runs read persisted state but never write it back.
        properties = InMemoryPropertyStore(properties.list_prefix(""))
        notifier = LoggingNotifier()
    else:
        notifier = SmtpNotifier.from_settings(config.notifier)
    return AnalysisOrchestrator(store, notifier, properties, config)


def print_status(orch: AnalysisOrchestrator) -> None:
    """Print analyzed/pending counts and open tracking records."""
    from fieldplan_analyzer.monitors.missing_counterpart import Direction

    analyzed, pending = orch.count_analyzed()
    print(f"\nBudgets: {analyzed} analyzed, {pending} pending")
    for direction in Direction:
        tracked = orch.tracker.tracked(direction)
        print(f"{direction.value} ({len(tracked)}):")
        for org_name, since in sorted(tracked.items()):
            print(f"  {org_name:40s} since {since}")
    print()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Field Plan Analyzer -- budget and field plan matching and analysis"
    )
    parser.add_argument("--analyze", action="store_true", help="Run a budget analysis pass")
    parser.add_argument("--check-new-plans", action="store_true",
                        help="Process field plans submitted since the last check")
    parser.add_argument("--sweep", action="store_true",
                        help="Reconcile and escalate missing budget/field plan counterparts")
    parser.add_argument("--weekly-summary", action="store_true", help="Email the weekly summary")
    parser.add_argument("--resend-plans", action="store_true",
                        help="Resend the new-field-plan email for every field plan")
    parser.add_argument("--org", type=str, help="Analyze one organization's most recent budget")
    parser.add_argument("--status", action="store_true", help="Print analysis status counts")
    parser.add_argument("--config", type=Path, help="Path to analyzer_config.json")
    parser.add_argument("--workbook", type=Path, help="Override the form-response workbook path")
    parser.add_argument("--test-mode", action="store_true",
                        help="Send every email to the test recipients with a [TEST] subject")
    parser.add_argument("--dry-run", action="store_true",
                        help="Log emails instead of sending; leave the workbook and saved state untouched")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    jobs = [args.analyze, args.check_new_plans, args.sweep, args.weekly_summary,
            args.resend_plans, bool(args.org), args.status]
    if not any(jobs):
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        overrides: dict = {}
        if args.workbook:
            overrides["workbook_path"] = args.workbook
        if args.test_mode:
            overrides["test_mode"] = True
        if args.dry_run:
            overrides["dry_run"] = True
        if overrides:
            config = config.model_copy(update=overrides)

        orch = build_orchestrator(config)

        if args.status:
            print_status(orch)
        if args.check_new_plans:
            result = orch.check_new_field_plans()
            print(f"New field plans: {len(result.processed)} processed, "
                  f"{len(result.errors)} error(s), cursor at {result.cursor}")
        if args.analyze:
            result = orch.run_analysis_pass()
            print(f"Analysis pass: {result.examined} examined, {len(result.analyzed)} analyzed, "
                  f"{len(result.awaiting_plan)} awaiting plan, "
                  f"{len(result.send_failed) + len(result.errors)} failed")
        if args.org:
            outcome = orch.analyze_organization(args.org)
            if outcome is None:
                print(f"No budget found for organization: {args.org}")
                return 1
            print(f"{args.org}: {outcome.value}")
        if args.sweep:
            alerts = orch.run_missing_counterpart_sweep()
            print(f"Sweep: {sum(1 for a in alerts if a.delivered)} alert(s) sent")
        if args.resend_plans:
            sent, failed = orch.resend_all_field_plans()
            print(f"Field plan summaries: {sent} sent, {failed} failed")
        if args.weekly_summary:
            summary = orch.run_weekly_summary()
            print(summary.status_text())
    except ConfigurationError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
