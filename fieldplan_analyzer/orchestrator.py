"""AnalysisOrchestrator -- drives budget analysis passes and related jobs.

Each public ``run_*`` method is one scheduled job:

  run_analysis_pass()              analyze every unanalyzed budget, then sweep
  check_new_field_plans()          announce new field plans since the row cursor
  run_missing_counterpart_sweep()  reconcile and escalate missing counterparts
  run_weekly_summary()             email status counts and dollar totals
  analyze_organization(name)       manual re-analysis of one organization

A budget is marked analyzed only after its report email was delivered,
and never in dry-run mode, so re-running a pass is always safe.
"""

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import ValidationError

from fieldplan_analyzer.analysis.matcher import OrganizationMatcher
from fieldplan_analyzer.analysis.report import AnalysisReport, WeeklySummary, build_report
from fieldplan_analyzer.config import AnalyzerConfig, ConfigurationError
from fieldplan_analyzer.monitors.missing_counterpart import (
    CounterpartAlert,
    Direction,
    MissingCounterpartTracker,
)
from fieldplan_analyzer.notifications.notifier import Notification, Notifier
from fieldplan_analyzer.reports.emails import (
    render_analysis_email,
    render_error_email,
    render_field_plan_email,
    render_weekly_summary_email,
    with_test_banner,
)
from fieldplan_analyzer.schemas.models import BUDGET_COLUMNS, Budget, FieldPlan
from fieldplan_analyzer.storage.properties import PropertyStore
from fieldplan_analyzer.storage.tabular import TabularStore
from fieldplan_analyzer.utils import normalize_text

logger = logging.getLogger(__name__)

LAST_PROCESSED_ROW_KEY = "LAST_PROCESSED_ROW"


class BudgetOutcome(enum.Enum):
    """What happened to one budget during a pass."""

    ANALYZED = "analyzed"
    DRY_RUN = "dry_run"
    AWAITING_PLAN = "awaiting_plan"
    SEND_FAILED = "send_failed"
    ERROR = "error"


@dataclass
class PassSummary:
    """Result of one analysis pass."""
    examined: int = 0
    analyzed: list[str] = field(default_factory=list)
    dry_run: list[str] = field(default_factory=list)
    awaiting_plan: list[str] = field(default_factory=list)
    send_failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    alerts: list[CounterpartAlert] = field(default_factory=list)

    def record(self, org_name: str, outcome: BudgetOutcome) -> None:
        bucket = {
            BudgetOutcome.ANALYZED: self.analyzed,
            BudgetOutcome.DRY_RUN: self.dry_run,
            BudgetOutcome.AWAITING_PLAN: self.awaiting_plan,
            BudgetOutcome.SEND_FAILED: self.send_failed,
            BudgetOutcome.ERROR: self.errors,
        }[outcome]
        bucket.append(org_name)


@dataclass
class NewPlanSummary:
    """Result of one new-field-plan check."""
    initialized: bool = False
    processed: list[str] = field(default_factory=list)
    announced: list[str] = field(default_factory=list)
    awaiting_budget: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    budgets: PassSummary = field(default_factory=PassSummary)
    alerts: list[CounterpartAlert] = field(default_factory=list)
    cursor: int = 0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisOrchestrator:
    """Coordinates the store, matcher, analyzers, tracker and notifier.

    Args:
        store:      Tabular system of record holding both form sheets.
        notifier:   Outbound email.
        properties: Persisted property map (tracking records, row cursor).
        config:     Analyzer configuration.
        clock:      Callable returning an aware UTC datetime (tests inject one).
    """

    def __init__(
        self,
        store: TabularStore,
        notifier: Notifier,
        properties: PropertyStore,
        config: AnalyzerConfig,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.properties = properties
        self.config = config
        self._clock = clock or _utc_now
        self.tracker = MissingCounterpartTracker(
            properties, notifier, config, clock=self._clock,
        )

    # ── Loading ──

    @property
    def budget_table(self) -> str:
        return self.config.tables.budget

    @property
    def plan_table(self) -> str:
        return self.config.tables.field_plan

    def verify_tables(self) -> None:
        """Fail the pass before any mutation if a sheet is missing."""
        try:
            self.store.require_tables(self.budget_table, self.plan_table)
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            self._send_error_notification("", f"Configuration error: {exc}")
            raise

    def load_budgets(self) -> list[Budget]:
        budgets: list[Budget] = []
        for index, row in enumerate(self.store.list_rows(self.budget_table)):
            try:
                budgets.append(Budget.from_row(row, index))
            except ValidationError as exc:
                logger.error("Skipping unreadable budget row %d: %s", index, exc)
        return budgets

    def load_field_plans(self) -> list[FieldPlan]:
        plans: list[FieldPlan] = []
        for index, row in enumerate(self.store.list_rows(self.plan_table)):
            try:
                plans.append(self._field_plan_from_row(row, index))
            except ValidationError as exc:
                logger.error("Skipping unreadable field plan row %d: %s", index, exc)
        return plans

    def _field_plan_from_row(self, row: list, index: int) -> FieldPlan:
        return FieldPlan.from_row(row, index, self.config.protected_phrases)

    def _matcher(self, records) -> OrganizationMatcher:
        return OrganizationMatcher(
            records,
            score_cutoff=self.config.suggestion_score_cutoff,
            suggestion_limit=self.config.suggestion_limit,
        )

    def find_field_plan_for(self, org_name: str) -> FieldPlan | None:
        """Most recent field plan whose normalized name matches exactly."""
        return self._matcher(self.load_field_plans()).find(org_name)

    def find_budget_for(self, org_name: str) -> Budget | None:
        """Most recent budget whose normalized name matches exactly."""
        return self._matcher(self.load_budgets()).find(org_name)

    # ── Notifications ──

    def _notification(self, subject: str, body: str, recipients: list[str] | None = None) -> Notification:
        return Notification(
            recipients=recipients if recipients is not None else self.config.active_recipients(),
            subject=self.config.subject(subject),
            body=with_test_banner(body, self.config.test_mode),
            reply_to=self.config.reply_to,
            sender_name=self.config.sender_name,
        )

    def _send_error_notification(self, org_name: str, message: str) -> bool:
        """Best-effort error report to the operations recipients."""
        recipients = (
            self.config.test_recipients if self.config.test_mode
            else self.config.error_recipients
        )
        subject = f"Budget Analysis Error: {org_name}" if org_name else "Budget Analysis Error"
        try:
            return self.notifier.send(self._notification(
                subject, render_error_email(org_name, message), list(recipients),
            ))
        except Exception:
            logger.exception("Failed to send error notification for %s", org_name or "pass")
            return False

    # ── Budget analysis ──

    def mark_analyzed(self, budget: Budget) -> None:
        self.store.set_cell(
            self.budget_table, budget.row_index, BUDGET_COLUMNS["analyzed"], True,
        )
        logger.info("Marked budget row %d (%s) analyzed", budget.row_index, budget.org_name)

    def send_report(self, report: AnalysisReport) -> bool:
        return self.notifier.send(self._notification(
            f"Budget Analysis: {report.org_name}", render_analysis_email(report),
        ))

    def process_budget(
        self, budget: Budget, plans: OrganizationMatcher,
    ) -> BudgetOutcome:
        """Analyze one budget if its field plan exists; otherwise track it."""
        plan = plans.find(budget.org_name)
        if plan is None:
            logger.info("No field plan found for %s", budget.org_name)
            self.tracker.track_missing(Direction.MISSING_PLAN, budget.org_name)
            return BudgetOutcome.AWAITING_PLAN

        logger.info(
            "Found field plan for %s (row %d), analyzing budget row %d",
            budget.org_name, plan.row_index, budget.row_index,
        )
        self.tracker.resolve_all(budget.org_name)
        report = build_report(budget, plan, self.config)

        if not self.send_report(report):
            logger.error("Analysis email for %s was not delivered", budget.org_name)
            self._send_error_notification(
                budget.org_name, "The analysis email could not be delivered.",
            )
            return BudgetOutcome.SEND_FAILED

        if self.config.dry_run:
            logger.info("Dry run: leaving %s unmarked", budget.org_name)
            return BudgetOutcome.DRY_RUN

        self.mark_analyzed(budget)
        return BudgetOutcome.ANALYZED

    def _process_safely(
        self, budget: Budget, plans: OrganizationMatcher,
    ) -> BudgetOutcome:
        try:
            return self.process_budget(budget, plans)
        except Exception as exc:
            logger.exception("Error processing budget for %s", budget.org_name)
            self._send_error_notification(budget.org_name, str(exc))
            return BudgetOutcome.ERROR

    def run_analysis_pass(self) -> PassSummary:
        """Analyze every unanalyzed budget, then sweep both directions.

        Raises:
            ConfigurationError: a required table is missing.
        """
        self.verify_tables()
        summary = PassSummary()

        budgets = self.load_budgets()
        plans = self._matcher(self.load_field_plans())
        pending = [b for b in budgets if b.org_name and not b.analyzed]
        logger.info("Found %d unanalyzed budget(s)", len(pending))

        for budget in pending:
            summary.examined += 1
            summary.record(budget.org_name, self._process_safely(budget, plans))

        summary.alerts = self.tracker.sweep_all(self._suggester(budgets, plans))
        logger.info(
            "Analysis pass complete: %d examined, %d analyzed, %d awaiting plan, "
            "%d send failure(s), %d error(s)",
            summary.examined, len(summary.analyzed), len(summary.awaiting_plan),
            len(summary.send_failed), len(summary.errors),
        )
        return summary

    def analyze_organization(self, org_name: str) -> BudgetOutcome | None:
        """Analyze one organization's most recent budget on request.

        Runs even if that budget was already analyzed.

        Returns:
            The outcome, or None when the organization has no budget.
        """
        self.verify_tables()
        budget = self._matcher(self.load_budgets()).find(org_name)
        if budget is None:
            logger.warning("No budget found for organization: %s", normalize_text(org_name))
            return None
        plans = self._matcher(self.load_field_plans())
        outcome = self._process_safely(budget, plans)
        logger.info("Manual analysis for %s: %s", budget.org_name, outcome.value)
        return outcome

    # ── Missing counterparts ──

    def _suggester(
        self, budgets: list[Budget], plans: OrganizationMatcher,
    ) -> Callable[[Direction, str], list[str]]:
        budget_matcher = self._matcher(budgets)

        def suggest(direction: Direction, org_name: str) -> list[str]:
            if direction is Direction.MISSING_PLAN:
                return plans.suggest(org_name)
            return budget_matcher.suggest(org_name)

        return suggest

    def reconcile_tracking(self) -> int:
        """Drop tracking records whose counterpart now exists.

        Returns:
            Number of records removed.
        """
        budgets = self._matcher(self.load_budgets())
        plans = self._matcher(self.load_field_plans())
        removed = 0
        for org_name in self.tracker.tracked(Direction.MISSING_PLAN):
            if plans.find(org_name) is not None:
                removed += self.tracker.resolve(Direction.MISSING_PLAN, org_name)
        for org_name in self.tracker.tracked(Direction.MISSING_BUDGET):
            if budgets.find(org_name) is not None:
                removed += self.tracker.resolve(Direction.MISSING_BUDGET, org_name)
        if removed:
            logger.info("Reconciled %d tracking record(s)", removed)
        return removed

    def run_missing_counterpart_sweep(self) -> list[CounterpartAlert]:
        self.verify_tables()
        self.reconcile_tracking()
        budgets = self.load_budgets()
        plans = self._matcher(self.load_field_plans())
        return self.tracker.sweep_all(self._suggester(budgets, plans))

    # ── New field plans ──

    def send_field_plan_summary(self, plan: FieldPlan) -> bool:
        org = plan.org_name or "Unknown Organization"
        return self.notifier.send(self._notification(
            f"New Field Plan: {org}", render_field_plan_email(plan),
        ))

    def check_new_field_plans(self) -> NewPlanSummary:
        """Process field plan rows added since the last check.

        The first run (no stored cursor) records the current row count
        without announcing the backlog, but starts missing-budget tracking
        for every existing plan that has no budget yet.

        Raises:
            ConfigurationError: a required table is missing.
        """
        self.verify_tables()
        summary = NewPlanSummary()
        rows = self.store.list_rows(self.plan_table)
        row_count = len(rows)

        cursor = self._read_cursor(row_count)
        if cursor is None:
            summary.awaiting_budget = self._track_backlog_without_budgets()
            self.properties.set(LAST_PROCESSED_ROW_KEY, str(row_count))
            logger.info("Initialized field plan cursor at %d row(s)", row_count)
            summary.initialized = True
            summary.cursor = row_count
            return summary

        if cursor >= row_count:
            logger.info("No new field plan rows (cursor %d)", cursor)
            summary.cursor = cursor
            summary.alerts = self._sweep_missing_budgets()
            return summary

        budgets = self.load_budgets()
        budget_matcher = self._matcher(budgets)
        plans = self._matcher(self.load_field_plans())
        handled: set[int] = set()

        for index in range(cursor, row_count):
            try:
                plan = self._field_plan_from_row(rows[index], index)
                if not plan.org_name:
                    logger.warning("Field plan row %d has no organization name, skipping", index)
                    continue
                logger.info("Processing field plan row %d: %s", index, plan.org_name)
                summary.processed.append(plan.org_name)

                if self.send_field_plan_summary(plan):
                    summary.announced.append(plan.org_name)

                self.tracker.resolve(Direction.MISSING_PLAN, plan.org_name)
                if budget_matcher.find(plan.org_name) is None:
                    self.tracker.track_missing(Direction.MISSING_BUDGET, plan.org_name)
                    summary.awaiting_budget.append(plan.org_name)
                    continue
                self.tracker.resolve(Direction.MISSING_BUDGET, plan.org_name)

                key = normalize_text(plan.org_name)
                for budget in budgets:
                    if budget.org_name == key and not budget.analyzed and budget.row_index not in handled:
                        handled.add(budget.row_index)
                        summary.budgets.examined += 1
                        summary.budgets.record(
                            budget.org_name, self._process_safely(budget, plans),
                        )
            except Exception:
                logger.exception("Error processing field plan row %d", index)
                summary.errors.append(f"row {index}")

        self.properties.set(LAST_PROCESSED_ROW_KEY, str(row_count))
        summary.cursor = row_count
        logger.info("Advanced field plan cursor to %d", row_count)

        summary.alerts = self._sweep_missing_budgets(budgets)
        return summary

    def _track_backlog_without_budgets(self) -> list[str]:
        """Track already-submitted plans that have no budget, without emailing."""
        budgets = self._matcher(self.load_budgets())
        plans = self._matcher(self.load_field_plans())
        waiting: list[str] = []
        for org_name in plans.names:
            if budgets.find(org_name) is None:
                self.tracker.track_missing(Direction.MISSING_BUDGET, org_name)
                waiting.append(org_name)
        if waiting:
            logger.info("Tracking %d existing field plan(s) without a budget", len(waiting))
        return waiting

    def _read_cursor(self, row_count: int) -> int | None:
        raw = self.properties.get(LAST_PROCESSED_ROW_KEY)
        if raw is None:
            return None
        try:
            cursor = int(raw)
        except ValueError:
            logger.warning("Invalid %s value %r, reinitializing", LAST_PROCESSED_ROW_KEY, raw)
            return None
        if cursor < 0 or cursor > row_count:
            logger.warning(
                "%s is %d but the sheet has %d row(s), reinitializing",
                LAST_PROCESSED_ROW_KEY, cursor, row_count,
            )
            return None
        return cursor

    def _sweep_missing_budgets(self, budgets: list[Budget] | None = None) -> list[CounterpartAlert]:
        budget_matcher = self._matcher(budgets if budgets is not None else self.load_budgets())
        return self.tracker.sweep(Direction.MISSING_BUDGET, budget_matcher.suggest)

    def resend_all_field_plans(self) -> tuple[int, int]:
        """Send the new-field-plan summary for every plan row.

        Returns:
            ``(sent, failed)`` counts.
        """
        self.verify_tables()
        sent = failed = 0
        for plan in self.load_field_plans():
            if not plan.org_name:
                continue
            try:
                if self.send_field_plan_summary(plan):
                    sent += 1
                else:
                    failed += 1
            except Exception:
                logger.exception("Error sending field plan summary for %s", plan.org_name)
                failed += 1
        logger.info("Resent field plan summaries: %d sent, %d failed", sent, failed)
        return sent, failed

    # ── Status ──

    def count_analyzed(self) -> tuple[int, int]:
        """``(analyzed, pending)`` counts over submitted budgets."""
        budgets = [b for b in self.load_budgets() if b.org_name]
        analyzed = sum(1 for b in budgets if b.analyzed)
        return analyzed, len(budgets) - analyzed

    def build_weekly_summary(self) -> WeeklySummary:
        budgets = [b for b in self.load_budgets() if b.org_name]
        pending = [b for b in budgets if not b.analyzed]
        waiting = sum(
            1 for b in pending if self.tracker.is_tracking(Direction.MISSING_PLAN, b.org_name)
        )
        return WeeklySummary(
            generated_on=self._clock().date().isoformat(),
            analyzed=len(budgets) - len(pending),
            pending=len(pending),
            waiting_for_plans=waiting,
            total_requested=sum(b.requested_total for b in budgets),
            total_gap=sum(abs(b.gap_total) for b in budgets),
        )

    def run_weekly_summary(self) -> WeeklySummary:
        self.verify_tables()
        summary = self.build_weekly_summary()
        delivered = self.notifier.send(self._notification(
            f"Weekly Budget Analysis Summary - {summary.generated_on}",
            render_weekly_summary_email(summary),
        ))
        if not delivered:
            logger.error("Weekly summary was not delivered")
        return summary
