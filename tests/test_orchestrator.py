"""End-to-end tests for the analysis orchestrator.

Uses the in-memory tabular and property stores, a recording notifier and
a mock clock. Covers:
- Analysis pass: report email, analyzed flag, idempotence
- Send failures, dry runs and per-budget errors
- Missing tables abort the pass before any mutation
- Missing field plan tracking and threshold alerts
- New field plan cursor handling
- Manual organization analysis, resends and the weekly summary
"""

import pytest

from fieldplan_analyzer.config import AnalyzerConfig, ConfigurationError
from fieldplan_analyzer.monitors.missing_counterpart import Direction
from fieldplan_analyzer.orchestrator import (
    LAST_PROCESSED_ROW_KEY,
    AnalysisOrchestrator,
    BudgetOutcome,
)
from fieldplan_analyzer.schemas.models import BUDGET_COLUMNS
from fieldplan_analyzer.storage.properties import InMemoryPropertyStore
from fieldplan_analyzer.storage.tabular import InMemoryTabularStore
from factories import DOOR_600, FakeNotifier, MockClock, budget_row, plan_row

BUDGETS = "2025_field_budget"
PLANS = "2025_field_plan"
ANALYZED = BUDGET_COLUMNS["analyzed"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _acme_budget(**overrides):
    values = dict(
        requested={"canvass": 150},
        gaps={"canvass": -50},
        requested_total=150,
        project_total=200,
        gap_total=-50,
    )
    values.update(overrides)
    return budget_row("Acme", **values)


class Harness:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(self, budgets=(), plans=(), notifier=None, tables=(BUDGETS, PLANS), **config):
        self.store = InMemoryTabularStore()
        for table in tables:
            self.store.create_table(table)
        for row in budgets:
            self.store.append_row(BUDGETS, row)
        for row in plans:
            self.store.append_row(PLANS, row)
        self.notifier = notifier or FakeNotifier()
        self.properties = InMemoryPropertyStore()
        self.clock = MockClock()
        self.config = AnalyzerConfig(**config)
        self.orch = AnalysisOrchestrator(
            self.store, self.notifier, self.properties, self.config, clock=self.clock,
        )

    def analyzed_flag(self, row_index: int):
        return self.store.get_row(BUDGETS, row_index)[ANALYZED]


# ---------------------------------------------------------------------------
# Analysis pass
# ---------------------------------------------------------------------------

class TestAnalysisPass:
    """run_analysis_pass end to end."""

    def test_matched_budget_analyzed_and_marked(self):
        h = Harness(budgets=[_acme_budget()], plans=[plan_row("Acme", tactics=DOOR_600)])
        summary = h.orch.run_analysis_pass()

        assert summary.examined == 1
        assert summary.analyzed == ["Acme"]
        assert h.notifier.subjects == ["Budget Analysis: Acme"]
        body = h.notifier.sent[0].body
        assert "Cost Per Attempt: $0.25" in body
        assert "Status: below target range" in body
        assert "Consider increasing canvass funding by up to $50.00" in body
        assert "originally negative" in body
        assert h.analyzed_flag(0) is True

    def test_second_pass_is_idempotent(self):
        h = Harness(budgets=[_acme_budget()], plans=[plan_row("Acme", tactics=DOOR_600)])
        h.orch.run_analysis_pass()
        summary = h.orch.run_analysis_pass()
        assert summary.examined == 0
        assert len(h.notifier.sent) == 1

    def test_already_analyzed_skipped(self):
        h = Harness(
            budgets=[_acme_budget(analyzed="TRUE")],
            plans=[plan_row("Acme", tactics=DOOR_600)],
        )
        assert h.orch.run_analysis_pass().examined == 0
        assert h.notifier.sent == []

    def test_blank_org_skipped(self):
        h = Harness(budgets=[budget_row("  ")])
        assert h.orch.run_analysis_pass().examined == 0

    def test_recipients_and_sender(self):
        h = Harness(
            budgets=[_acme_budget()],
            plans=[plan_row("Acme", tactics=DOOR_600)],
            recipients=["ops@example.org"],
            sender_name="Budget Analysis System",
        )
        h.orch.run_analysis_pass()
        [sent] = h.notifier.sent
        assert sent.recipients == ["ops@example.org"]
        assert sent.sender_name == "Budget Analysis System"

    def test_most_recent_plan_used(self):
        h = Harness(
            budgets=[_acme_budget()],
            plans=[plan_row("Acme"), plan_row("Acme", tactics=DOOR_600)],
        )
        h.orch.run_analysis_pass()
        assert "Program Attempts: 600" in h.notifier.sent[0].body

    def test_test_mode(self):
        h = Harness(
            budgets=[_acme_budget()],
            plans=[plan_row("Acme", tactics=DOOR_600)],
            test_mode=True,
        )
        h.orch.run_analysis_pass()
        [sent] = h.notifier.sent
        assert sent.subject == "[TEST] Budget Analysis: Acme"
        assert sent.recipients == h.config.test_recipients
        assert sent.body.startswith("<div")


class TestFailures:
    """Send failures, dry runs and unexpected errors."""

    def test_send_failure_leaves_budget_unanalyzed(self):
        notifier = FakeNotifier(fail_subjects=["Budget Analysis: Acme"])
        h = Harness(
            budgets=[_acme_budget()],
            plans=[plan_row("Acme", tactics=DOOR_600)],
            notifier=notifier,
        )
        summary = h.orch.run_analysis_pass()

        assert summary.send_failed == ["Acme"]
        assert not h.analyzed_flag(0)
        assert notifier.subjects == ["Budget Analysis Error: Acme"]
        assert notifier.sent[0].recipients == h.config.error_recipients

        notifier.fail_subjects = ()
        assert h.orch.run_analysis_pass().analyzed == ["Acme"]
        assert h.analyzed_flag(0) is True

    def test_dry_run_never_marks(self):
        h = Harness(
            budgets=[_acme_budget()],
            plans=[plan_row("Acme", tactics=DOOR_600)],
            dry_run=True,
        )
        summary = h.orch.run_analysis_pass()
        assert summary.dry_run == ["Acme"]
        assert len(h.notifier.sent) == 1
        assert not h.analyzed_flag(0)

    def test_unexpected_error_isolated_to_one_budget(self):
        notifier = FakeNotifier(raise_for=["Budget Analysis: Bad Org"])
        h = Harness(
            budgets=[budget_row("Bad Org"), _acme_budget()],
            plans=[plan_row("Bad Org", tactics=DOOR_600), plan_row("Acme", tactics=DOOR_600)],
            notifier=notifier,
        )
        summary = h.orch.run_analysis_pass()

        assert summary.errors == ["Bad Org"]
        assert summary.analyzed == ["Acme"]
        assert "Budget Analysis Error: Bad Org" in notifier.subjects
        assert not h.analyzed_flag(0)
        assert h.analyzed_flag(1) is True

    def test_missing_table_aborts_before_mutation(self):
        h = Harness(budgets=[_acme_budget()], tables=(BUDGETS,))
        with pytest.raises(ConfigurationError):
            h.orch.run_analysis_pass()
        assert h.notifier.subjects == ["Budget Analysis Error"]
        assert not h.analyzed_flag(0)
        assert h.properties.list_prefix("") == {}


# ---------------------------------------------------------------------------
# Missing counterparts
# ---------------------------------------------------------------------------

class TestMissingFieldPlan:
    """Budgets without a field plan are tracked and escalated once."""

    def test_tracked_then_alerted_once(self):
        h = Harness(budgets=[_acme_budget()])
        summary = h.orch.run_analysis_pass()
        assert summary.awaiting_plan == ["Acme"]
        assert h.orch.tracker.is_tracking(Direction.MISSING_PLAN, "Acme")
        assert h.notifier.sent == []

        h.clock.advance(hours=73)
        summary = h.orch.run_analysis_pass()
        assert h.notifier.subjects == ["Missing Field Plan: Acme"]
        assert [a.delivered for a in summary.alerts] == [True]
        assert not h.orch.tracker.is_tracking(Direction.MISSING_PLAN, "Acme")
        assert not h.analyzed_flag(0)

    def test_plan_arrival_resolves_tracking(self):
        h = Harness(budgets=[_acme_budget()])
        h.orch.run_analysis_pass()
        h.store.append_row(PLANS, plan_row("Acme", tactics=DOOR_600))
        h.clock.advance(hours=100)

        h.orch.run_analysis_pass()
        assert h.notifier.subjects == ["Budget Analysis: Acme"]
        assert not h.orch.tracker.is_tracking(Direction.MISSING_PLAN, "Acme")

    def test_near_miss_name_suggested_in_alert(self):
        h = Harness(
            budgets=[budget_row("Acme Organizing Project")],
            plans=[plan_row("Acme Organising Project", tactics=DOOR_600)],
        )
        h.orch.run_analysis_pass()
        h.clock.advance(hours=73)
        h.orch.run_analysis_pass()
        alert = next(n for n in h.notifier.sent if n.subject.startswith("Missing Field Plan"))
        assert "Acme Organising Project" in alert.body

    def test_sweep_reconciles_stale_records(self):
        h = Harness(budgets=[_acme_budget()], plans=[plan_row("Acme", tactics=DOOR_600)])
        h.orch.tracker.track_missing(Direction.MISSING_BUDGET, "Acme")
        h.clock.advance(hours=100)
        assert h.orch.run_missing_counterpart_sweep() == []
        assert h.notifier.sent == []
        assert h.orch.reconcile_tracking() == 0


# ---------------------------------------------------------------------------
# New field plans
# ---------------------------------------------------------------------------

class TestCheckNewFieldPlans:
    """Row cursor over the field plan sheet."""

    def test_first_run_initializes_cursor_silently(self):
        h = Harness(plans=[plan_row("Acme"), plan_row("Beacon")])
        summary = h.orch.check_new_field_plans()
        assert summary.initialized is True
        assert h.properties.get(LAST_PROCESSED_ROW_KEY) == "2"
        assert h.notifier.sent == []

    def test_first_run_tracks_existing_plans_without_budgets(self):
        h = Harness(budgets=[_acme_budget()], plans=[plan_row("Acme"), plan_row("Beacon")])
        summary = h.orch.check_new_field_plans()
        assert summary.awaiting_budget == ["Beacon"]
        assert h.orch.tracker.is_tracking(Direction.MISSING_BUDGET, "Beacon")
        assert not h.orch.tracker.is_tracking(Direction.MISSING_BUDGET, "Acme")
        assert h.properties.get(LAST_PROCESSED_ROW_KEY) == "2"
        assert h.notifier.sent == []

        h.clock.advance(hours=73)
        h.orch.check_new_field_plans()
        assert h.notifier.subjects == ["Missing Budget: Beacon"]

    def test_new_plan_announced_and_budget_analyzed(self):
        h = Harness(budgets=[_acme_budget()])
        h.orch.check_new_field_plans()
        h.orch.tracker.track_missing(Direction.MISSING_PLAN, "Acme")
        h.store.append_row(PLANS, plan_row("Acme", tactics=DOOR_600))

        summary = h.orch.check_new_field_plans()
        assert summary.processed == ["Acme"]
        assert summary.budgets.analyzed == ["Acme"]
        assert h.notifier.subjects == ["New Field Plan: Acme", "Budget Analysis: Acme"]
        assert h.analyzed_flag(0) is True
        assert not h.orch.tracker.is_tracking(Direction.MISSING_PLAN, "Acme")
        assert h.properties.get(LAST_PROCESSED_ROW_KEY) == "1"

    def test_plan_without_budget_tracked(self):
        h = Harness()
        h.orch.check_new_field_plans()
        h.store.append_row(PLANS, plan_row("Beacon", tactics=DOOR_600))

        summary = h.orch.check_new_field_plans()
        assert summary.awaiting_budget == ["Beacon"]
        assert h.orch.tracker.is_tracking(Direction.MISSING_BUDGET, "Beacon")

        h.clock.advance(hours=73)
        summary = h.orch.check_new_field_plans()
        assert [a.org_name for a in summary.alerts] == ["Beacon"]
        assert h.notifier.subjects[-1] == "Missing Budget: Beacon"

    def test_no_new_rows(self):
        h = Harness(plans=[plan_row("Acme")])
        h.orch.check_new_field_plans()
        summary = h.orch.check_new_field_plans()
        assert summary.processed == []
        assert summary.cursor == 1

    @pytest.mark.parametrize("stored", ["garbage", "-1", "99"])
    def test_invalid_cursor_reinitializes(self, stored):
        h = Harness(plans=[plan_row("Acme")])
        h.properties.set(LAST_PROCESSED_ROW_KEY, stored)
        summary = h.orch.check_new_field_plans()
        assert summary.initialized is True
        assert h.properties.get(LAST_PROCESSED_ROW_KEY) == "1"
        assert h.notifier.sent == []

    def test_cursor_advances_past_failed_rows(self):
        notifier = FakeNotifier(raise_for=["New Field Plan: Acme"])
        h = Harness(notifier=notifier)
        h.orch.check_new_field_plans()
        h.store.append_row(PLANS, plan_row("Acme"))
        h.store.append_row(PLANS, plan_row("Beacon"))

        summary = h.orch.check_new_field_plans()
        assert summary.errors == ["row 0"]
        assert summary.processed == ["Acme", "Beacon"]
        assert h.properties.get(LAST_PROCESSED_ROW_KEY) == "2"
        assert "New Field Plan: Beacon" in notifier.subjects

    def test_duplicate_plans_analyze_budget_once(self):
        h = Harness(budgets=[_acme_budget()])
        h.orch.check_new_field_plans()
        h.store.append_row(PLANS, plan_row("Acme", tactics=DOOR_600))
        h.store.append_row(PLANS, plan_row("Acme", tactics=DOOR_600))

        summary = h.orch.check_new_field_plans()
        assert summary.budgets.examined == 1
        assert h.notifier.subjects.count("Budget Analysis: Acme") == 1


# ---------------------------------------------------------------------------
# Manual jobs and status
# ---------------------------------------------------------------------------

class TestManualJobs:
    def test_analyze_organization_reruns_analyzed_budget(self):
        h = Harness(
            budgets=[_acme_budget(analyzed=True)],
            plans=[plan_row("Acme", tactics=DOOR_600)],
        )
        assert h.orch.analyze_organization("Acme") is BudgetOutcome.ANALYZED
        assert h.notifier.subjects == ["Budget Analysis: Acme"]

    def test_analyze_unknown_organization(self):
        h = Harness(budgets=[_acme_budget()])
        assert h.orch.analyze_organization("Nobody") is None

    def test_resend_all_field_plans(self):
        h = Harness(plans=[plan_row("Acme"), plan_row(""), plan_row("Beacon")])
        assert h.orch.resend_all_field_plans() == (2, 0)
        assert h.notifier.subjects == ["New Field Plan: Acme", "New Field Plan: Beacon"]

    def test_count_analyzed(self):
        h = Harness(budgets=[
            _acme_budget(analyzed=True), budget_row("Beacon"), budget_row(""),
        ])
        assert h.orch.count_analyzed() == (1, 1)

    def test_weekly_summary(self):
        h = Harness(budgets=[
            _acme_budget(analyzed=True),
            budget_row("Beacon", requested_total=1000, gap_total=300),
            budget_row("Cedar", requested_total=500, gap_total=-200),
        ])
        h.orch.tracker.track_missing(Direction.MISSING_PLAN, "Beacon")

        summary = h.orch.run_weekly_summary()
        assert (summary.analyzed, summary.pending, summary.waiting_for_plans) == (1, 2, 1)
        assert summary.total_requested == 1650
        assert summary.total_gap == 550
        assert summary.generated_on == "2025-06-02"
        assert h.notifier.subjects == ["Weekly Budget Analysis Summary - 2025-06-02"]
