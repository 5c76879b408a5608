"""Tests for organization name matching and near-miss suggestions."""

from fieldplan_analyzer.analysis.matcher import OrganizationMatcher
from fieldplan_analyzer.schemas.models import Budget, FieldPlan
from factories import budget_row, plan_row

NBSP = chr(0x00A0)


def _plans(*names) -> list[FieldPlan]:
    return [FieldPlan.from_row(plan_row(name), i) for i, name in enumerate(names)]


class TestFind:
    """Exact matching on the normalized name."""

    def test_exact_match(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing", "Beacon Votes"))
        assert matcher.find("Beacon Votes").row_index == 1

    def test_whitespace_and_hidden_characters_ignored(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing"))
        assert matcher.find(f"  Acme{NBSP}Organizing ") is not None

    def test_case_sensitive(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing"))
        assert matcher.find("acme organizing") is None

    def test_most_recent_submission_wins(self):
        matcher = OrganizationMatcher(_plans("Acme", "Beacon", "Acme"))
        assert matcher.find("Acme").row_index == 2

    def test_record_order_does_not_matter(self):
        plans = list(reversed(_plans("Acme", "Beacon", "Acme")))
        assert OrganizationMatcher(plans).find("Acme").row_index == 2

    def test_blank_names_skipped(self):
        matcher = OrganizationMatcher(_plans("", "Acme"))
        assert len(matcher) == 1
        assert matcher.find("") is None

    def test_contains(self):
        matcher = OrganizationMatcher(_plans("Acme"))
        assert "Acme" in matcher
        assert "Beacon" not in matcher

    def test_works_for_budgets(self):
        budgets = [Budget.from_row(budget_row("Acme"), 0), Budget.from_row(budget_row("Acme"), 4)]
        assert OrganizationMatcher(budgets).find("Acme").row_index == 4


class TestSuggest:
    """rapidfuzz suggestions for unmatched names."""

    def test_near_miss_suggested(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing Project", "Beacon Votes"))
        assert matcher.suggest("Acme Organising Project") == ["Acme Organizing Project"]

    def test_exact_match_has_no_suggestions(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing Project"))
        assert matcher.suggest("Acme Organizing Project") == []

    def test_unrelated_name_has_no_suggestions(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing Project"))
        assert matcher.suggest("Zebra") == []

    def test_empty_index(self):
        assert OrganizationMatcher([]).suggest("Acme") == []

    def test_limit_respected(self):
        matcher = OrganizationMatcher(
            _plans("Acme One", "Acme Two", "Acme Three", "Acme Four"),
            score_cutoff=0,
            suggestion_limit=2,
        )
        assert len(matcher.suggest("Acme Five")) == 2

    def test_suggestions_never_match(self):
        matcher = OrganizationMatcher(_plans("Acme Organizing Project"))
        matcher.suggest("Acme Organising Project")
        assert matcher.find("Acme Organising Project") is None
