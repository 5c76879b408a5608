"""Tests for the Budget and FieldPlan row models.

Covers:
- Budget.from_row: category triples, numeric coercion, short rows
- Budget derived totals and request_summary wording
- FieldPlan.from_row: list fields, protected phrases, tactic parsing
- FieldPlan tactic error isolation and coaching messages
"""

import pytest
from pydantic import ValidationError

from fieldplan_analyzer.schemas.models import (
    BUDGET_CATEGORIES,
    BUDGET_CATEGORY_COLUMNS,
    BUDGET_COLUMNS,
    NOT_OUTREACH_CATEGORIES,
    OUTREACH_CATEGORIES,
    Budget,
    FieldPlan,
)
from fieldplan_analyzer.schemas.tactics import TacticType
from factories import DOOR_600, budget_row, plan_row


# ---------------------------------------------------------------------------
# Column layout
# ---------------------------------------------------------------------------

class TestColumnLayout:
    """Budget sheet columns line up with the form export."""

    def test_fifteen_categories_split_ten_and_five(self):
        assert len(BUDGET_CATEGORIES) == 15
        assert len(NOT_OUTREACH_CATEGORIES) == 10
        assert OUTREACH_CATEGORIES == ("canvass", "phone", "text", "event", "digital")

    def test_category_triples_are_contiguous(self):
        assert BUDGET_CATEGORY_COLUMNS["admin"] == (6, 7, 8)
        assert BUDGET_CATEGORY_COLUMNS["canvass"] == (36, 37, 38)
        assert BUDGET_CATEGORY_COLUMNS["digital"] == (48, 49, 50)

    def test_totals_follow_last_category(self):
        assert BUDGET_COLUMNS["requested_total"] == 51
        assert BUDGET_COLUMNS["analyzed"] == 55


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

class TestBudgetFromRow:
    """Parsing a budget sheet row."""

    def test_basic_fields(self):
        row = budget_row("Acme Organizing", requested={"canvass": 150}, requested_total=150)
        budget = Budget.from_row(row, 3)
        assert budget.row_index == 3
        assert budget.org_name == "Acme Organizing"
        assert budget.contact_name == "Pat Lee"
        assert budget.requested_for("canvass") == 150.0
        assert budget.requested_total == 150.0
        assert budget.analyzed is False

    def test_every_category_present(self):
        budget = Budget.from_row(budget_row("Acme"), 0)
        assert set(budget.requested) == set(BUDGET_CATEGORIES)
        assert set(budget.gaps) == set(BUDGET_CATEGORIES)
        assert all(v == 0.0 for v in budget.totals.values())

    def test_messy_numbers_coerced(self):
        row = budget_row(
            "Acme",
            requested={"phone": "$1,200", "text": "", "admin": "n/a", "data": True},
            gaps={"phone": "-50"},
        )
        budget = Budget.from_row(row, 0)
        assert budget.requested_for("phone") == 1200.0
        assert budget.requested_for("text") == 0.0
        assert budget.requested_for("admin") == 0.0
        assert budget.requested_for("data") == 0.0
        assert budget.gap_for("phone") == -50.0

    def test_analyzed_flag_string(self):
        budget = Budget.from_row(budget_row("Acme", analyzed="TRUE"), 0)
        assert budget.analyzed is True

    def test_org_name_normalized(self):
        budget = Budget.from_row(budget_row("  Acme \n Organizing "), 0)
        assert budget.org_name == "Acme Organizing"

    def test_short_row_defaults(self):
        budget = Budget.from_row(["2025-06-01", "Pat", "Lee", "", "", "Acme"], 0)
        assert budget.org_name == "Acme"
        assert budget.requested_total == 0.0
        assert budget.analyzed is False

    def test_negative_row_index_rejected(self):
        with pytest.raises(ValidationError):
            Budget.from_row(budget_row("Acme"), -1)

    def test_frozen(self):
        budget = Budget.from_row(budget_row("Acme"), 0)
        with pytest.raises(ValidationError):
            budget.org_name = "Other"


class TestBudgetTotals:
    """Outreach/indirect split and request summary wording."""

    def test_outreach_and_indirect_totals(self):
        row = budget_row(
            "Acme",
            requested={"admin": 100, "data": 200, "canvass": 300, "digital": 50},
        )
        budget = Budget.from_row(row, 0)
        assert budget.not_outreach_total == 300.0
        assert budget.outreach_total == 350.0

    def test_entirely_funded(self):
        budget = Budget.from_row(
            budget_row("Acme", requested_total=1000, gap_total=-1000), 0,
        )
        assert budget.request_summary().startswith(
            "This program will be entirely funded by this request."
        )

    def test_partial_gap_with_negative_note(self):
        budget = Budget.from_row(
            budget_row("Acme", requested_total=1000, project_total=5000, gap_total=-250),
            0,
        )
        text = budget.request_summary()
        assert "Acme requested $1,000.00" in text
        assert "funding gap of $250.00" in text
        assert "gap was originally negative" in text
        assert "costs $5,000.00 to run" in text

    def test_positive_gap_has_no_note(self):
        budget = Budget.from_row(
            budget_row("Acme", requested_total=1000, project_total=5000, gap_total=250),
            0,
        )
        assert "originally negative" not in budget.request_summary()

    def test_unspecified_project_cost(self):
        budget = Budget.from_row(budget_row("Acme", requested_total=1000, gap_total=10), 0)
        assert "an unspecified amount" in budget.request_summary()

    def test_zero_request_is_not_entirely_funded(self):
        budget = Budget.from_row(budget_row("Acme"), 0)
        assert "entirely funded" not in budget.request_summary()


# ---------------------------------------------------------------------------
# Field plan
# ---------------------------------------------------------------------------

class TestFieldPlanFromRow:
    """Parsing a field plan sheet row."""

    def test_basic_fields(self):
        plan = FieldPlan.from_row(plan_row("Acme", van_committee="Yes"), 2)
        assert plan.row_index == 2
        assert plan.org_name == "Acme"
        assert plan.contact_name == "Sam Rivera"
        assert plan.van_committee == "Yes"
        assert plan.plan_confidence == 7.0

    def test_list_fields_always_lists(self):
        plan = FieldPlan.from_row(plan_row("Acme"), 0)
        for name in ("data_storage", "program_tools", "field_tactics", "field_counties",
                     "demo_race", "demo_age", "demo_gender", "demo_affinity"):
            assert getattr(plan, name) == []

    def test_comma_list(self):
        plan = FieldPlan.from_row(plan_row("Acme", program_tools="VAN, Spoke, Hustle"), 0)
        assert plan.program_tools == ["VAN", "Spoke", "Hustle"]

    def test_protected_phrases_applied(self):
        row = plan_row("Acme", field_counties="St. Clair Jefferson")
        plan = FieldPlan.from_row(row, 0, protected_phrases=["St. Clair"])
        assert plan.field_counties == ["St. Clair", "Jefferson"]

    def test_without_protected_phrases_splits_words(self):
        plan = FieldPlan.from_row(plan_row("Acme", field_counties="St. Clair Jefferson"), 0)
        assert plan.field_counties == ["St.", "Clair", "Jefferson"]

    def test_tactics_parsed(self):
        plan = FieldPlan.from_row(plan_row("Acme", tactics=DOOR_600), 0)
        assert [t.tactic_type for t in plan.tactics] == [TacticType.DOOR]
        assert plan.has_tactic(TacticType.DOOR)
        assert not plan.has_tactic(TacticType.PHONE)
        assert plan.tactic(TacticType.DOOR).program_attempts == 600

    def test_tactics_in_form_order(self):
        tactics = {
            TacticType.TEXT: (4, 2, 2, 100),
            TacticType.PHONE: (4, 2, 2, 20),
        }
        plan = FieldPlan.from_row(plan_row("Acme", tactics=tactics), 0)
        assert [t.tactic_type for t in plan.tactics] == [TacticType.PHONE, TacticType.TEXT]

    def test_bad_tactic_recorded_not_fatal(self):
        tactics = {
            TacticType.DOOR: (4, 5, 3, 10),
            TacticType.PHONE: (4, "lots", 3, 20),
        }
        plan = FieldPlan.from_row(plan_row("Acme", tactics=tactics), 0)
        assert [t.tactic_type for t in plan.tactics] == [TacticType.DOOR]
        assert len(plan.tactic_errors) == 1
        error = plan.tactic_errors[0]
        assert error.tactic_type is TacticType.PHONE
        assert error.field == "weekly_volunteers"
        assert error.reason == "not_a_number"

    def test_zero_hourly_attempts_yields_no_tactic(self):
        plan = FieldPlan.from_row(plan_row("Acme", tactics={TacticType.OPEN: (4, 5, 3, 0)}), 0)
        assert plan.tactics == []
        assert plan.tactic_errors[0].reason == "not_positive"


class TestCoachingMessage:
    """Coaching guidance bands."""

    @pytest.mark.parametrize("score, fragment", [
        (3, "confirm what coaching they will need"),
        (5, "confirm what coaching they will need"),
        (6, "ask if they would like some coaching"),
        (8, "ask if they would like some coaching"),
        (9, "did not request coaching"),
    ])
    def test_bands(self, score, fragment):
        plan = FieldPlan.from_row(plan_row("Acme", coaching_need=score), 0)
        message = plan.coaching_message()
        assert message.startswith(f"Acme had a confidence score of {score}.")
        assert fragment in message
