"""Record models for Field Plan Analyzer form responses.

Provides validated models for the two form-response sheets:
- Budget: one organization's funding request
- FieldPlan: one organization's outreach plan
- Tactic: one validated outreach tactic block within a field plan

Raw sheet rows go through ``from_row``; cleanup happens in field
validators so downstream code never sees ``None`` or unsplit list text.
"""

from fieldplan_analyzer.schemas.models import (
    BUDGET_CATEGORIES,
    BUDGET_COLUMNS,
    FIELD_PLAN_COLUMNS,
    NOT_OUTREACH_CATEGORIES,
    OUTREACH_CATEGORIES,
    Budget,
    FieldPlan,
)
from fieldplan_analyzer.schemas.tactics import (
    TACTIC_COLUMNS,
    TACTIC_PROFILES,
    AttemptBand,
    Tactic,
    TacticType,
    TacticValidationError,
)

__all__ = [
    "BUDGET_CATEGORIES",
    "BUDGET_COLUMNS",
    "FIELD_PLAN_COLUMNS",
    "NOT_OUTREACH_CATEGORIES",
    "OUTREACH_CATEGORIES",
    "TACTIC_COLUMNS",
    "TACTIC_PROFILES",
    "AttemptBand",
    "Budget",
    "FieldPlan",
    "Tactic",
    "TacticType",
    "TacticValidationError",
]
