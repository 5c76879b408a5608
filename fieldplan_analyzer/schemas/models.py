"""Pydantic v2 models for budget and field plan form responses.

Each model maps one row of a form-response sheet. Raw cells are messy
(blank strings, ``"$1,200"``, checkbox booleans, list answers pasted as
comma- or space-separated text), so every field is cleaned in a
``mode="before"`` validator: numerics always end up as finite floats and
list answers always end up as lists of trimmed strings.

Data sources modeled:
- 2025_field_budget -> Budget
- 2025_field_plan -> FieldPlan (containing Tactic items)
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

from fieldplan_analyzer.schemas.tactics import (
    Tactic,
    TacticType,
    TacticValidationError,
)
from fieldplan_analyzer.utils import (
    coerce_flag,
    coerce_number,
    format_dollars,
    format_number,
    normalize_text,
    split_list_field,
)

logger = logging.getLogger(__name__)


# ── Budget columns ──

# Funding categories in sheet order; each owns a requested/total/gap triple.
BUDGET_CATEGORIES: tuple[str, ...] = (
    "admin",
    "data",
    "travel",
    "comms",
    "design",
    "video",
    "print",
    "postage",
    "training",
    "supplies",
    "canvass",
    "phone",
    "text",
    "event",
    "digital",
)

NOT_OUTREACH_CATEGORIES: tuple[str, ...] = BUDGET_CATEGORIES[:10]
OUTREACH_CATEGORIES: tuple[str, ...] = BUDGET_CATEGORIES[10:]

_FIRST_CATEGORY_COLUMN = 6

BUDGET_COLUMNS: dict[str, int] = {
    "submitted_at": 0,
    "first_name": 1,
    "last_name": 2,
    "contact_email": 3,
    "contact_phone": 4,
    "org_name": 5,
    "requested_total": 51,
    "project_total": 52,
    "gap_total": 53,
    "submit_field_plan": 54,
    "analyzed": 55,
}

# category -> (requested, total, gap) column indexes
BUDGET_CATEGORY_COLUMNS: dict[str, tuple[int, int, int]] = {
    category: (
        _FIRST_CATEGORY_COLUMN + 3 * i,
        _FIRST_CATEGORY_COLUMN + 3 * i + 1,
        _FIRST_CATEGORY_COLUMN + 3 * i + 2,
    )
    for i, category in enumerate(BUDGET_CATEGORIES)
}


# ── Field plan columns ──

FIELD_PLAN_COLUMNS: dict[str, int] = {
    "submitted_at": 0,
    "org_name": 1,
    "first_name": 2,
    "last_name": 3,
    "contact_email": 4,
    "contact_phone": 5,
    "data_storage": 6,
    "data_stipend": 7,
    "data_plan": 8,
    "van_committee": 9,
    "data_share": 10,
    "share_org": 11,
    "program_tools": 12,
    "program_dates": 13,
    "program_types": 14,
    "field_tactics": 15,
    "field_staff": 16,
    "field_counties": 17,
    "precincts": 19,
    "diff_precincts": 20,
    "demo_race": 21,
    "demo_age": 22,
    "demo_gender": 23,
    "demo_affinity": 24,
    "plan_confidence": 54,
    "implementation": 55,
    "coaching_need": 56,
    "form_experience": 57,
}

_FIELD_PLAN_LIST_FIELDS = (
    "data_storage",
    "program_tools",
    "field_tactics",
    "field_counties",
    "demo_race",
    "demo_age",
    "demo_gender",
    "demo_affinity",
)


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _timestamp_text(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return normalize_text(value)


def _clean_amounts(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    return {category: coerce_number(value.get(category)) for category in BUDGET_CATEGORIES}


# ── Budget ──

class Budget(BaseModel):
    """One organization's funding request (a row of the budget sheet).

    ``requested``/``totals``/``gaps`` are keyed by category name and always
    carry all fifteen categories. Gaps may be stored negative; analysis
    works on the absolute value.
    """

    model_config = ConfigDict(frozen=True)

    row_index: int = Field(..., ge=0, description="0-based data-row index in the sheet")
    submitted_at: str = Field(default="", description="Form submission timestamp")
    org_name: str = Field(default="", description="Normalized member organization name")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    contact_email: str = Field(default="")
    contact_phone: str = Field(default="")
    requested: dict[str, float] = Field(
        default_factory=dict, description="Requested dollars per category",
    )
    totals: dict[str, float] = Field(
        default_factory=dict, description="Total project cost per category",
    )
    gaps: dict[str, float] = Field(
        default_factory=dict, description="Stated funding gap per category (may be negative)",
    )
    requested_total: float = Field(default=0.0)
    project_total: float = Field(default=0.0)
    gap_total: float = Field(default=0.0)
    submit_field_plan: str = Field(default="", description="Whether a field plan will follow")
    analyzed: bool = Field(default=False)

    @field_validator("submitted_at", mode="before")
    @classmethod
    def clean_timestamp(cls, v: Any) -> str:
        return _timestamp_text(v)

    @field_validator(
        "org_name", "first_name", "last_name", "contact_email",
        "contact_phone", "submit_field_plan",
        mode="before",
    )
    @classmethod
    def clean_text(cls, v: Any) -> str:
        return normalize_text(v)

    @field_validator("requested", "totals", "gaps", mode="before")
    @classmethod
    def clean_amounts(cls, v: Any) -> dict[str, float]:
        return _clean_amounts(v)

    @field_validator("requested_total", "project_total", "gap_total", mode="before")
    @classmethod
    def clean_number(cls, v: Any) -> float:
        return coerce_number(v)

    @field_validator("analyzed", mode="before")
    @classmethod
    def clean_flag(cls, v: Any) -> bool:
        return coerce_flag(v)

    @classmethod
    def from_row(cls, row: Sequence[Any], row_index: int) -> Budget:
        """Build a Budget from a raw sheet row."""
        data: dict[str, Any] = {
            name: _cell(row, index) for name, index in BUDGET_COLUMNS.items()
        }
        data["requested"], data["totals"], data["gaps"] = {}, {}, {}
        for category, (req_col, total_col, gap_col) in BUDGET_CATEGORY_COLUMNS.items():
            data["requested"][category] = _cell(row, req_col)
            data["totals"][category] = _cell(row, total_col)
            data["gaps"][category] = _cell(row, gap_col)
        data["row_index"] = row_index
        return cls.model_validate(data)

    def requested_for(self, category: str) -> float:
        return self.requested.get(category, 0.0)

    def total_for(self, category: str) -> float:
        return self.totals.get(category, 0.0)

    def gap_for(self, category: str) -> float:
        return self.gaps.get(category, 0.0)

    @property
    def contact_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def not_outreach_total(self) -> float:
        """Requested dollars for indirect (non-outreach) categories."""
        return sum(self.requested_for(c) for c in NOT_OUTREACH_CATEGORIES)

    @property
    def outreach_total(self) -> float:
        """Requested dollars for direct outreach categories."""
        return sum(self.requested_for(c) for c in OUTREACH_CATEGORIES)

    def request_summary(self) -> str:
        """One-paragraph description of the request and its funding gap."""
        requested = self.requested_total
        gap = abs(self.gap_total)
        if requested > 0 and gap == requested:
            return (
                "This program will be entirely funded by this request. Reach out "
                "to ask if they will be seeking additional funds for this program "
                "or if they will only run their program with support from this grant."
            )
        gap_note = (
            " (gap was originally negative, converted to positive for analysis)"
            if self.gap_total < 0 else ""
        )
        project_cost = (
            format_dollars(self.project_total, cents=True)
            if self.project_total else "an unspecified amount"
        )
        return (
            f"{self.org_name} requested {format_dollars(requested, cents=True)} and "
            f"described a funding gap of {format_dollars(gap, cents=True)}{gap_note}. "
            f"Their project costs {project_cost} to run."
        )


# ── Field Plan ──

class FieldPlan(BaseModel):
    """One organization's outreach plan (a row of the field plan sheet).

    List-valued answers are always lists (possibly empty). Tactic blocks
    that fail validation are recorded in ``tactic_errors`` and left out of
    ``tactics``; one malformed block never rejects the whole plan.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    row_index: int = Field(..., ge=0, description="0-based data-row index in the sheet")
    submitted_at: str = Field(default="")
    org_name: str = Field(default="", description="Normalized member organization name")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    contact_email: str = Field(default="")
    contact_phone: str = Field(default="")
    data_storage: list[str] = Field(default_factory=list)
    data_stipend: str = Field(default="")
    data_plan: str = Field(default="")
    van_committee: str = Field(default="")
    data_share: str = Field(default="")
    share_org: str = Field(default="")
    program_tools: list[str] = Field(default_factory=list)
    program_dates: str = Field(default="")
    program_types: str = Field(default="")
    field_tactics: list[str] = Field(default_factory=list)
    field_staff: str = Field(default="")
    field_counties: list[str] = Field(default_factory=list)
    precincts: str = Field(default="")
    diff_precincts: str = Field(default="")
    demo_race: list[str] = Field(default_factory=list)
    demo_age: list[str] = Field(default_factory=list)
    demo_gender: list[str] = Field(default_factory=list)
    demo_affinity: list[str] = Field(default_factory=list)
    plan_confidence: float = Field(default=0.0, description="Self-rated plan confidence (1-10)")
    implementation: str = Field(default="")
    coaching_need: float = Field(default=0.0, description="Coaching confidence score (1-10)")
    form_experience: str = Field(default="")
    tactics: list[Tactic] = Field(default_factory=list)
    tactic_errors: list[TacticValidationError] = Field(default_factory=list)

    @field_validator("submitted_at", mode="before")
    @classmethod
    def clean_timestamp(cls, v: Any) -> str:
        return _timestamp_text(v)

    @field_validator(
        "org_name", "first_name", "last_name", "contact_email", "contact_phone",
        "data_stipend", "data_plan", "van_committee", "data_share", "share_org",
        "program_dates", "program_types", "field_staff", "precincts",
        "diff_precincts", "implementation", "form_experience",
        mode="before",
    )
    @classmethod
    def clean_text(cls, v: Any) -> str:
        return normalize_text(v)

    @field_validator(*_FIELD_PLAN_LIST_FIELDS, mode="before")
    @classmethod
    def clean_list(cls, v: Any, info: ValidationInfo) -> list[str]:
        phrases = (info.context or {}).get("protected_phrases", ())
        return split_list_field(v, phrases)

    @field_validator("plan_confidence", "coaching_need", mode="before")
    @classmethod
    def clean_number(cls, v: Any) -> float:
        return coerce_number(v)

    @classmethod
    def from_row(
        cls,
        row: Sequence[Any],
        row_index: int,
        protected_phrases: Sequence[str] = (),
    ) -> FieldPlan:
        """Build a FieldPlan, parsing each tactic block independently."""
        data: dict[str, Any] = {
            name: _cell(row, index) for name, index in FIELD_PLAN_COLUMNS.items()
        }
        tactics: list[Tactic] = []
        errors: list[TacticValidationError] = []
        for tactic_type in TacticType:
            try:
                tactic = Tactic.from_row(tactic_type, row)
            except TacticValidationError as exc:
                logger.warning(
                    "Field plan row %d (%s): skipping %s tactic: %s",
                    row_index, normalize_text(data["org_name"]), tactic_type.value, exc,
                )
                errors.append(exc)
                continue
            if tactic is not None:
                tactics.append(tactic)
        data.update(row_index=row_index, tactics=tactics, tactic_errors=errors)
        return cls.model_validate(
            data, context={"protected_phrases": list(protected_phrases)},
        )

    @property
    def contact_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def tactic(self, tactic_type: TacticType) -> Tactic | None:
        for tactic in self.tactics:
            if tactic.tactic_type is tactic_type:
                return tactic
        return None

    def has_tactic(self, tactic_type: TacticType) -> bool:
        return self.tactic(tactic_type) is not None

    def coaching_message(self) -> str:
        """Outreach guidance based on the coaching confidence score."""
        score = format_number(self.coaching_need)
        prefix = f"{self.org_name} had a confidence score of {score}."
        if self.coaching_need <= 5:
            return f"{prefix} Reach out to them to confirm what coaching they will need."
        if self.coaching_need <= 8:
            return (
                f"{prefix} Reach out to them to ask if they would like some "
                f"coaching on their field plan."
            )
        return f"{prefix} They did not request coaching on their field plan."
